[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vdens"
version = "0.1.0"
description = "Tunnel length-prefixed Ethernet frames over DNS queries and TXT answers"
requires-python = ">=3.10"
dependencies = []
keywords = ["dns", "tunnel", "ethernet", "txt", "networking"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
vdens = "vdens.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["vdens"]

[tool.pytest.ini_options]
addopts = "-ra"
