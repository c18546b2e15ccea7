"""Small helpers for inspecting tunnel data."""

from __future__ import annotations

import os
from functools import reduce
from operator import xor


def checksum(data: bytes) -> int:
    """XOR of all bytes in ``data``."""
    return reduce(xor, bytes(data), 0)


def dump_to_file(path: str | os.PathLike, data: bytes) -> None:
    """Write ``data`` to ``path``, replacing it, readable by the owner only."""
    fd = os.open(path, os.O_RDWR | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as handle:
        handle.write(bytes(data))