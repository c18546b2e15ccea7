"""Ethernet frames tunnelled over DNS queries and TXT answers, with supporting helpers."""

__version__ = "0.1.0"