"""Logging of the IP addresses first seen as sources on a plug."""

from __future__ import annotations

import ipaddress
import logging
import os
from collections.abc import Callable, Mapping

MAX_IP = 256
MAX_HOST = 256
UNKNOWN_HOST = "UNKNOWN_IP_ADDRESS"

_ETH_HEADER = 14
_VLAN_TAG = 4
_V4_SRC = slice(12, 16)
_V6_SRC = slice(8, 24)
_V4_PRIMES = (1, 2, 3, 5)
_V6_PRIMES = (1, 2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47)

_log = logging.getLogger("vde_plug")


class TableFullError(RuntimeError):
    """Raised when no slot is left for a new address."""


def hash4(addr: bytes) -> int:
    """Table slot of an IPv4 address."""
    return sum(w * b for w, b in zip(_V4_PRIMES, bytes(addr))) % MAX_IP


def hash6(addr: bytes) -> int:
    """Table slot of an IPv6 address."""
    return sum(w * b for w, b in zip(_V6_PRIMES, bytes(addr))) % MAX_IP


def caller_host(environ: Mapping[str, str] | None = None) -> str:
    """The client address from ``SSH_CLIENT``, or a placeholder when it is unset."""
    env = os.environ if environ is None else environ
    client = env.get("SSH_CLIENT")
    if client is None:
        return UNKNOWN_HOST
    words = client.split(None, 1)
    first = words[0] if words and not client[:1].isspace() else ""
    return first[:MAX_HOST - 1]


class _AddressTable:
    def __init__(self, width: int, hasher: Callable[[bytes], int], label: str):
        self._empty = bytes(width)
        self._slots = [self._empty] * MAX_IP
        self._hasher = hasher
        self._label = label

    def insert(self, addr: bytes) -> bool:
        """Record ``addr``; True if it was not there before."""
        i = self._hasher(addr)
        last = (i + MAX_IP - 1) % MAX_IP
        while True:
            slot = self._slots[i]
            if slot == addr:
                return False
            if slot == self._empty:
                self._slots[i] = addr
                return True
            if i == last:
                raise TableFullError(f"{self._label} table full")
            i = (i + 1) % MAX_IP


class IpLogger:
    """Watches Ethernet frames and reports each new IPv4 or IPv6 source address."""

    def __init__(self, user: str, host: str, log: Callable[[str], object] | None = None):
        self.user = user
        self.host = host
        self._log = log if log is not None else _log.info
        self._v4 = _AddressTable(4, hash4, "IPv4")
        self._v6 = _AddressTable(16, hash6, "IPv6")

    def check(self, frame: bytes) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
        """Inspect a frame; return its source address if it was seen for the first time."""
        frame = bytes(frame)
        if len(frame) < _ETH_HEADER:
            return None
        proto = frame[12:14]
        body = frame[_ETH_HEADER:]
        vlan = 0
        if proto == b"\x81\x00":
            if len(body) < _VLAN_TAG:
                return None
            vlan = int.from_bytes(body[:2], "big") & 0xFFF
            proto = body[2:4]
            body = body[_VLAN_TAG:]
        if proto == b"\x08\x00" and body[:1] == b"\x45" and len(body) >= _V4_SRC.stop:
            addr = body[_V4_SRC]
            if self._v4.insert(addr):
                return self._report(ipaddress.IPv4Address(addr), "VDE-IP4", vlan)
        elif proto == b"\x86\xdd" and body[:1] == b"\x60" and len(body) >= _V6_SRC.stop:
            addr = body[_V6_SRC]
            if self._v6.insert(addr):
                return self._report(ipaddress.IPv6Address(addr), "VDE-IP6", vlan)
        return None

    def _report(self, address, kind: str, vlan: int):
        self._log(f"user {self.user} Real-IP {self.host} has got {kind} {address} on vlan {vlan}")
        return address