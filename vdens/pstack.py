"""Reassembly of tunnel packets from numbered fragments."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from vdens.header import FLAG_LAST, HEADER_SIZE, TIMEOUT, NstxHeader


@dataclass
class _Pending:
    timestamp: float
    count: int = 0
    chunks: dict[int, bytes] = field(default_factory=dict)

    def contiguous(self) -> int:
        """Number of fragments present in sequence from zero."""
        expected = 0
        for seq in sorted(self.chunks):
            if seq != expected:
                break
            expected += 1
        return expected

    def assemble(self) -> bytes:
        return b"".join(self.chunks[seq] for seq in sorted(self.chunks))


class Reassembler:
    """Collects fragments by packet id and yields whole packets once complete."""

    def __init__(self, timeout: float = TIMEOUT, clock: Callable[[], float] = time.time):
        self.timeout = timeout
        self._clock = clock
        self._items: dict[int, _Pending] = {}

    def handle_packet(self, data: bytes | None) -> bytes | None:
        """Add one fragment; return the reassembled packet when it completes one."""
        if not data or len(data) < HEADER_SIZE:
            return None
        data = bytes(data)
        header = NstxHeader.unpack(data)
        if not header.id:
            return None
        now = self._clock()
        item = self._items.setdefault(header.id, _Pending(now))
        item.timestamp = now
        if header.flags & FLAG_LAST:
            item.count = header.seq + 1
        item.chunks.setdefault(header.seq, data[HEADER_SIZE:])
        packet = None
        if item.count and item.contiguous() == item.count:
            del self._items[header.id]
            packet = item.assemble()
        self._expire()
        return packet

    def pending(self) -> int:
        """Number of packets still waiting for fragments."""
        return len(self._items)

    def _expire(self) -> None:
        now = self._clock()
        stale = [ident for ident, item in self._items.items()
                 if now > item.timestamp + self.timeout]
        for ident in stale:
            del self._items[ident]