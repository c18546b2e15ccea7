"""The tunnel fragment header and protocol constants."""

from __future__ import annotations

from dataclasses import dataclass

MAGIC = 0xB4
FLAG_LAST = 0x1
FLAG_CTL = 0x2
HEADER_SIZE = 4
TIMEOUT = 30
QUEUE_TIMEOUT = 5
MAX_MESSAGE = 2000


@dataclass
class NstxHeader:
    """Header in front of every fragment: magic, sequence, channel, packet id and flags.

    Fields wider than their slot on the wire are truncated when packed.
    """

    magic: int = MAGIC
    seq: int = 0
    chan: int = 0
    id: int = 0
    flags: int = 0

    @property
    def is_last(self) -> bool:
        return bool(self.flags & FLAG_LAST)

    def pack(self) -> bytes:
        """Encode to the four-byte wire form."""
        word = (self.id & 0x0FFF) | (self.flags & 0xF) << 12
        return bytes((
            self.magic & 0xFF,
            (self.seq & 0xF) | (self.chan & 0xF) << 4,
            word & 0xFF,
            word >> 8,
        ))

    @classmethod
    def unpack(cls, data: bytes) -> NstxHeader:
        """Decode the header at the start of ``data``."""
        data = bytes(data)
        if len(data) < HEADER_SIZE:
            raise ValueError("data too short for a fragment header")
        word = data[2] | data[3] << 8
        return cls(
            magic=data[0],
            seq=data[1] & 0xF,
            chan=data[1] >> 4,
            id=word & 0x0FFF,
            flags=word >> 12,
        )