"""DNS packet handling for carrying tunnel data in TXT queries and replies."""

from __future__ import annotations

import enum
import logging
import struct
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

MAX_PACKET = 512
TYPE_TXT = 0x0010
CLASS_IN = 0x0001
MAX_LABEL = 63
MAX_TXT_CHUNK = 255
MAX_POINTER_HOPS = 20

_HEADER = struct.Struct(">HHHHHH")
_ANSWER_HEADER = struct.Struct(">HHIH")
_QUESTION_TAIL = struct.Struct(">HH")
_POINTER = struct.Struct(">H")
_MIN_PACKET = 17
_FLAGS_RESPONSE = 0x8480  # response, authoritative, recursion available
_FLAGS_QUERY = 0x0100  # recursion desired
_FLAG_QR = 0x8000


class DnsError(ValueError):
    """Raised when a name or packet cannot be encoded or decoded."""


class PacketType(enum.IntEnum):
    QUERY = 0x01
    RESPONSE = 0x02


def _as_bytes(value: str | bytes | bytearray | memoryview) -> bytes:
    if isinstance(value, str):
        return value.encode("ascii")
    return bytes(value)


def _c_string(value: bytes) -> bytes:
    """The part of ``value`` before its first NUL byte."""
    return value.split(b"\0", 1)[0]


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b >= 0) else -quotient


def _chunk(data: bytes, size: int) -> bytes:
    """Split ``data`` into length-prefixed pieces of at most ``size`` bytes, NUL terminated."""
    out = bytearray()
    for start in range(0, len(data), size):
        piece = data[start:start + size]
        out.append(len(piece))
        out += piece
    out.append(0)
    return bytes(out)


def encode_labels(name: str | bytes) -> bytes:
    """Encode a dotted name as DNS labels, ending with the root label."""
    *heads, last = _as_bytes(name).split(b".")
    out = bytearray()
    for label in heads:
        if not 0 < len(label) <= MAX_LABEL:
            raise DnsError(f"too long or zero-length label: {label!r}")
        out.append(len(label))
        out += label
    if len(last) > 0xFF:
        raise DnsError(f"label too long to encode: {last!r}")
    out.append(len(last))
    out += last
    out.append(0)
    return bytes(out)


def decompress_label(msg: bytes, offset: int) -> bytes:
    """Return the name at ``offset`` in ``msg`` as plain labels, following pointers."""
    msg = bytes(msg)
    if not 0 <= offset < len(msg):
        raise DnsError("name offset outside message")
    out = bytearray()
    pos = offset
    hops = 0
    while length := msg[pos]:
        if length > MAX_LABEL:
            if pos >= len(msg) - 1:
                raise DnsError("bad pointer at end of message")
            if hops > MAX_POINTER_HOPS:
                raise DnsError("too many pointer loops")
            target = (length & 0x3F) << 8 | msg[pos + 1]
            if target >= len(msg):
                raise DnsError("pointer offset behind message")
            pos = target
            hops += 1
        else:
            if pos + length + 1 >= len(msg):
                raise DnsError("invalid label length")
            out += msg[pos:pos + length + 1]
            pos += length + 1
    if not out:
        raise DnsError("empty name")
    out.append(0)
    return bytes(out)


def data_to_txt(data: bytes) -> bytes:
    """Encode raw bytes as a sequence of TXT character strings ending with an empty one."""
    return _chunk(_as_bytes(data), MAX_TXT_CHUNK)


def txt_to_data(data: bytes) -> bytes:
    """Join TXT character strings up to the first empty one."""
    data = bytes(data)
    out = bytearray()
    pos = 0
    while True:
        if pos >= len(data):
            raise DnsError("TXT data lacks a terminating empty string")
        length = data[pos]
        pos += 1
        if length > len(data) - pos:
            raise DnsError("TXT string runs past end of data")
        if not length:
            return bytes(out)
        out += data[pos:pos + length]
        pos += length


def label_to_data(data: bytes) -> bytes:
    """Concatenate the contents of consecutive labels, stopping at the first bad one."""
    data = bytes(data)
    out = bytearray()
    pos = 0
    while pos < len(data):
        length = data[pos]
        pos += 1
        if length == 0 or length > MAX_LABEL or length > len(data) - pos:
            break
        out += data[pos:pos + length]
        pos += length
    return bytes(out)


def _skip_name(buf: bytes, pos: int) -> int:
    """Return the position just past the name starting at ``pos``."""
    while True:
        if pos >= len(buf):
            raise DnsError("name runs past end of packet")
        length = buf[pos]
        if length == 0:
            return pos + 1
        if length & 0xC0:
            if pos + 1 >= len(buf):
                raise DnsError("pointer runs past end of packet")
            return pos + 2
        pos += length + 1


@dataclass
class ResourceRecord:
    """A query name or answer payload; ``data`` is None for answers that are not TXT."""

    data: bytes | None
    link: int = 0


@dataclass
class DnsPacket:
    """A DNS packet holding TXT questions and answers."""

    id: int = 0
    kind: PacketType = PacketType.QUERY
    queries: list[ResourceRecord] = field(default_factory=list)
    answers: list[ResourceRecord] = field(default_factory=list)

    def add_query(self, data: str | bytes) -> int:
        """Append a label-encoded query name; return its index."""
        name = _c_string(_as_bytes(data)) + b"\0"
        self.queries.append(ResourceRecord(name))
        return len(self.queries) - 1

    def add_answer(self, data: bytes, link: int) -> int:
        """Append a TXT answer for query ``link``; return the answer's index."""
        self.answers.append(ResourceRecord(data_to_txt(data), link))
        return len(self.answers) - 1

    def size(self) -> int:
        """Size in bytes of the packet once built."""
        return (
            _HEADER.size
            + sum(len(q.data or b"") + _QUESTION_TAIL.size for q in self.queries)
            + sum(
                len(a.data or b"") + _POINTER.size + _ANSWER_HEADER.size
                for a in self.answers
            )
        )

    def build(self) -> bytes:
        """Serialise the packet to wire format."""
        size = self.size()
        if size > MAX_PACKET:
            log.warning("constructed non-conforming DNS packet (size: %d)", size)
        flags = _FLAGS_RESPONSE if self.kind == PacketType.RESPONSE else _FLAGS_QUERY
        out = bytearray(
            _HEADER.pack(self.id & 0xFFFF, flags, len(self.queries), len(self.answers), 0, 0)
        )
        offsets = []
        for query in self.queries:
            offsets.append(len(out))
            out += query.data or b""
            out += _QUESTION_TAIL.pack(TYPE_TXT, CLASS_IN)
        for answer in self.answers:
            if not 0 <= answer.link < len(offsets):
                raise DnsError(f"answer links to missing query {answer.link}")
            target = offsets[answer.link]
            if target > 0x3FFF:
                raise DnsError("query offset too large for a pointer")
            rdata = answer.data or b""
            out += _POINTER.pack(0xC000 | target)
            out += _ANSWER_HEADER.pack(TYPE_TXT, CLASS_IN, 0, len(rdata))
            out += rdata
        return bytes(out)

    @classmethod
    def parse(cls, buf: bytes) -> DnsPacket:
        """Decode a wire-format packet."""
        buf = bytes(buf)
        if len(buf) < _MIN_PACKET:
            raise DnsError("packet too short")
        ident, flags, qdcount, ancount, _, _ = _HEADER.unpack_from(buf)
        kind = PacketType.RESPONSE if flags & _FLAG_QR else PacketType.QUERY
        packet = cls(id=ident, kind=kind)
        pos = _HEADER.size
        offsets: list[int] = []
        for _ in range(qdcount):
            offsets.append(pos)
            packet.queries.append(ResourceRecord(decompress_label(buf, pos)))
            pos = _skip_name(buf, pos) + _QUESTION_TAIL.size
        for _ in range(ancount):
            link = -1
            if pos + 1 < len(buf) and buf[pos] & 0xC0 == 0xC0:
                target = (buf[pos] & 0x3F) << 8 | buf[pos + 1]
                if target in offsets:
                    link = offsets.index(target)
            pos = _skip_name(buf, pos)
            if pos + _ANSWER_HEADER.size > len(buf):
                raise DnsError("answer header runs past end of packet")
            rtype, _, _, length = _ANSWER_HEADER.unpack_from(buf, pos)
            pos += _ANSWER_HEADER.size
            data = None
            if rtype == TYPE_TXT:
                if pos + length > len(buf):
                    raise DnsError("answer data runs past end of packet")
                data = buf[pos:pos + length]
            packet.answers.append(ResourceRecord(data, link))
            pos += length
        return packet

    def pop_query(self) -> bytes | None:
        """Remove the first query and return its name, or None if there is none."""
        return self.queries.pop(0).data if self.queries else None

    def pop_answer(self) -> bytes | None:
        """Remove the first answer and return its data, or None if there is none."""
        return self.answers.pop(0).data if self.answers else None


class TunnelDomain:
    """The domain under which tunnel data is carried as query names."""

    def __init__(self, suffix: str | bytes):
        self.suffix = _as_bytes(suffix)
        self.labels = encode_labels(self.suffix)
        self._suffix_len = len(self.suffix) + 1

    def data_to_fqdn(self, data: str | bytes) -> bytes:
        """Place encoded text in labels in front of the tunnel domain."""
        raw = _c_string(_as_bytes(data))
        return _chunk(raw, MAX_LABEL)[:-1] + self.labels

    def fqdn_to_data(self, fqdn: str | bytes) -> bytes | None:
        """Recover the text in front of the tunnel domain, or None if the name is not ours."""
        raw = _c_string(_as_bytes(fqdn))
        at = raw.find(self.labels[:-1])
        if at <= 0:
            return None
        return _c_string(label_to_data(raw[:at]))

    def free_space(self, packet: DnsPacket, kind: PacketType | int) -> int:
        """Bytes of payload that still fit in ``packet`` when sent as ``kind``."""
        raw = MAX_PACKET - packet.size()
        if raw < 0:
            raise DnsError("packet exceeds maximum DNS size")
        if kind == PacketType.RESPONSE:
            room = min(raw - 14, 253)
        elif kind == PacketType.QUERY:
            room = min(
                _trunc_div(189 * (254 - self._suffix_len), 256) - 6,
                183 - _trunc_div(189 * self._suffix_len, 256),
            )
        else:
            room = 0
        return max(room, 0)