"""Input and output for the tunnel: the local packet stream and the nameserver socket."""

from __future__ import annotations

import enum
import errno
import logging
import os
import selectors
import socket
import sys
from dataclasses import dataclass
from typing import BinaryIO

from vdens.header import MAX_MESSAGE

log = logging.getLogger(__name__)

DNS_PORT = 53
_LENGTH_SIZE = 2


class Source(enum.IntEnum):
    """Where a message came from."""

    FROM_NS = 0
    FROM_TUN = 1


@dataclass
class Message:
    """A packet read from the nameserver socket or from the local stream."""

    data: bytes
    source: Source
    peer: tuple | None = None


class StreamFramer:
    """Splits a byte stream into frames that carry a two-byte big-endian length prefix.

    Each frame returned includes its prefix.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, data: bytes) -> list[bytes]:
        """Add bytes to the stream; return every frame now complete."""
        self._buffer += data
        frames = []
        while len(self._buffer) >= _LENGTH_SIZE:
            size = _LENGTH_SIZE + int.from_bytes(self._buffer[:_LENGTH_SIZE], "big")
            if len(self._buffer) < size:
                break
            frames.append(bytes(self._buffer[:size]))
            del self._buffer[:size]
        return frames

    @property
    def pending(self) -> int:
        """Bytes held back waiting for the rest of a frame."""
        return len(self._buffer)


class TunnelIO:
    """Moves frames between a local stream and a UDP nameserver socket."""

    port = DNS_PORT

    def __init__(self, infile: BinaryIO | None = None, outfile: BinaryIO | None = None):
        self.infile = infile if infile is not None else sys.stdin.buffer
        self.outfile = outfile if outfile is not None else sys.stdout.buffer
        self.sock: socket.socket | None = None
        self._framer = StreamFramer()

    def __enter__(self) -> TunnelIO:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _new_socket(self) -> socket.socket:
        self.close()
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        return self.sock

    def open_client(self, ip: str) -> None:
        """Open a UDP socket connected to the nameserver at ``ip``."""
        socket.inet_aton(ip)
        sock = self._new_socket()
        try:
            sock.connect((ip, self.port))
        except OSError:
            self.close()
            raise
        log.info("using nameserver %s", ip)

    def open_server(self, bind_ip: str = "0.0.0.0") -> None:
        """Open a UDP socket listening on the nameserver port of ``bind_ip``."""
        sock = self._new_socket()
        try:
            sock.bind((bind_ip, self.port))
        except OSError as exc:
            self.close()
            where = "all local IPs" if bind_ip in ("", "0.0.0.0") else "the specified IP"
            if exc.errno == errno.EADDRINUSE:
                message = (f"address is in use, please kill other processes listening "
                           f"on UDP port {self.port} on {where}")
            elif exc.errno in (errno.EACCES, errno.EPERM):
                message = (f"permission denied binding port {self.port}; you generally "
                           f"have to be root to bind privileged ports")
            else:
                raise
            raise OSError(exc.errno, message) from exc
        log.info("listening on %d/UDP", self.port)

    def _read_exact(self, count: int) -> bytes:
        fd = self.infile.fileno()
        data = bytearray()
        while len(data) < count:
            chunk = os.read(fd, count - len(data))
            if not chunk:
                break
            data += chunk
        return bytes(data)

    def _read_frame(self) -> bytes:
        head = self._read_exact(_LENGTH_SIZE)
        if len(head) < _LENGTH_SIZE:
            raise EOFError("local stream closed")
        size = int.from_bytes(head, "big")
        body = self._read_exact(size)
        if len(body) < size:
            raise EOFError("local stream closed inside a frame")
        return head + body

    def select(self, timeout: float | None = None) -> Message | None:
        """Wait up to ``timeout`` seconds for one message; None if nothing arrived."""
        with selectors.DefaultSelector() as selector:
            selector.register(self.infile, selectors.EVENT_READ, Source.FROM_TUN)
            if self.sock is not None:
                selector.register(self.sock, selectors.EVENT_READ, Source.FROM_NS)
            ready = {key.data for key, _ in selector.select(timeout)}
        if Source.FROM_TUN in ready:
            return Message(self._read_frame(), Source.FROM_TUN)
        if Source.FROM_NS in ready and self.sock is not None:
            data, peer = self.sock.recvfrom(MAX_MESSAGE)
            if data:
                return Message(data, Source.FROM_NS, peer)
        return None

    def send_vde(self, data: bytes) -> None:
        """Write the complete frames found in ``data`` to the local stream."""
        if not data:
            return
        frames = self._framer.feed(bytes(data))
        for frame in frames:
            self.outfile.write(frame)
        if frames:
            self.outfile.flush()

    def send_dns(self, data: bytes, peer: tuple | None = None) -> None:
        """Send a DNS packet to ``peer``, or to the connected nameserver when None."""
        if self.sock is None:
            raise RuntimeError("no nameserver socket is open")
        if peer is not None:
            self.sock.sendto(data, peer)
        else:
            self.sock.send(data)

    def close(self) -> None:
        """Close the nameserver socket."""
        if self.sock is not None:
            self.sock.close()
            self.sock = None