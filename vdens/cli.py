"""Tunnel a packet stream through DNS queries and TXT replies."""

from __future__ import annotations

import argparse
import logging
import socket
import sys
import time
from collections import deque
from dataclasses import dataclass

from vdens.dns import DnsError, DnsPacket, PacketType, TunnelDomain, txt_to_data
from vdens.encode import decode, encode
from vdens.header import FLAG_LAST, HEADER_SIZE, NstxHeader
from vdens.pstack import Reassembler
from vdens.queue import QueryQueue, QueueItem
from vdens.vde_io import Source, TunnelIO

log = logging.getLogger(__name__)

DRQLEN = 10
CLIENT_QUEUE_TIMEOUT = 10
EX_USAGE = 64
EX_OSERR = 71
TIMEOUT_PAYLOAD = NstxHeader().pack()


@dataclass
class _SendItem:
    id: int
    data: bytes
    offset: int = 0
    seq: int = 0


class SendQueue:
    """Packets waiting to be cut into fragments and sent."""

    def __init__(self) -> None:
        self._items: deque[_SendItem] = deque()
        self._last_id = 0

    def push(self, data: bytes) -> None:
        """Queue a packet under the next packet id."""
        self._last_id += 1
        self._items.append(_SendItem(self._last_id, bytes(data)))

    def next_fragment(self, space: int) -> bytes:
        """Cut the next fragment, header included, of at most ``space`` bytes."""
        if not self._items:
            raise IndexError("send queue is empty")
        if space < HEADER_SIZE:
            raise ValueError("no room for a fragment header")
        item = self._items[0]
        size = min(space - HEADER_SIZE, len(item.data) - item.offset)
        header = NstxHeader(seq=item.seq, id=item.id)
        chunk = item.data[item.offset:item.offset + size]
        item.seq += 1
        item.offset += size
        if item.offset == len(item.data):
            header.flags = FLAG_LAST
            self._items.popleft()
        return header.pack() + chunk

    def __len__(self) -> int:
        return len(self._items)


class Client:
    """Sends packets as queries and keeps queries outstanding for the server's replies."""

    def __init__(self, domain: TunnelDomain, io: TunnelIO, queue: QueryQueue | None = None):
        self.domain = domain
        self.io = io
        self.queue = queue if queue is not None else QueryQueue(timeout=CLIENT_QUEUE_TIMEOUT)
        now = int(time.time())
        self.query_id = now
        self.packet_id = now
        self.reassembler = Reassembler()

    def build_queries(self, data: bytes = b"") -> list[bytes]:
        """Encode ``data`` as one or more DNS queries, queuing each query id."""
        data = bytes(data)
        header = NstxHeader(id=self.packet_id)
        self.packet_id += 1
        packets = []
        pos = 0
        while True:
            packet = DnsPacket(id=self.query_id & 0xFFFF, kind=PacketType.QUERY)
            space = self.domain.free_space(packet, PacketType.QUERY)
            if space <= HEADER_SIZE:
                raise DnsError("no free space in DNS packet")
            size = space - HEADER_SIZE
            if size >= len(data) - pos:
                size = len(data) - pos
                header.flags = FLAG_LAST
            payload = header.pack() + data[pos:pos + size]
            pos += size
            packet.add_query(self.domain.data_to_fqdn(encode(payload)))
            packets.append(packet.build())
            self.queue.push_id(self.query_id)
            self.query_id += 1
            header.seq += 1
            if pos >= len(data):
                return packets

    def handle_reply(self, reply: bytes) -> list[bytes]:
        """Take in a server reply; return the packets it completed."""
        try:
            packet = DnsPacket.parse(reply)
        except DnsError as exc:
            log.debug("ignoring reply: %s", exc)
            return []
        delivered = []
        while (data := packet.pop_answer()) is not None:
            try:
                fragment = txt_to_data(data)
            except DnsError:
                continue
            whole = self.reassembler.handle_packet(fragment)
            if whole is not None:
                self.io.send_vde(whole)
                delivered.append(whole)
        self.queue.pop(packet.id)
        return delivered

    def _send(self, data: bytes) -> None:
        for packet in self.build_queries(data):
            self.io.send_dns(packet, None)

    def run(self) -> None:
        """Relay until the local stream closes."""
        try:
            while True:
                msg = self.io.select(1)
                if msg is not None:
                    if msg.source is Source.FROM_NS:
                        self.handle_reply(msg.data)
                    else:
                        self._send(msg.data)
                self.queue.expire()
                while len(self.queue) < DRQLEN:
                    self._send(b"")
        except EOFError:
            return


class Server:
    """Answers tunnel queries, carrying queued packets back in TXT replies."""

    def __init__(self, domain: TunnelDomain, io: TunnelIO, queue: QueryQueue | None = None):
        self.domain = domain
        self.io = io
        self.queue = queue if queue is not None else QueryQueue()
        self.outgoing = SendQueue()
        self.reassembler = Reassembler()

    def handle_query(self, data: bytes, peer: tuple | None = None) -> bytes | None:
        """Queue the query for an answer and take in the fragment it carries."""
        try:
            packet = DnsPacket.parse(data)
        except DnsError as exc:
            log.debug("ignoring query: %s", exc)
            return None
        name = packet.pop_query()
        if name is None:
            return None
        log.debug("asked for name %r", name)
        try:
            self.queue.push(packet.id, name, peer)
        except ValueError:
            return None
        text = self.domain.fqdn_to_data(name)
        if not text:
            return None
        try:
            fragment = decode(text)
        except ValueError:
            return None
        whole = self.reassembler.handle_packet(fragment)
        if whole is not None:
            self.io.send_vde(whole)
        return whole

    def build_responses(self) -> list[tuple[bytes, tuple | None]]:
        """Answer queued queries with fragments of outgoing packets."""
        responses = []
        while len(self.queue) and len(self.outgoing):
            item = self.queue.pop()
            packet = DnsPacket(id=item.id, kind=PacketType.RESPONSE)
            link = packet.add_query(item.name)
            space = self.domain.free_space(packet, PacketType.RESPONSE)
            packet.add_answer(self.outgoing.next_fragment(space), link)
            responses.append((packet.build(), item.peer))
        return responses

    def timeout_response(self, item: QueueItem) -> bytes:
        """An empty reply for a query that waited too long."""
        packet = DnsPacket(id=item.id, kind=PacketType.RESPONSE)
        packet.add_answer(TIMEOUT_PAYLOAD, packet.add_query(item.name))
        return packet.build()

    def run(self) -> None:
        """Serve until the local stream closes."""
        try:
            while True:
                msg = self.io.select(1)
                if msg is not None:
                    if msg.source is Source.FROM_NS:
                        self.handle_query(msg.data, msg.peer)
                    else:
                        self.outgoing.push(msg.data)
                for packet, peer in self.build_responses():
                    self.io.send_dns(packet, peer)
                self.queue.expire(
                    lambda item: self.io.send_dns(self.timeout_response(item), item.peer)
                )
        except EOFError:
            return


def _usage(prog: str) -> str:
    return (
        f"usage: {prog} [-c DNSSERVER] [-s VDESOCK] [-i IP] [-D] <domainname>\n"
        "Options:\n"
        "\t-i IP (bind to port 53 on this IP only)\n\n"
        "\t-D (detach from terminal)\n\n"
        "\t-c DNSSERVER: Client mode. Tries to 'connect' to DNSSERVER.\n"
        "\t\t(if this is not specified, server mode will be enabled by default.)\n\n"
        "\t-s VDESOCKET: Attach to socket VDESOCKET\n"
        "\t\t(if not specified, use stdin/stdout)\n\n"
        "example:\n"
        f"\t{prog} -c 1.2.3.4 tun.vdevirtualnetwork.foo [Client mode]\n"
        f"\t{prog} tun.vdevirtualnetwork.foo [Server mode]"
    )


class _UsageError(Exception):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise _UsageError(message)


def _valid_ipv4(text: str) -> bool:
    try:
        packed = socket.inet_aton(text)
    except OSError:
        return False
    return packed != b"\xff\xff\xff\xff"


def main(argv: list[str] | None = None) -> int:
    """Run the tunnel in client or server mode; return the exit status."""
    args_list = sys.argv[1:] if argv is None else list(argv)
    prog = "vdens"
    parser = _ArgumentParser(prog=prog, add_help=False)
    parser.add_argument("-D", dest="daemonize", action="store_true")
    parser.add_argument("-h", dest="help", action="store_true")
    parser.add_argument("-g", dest="debug", action="store_true")
    parser.add_argument("-i", dest="bind")
    parser.add_argument("-s", dest="vdesock")
    parser.add_argument("-c", dest="server")
    parser.add_argument("domain", nargs="?")
    try:
        args = parser.parse_args(args_list)
    except _UsageError as exc:
        print(f"{prog}: {exc}", file=sys.stderr)
        print(_usage(prog), file=sys.stderr)
        return EX_USAGE
    if args.help:
        print(_usage(prog), file=sys.stderr)
        return 0
    if args.bind is not None and not _valid_ipv4(args.bind):
        print(f"`{args.bind}' is not an IP-address", file=sys.stderr)
        return EX_USAGE
    if args.domain is None:
        print(_usage(prog), file=sys.stderr)
        return EX_USAGE
    try:
        domain = TunnelDomain(args.domain)
    except DnsError as exc:
        print(f"{prog}: {exc}", file=sys.stderr)
        return EX_USAGE
    if args.vdesock is not None:
        print(f"{prog}: cannot attach to VDE socket {args.vdesock}: "
              "only stdin/stdout is available", file=sys.stderr)
        return 1

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO,
                        format=f"{prog}: %(message)s")
    if args.daemonize:
        log.warning("detaching is not supported; running in the foreground")

    with TunnelIO() as tio:
        try:
            if args.server is not None:
                print("Client Mode", file=sys.stderr)
                tio.open_client(args.server)
                runner = Client(domain, tio)
            else:
                print("Server Mode", file=sys.stderr)
                tio.open_server(args.bind or "0.0.0.0")
                runner = Server(domain, tio)
        except OSError as exc:
            print(f"{prog}: {exc}", file=sys.stderr)
            return 1
        runner.run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())