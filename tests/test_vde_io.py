import io
import os

import pytest

from vdens.vde_io import Source, StreamFramer, TunnelIO


@pytest.fixture
def make_pipe():
    opened = []

    def factory():
        r, w = os.pipe()
        reader = open(r, "rb", buffering=0)
        writer = open(w, "wb", buffering=0)
        opened.extend([reader, writer])
        return reader, writer

    yield factory
    for handle in opened:
        if not handle.closed:
            handle.close()


def test_framer_complete_frame():
    assert StreamFramer().feed(b"\x00\x03abc") == [b"\x00\x03abc"]


def test_framer_split_frame():
    framer = StreamFramer()
    assert framer.feed(b"\x00\x05ab") == []
    assert framer.pending == 4
    assert framer.feed(b"cde") == [b"\x00\x05abcde"]
    assert framer.pending == 0


def test_framer_several_frames_and_empty_frame():
    framer = StreamFramer()
    assert framer.feed(b"\x00\x01a\x00\x02bc\x00") == [b"\x00\x01a", b"\x00\x02bc"]
    assert framer.feed(b"\x00") == [b"\x00\x00"]


def test_select_reads_frame(make_pipe):
    reader, writer = make_pipe()
    tio = TunnelIO(reader, io.BytesIO())
    writer.write(b"\x00\x04ping")
    msg = tio.select(1)
    assert msg.source is Source.FROM_TUN
    assert msg.data == b"\x00\x04ping"
    assert msg.peer is None


def test_select_reads_one_frame_at_a_time(make_pipe):
    reader, writer = make_pipe()
    tio = TunnelIO(reader, io.BytesIO())
    writer.write(b"\x00\x01a\x00\x02bc")
    assert tio.select(1).data == b"\x00\x01a"
    assert tio.select(1).data == b"\x00\x02bc"


def test_select_timeout(make_pipe):
    reader, _ = make_pipe()
    tio = TunnelIO(reader, io.BytesIO())
    assert tio.select(0) is None


def test_select_eof(make_pipe):
    reader, writer = make_pipe()
    tio = TunnelIO(reader, io.BytesIO())
    writer.close()
    with pytest.raises(EOFError):
        tio.select(1)


def test_select_truncated_frame(make_pipe):
    reader, writer = make_pipe()
    tio = TunnelIO(reader, io.BytesIO())
    writer.write(b"\x00\x05ab")
    writer.close()
    with pytest.raises(EOFError):
        tio.select(1)


def test_send_vde_writes_whole_frames(make_pipe):
    reader, _ = make_pipe()
    out = io.BytesIO()
    tio = TunnelIO(reader, out)
    tio.send_vde(b"\x00\x02hi\x00\x03ab")
    assert out.getvalue() == b"\x00\x02hi"
    tio.send_vde(b"c")
    assert out.getvalue() == b"\x00\x02hi\x00\x03abc"


def test_send_vde_empty(make_pipe):
    reader, _ = make_pipe()
    out = io.BytesIO()
    TunnelIO(reader, out).send_vde(b"")
    assert out.getvalue() == b""


def test_loopback_exchange(make_pipe):
    server = TunnelIO(make_pipe()[0], io.BytesIO())
    client = TunnelIO(make_pipe()[0], io.BytesIO())
    server.port = 0
    with server, client:
        server.open_server("127.0.0.1")
        client.port = server.sock.getsockname()[1]
        client.open_client("127.0.0.1")
        client.send_dns(b"query", None)
        msg = server.select(2)
        assert msg.source is Source.FROM_NS
        assert msg.data == b"query"
        server.send_dns(b"answer", msg.peer)
        reply = client.select(2)
        assert reply.source is Source.FROM_NS
        assert reply.data == b"answer"


def test_open_client_rejects_bad_address(make_pipe):
    tio = TunnelIO(make_pipe()[0], io.BytesIO())
    with pytest.raises(OSError):
        tio.open_client("not an address")
    assert tio.sock is None


def test_send_dns_without_socket(make_pipe):
    tio = TunnelIO(make_pipe()[0], io.BytesIO())
    with pytest.raises(RuntimeError):
        tio.send_dns(b"data", None)


def test_close_drops_socket(make_pipe):
    tio = TunnelIO(make_pipe()[0], io.BytesIO())
    tio.port = 0
    tio.open_server("127.0.0.1")
    tio.close()
    assert tio.sock is None