import os

from vdens.util import checksum, dump_to_file


def test_checksum_empty_is_zero():
    assert checksum(b"") == 0


def test_checksum_single_byte_is_itself():
    assert checksum(b"\x5a") == 0x5A


def test_checksum_of_pair_cancels():
    data = b"abcdef"
    assert checksum(data + data) == 0


def test_checksum_is_order_independent():
    assert checksum(b"\x01\x02\x80") == checksum(b"\x80\x01\x02")


def test_checksum_combines_parts():
    a, b = b"hello", b"world"
    assert checksum(a + b) == checksum(a) ^ checksum(b)


def test_dump_round_trip(tmp_path):
    path = tmp_path / "dump.bin"
    dump_to_file(path, b"\x00\x01packet")
    assert path.read_bytes() == b"\x00\x01packet"


def test_dump_truncates_existing_file(tmp_path):
    path = tmp_path / "dump.bin"
    path.write_bytes(b"a much longer previous content")
    dump_to_file(path, b"short")
    assert path.read_bytes() == b"short"


def test_dump_file_private_to_owner(tmp_path):
    path = tmp_path / "private.bin"
    dump_to_file(path, b"data")
    assert os.stat(path).st_mode & 0o077 == 0