import pytest

from vdens.encode import ALPHABET, decode, encode


def test_empty_data_encodes_to_padding_marker_only():
    assert encode(b"") == "a"


def test_zero_bytes_map_to_first_symbol():
    assert encode(b"\x00\x00\x00") == "aaaaa"


def test_all_ones_map_to_last_symbol():
    assert encode(b"\xff\xff\xff") == "a0000"


@pytest.mark.parametrize("length", [0, 1, 2, 3, 4, 5, 17, 100, 255])
def test_round_trip(length):
    data = bytes((i * 37 + 11) % 256 for i in range(length))
    assert decode(encode(data)) == data


@pytest.mark.parametrize("length", [1, 2, 3, 4, 10, 11, 12])
def test_encoded_length_and_alphabet(length):
    text = encode(bytes(range(length)))
    assert len(text) == 1 + 4 * ((length + 2) // 3)
    assert set(text) <= set(ALPHABET)


@pytest.mark.parametrize("length", [3, 4, 5])
def test_first_character_counts_padding(length):
    assert encode(bytes(length))[0] == ALPHABET[-length % 3]


def test_decode_accepts_bytes():
    data = b"tunnel payload"
    assert decode(encode(data).encode("ascii")) == data


def test_decode_ignores_incomplete_trailing_group():
    assert decode(encode(b"abc") + "xy") == b"abc"


def test_decode_stops_at_nul():
    assert decode(encode(b"abcdef") + "\0garbage") == b"abcdef"


def test_decode_empty_raises():
    with pytest.raises(ValueError):
        decode("")


def test_decode_invalid_character_raises():
    with pytest.raises(ValueError):
        decode("a+bcd")


def test_decode_padding_larger_than_data_raises():
    with pytest.raises(ValueError):
        decode("z")