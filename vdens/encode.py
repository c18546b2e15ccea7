"""Text encoding of binary tunnel data into characters valid in DNS labels."""

from __future__ import annotations

import base64

ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ-_1234567890"

_STANDARD = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_TO_TUNNEL = str.maketrans(_STANDARD, ALPHABET)
_FROM_TUNNEL = str.maketrans(ALPHABET, _STANDARD)
_VALID = frozenset(ALPHABET)


def encode(data: bytes) -> str:
    """Encode bytes; the first character records how many padding bytes were added."""
    data = bytes(data)
    cut = -len(data) % 3
    body = base64.b64encode(data + b"\0" * cut).decode("ascii").translate(_TO_TUNNEL)
    return ALPHABET[cut] + body


def decode(text: str | bytes) -> bytes:
    """Reverse :func:`encode`; characters after the last complete group are ignored."""
    if isinstance(text, (bytes, bytearray, memoryview)):
        text = bytes(text).decode("latin-1")
    text = text.split("\0", 1)[0]
    if not text:
        raise ValueError("nothing to decode")
    groups = (len(text) - 1) // 4 * 4
    used = text[:1 + groups]
    invalid = set(used) - _VALID
    if invalid:
        raise ValueError(f"invalid characters in encoded data: {''.join(sorted(invalid))!r}")
    cut = ALPHABET.index(text[0])
    raw = base64.b64decode(used[1:].translate(_FROM_TUNNEL))
    if cut > len(raw):
        raise ValueError("padding count exceeds decoded length")
    return raw[:len(raw) - cut]