"""Fixed-size sets of small non-negative integers stored as bits."""

from __future__ import annotations

from collections.abc import Iterator


def _set_bits(bits: int) -> Iterator[int]:
    while bits:
        low = bits & -bits
        yield low.bit_length() - 1
        bits ^= low


class BitArray:
    """A set of integers in ``range(size)``, one bit per possible member."""

    def __init__(self, size: int):
        if size < 0:
            raise ValueError("size must not be negative")
        self._size = size
        self._bits = 0

    @property
    def size(self) -> int:
        return self._size

    @property
    def _mask(self) -> int:
        return (1 << self._size) - 1

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self._size:
            raise IndexError(f"bit {index} outside array of size {self._size}")

    def _check_same_size(self, other: BitArray) -> None:
        if other._size != self._size:
            raise ValueError("bit arrays must have the same size")

    def _store(self, bits: int) -> None:
        self._bits = bits

    def resize(self, size: int) -> None:
        """Change the size, keeping the members that still fit."""
        if size < 0:
            raise ValueError("size must not be negative")
        self._size = size
        self._store(self._bits & self._mask)

    def __contains__(self, index: object) -> bool:
        if not isinstance(index, int) or not 0 <= index < self._size:
            return False
        return bool(self._bits >> index & 1)

    def set(self, index: int) -> None:
        """Add ``index`` to the set."""
        self._check_index(index)
        self._store(self._bits | 1 << index)

    def clear(self, index: int) -> None:
        """Remove ``index`` from the set."""
        self._check_index(index)
        self._store(self._bits & ~(1 << index))

    def zap(self) -> None:
        """Remove every member."""
        self._store(0)

    def __iter__(self) -> Iterator[int]:
        return _set_bits(self._bits)

    def __len__(self) -> int:
        return self._bits.bit_count()

    def is_empty(self) -> bool:
        return not self._bits

    def copy_from(self, other: BitArray) -> None:
        """Make this set equal to ``other``, which must have the same size."""
        self._check_same_size(other)
        self._store(other._bits)

    def add(self, other: BitArray) -> None:
        """Add every member of ``other``."""
        self._check_same_size(other)
        self._store(self._bits | other._bits)

    def remove(self, other: BitArray) -> None:
        """Remove every member of ``other``."""
        self._check_same_size(other)
        self._store(self._bits & ~other._bits)

    def negate(self) -> None:
        """Replace the set with its complement within ``range(size)``."""
        self._store(~self._bits & self._mask)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BitArray):
            return NotImplemented
        return self._size == other._size and self._bits == other._bits

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._size}, {list(self)})"


class CountedBitArray(BitArray):
    """A bit array that keeps its member count so counting and emptiness are immediate."""

    def __init__(self, size: int):
        super().__init__(size)
        self._count = 0

    def _store(self, bits: int) -> None:
        self._bits = bits
        self._count = bits.bit_count()

    def set(self, index: int) -> None:
        self._check_index(index)
        bit = 1 << index
        if not self._bits & bit:
            self._bits |= bit
            self._count += 1

    def clear(self, index: int) -> None:
        self._check_index(index)
        bit = 1 << index
        if self._bits & bit:
            self._bits &= ~bit
            self._count -= 1

    def zap(self) -> None:
        self._bits = 0
        self._count = 0

    def __iter__(self) -> Iterator[int]:
        remaining = self._count
        if not remaining:
            return
        for index in _set_bits(self._bits):
            yield index
            remaining -= 1
            if not remaining:
                return

    def __len__(self) -> int:
        return self._count

    def is_empty(self) -> bool:
        return self._count == 0