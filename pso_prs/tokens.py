from dataclasses import dataclass
from typing import Union


class Prs:
    """Constants of the PRS format"""
    # Copies reach back at most this many bytes minus one
    WINDOW_SIZE = 0x1ff0
    MIN_INPUT_SIZE = 3
    MIN_MATCH_SIZE = 3
    MAX_COPY_SIZE = 0xff

    SHORT_COPY_MIN_SIZE = 2
    SHORT_COPY_MAX_SIZE = 5
    # Exclusive
    SHORT_COPY_MIN_OFFSET = -0x100
    SHORT_COPY_OFFSET_MASK = -0x100

    LONG_COPY_INLINE_MAX_SIZE = 9
    LONG_COPY_MAX_SIZE = 0x100
    # Exclusive, an offset word of zero is the end marker
    LONG_COPY_MIN_OFFSET = -0x2000
    LONG_COPY_OFFSET_MASK = -0x2000
    LONG_COPY_SIZE_MASK = 0b111

    @staticmethod
    def max_compressed_size(size: int) -> int:
        """Worst case: every byte is a literal. One control bit per literal plus two for the end marker,
        and a fresh control byte is always reserved after a full one.

        For sizes of 6 or 7 modulo 8 this is one byte more than size + size // 8 + 3. That
        extra byte is the empty control byte old quest tools also write, so it is kept."""
        return size + 2 + (size + 2) // 8 + 1


@dataclass(frozen=True)
class RawByte:
    value: int


@dataclass(frozen=True)
class ShortCopy:
    offset: int
    size: int


@dataclass(frozen=True)
class LongCopy:
    offset: int
    size: int

    def is_inline(self) -> bool:
        """Sizes up to 9 are packed into the offset word, longer ones take an extra byte"""
        return 2 <= self.size <= Prs.LONG_COPY_INLINE_MAX_SIZE


@dataclass(frozen=True)
class EndMarker:
    pass


Token = Union[RawByte, ShortCopy, LongCopy, EndMarker]
