from typing import Type
from .bits import ControlBitWriter
from .errors import InputTooSmallError, EncodingError
from .match import Matcher, GreedyMatcher
from .serialization import Numeric, ResizableBuffer
from .tokens import Prs, Token, RawByte, ShortCopy, LongCopy, EndMarker


class Encoder:
    """Writes PRS tokens. Call finish() once to terminate the stream and get the result."""

    def __init__(self, uncompressed_len: int=0):
        self._buf = ResizableBuffer(size=Prs.max_compressed_size(uncompressed_len))
        self._bits = ControlBitWriter(self._buf)
        self._finished = False

    def raw_byte(self, value: int):
        self._bits.put_bit(True, save=False)
        self._buf.put_u8(value)
        self._bits.save()

    def short_copy(self, offset: int, size: int):
        if not Prs.SHORT_COPY_MIN_SIZE <= size <= Prs.SHORT_COPY_MAX_SIZE:
            raise EncodingError("Short copy size must be between {} and {} (got {})".format(
                Prs.SHORT_COPY_MIN_SIZE, Prs.SHORT_COPY_MAX_SIZE, size))
        if not Prs.SHORT_COPY_OFFSET_MASK <= offset < 0:
            raise EncodingError("Short copy offset out of range ({})".format(offset))
        size -= 2
        self._bits.put_bit(False)
        self._bits.put_bit(False)
        self._bits.put_bit((size >> 1) & 1)
        self._bits.put_bit(size & 1, save=False)
        self._buf.put_u8(offset & 0xff)
        self._bits.save()

    def long_copy(self, offset: int, size: int):
        if not 1 <= size <= Prs.LONG_COPY_MAX_SIZE:
            raise EncodingError("Long copy size must be between 1 and {} (got {})".format(Prs.LONG_COPY_MAX_SIZE, size))
        if not Prs.LONG_COPY_MIN_OFFSET < offset < 0:
            raise EncodingError("Long copy offset out of range ({})".format(offset))
        self._bits.put_bit(False)
        self._bits.put_bit(True, save=False)
        if LongCopy(offset, size).is_inline():
            self._buf.pack(Numeric.U16, ((offset << 3) | (size - 2)) & 0xffff)
        else:
            self._buf.pack(Numeric.U16, (offset << 3) & 0xffff)
            self._buf.put_u8(size - 1)
        self._bits.save()

    def copy(self, offset: int, size: int):
        if offset > Prs.SHORT_COPY_MIN_OFFSET and size <= Prs.SHORT_COPY_MAX_SIZE:
            self.short_copy(offset, size)
        else:
            self.long_copy(offset, size)

    def write(self, token: Token):
        if isinstance(token, RawByte):
            self.raw_byte(token.value)
        elif isinstance(token, ShortCopy):
            self.short_copy(token.offset, token.size)
        elif isinstance(token, LongCopy):
            self.long_copy(token.offset, token.size)
        elif isinstance(token, EndMarker):
            raise EncodingError("Use finish() to write the end marker")
        else:
            raise EncodingError("Not a token: {!r}".format(token))

    def finish(self) -> bytearray:
        if self._finished:
            raise EncodingError("Encoder was already finished")
        self._finished = True
        self._bits.put_bit(False)
        self._bits.put_bit(True)
        self._bits.flush()
        self._buf.pack(Numeric.U16, 0)
        return self._buf.getvalue()


def compress(uncompressed_buf, matcher: Type[Matcher]=None) -> bytearray:
    data = bytes(uncompressed_buf)
    data_len = len(data)
    if data_len < Prs.MIN_INPUT_SIZE:
        raise InputTooSmallError("Data must be at least {} bytes long to be compressed (got {})".format(Prs.MIN_INPUT_SIZE, data_len))
    finder = (matcher or GreedyMatcher)(data)
    enc = Encoder(data_len)
    position = 0
    while position < data_len:
        match = finder.find(position)
        if match is None:
            enc.raw_byte(data[position])
            position += 1
        else:
            enc.copy(match.offset, match.size)
            position += match.size
    return enc.finish()


def max_compressed_size(size: int) -> int:
    return Prs.max_compressed_size(size)
