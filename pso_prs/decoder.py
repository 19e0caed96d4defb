from abc import ABC, abstractmethod
from typing import Iterator
from warnings import warn
from .bits import ControlBitReader
from .errors import InputTooSmallError, MalformedStreamError
from .serialization import ByteReader, ResizableBuffer
from .tokens import Prs, Token, RawByte, ShortCopy, LongCopy, EndMarker


class OutputSink(ABC):
    """Receives what a decoded stream produces"""
    size: int

    @abstractmethod
    def literal(self, value: int):
        pass

    @abstractmethod
    def copy(self, offset: int, size: int):
        pass


class CountingSink(OutputSink):
    def __init__(self):
        self.size = 0

    def literal(self, value: int):
        self.size += 1

    def copy(self, offset: int, size: int):
        self.size += size


class WritingSink(OutputSink):
    def __init__(self, *, size_hint: int=0):
        self.buf = ResizableBuffer(size=size_hint)

    @property
    def size(self) -> int:
        return self.buf.offset

    def literal(self, value: int):
        self.buf.put_u8(value)

    def copy(self, offset: int, size: int):
        self.buf.copy_back(offset, size)


class Decoder:
    def __init__(self, compressed_buf, sink: OutputSink=None):
        if len(compressed_buf) < Prs.MIN_INPUT_SIZE:
            raise InputTooSmallError("Compressed data must be at least {} bytes long (got {})".format(Prs.MIN_INPUT_SIZE, len(compressed_buf)))
        self._reader = ByteReader(compressed_buf)
        self._bits = ControlBitReader(self._reader)
        self.sink = sink if sink is not None else WritingSink()

    def read_token(self) -> Token:
        if self._bits.read_bit():
            return RawByte(self._reader.read_u8())
        if self._bits.read_bit():
            word = self._reader.read_u16()
            if word == 0:
                return EndMarker()
            offset = (word >> 3) | Prs.LONG_COPY_OFFSET_MASK
            size = word & Prs.LONG_COPY_SIZE_MASK
            if size == 0:
                size = self._reader.read_u8() + 1
            else:
                size += 2
            return LongCopy(offset, size)
        size = self._bits.read_bits(2) + 2
        offset = self._reader.read_u8() | Prs.SHORT_COPY_OFFSET_MASK
        return ShortCopy(offset, size)

    def tokens(self) -> Iterator[Token]:
        """Decodes tokens into the sink, yielding each one. Stops after the end marker."""
        while True:
            token_offset = self._reader.offset
            token = self.read_token()
            if isinstance(token, RawByte):
                self.sink.literal(token.value)
            elif isinstance(token, EndMarker):
                yield token
                return
            else:
                if self.sink.size + token.offset < 0:
                    raise MalformedStreamError("Copy of {} bytes from {} reaches before the start of the output ({} bytes written)".format(
                        token.size, token.offset, self.sink.size), position=token_offset)
                self.sink.copy(token.offset, token.size)
            yield token

    def decompress(self) -> OutputSink:
        for _ in self.tokens():
            pass
        return self.sink


def decompress(compressed_buf, expected_size: int=None) -> bytearray:
    """expected_size only pre-sizes storage. The result always holds exactly what the stream produces."""
    sink = WritingSink(size_hint=0 if expected_size is None else expected_size)
    Decoder(compressed_buf, sink).decompress()
    if expected_size is not None and sink.size != expected_size:
        warn("PRS warning: Decompressed {} bytes but {} were expected".format(sink.size, expected_size))
    return sink.buf.getvalue()


def measure_decompressed_size(compressed_buf) -> int:
    return Decoder(compressed_buf, CountingSink()).decompress().size


def iter_tokens(compressed_buf) -> Iterator[Token]:
    """Yields the tokens of a stream, validating copies like decompress does"""
    return Decoder(compressed_buf, CountingSink()).tokens()
