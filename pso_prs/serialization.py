from struct import pack_into, unpack_from
from .errors import AllocationError, MalformedStreamError


class Numeric:
    """Little-endian formats of the integer fields found in PRS streams"""
    U8 = "<B"
    U16 = "<H"

    type_sizes = {
        "B": 1,
        "H": 2,
    }

    @staticmethod
    def size_of_format(fmt: str) -> int:
        size_sum = 0
        for ch in fmt:
            size_sum += Numeric.type_sizes.get(ch, 0)
        return size_sum


class ResizableBuffer:
    def __init__(self, *, size=0):
        if size < 0:
            raise AllocationError("Cannot allocate a buffer of negative size ({})".format(size))
        try:
            self.buffer = bytearray(size)
        except (MemoryError, OverflowError) as err:
            raise AllocationError("Failed to allocate {} bytes".format(size)) from err
        self.capacity = size
        self.offset = 0

    def grow_by(self, by: int):
        try:
            self.buffer += bytearray(by)
        except (MemoryError, OverflowError) as err:
            raise AllocationError("Failed to grow buffer by {} bytes".format(by)) from err
        self.capacity += by

    def grow_to(self, to: int):
        """Never shrinks"""
        if to > self.capacity:
            self.grow_by(to - self.capacity)

    def reserve(self, size: int):
        """Makes room for size more bytes after the write offset"""
        need = self.offset + size
        if need > self.capacity:
            # Grow geometrically so byte-at-a-time writers stay linear
            self.grow_to(max(need, self.capacity * 2, 0x100))

    def pack(self, fmt: str, *vals) -> int:
        """Returns absolute offset of where data was written"""
        offset_before = self.offset
        item_size = Numeric.size_of_format(fmt)
        self.reserve(item_size)
        pack_into(fmt, self.buffer, self.offset, *vals)
        self.offset += item_size
        return offset_before

    def put_u8(self, value: int) -> int:
        offset_before = self.offset
        if self.offset >= self.capacity:
            self.reserve(1)
        self.buffer[self.offset] = value
        self.offset += 1
        return offset_before

    def copy_back(self, distance: int, size: int):
        """Repeats size bytes starting distance bytes behind the write offset.
        Copies one byte at a time so that sources overlapping the destination repeat."""
        self.reserve(size)
        src = self.offset + distance
        buffer = self.buffer
        for i in range(size):
            buffer[self.offset + i] = buffer[src + i]
        self.offset += size

    def getvalue(self) -> bytearray:
        """Returns the written bytes, trimmed to the write offset"""
        if self.offset == self.capacity:
            return self.buffer
        return self.buffer[:self.offset]


class ByteReader:
    """Read cursor over a compressed buffer. Reading past the end is a malformed stream."""

    def __init__(self, buf):
        self.buffer = buf
        self.offset = 0

    def remaining(self) -> int:
        return len(self.buffer) - self.offset

    def unpack(self, fmt: str) -> int:
        size = Numeric.size_of_format(fmt)
        if self.offset + size > len(self.buffer):
            raise MalformedStreamError("Unexpected end of stream (needed {} more bytes, {} left)".format(size, self.remaining()), position=self.offset)
        (value, ) = unpack_from(fmt, self.buffer, self.offset)
        self.offset += size
        return value

    def read_u8(self) -> int:
        return self.unpack(Numeric.U8)

    def read_u16(self) -> int:
        return self.unpack(Numeric.U16)
