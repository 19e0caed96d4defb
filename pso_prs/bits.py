from .serialization import ByteReader, ResizableBuffer


class ControlBitReader:
    """Pops control bits least-significant first, fetching a new control byte every 8 bits"""

    def __init__(self, reader: ByteReader):
        self._reader = reader
        self._cmds = 0
        self._rem = 0

    def read_bit(self) -> bool:
        if self._rem == 0:
            self._cmds = self._reader.read_u8()
            self._rem = 8
        ret = self._cmds & 1
        self._cmds >>= 1
        self._rem -= 1
        return ret != 0

    def read_bits(self, count: int) -> int:
        """First bit read is the most significant"""
        value = 0
        for _ in range(count):
            value = (value << 1) | self.read_bit()
        return value


class ControlBitWriter:
    """Shifts control bits in from the top of the current control byte.

    The next control byte is reserved in the output as soon as the current one is
    full *and saved*. Writers delay the save until after a token's payload bytes when
    its last control bit is written, which decides where the next control byte lands.
    """

    def __init__(self, buf: ResizableBuffer):
        self.buf = buf
        self._bit_position = 0
        self._control_offset = buf.put_u8(0)

    def put_bit(self, bit: bool, save=True):
        cmds = self.buf.buffer[self._control_offset]
        self.buf.buffer[self._control_offset] = (cmds >> 1) | (0x80 if bit else 0)
        self._bit_position += 1
        if save:
            self.save()

    def save(self):
        if self._bit_position >= 8:
            self._bit_position = 0
            self._control_offset = self.buf.put_u8(0)

    def flush(self):
        """Moves the bits of a partially filled control byte down so the first one is bit 0"""
        if self._bit_position != 0:
            cmds = self.buf.buffer[self._control_offset]
            self.buf.buffer[self._control_offset] = (cmds << self._bit_position) >> 8
