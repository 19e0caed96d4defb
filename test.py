import random
import unittest
import warnings
from pso_prs import (
    Prs, compress, decompress, measure_decompressed_size, max_compressed_size, iter_tokens,
    Encoder, Decoder, CountingSink, GreedyMatcher, LegacyMatcher,
    RawByte, ShortCopy, LongCopy, EndMarker,
    PrsError, InputTooSmallError, AllocationError, MalformedStreamError, EncodingError,
)
from pso_prs.serialization import ResizableBuffer, ByteReader
from pso_prs.bits import ControlBitReader, ControlBitWriter


SAM_I_AM = b"""I am Sam

Sam I am

That Sam-I-am!
That Sam-I-am!
I do not like
that Sam-I-am!

Do you like green eggs and ham?

I do not like them, Sam-I-am.
I do not like green eggs and ham."""

# Output of the compressor historically used for GameCube download quests
LEGACY_FIXTURES = [
    (b"Hello, world!\0", bytes([
        0xff, 0x48, 0x65, 0x6c, 0x6c, 0x6f, 0x2c, 0x20, 0x77, 0xbf, 0x6f, 0x72, 0x6c, 0x64,
        0x21, 0x00, 0x00, 0x00, 0x00])),
    (SAM_I_AM, bytes([
        0xff, 0x49, 0x20, 0x61, 0x6d, 0x20, 0x53, 0x61, 0x6d, 0xe3, 0x0a, 0x0a, 0xfb, 0x20,
        0x49, 0xf8, 0xf2, 0x0a, 0x0a, 0x54, 0x68, 0xd3, 0x61, 0x74, 0xec, 0x2d, 0x49, 0xef,
        0x2d, 0x61, 0x6d, 0x21, 0x88, 0xff, 0x0d, 0x21, 0x0a, 0xff, 0x49, 0x20, 0x64, 0x6f,
        0x20, 0x6e, 0x6f, 0x74, 0x7f, 0x20, 0x6c, 0x69, 0x6b, 0x65, 0x0a, 0x74, 0xff, 0x18,
        0xff, 0x0d, 0x0a, 0x44, 0x6f, 0x20, 0x79, 0x6f, 0x75, 0xfc, 0xe4, 0x20, 0x67, 0x72,
        0x65, 0xff, 0x65, 0x6e, 0x20, 0x65, 0x67, 0x67, 0x73, 0x20, 0xff, 0x61, 0x6e, 0x64,
        0x20, 0x68, 0x61, 0x6d, 0x3f, 0xfd, 0x0a, 0x08, 0xfe, 0x0d, 0x20, 0x74, 0x68, 0x65,
        0x6d, 0xad, 0x2c, 0x07, 0xfe, 0x2e, 0x10, 0xff, 0x0e, 0xf8, 0xfd, 0x11, 0x05, 0x2e,
        0x00, 0x00])),
    (b"aaa", bytes([0x17, 0x61, 0x61, 0x61, 0x00, 0x00])),
    (b"aaaa", bytes([0x2f, 0x61, 0x61, 0x61, 0x61, 0x00, 0x00])),
    (b"aaaaa", bytes([0x5f, 0x61, 0x61, 0x61, 0x61, 0x61, 0x00, 0x00])),
    (b"aaaaaa", bytes([0xbf, 0x61, 0x61, 0x61, 0x61, 0x61, 0x61, 0x00, 0x00, 0x00])),
    (b"aaaaaaa", bytes([0x8f, 0x61, 0x61, 0x61, 0x61, 0xfd, 0x02, 0x00, 0x00])),
    (b"aaaaaaaa", bytes([0x8f, 0x61, 0x61, 0x61, 0x61, 0xfd, 0x05, 0x61, 0x00, 0x00])),
    (b"aaaaaaaaa", bytes([0x8f, 0x61, 0x61, 0x61, 0x61, 0xfd, 0x0b, 0x61, 0x61, 0x00, 0x00])),
    (b"aaaaaaaaaa", bytes([0x8f, 0x61, 0x61, 0x61, 0x61, 0xfd, 0x28, 0xfd, 0x00, 0x00])),
    (b"aaaaaaaaaaa", bytes([0x8f, 0x61, 0x61, 0x61, 0x61, 0xfd, 0x24, 0xfb, 0x00, 0x00])),
    (b"aaaaaaaaaaaa", bytes([0x8f, 0x61, 0x61, 0x61, 0x61, 0xfd, 0x2c, 0xfa, 0x00, 0x00])),
    (b"aaaaaaaaaaaaa", bytes([0x8f, 0x61, 0x61, 0x61, 0x61, 0xfd, 0x5c, 0xfa, 0x61, 0x00, 0x00])),
    (b"aaaaaaaaaaaaaa", bytes([0x8f, 0x61, 0x61, 0x61, 0x61, 0xfd, 0xbc, 0xfa, 0x61, 0x61, 0x00, 0x00, 0x00])),
    (b"aaaaaaaaaaaaaaa", bytes([0x8f, 0x61, 0x61, 0x61, 0x61, 0xfd, 0x8c, 0xfa, 0xfd, 0x02, 0x00, 0x00])),
    (b"aaaaaaaaaaaaaaaa", bytes([0x8f, 0x61, 0x61, 0x61, 0x61, 0xfd, 0x4c, 0xfa, 0xfb, 0x02, 0x00, 0x00])),
    (b"aaaaaaaaaaaaaaaaa", bytes([0x8f, 0x61, 0x61, 0x61, 0x61, 0xfd, 0xcc, 0xfa, 0xfa, 0x02, 0x00, 0x00])),
    (b"\xff\xff\xff", bytes([0x17, 0xff, 0xff, 0xff, 0x00, 0x00])),
    (b"\xff\xff\xff\xff\xff\xff", bytes([0xbf, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0x00, 0x00, 0x00])),
    (b"\xff\xff\xff\xff\xff\xff\xff", bytes([0x8f, 0xff, 0xff, 0xff, 0xff, 0xfd, 0x02, 0x00, 0x00])),
    (b"\xff\xff\xff\xff\xff\xff\xff\xff", bytes([0x8f, 0xff, 0xff, 0xff, 0xff, 0xfd, 0x05, 0xff, 0x00, 0x00])),
    (bytes(3), bytes([0x17, 0x00, 0x00, 0x00, 0x00, 0x00])),
    (bytes(5), bytes([0x5f, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00])),
    (bytes(6), bytes([0xbf, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00])),
    (bytes(7), bytes([0x8f, 0x00, 0x00, 0x00, 0x00, 0xfd, 0x02, 0x00, 0x00])),
    (bytes(8), bytes([0x8f, 0x00, 0x00, 0x00, 0x00, 0xfd, 0x05, 0x00, 0x00, 0x00])),
    (bytes(9), bytes([0x8f, 0x00, 0x00, 0x00, 0x00, 0xfd, 0x0b, 0x00, 0x00, 0x00, 0x00])),
    (bytes(10), bytes([0x8f, 0x00, 0x00, 0x00, 0x00, 0xfd, 0x28, 0xfd, 0x00, 0x00])),
]


def random_bytes(seed: int, size: int, alphabet: bytes=None) -> bytes:
    rng = random.Random(seed)
    if alphabet is None:
        return bytes(rng.randrange(256) for _ in range(size))
    return bytes(rng.choice(alphabet) for _ in range(size))


def sample_inputs() -> list[bytes]:
    text = b"The quick brown fox jumps over the lazy dog. " * 40
    return [
        b"abc",
        b"\x00\x01\x02\x03\x04",
        text,
        SAM_I_AM,
        random_bytes(1, 600),
        random_bytes(2, 2000, b"ab"),
        random_bytes(3, 3000, b"PSO quest "),
        bytes(range(256)) * 12,
        b"\xaa" * 1000,
    ]


def naive_greedy_find(data: bytes, x: int):
    best = None
    limit = min(Prs.MAX_COPY_SIZE, len(data) - x)
    for y in range(x - 1, max(x - Prs.WINDOW_SIZE, -1), -1):
        size = 0
        while size < limit and data[y + size] == data[x + size]:
            size += 1
        if size >= Prs.MIN_MATCH_SIZE and (best is None or size > best[1]):
            best = (y - x, size)
    return best


def naive_legacy_find(data: bytes, x: int):
    best_offset = best_size = size = 0
    y = x - 3
    while y > 0 and y > x - Prs.WINDOW_SIZE and size < 255:
        size = 3
        if x + 3 <= len(data) and data[y:y + 3] == data[x:x + 3]:
            size += 1
            while size < 256 and y + size < x and x + size <= len(data) and data[y:y + size] == data[x:x + size]:
                size += 1
            size -= 1
            if size > best_size:
                best_offset, best_size = y - x, size
        y -= 1
    return (best_offset, best_size) if best_size else None


class TestRoundTrip(unittest.TestCase):
    def test_round_trip(self):
        for data in sample_inputs():
            with self.subTest(size=len(data)):
                self.assertEqual(decompress(compress(data)), data)

    def test_round_trip_legacy(self):
        for data in sample_inputs():
            with self.subTest(size=len(data)):
                self.assertEqual(decompress(compress(data, matcher=LegacyMatcher)), data)

    def test_boundary_lengths(self):
        for size in (3, 5, 256, 257, 8177):
            for data in (random_bytes(size, size), random_bytes(size, size, b"xyz"), b"\x41" * size):
                with self.subTest(size=size):
                    self.assertEqual(decompress(compress(data)), data)

    def test_measurement_consistency(self):
        for data in sample_inputs():
            with self.subTest(size=len(data)):
                self.assertEqual(measure_decompressed_size(compress(data)), len(data))

    def test_self_overlapping_copies(self):
        data = b"\xaa" * 1000
        compressed = compress(data)
        tokens = list(iter_tokens(compressed))
        self.assertTrue(any(isinstance(t, (ShortCopy, LongCopy)) and -t.offset < t.size for t in tokens))
        self.assertEqual(decompress(compressed), data)

    def test_deterministic(self):
        data = random_bytes(7, 4000, b"abcd")
        self.assertEqual(compress(data), compress(data))

    def test_accepts_buffer_types(self):
        data = b"ham and eggs and ham"
        compressed = compress(bytearray(data))
        self.assertEqual(compress(memoryview(data)), compressed)
        self.assertEqual(decompress(bytes(compressed)), data)
        self.assertEqual(decompress(memoryview(compressed)), data)


class TestCompress(unittest.TestCase):
    def test_repeated_byte(self):
        compressed = compress(b"A" * 10)
        self.assertEqual(list(iter_tokens(compressed)), [RawByte(0x41), LongCopy(-1, 9), EndMarker()])
        self.assertEqual(compressed, b"\x15\x41\xff\xff\x00\x00")
        self.assertEqual(decompress(compressed), b"A" * 10)

    def test_distinct_bytes(self):
        compressed = compress(b"xyz")
        self.assertEqual(list(iter_tokens(compressed)), [RawByte(0x78), RawByte(0x79), RawByte(0x7a), EndMarker()])
        self.assertEqual(compressed, b"\x17xyz\x00\x00")
        self.assertEqual(decompress(compressed), b"xyz")

    def test_short_copy_selected_for_near_small_match(self):
        tokens = list(iter_tokens(compress(b"abcdabcd")))
        self.assertEqual(tokens, [RawByte(0x61), RawByte(0x62), RawByte(0x63), RawByte(0x64), ShortCopy(-4, 4), EndMarker()])

    def test_long_copy_selected_for_far_match(self):
        data = b"abcd" + bytes(range(100, 250)) * 2 + b"abcd"
        tokens = list(iter_tokens(compress(data)))
        self.assertIn(LongCopy(-(len(data) - 4), 4), tokens)

    def test_input_too_small(self):
        for data in (b"", b"a", b"ab"):
            with self.subTest(size=len(data)):
                with self.assertRaises(InputTooSmallError):
                    compress(data)
        with self.assertRaises(ValueError):
            compress(b"ab")

    def test_max_compressed_size(self):
        self.assertEqual(max_compressed_size(6), 10)
        self.assertEqual(len(compress(b"abcdef")), 10)
        # One above size + size // 8 + 3 for 6 and 7 modulo 8
        self.assertEqual(max_compressed_size(7), 11)
        self.assertEqual(len(compress(bytes(range(7)))), 11)
        self.assertEqual(max_compressed_size(14), 19)
        self.assertEqual(len(compress(bytes(range(14)))), 19)
        for size in range(3, 80):
            data = bytes(range(size))
            with self.subTest(size=size):
                self.assertLessEqual(len(compress(data)), max_compressed_size(size))
                self.assertLessEqual(len(compress(data, matcher=LegacyMatcher)), max_compressed_size(size))

    def test_legacy_fixtures(self):
        for (data, expected) in LEGACY_FIXTURES:
            with self.subTest(data=data[:16]):
                self.assertEqual(compress(data, matcher=LegacyMatcher), expected)
                self.assertEqual(decompress(expected), data)


class TestMatchers(unittest.TestCase):
    def test_greedy_matches_linear_scan(self):
        for data in (random_bytes(11, 300, b"ab"), random_bytes(12, 300, b"abc"), b"\x00" * 300):
            matcher = GreedyMatcher(data)
            for x in range(len(data)):
                match = matcher.find(x)
                found = None if match is None else (match.offset, match.size)
                self.assertEqual(found, naive_greedy_find(data, x), "position {}".format(x))

    def test_legacy_matches_linear_scan(self):
        for data in (random_bytes(13, 300, b"ab"), random_bytes(14, 300, b"abc"), b"\x00" * 300):
            matcher = LegacyMatcher(data)
            for x in range(len(data)):
                match = matcher.find(x)
                found = None if match is None else (match.offset, match.size)
                self.assertEqual(found, naive_legacy_find(data, x), "position {}".format(x))

    def test_window_limit(self):
        data = b"XYZ" + bytes(Prs.WINDOW_SIZE - 4) + b"XYZ"
        match = GreedyMatcher(data).find(Prs.WINDOW_SIZE - 1)
        self.assertEqual((match.offset, match.size), (-(Prs.WINDOW_SIZE - 1), 3))
        data = b"XYZ" + bytes(Prs.WINDOW_SIZE - 3) + b"XYZ"
        self.assertIsNone(GreedyMatcher(data).find(Prs.WINDOW_SIZE))

    def test_ties_keep_nearest(self):
        data = b"abc-abc-abc"
        match = GreedyMatcher(data).find(8)
        self.assertEqual((match.offset, match.size), (-4, 3))

    def test_size_cap(self):
        data = b"\x01" * 600
        match = GreedyMatcher(data).find(1)
        self.assertEqual((match.offset, match.size), (-1, Prs.MAX_COPY_SIZE))
        match = LegacyMatcher(data).find(300)
        self.assertEqual(match.size, Prs.MAX_COPY_SIZE)
        self.assertLess(match.offset + match.size, 0)


class TestDecompress(unittest.TestCase):
    def test_empty_stream(self):
        self.assertEqual(decompress(b"\x02\x00\x00"), b"")
        self.assertEqual(measure_decompressed_size(b"\x02\x00\x00"), 0)

    def test_input_too_small(self):
        for func in (decompress, measure_decompressed_size):
            with self.subTest(func=func.__name__):
                with self.assertRaises(InputTooSmallError):
                    func(b"\x02\x00")

    def test_short_copy_of_two(self):
        enc = Encoder()
        enc.raw_byte(ord("a"))
        enc.raw_byte(ord("b"))
        enc.short_copy(-2, 2)
        self.assertEqual(decompress(enc.finish()), b"abab")

    def test_short_copy_full_distance(self):
        enc = Encoder()
        for value in range(256):
            enc.raw_byte(value)
        enc.short_copy(-256, 3)
        compressed = enc.finish()
        self.assertIn(ShortCopy(-256, 3), list(iter_tokens(compressed)))
        self.assertEqual(decompress(compressed), bytes(range(256)) + b"\x00\x01\x02")

    def test_long_copy_forms(self):
        enc = Encoder()
        enc.raw_byte(ord("a"))
        enc.long_copy(-1, 1)
        enc.long_copy(-2, 9)
        enc.long_copy(-1, 256)
        compressed = enc.finish()
        self.assertEqual(list(iter_tokens(compressed)), [RawByte(0x61), LongCopy(-1, 1), LongCopy(-2, 9), LongCopy(-1, 256), EndMarker()])
        self.assertEqual(decompress(compressed), b"a" * 267)

    def test_copy_before_start_of_output(self):
        enc = Encoder()
        enc.raw_byte(ord("a"))
        enc.short_copy(-2, 3)
        compressed = enc.finish()
        for func in (decompress, measure_decompressed_size):
            with self.subTest(func=func.__name__):
                with self.assertRaises(MalformedStreamError):
                    func(compressed)

    def test_truncated_stream(self):
        compressed = compress(b"abcdefgh" * 8 + bytes(range(40)))
        for cut in (3, len(compressed) // 2, len(compressed) - 1):
            with self.subTest(cut=cut):
                with self.assertRaises(MalformedStreamError) as ctx:
                    decompress(compressed[:cut])
                self.assertIsNotNone(ctx.exception.position)
                with self.assertRaises(MalformedStreamError):
                    measure_decompressed_size(compressed[:cut])

    def test_errors_share_base(self):
        with self.assertRaises(PrsError):
            decompress(b"\x00\x00\x00")
        self.assertIn("PRS Error", str(MalformedStreamError("bad", position=16)))
        self.assertIn("0x10", str(MalformedStreamError("bad", position=16)))

    def test_ignores_data_after_end_marker(self):
        self.assertEqual(decompress(compress(b"abcabc") + b"\xde\xad"), b"abcabc")

    def test_expected_size(self):
        data = SAM_I_AM
        compressed = compress(data)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            self.assertEqual(decompress(compressed, expected_size=len(data)), data)
        self.assertEqual(caught, [])
        with self.assertWarns(UserWarning):
            self.assertEqual(decompress(compressed, expected_size=len(data) + 1), data)
        with self.assertWarns(UserWarning):
            self.assertEqual(decompress(compressed, expected_size=10), data)

    def test_negative_expected_size(self):
        with self.assertRaises(AllocationError):
            decompress(compress(b"abcd"), expected_size=-1)

    def test_decoder_sinks(self):
        compressed = compress(SAM_I_AM)
        self.assertEqual(Decoder(compressed).decompress().buf.getvalue(), SAM_I_AM)
        self.assertEqual(Decoder(compressed, CountingSink()).decompress().size, len(SAM_I_AM))


class TestPrimitives(unittest.TestCase):
    def test_control_bits_lsb_first(self):
        reader = ControlBitReader(ByteReader(b"\x05\xff\x80"))
        bits = [reader.read_bit() for _ in range(16)]
        self.assertEqual(bits[:8], [True, False, True, False, False, False, False, False])
        self.assertEqual(bits[8:], [True] * 8)

    def test_read_bits_msb_first(self):
        reader = ControlBitReader(ByteReader(b"\x01"))
        self.assertEqual(reader.read_bits(2), 0b10)

    def test_control_writer_flush(self):
        buf = ResizableBuffer()
        writer = ControlBitWriter(buf)
        for bit in (1, 0, 1):
            writer.put_bit(bit)
        writer.flush()
        self.assertEqual(buf.getvalue(), b"\x05")

    def test_control_writer_reserves_next_byte(self):
        buf = ResizableBuffer()
        writer = ControlBitWriter(buf)
        for _ in range(7):
            writer.put_bit(True)
        writer.put_bit(True, save=False)
        buf.put_u8(0x42)
        writer.save()
        self.assertEqual(buf.getvalue(), b"\xff\x42\x00")

    def test_reader_exhausted(self):
        reader = ByteReader(b"\x01")
        self.assertEqual(reader.read_u8(), 1)
        with self.assertRaises(MalformedStreamError):
            reader.read_u16()

    def test_copy_back_overlapping(self):
        buf = ResizableBuffer()
        buf.put_u8(1)
        buf.put_u8(2)
        buf.copy_back(-2, 5)
        self.assertEqual(buf.getvalue(), b"\x01\x02\x01\x02\x01\x02\x01")

    def test_buffer_size_is_keyword_only(self):
        buf = ResizableBuffer(size=4)
        self.assertEqual(buf.capacity, 4)
        self.assertEqual(buf.getvalue(), b"")
        with self.assertRaises(TypeError):
            ResizableBuffer(4)

    def test_buffer_never_shrinks(self):
        buf = ResizableBuffer(size=16)
        buf.grow_to(8)
        self.assertEqual(buf.capacity, 16)
        buf.grow_to(20)
        self.assertEqual(buf.capacity, 20)
        self.assertEqual(len(buf.buffer), 20)

    def test_buffer_negative_size(self):
        with self.assertRaises(AllocationError) as ctx:
            ResizableBuffer(size=-1)
        self.assertIsInstance(ctx.exception, PrsError)

    def test_encoder_rejects_bad_tokens(self):
        enc = Encoder()
        with self.assertRaises(EncodingError) as ctx:
            enc.short_copy(-1, 6)
        self.assertTrue(str(ctx.exception).startswith("PRS Error: "))
        with self.assertRaises(EncodingError):
            enc.short_copy(-0x101, 3)
        with self.assertRaises(EncodingError):
            enc.long_copy(-0x2000, 3)
        with self.assertRaises(EncodingError):
            enc.long_copy(-1, 0x101)
        with self.assertRaises(EncodingError):
            enc.write(EndMarker())
        with self.assertRaises(EncodingError):
            enc.write("x")
        # Still catchable the generic way
        with self.assertRaises(ValueError):
            enc.write(None)
        with self.assertRaises(PrsError):
            enc.write(None)

    def test_encoder_finish_twice(self):
        enc = Encoder()
        enc.raw_byte(0x41)
        enc.finish()
        with self.assertRaises(EncodingError):
            enc.finish()

    def test_encoder_writes_tokens(self):
        tokens = [RawByte(1), RawByte(2), RawByte(3), ShortCopy(-3, 3), LongCopy(-6, 12)]
        enc = Encoder()
        for token in tokens:
            enc.write(token)
        compressed = enc.finish()
        self.assertEqual(list(iter_tokens(compressed)), tokens + [EndMarker()])
        self.assertEqual(decompress(compressed), b"\x01\x02\x03" * 6)


if __name__ == '__main__':
    unittest.main()
