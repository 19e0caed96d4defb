"""PRS compression as used by Phantasy Star Online for quest and archive data"""
from .errors import PrsError, InputTooSmallError, AllocationError, MalformedStreamError, EncodingError
from .tokens import Prs, Token, RawByte, ShortCopy, LongCopy, EndMarker
from .match import Match, Matcher, GreedyMatcher, LegacyMatcher
from .encoder import Encoder, compress, max_compressed_size
from .decoder import Decoder, OutputSink, CountingSink, WritingSink, decompress, measure_decompressed_size, iter_tokens


__all__ = [
    "PrsError", "InputTooSmallError", "AllocationError", "MalformedStreamError", "EncodingError",
    "Prs", "Token", "RawByte", "ShortCopy", "LongCopy", "EndMarker",
    "Match", "Matcher", "GreedyMatcher", "LegacyMatcher",
    "Encoder", "compress", "max_compressed_size",
    "Decoder", "OutputSink", "CountingSink", "WritingSink", "decompress", "measure_decompressed_size", "iter_tokens",
]
