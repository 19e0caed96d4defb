from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional
from .tokens import Prs


@dataclass(frozen=True)
class Match:
    offset: int
    size: int


class Matcher(ABC):
    """Finds backreferences for the compressor.

    Earlier positions are indexed by their first three bytes, so only candidates that
    could give a match of the minimum size are visited. Chains are walked nearest first,
    which gives the same result as scanning every position of the window backwards."""

    def __init__(self, data: bytes):
        self.data = data
        self._chains: dict[bytes, list[int]] = {}
        self._indexed = 0

    def _index_up_to(self, end: int):
        data = self.data
        limit = min(end, len(data) - Prs.MIN_MATCH_SIZE + 1)
        for pos in range(self._indexed, limit):
            key = data[pos:pos + Prs.MIN_MATCH_SIZE]
            chain = self._chains.get(key)
            if chain is None:
                self._chains[key] = [pos]
            else:
                chain.append(pos)
        self._indexed = max(self._indexed, limit)

    def candidates(self, position: int) -> Iterator[int]:
        """Earlier positions inside the window starting with the same three bytes, nearest first"""
        if position + Prs.MIN_MATCH_SIZE > len(self.data):
            return
        self._index_up_to(position)
        chain = self._chains.get(self.data[position:position + Prs.MIN_MATCH_SIZE])
        if not chain:
            return
        lowest = position - Prs.WINDOW_SIZE
        for candidate in reversed(chain):
            if candidate <= lowest:
                break
            yield candidate

    @abstractmethod
    def find(self, position: int) -> Optional[Match]:
        pass


class GreedyMatcher(Matcher):
    """Longest match anywhere in the window. Ties keep the nearest.
    Matches may run into the bytes they produce (offset smaller than size)."""

    def find(self, position: int) -> Optional[Match]:
        data = self.data
        limit = min(Prs.MAX_COPY_SIZE, len(data) - position)
        best = None
        for candidate in self.candidates(position):
            size = Prs.MIN_MATCH_SIZE
            while size < limit and data[candidate + size] == data[position + size]:
                size += 1
            if best is None or size > best.size:
                best = Match(candidate - position, size)
                if size >= limit:
                    break
        return best


class LegacyMatcher(Matcher):
    """The match search of the compressor historically used to build GameCube quests.

    Candidates start three bytes back and never include position 0, and a match longer
    than three bytes must end before the current position. Use this one when output has
    to be byte-identical to files made by the old tools."""

    def find(self, position: int) -> Optional[Match]:
        data = self.data
        data_len = len(data)
        best = None
        for candidate in self.candidates(position):
            if candidate > position - Prs.MIN_MATCH_SIZE:
                continue
            if candidate <= 0:
                break
            size = Prs.MIN_MATCH_SIZE
            while (size < Prs.MAX_COPY_SIZE
                    and candidate + size + 1 < position
                    and position + size + 1 <= data_len
                    and data[candidate + size] == data[position + size]):
                size += 1
            if best is None or size > best.size:
                best = Match(candidate - position, size)
                if size >= Prs.MAX_COPY_SIZE:
                    break
        return best
