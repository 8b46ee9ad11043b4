"""Byte ranges in the compressed data file and the range coalescer."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class ByteRange:
    """Half-open ``[start, end)`` span of compressed bytes.

    ``end=None`` reads to the end of the object. ``block_offset`` is the
    decompressed offset inside the first BGZF block where the first
    candidate record begins.
    """

    start: int
    end: Optional[int] = None
    block_offset: int = 0

    def __post_init__(self):
        if self.start < 0:
            raise ValueError(f"ByteRange start must be non-negative, got {self.start}")
        if self.end is not None and self.end < self.start:
            raise ValueError(f"ByteRange end {self.end} precedes start {self.start}")
        if self.block_offset < 0:
            raise ValueError(f"ByteRange block_offset must be non-negative, got {self.block_offset}")

    @property
    def length(self) -> Optional[int]:
        return None if self.end is None else self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.end is not None and self.end == self.start

    def http_header(self) -> str:
        """Value for an HTTP ``Range`` header (inclusive end)."""
        if self.end is None:
            return f"bytes={self.start}-"
        return f"bytes={self.start}-{self.end - 1}"

    def __str__(self) -> str:
        end = "EOF" if self.end is None else str(self.end)
        return f"[{self.start}, {end})"


def _reaches(end: Optional[int], start: int, max_gap: int) -> bool:
    return end is None or start <= end + max_gap


def _max_end(a: Optional[int], b: Optional[int]) -> Optional[int]:
    if a is None or b is None:
        return None
    return max(a, b)


def merge(ranges: Iterable[ByteRange], *, max_gap: int = 0) -> List[ByteRange]:
    """Coalesce ranges into a sorted, disjoint, minimal covering set.

    A range merges into the running one when its start is at or before
    the running end (contiguous ranges merge too). ``max_gap`` widens
    that rule to ranges separated by at most ``max_gap`` bytes. Empty
    ranges carry no data and are dropped.
    """
    if max_gap < 0:
        raise ValueError("max_gap must be non-negative")
    spans = sorted((r for r in ranges if not r.is_empty), key=lambda r: (r.start, r.block_offset))
    if not spans:
        return []

    merged: List[ByteRange] = []
    current = spans[0]
    for nxt in spans[1:]:
        if _reaches(current.end, nxt.start, max_gap):
            # sorted order keeps current.start <= nxt.start, so the first
            # block offset stays with the earliest range
            current = ByteRange(current.start, _max_end(current.end, nxt.end), current.block_offset)
        else:
            merged.append(current)
            current = nxt
    merged.append(current)
    return merged
