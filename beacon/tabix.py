"""Parser for tabix (``.tbi``) coordinate indexes.

The index maps each reference sequence to a set of bins, each bin to a
list of chunks (pairs of BGZF virtual offsets), plus a linear index of
minimum offsets per 16 kbp window. Layout follows the SAMtools tabix
format description; all integers are little-endian.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from . import bgzf
from .errors import IndexParseError, UnknownReferenceError

TABIX_MAGIC = b"TBI\x01"
MIN_SHIFT = 14
DEPTH = 5
# pseudo-bin holding per-reference metadata (offsets span and record counts)
METADATA_BIN = 37450
# largest 0-based coordinate the binning scheme addresses
MAX_POSITION = 1 << (MIN_SHIFT + 3 * DEPTH)

_LEVELS = ((26, 1), (23, 9), (20, 73), (17, 585), (14, 4681))


def reg2bins(beg: int, end: int) -> List[int]:
    """All bins that may hold records overlapping 0-based ``[beg, end)``."""
    if end <= beg:
        end = beg + 1
    end -= 1
    bins = [0]
    for shift, offset in _LEVELS:
        bins.extend(range(offset + (beg >> shift), offset + (end >> shift) + 1))
    return bins


def reg2bin(beg: int, end: int) -> int:
    """Smallest bin fully containing 0-based ``[beg, end)``."""
    end -= 1
    for shift, offset in reversed(_LEVELS):
        if beg >> shift == end >> shift:
            return offset + (beg >> shift)
    return 0


@dataclass(frozen=True)
class Chunk:
    begin: int
    end: int


@dataclass(frozen=True)
class ReferenceMetadata:
    begin: int
    end: int
    n_mapped: int
    n_unmapped: int


@dataclass
class ReferenceIndex:
    name: str
    bins: Dict[int, np.ndarray] = field(default_factory=dict)
    intervals: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint64))
    metadata: Optional[ReferenceMetadata] = None

    def chunks(self, bin_id: int) -> List[Chunk]:
        pairs = self.bins.get(bin_id)
        if pairs is None:
            return []
        return [Chunk(int(b), int(e)) for b, e in pairs]

    def min_offset(self, beg: int) -> int:
        """Linear-index lower bound on virtual offsets for records at or after ``beg``."""
        n = len(self.intervals)
        if n == 0:
            return 0
        window = beg >> MIN_SHIFT
        return int(self.intervals[window if window < n else n - 1])


@dataclass
class TabixIndex:
    format: int
    col_seq: int
    col_beg: int
    col_end: int
    meta_char: str
    skip: int
    references: List[ReferenceIndex]
    unplaced: Optional[int] = None

    @property
    def names(self) -> List[str]:
        return [ref.name for ref in self.references]

    def reference(self, name: str) -> ReferenceIndex:
        for ref in self.references:
            if ref.name == name:
                return ref
        raise UnknownReferenceError(name)

    def _virtual_offsets(self) -> np.ndarray:
        parts = [pairs.ravel() for ref in self.references for pairs in ref.bins.values()]
        parts.extend(ref.intervals for ref in self.references)
        for ref in self.references:
            if ref.metadata is not None:
                parts.append(np.array([ref.metadata.begin, ref.metadata.end], dtype=np.uint64))
        if not parts:
            return np.zeros(0, dtype=np.uint64)
        return np.concatenate(parts)

    def block_boundaries(self) -> np.ndarray:
        """Sorted unique compressed offsets of every block the index points at."""
        voffsets = self._virtual_offsets()
        return np.unique(voffsets >> np.uint64(bgzf.UOFFSET_BITS))

    def first_data_offset(self) -> Optional[int]:
        """Smallest chunk start over all references, i.e. where records begin."""
        starts = [
            int(pairs[:, 0].min())
            for ref in self.references
            for pairs in ref.bins.values()
            if len(pairs)
        ]
        return min(starts) if starts else None


class _Cursor:
    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def take(self, n: int) -> bytes:
        if n < 0 or self.pos + n > len(self.data):
            raise IndexParseError(
                f"Truncated tabix index: wanted {n} bytes at offset {self.pos}, size {len(self.data)}"
            )
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def int32(self) -> int:
        return int.from_bytes(self.take(4), "little", signed=True)

    def uint32(self) -> int:
        return int.from_bytes(self.take(4), "little")

    def uint64(self) -> int:
        return int.from_bytes(self.take(8), "little")

    def count(self, what: str) -> int:
        value = self.int32()
        if value < 0:
            raise IndexParseError(f"Negative {what} count in tabix index: {value}")
        return value

    def uint64_array(self, n: int) -> np.ndarray:
        raw = self.take(8 * n)
        return np.frombuffer(raw, dtype="<u8").astype(np.uint64)

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos


def _split_names(raw: bytes, n_ref: int) -> List[str]:
    names = [n.decode("ascii", errors="replace") for n in raw.split(b"\x00")]
    # trailing NUL leaves an empty final element
    if names and names[-1] == "":
        names.pop()
    if len(names) != n_ref:
        raise IndexParseError(f"Index declares {n_ref} references but names {len(names)}")
    return names


def _read_reference(cur: _Cursor, name: str) -> ReferenceIndex:
    ref = ReferenceIndex(name=name)
    n_bin = cur.count("bin")
    for _ in range(n_bin):
        bin_id = cur.uint32()
        n_chunk = cur.count("chunk")
        pairs = cur.uint64_array(2 * n_chunk).reshape(n_chunk, 2)
        if bin_id == METADATA_BIN:
            if n_chunk != 2:
                raise IndexParseError(f"Metadata bin for {name} has {n_chunk} chunks, expected 2")
            ref.metadata = ReferenceMetadata(
                begin=int(pairs[0, 0]),
                end=int(pairs[0, 1]),
                n_mapped=int(pairs[1, 0]),
                n_unmapped=int(pairs[1, 1]),
            )
            continue
        ref.bins[bin_id] = pairs
    n_intv = cur.count("interval")
    ref.intervals = cur.uint64_array(n_intv)
    return ref


def parse_index(data: bytes) -> TabixIndex:
    """Parse a BGZF-compressed tabix index."""
    raw = bgzf.decompress(data)
    cur = _Cursor(raw)
    if cur.take(4) != TABIX_MAGIC:
        raise IndexParseError("Not a tabix index (bad magic)")

    n_ref = cur.count("reference")
    fmt = cur.int32()
    col_seq = cur.int32()
    col_beg = cur.int32()
    col_end = cur.int32()
    meta = cur.int32()
    skip = cur.int32()
    l_nm = cur.count("name length")
    names = _split_names(cur.take(l_nm), n_ref)

    references = [_read_reference(cur, name) for name in names]
    unplaced = cur.uint64() if cur.remaining >= 8 else None

    return TabixIndex(
        format=fmt,
        col_seq=col_seq,
        col_beg=col_beg,
        col_end=col_end,
        meta_char=chr(meta) if 0 < meta < 128 else "",
        skip=skip,
        references=references,
        unplaced=unplaced,
    )


def chunks_for_bins(ref: ReferenceIndex, bins: Sequence[int]) -> List[Chunk]:
    out: List[Chunk] = []
    for bin_id in bins:
        out.extend(ref.chunks(bin_id))
    return out
