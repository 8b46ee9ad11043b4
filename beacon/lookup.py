"""Coordinate index lookup: genomic position -> candidate compressed byte ranges."""
from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from . import bgzf
from .errors import CoordinateRangeError
from .ranges import ByteRange
from .tabix import MAX_POSITION, Chunk, TabixIndex, chunks_for_bins, reg2bins

log = logging.getLogger(__name__)

# request coordinates are 1-based VCF positions
MIN_START = 1
MAX_START = MAX_POSITION


def to_index_coordinate(start) -> int:
    """Checked conversion of a 1-based request start to the index's 0-based coordinate."""
    if isinstance(start, bool) or not isinstance(start, (int, np.integer)):
        raise CoordinateRangeError(start, MIN_START, MAX_START)
    if not MIN_START <= start <= MAX_START:
        raise CoordinateRangeError(start, MIN_START, MAX_START)
    return int(start) - 1


def _range_end(coffset: int, uoffset: int, boundaries: np.ndarray) -> Optional[int]:
    # a chunk ending at uoffset 0 stops exactly at a block start; otherwise the
    # whole block holding the end must be read, up to the next known block
    if uoffset == 0:
        return coffset
    i = int(np.searchsorted(boundaries, np.uint64(coffset), side="right"))
    return int(boundaries[i]) if i < len(boundaries) else None


def chunk_range(chunk: Chunk, boundaries: np.ndarray) -> ByteRange:
    begin_c, begin_u = bgzf.split_virtual_offset(chunk.begin)
    end_c, end_u = bgzf.split_virtual_offset(chunk.end)
    return ByteRange(begin_c, _range_end(end_c, end_u, boundaries), begin_u)


def lookup(
    index: TabixIndex,
    reference_name: str,
    start: int,
    *,
    with_metadata: bool = False,
) -> List[ByteRange]:
    """Byte ranges of every chunk whose bin could hold a record at ``start``.

    ``start`` is 1-based. Chunks that end before the linear-index bound
    for the position's 16 kbp window are skipped. With ``with_metadata``
    the reference's full metadata span is appended as well.
    """
    beg = to_index_coordinate(start)
    ref = index.reference(reference_name)

    if ref.metadata is not None and ref.metadata.n_mapped == 0:
        log.debug("Reference %s has no mapped records", reference_name)
        return []

    min_off = ref.min_offset(beg)
    boundaries = index.block_boundaries()
    bins = reg2bins(beg, beg + 1)
    chunks = [c for c in chunks_for_bins(ref, bins) if c.end > min_off]
    ranges = [chunk_range(c, boundaries) for c in chunks]

    if with_metadata and ref.metadata is not None:
        ranges.append(chunk_range(Chunk(ref.metadata.begin, ref.metadata.end), boundaries))

    log.debug(
        "Lookup %s:%d -> %d bins, %d chunks after linear filter (min offset %d)",
        reference_name, start, len(bins), len(chunks), min_off,
    )
    return ranges


def header_range(index: TabixIndex) -> ByteRange:
    """Range holding the VCF header, i.e. everything before the first record."""
    first = index.first_data_offset()
    if first is None:
        return ByteRange(0, None)
    coffset, uoffset = bgzf.split_virtual_offset(first)
    return ByteRange(0, _range_end(coffset, uoffset, index.block_boundaries()))
