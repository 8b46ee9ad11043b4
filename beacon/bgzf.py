"""BGZF helpers: virtual offsets, block framing checks and decoding via ``bgzip``."""
from __future__ import annotations

import io
from typing import Iterator, Tuple

import bgzip

from .errors import BlockDecodeError

GZIP_MAGIC = b"\x1f\x8b"
# fixed gzip header (12 bytes) up to and including XLEN
HEADER_SIZE = 12
MAX_BLOCK_SIZE = 65536
UOFFSET_BITS = 16
UOFFSET_MASK = (1 << UOFFSET_BITS) - 1
# BGZipReader hands back views into its own buffer, so reads stay well under it
READ_SIZE = 64 * 1024


def split_virtual_offset(voffset: int) -> Tuple[int, int]:
    """Return ``(compressed block offset, offset inside the decompressed block)``."""
    return voffset >> UOFFSET_BITS, voffset & UOFFSET_MASK


def make_virtual_offset(coffset: int, uoffset: int) -> int:
    if not 0 <= uoffset <= UOFFSET_MASK:
        raise ValueError(f"uoffset {uoffset} does not fit in {UOFFSET_BITS} bits")
    return (coffset << UOFFSET_BITS) | uoffset


def _block_size(data: bytes, pos: int) -> int:
    """Total size of the BGZF block starting at ``pos``, from its BC subfield."""
    if len(data) - pos < HEADER_SIZE:
        raise BlockDecodeError(f"Truncated BGZF header at offset {pos}")
    if data[pos:pos + 2] != GZIP_MAGIC:
        raise BlockDecodeError(f"Missing gzip magic at offset {pos}")

    xlen = int.from_bytes(data[pos + 10:pos + 12], "little")
    extra = data[pos + 12:pos + 12 + xlen]
    if len(extra) < xlen:
        raise BlockDecodeError(f"Truncated BGZF extra field at offset {pos}")

    idx = 0
    while idx + 4 <= len(extra):
        sub_id = extra[idx:idx + 2]
        sub_len = int.from_bytes(extra[idx + 2:idx + 4], "little")
        if sub_id == b"BC" and sub_len == 2:
            return int.from_bytes(extra[idx + 4:idx + 6], "little") + 1
        idx += 4 + sub_len
    raise BlockDecodeError(f"gzip member at offset {pos} has no BGZF 'BC' subfield")


def check_framing(data: bytes) -> int:
    """Walk the block headers of ``data`` and return the number of blocks.

    Only headers are read. Buffers that do not tile exactly into whole
    BGZF blocks raise :class:`BlockDecodeError`.
    """
    pos = 0
    count = 0
    total = len(data)
    while pos < total:
        size = _block_size(data, pos)
        if pos + size > total:
            raise BlockDecodeError(
                f"Truncated BGZF block at offset {pos}: need {size} bytes, have {total - pos}"
            )
        pos += size
        count += 1
    return count


def first_block_size(data: bytes) -> int:
    """Decompressed size of the first block, read from its ISIZE trailer."""
    size = _block_size(data, 0)
    if size > len(data):
        raise BlockDecodeError(f"Truncated BGZF block at offset 0: need {size} bytes, have {len(data)}")
    return int.from_bytes(data[size - 4:size], "little")


def iter_decompressed(data: bytes) -> Iterator[bytes]:
    """Yield the decompressed contents of ``data`` in pieces.

    Decoding is incremental, so a consumer that stops early never pays
    for inflating the rest of the buffer.
    """
    if not data:
        return
    check_framing(data)
    try:
        with bgzip.BGZipReader(io.BytesIO(data)) as reader:
            while True:
                chunk = bytes(reader.read(READ_SIZE))
                if not chunk:
                    break
                yield chunk
    except Exception as exc:
        raise BlockDecodeError(f"Corrupt BGZF data: {exc}") from exc


def decompress(data: bytes) -> bytes:
    return b"".join(iter_decompressed(data))
