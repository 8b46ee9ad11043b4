"""Builders for genuine BGZF-compressed VCFs and tabix indexes, plus an in-memory store."""
from __future__ import annotations

import struct
import threading
import time
import zlib
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from beacon.errors import FetchError, FetchTimeoutError
from beacon.ranges import ByteRange
from beacon.storage import BlobStore
from beacon.tabix import METADATA_BIN, MIN_SHIFT, reg2bin

DEFAULT_HEADER = (
    "##fileformat=VCFv4.2",
    "##contig=<ID=chr1,length=248956422>",
    "##contig=<ID=chr2,length=242193529>",
    "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\tS1",
)
MAX_BLOCK_PAYLOAD = 65280

VCF_BUCKET = "vcfs"
VCF_KEY = "cohort.vcf.gz"
INDEX_BUCKET = "indexes"
INDEX_KEY = "cohort.vcf.gz.tbi"


def record(chrom: str, pos: int, ref: str, alt: str) -> str:
    return f"{chrom}\t{pos}\t.\t{ref}\t{alt}\t50\tPASS\t.\tGT\t0/1"


def bgzf_block(payload: bytes) -> bytes:
    comp = zlib.compressobj(6, zlib.DEFLATED, -15)
    cdata = comp.compress(payload) + comp.flush()
    total = 12 + 6 + len(cdata) + 8
    header = (
        b"\x1f\x8b\x08\x04\x00\x00\x00\x00\x00\xff"
        + struct.pack("<H", 6)
        + b"BC"
        + struct.pack("<HH", 2, total - 1)
    )
    trailer = struct.pack("<II", zlib.crc32(payload) & 0xFFFFFFFF, len(payload) & 0xFFFFFFFF)
    return header + cdata + trailer


BGZF_EOF = bgzf_block(b"")


def bgzf_compress(payload: bytes) -> bytes:
    parts = [bgzf_block(payload[i:i + MAX_BLOCK_PAYLOAD]) for i in range(0, len(payload), MAX_BLOCK_PAYLOAD)]
    return b"".join(parts) + BGZF_EOF


@dataclass
class VcfFixture:
    data: bytes
    index: bytes
    block_offsets: List[int]
    # (chrom, pos) -> (begin, end) virtual offsets
    voffsets: Dict[Tuple[str, int], Tuple[int, int]] = field(default_factory=dict)


def build_vcf(blocks: Sequence[Sequence[str]], header: Sequence[str] = DEFAULT_HEADER) -> VcfFixture:
    """Write ``blocks`` of record lines, one BGZF block each, after a header block.

    Records must be coordinate-sorted; the index is built the way tabix
    builds it (leaf-most bin per record, chunks over runs of equal bins,
    16 kbp linear index, metadata pseudo-bin).
    """
    payloads = ["".join(line + "\n" for line in header)]
    payloads.extend("".join(line + "\n" for line in lines) for lines in blocks)

    data = b""
    block_offsets = []
    for payload in payloads:
        block_offsets.append(len(data))
        data += bgzf_block(payload.encode())
    data += BGZF_EOF

    names: List[str] = []
    bins: Dict[str, Dict[int, List[List[int]]]] = defaultdict(lambda: defaultdict(list))
    linear: Dict[str, Dict[int, int]] = defaultdict(dict)
    meta: Dict[str, List[int]] = {}
    voffsets: Dict[Tuple[str, int], Tuple[int, int]] = {}
    last: Optional[Tuple[str, int]] = None

    for block_no, lines in enumerate(blocks, start=1):
        coffset = block_offsets[block_no]
        uoffset = 0
        for line in lines:
            chrom, pos, _, ref = line.split("\t")[:4]
            pos = int(pos)
            begin = (coffset << 16) | uoffset
            uoffset += len(line) + 1
            end = (coffset << 16) | uoffset
            voffsets[(chrom, pos)] = (begin, end)

            if chrom not in names:
                names.append(chrom)
            beg0 = pos - 1
            end0 = beg0 + len(ref)
            bin_id = reg2bin(beg0, end0)
            if last == (chrom, bin_id):
                bins[chrom][bin_id][-1][1] = end
            else:
                bins[chrom][bin_id].append([begin, end])
            last = (chrom, bin_id)

            for window in range(beg0 >> MIN_SHIFT, ((end0 - 1) >> MIN_SHIFT) + 1):
                linear[chrom].setdefault(window, begin)

            if chrom in meta:
                meta[chrom][1] = end
                meta[chrom][2] += 1
            else:
                meta[chrom] = [begin, end, 1, 0]

    out = bytearray(b"TBI\x01")
    name_blob = b"".join(n.encode() + b"\x00" for n in names)
    out += struct.pack("<8i", len(names), 2, 1, 2, 0, ord("#"), 0, len(name_blob))
    out += name_blob
    for name in names:
        ref_bins = bins[name]
        out += struct.pack("<i", len(ref_bins) + 1)
        for bin_id, chunks in sorted(ref_bins.items()):
            out += struct.pack("<Ii", bin_id, len(chunks))
            for begin, end in chunks:
                out += struct.pack("<QQ", begin, end)
        m = meta[name]
        out += struct.pack("<Ii", METADATA_BIN, 2)
        out += struct.pack("<QQQQ", m[0], m[1], m[2], m[3])

        windows = linear[name]
        n_intv = max(windows) + 1
        offsets = []
        previous = 0
        for w in range(n_intv):
            previous = windows.get(w, previous)
            offsets.append(previous)
        out += struct.pack("<i", n_intv)
        out += struct.pack(f"<{n_intv}Q", *offsets)
    out += struct.pack("<Q", 0)

    return VcfFixture(data=data, index=bgzf_compress(bytes(out)), block_offsets=block_offsets, voffsets=voffsets)


def scenario_blocks(alt_at_target: str = "C") -> List[List[str]]:
    """chr1 layout where 1220751 is reachable from two disjoint index chunks.

    The 20 kbp deletion at 1210000 lands in a 128 kbp bin that overlaps
    the target, the target sits in its own 16 kbp leaf bin, and the block
    between them holds a record neither bin references.
    """
    return [
        [record("chr1", 1100000, "G", "A"), record("chr1", 1150000, "C", "T")],
        [record("chr1", 1200000, "A", "G")],
        [record("chr1", 1210000, "A" * 20000, "A")],
        [record("chr1", 1212000, "G", "T")],
        [record("chr1", 1220751, "T", alt_at_target)],
        [record("chr1", 1236037, "C", "T"), record("chr2", 100, "A", "G")],
    ]


class MemoryStore(BlobStore):
    """In-memory blob store recording every call, with injectable failures."""

    name = "memory"

    def __init__(self, objects=None, *, fail_starts=(), timeout_starts=(), delays=None, truncate_starts=()):
        self.objects: Dict[Tuple[str, str], bytes] = dict(objects or {})
        self.fail_starts = set(fail_starts)
        self.timeout_starts = set(timeout_starts)
        self.truncate_starts = set(truncate_starts)
        self.delays = dict(delays or {})
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def put(self, container: str, key: str, data: bytes) -> None:
        self.objects[(container, key)] = data

    @property
    def range_calls(self) -> List[ByteRange]:
        return [c[3] for c in self.calls if c[0] == "range"]

    def _object(self, container, key, byte_range=None) -> bytes:
        try:
            return self.objects[(container, key)]
        except KeyError:
            raise FetchError(f"No such object {container}/{key}", byte_range=byte_range) from None

    def get(self, container, key, *, timeout=None) -> bytes:
        with self._lock:
            self.calls.append(("get", container, key))
        return self._object(container, key)

    def get_range(self, container, key, byte_range, *, timeout=None) -> bytes:
        with self._lock:
            self.calls.append(("range", container, key, byte_range))
        delay = self.delays.get(byte_range.start)
        if delay:
            time.sleep(delay)
        if byte_range.start in self.timeout_starts:
            raise FetchTimeoutError(f"Timed out reading {byte_range}", byte_range=byte_range)
        if byte_range.start in self.fail_starts:
            raise FetchError(f"Injected failure for {byte_range}", byte_range=byte_range)
        data = self._object(container, key, byte_range)
        chunk = data[byte_range.start:byte_range.end]
        if byte_range.start in self.truncate_starts:
            chunk = chunk[: len(chunk) // 2]
        return chunk
