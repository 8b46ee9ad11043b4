"""VCF header parsing and lazy record decoding over fetched BGZF ranges."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Optional, Tuple

from . import bgzf
from .alleles import AlternateBases, ReferenceBases
from .errors import BlockDecodeError, CoordinateOverflowError, HeaderParseError, RecordParseError

if TYPE_CHECKING:
    from .fetch import FetchedBlock

FIXED_COLUMNS = ("#CHROM", "POS", "ID", "REF", "ALT", "QUAL", "FILTER", "INFO")
MAX_RECORD_POSITION = (1 << 31) - 1


@dataclass(frozen=True)
class VcfHeader:
    meta: Tuple[str, ...]
    columns: Tuple[str, ...]

    @property
    def samples(self) -> Tuple[str, ...]:
        return self.columns[9:]

    @property
    def fileformat(self) -> Optional[str]:
        for line in self.meta:
            if line.startswith("##fileformat="):
                return line.split("=", 1)[1]
        return None

    @classmethod
    def parse(cls, text: str) -> "VcfHeader":
        meta = []
        columns = None
        for line in text.splitlines():
            if line.startswith("##"):
                meta.append(line)
            elif line.startswith("#"):
                columns = tuple(line.split("\t"))
                break
            elif line:
                break
        if columns is None:
            raise HeaderParseError("VCF header has no #CHROM column line")
        if columns[:len(FIXED_COLUMNS)] != FIXED_COLUMNS:
            raise HeaderParseError(f"Unexpected VCF column line: {columns[:len(FIXED_COLUMNS)]}")
        return cls(meta=tuple(meta), columns=columns)


def read_header(data: bytes) -> VcfHeader:
    """Parse the header from the compressed bytes at the start of a VCF."""
    header_lines = []
    for raw in bgzf.decompress(data).split(b"\n"):
        if not raw.startswith(b"#"):
            break
        try:
            header_lines.append(raw.rstrip(b"\r").decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise HeaderParseError(f"VCF header line is not UTF-8: {exc}") from exc
    return VcfHeader.parse("\n".join(header_lines))


@dataclass(frozen=True)
class VariantRecord:
    chromosome: str
    position: int
    reference_bases: str
    alternate_bases: str

    def parsed_reference(self) -> ReferenceBases:
        return ReferenceBases.parse(self.reference_bases)

    def parsed_alternate(self) -> AlternateBases:
        return AlternateBases.parse(self.alternate_bases)


def parse_record(line: str, header: VcfHeader) -> VariantRecord:
    n_fields = line.count("\t") + 1
    if n_fields < len(FIXED_COLUMNS):
        raise RecordParseError(f"VCF record has {n_fields} columns, expected at least 8: {line[:80]!r}")
    if n_fields > len(header.columns):
        raise RecordParseError(
            f"VCF record has {n_fields} columns but the header declares {len(header.columns)}"
        )

    fields = line.split("\t", 5)
    try:
        position = int(fields[1])
    except ValueError as exc:
        raise RecordParseError(f"Invalid POS {fields[1]!r}") from exc
    if position < 0:
        raise RecordParseError(f"Negative POS {position}")
    if position > MAX_RECORD_POSITION:
        raise CoordinateOverflowError(f"POS {position} exceeds the 32-bit coordinate range")

    return VariantRecord(
        chromosome=fields[0],
        position=position,
        reference_bases=fields[3],
        alternate_bases=fields[4],
    )


def _iter_lines(block: "FetchedBlock") -> Iterator[bytes]:
    bounded = block.byte_range.end is not None
    skip = block.byte_range.block_offset
    if skip:
        first = bgzf.first_block_size(block.data)
        if skip > first:
            raise BlockDecodeError(f"Block offset {skip} beyond first block ({first} bytes) in {block.byte_range}")
    pending = b""
    for payload in bgzf.iter_decompressed(block.data):
        if skip:
            # the offset lies inside the first block, so it is a prefix of the stream
            dropped = min(skip, len(payload))
            payload = payload[dropped:]
            skip -= dropped
        pending += payload
        *lines, pending = pending.split(b"\n")
        yield from lines
    # an unterminated line in a bounded range continues in a block we did not fetch
    if pending and not bounded:
        yield pending


def open_records(block: "FetchedBlock", header: VcfHeader) -> Iterator[VariantRecord]:
    """Lazily decode the records of one fetched range, in file order."""
    for raw in _iter_lines(block):
        raw = raw.rstrip(b"\r")
        if not raw or raw.startswith(b"#"):
            continue
        try:
            line = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RecordParseError(f"VCF record is not UTF-8 in {block.byte_range}") from exc
        yield parse_record(line, header)
