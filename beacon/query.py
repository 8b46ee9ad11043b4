"""Request and response models for a single beacon sequence query.

See http://docs.genomebeacons.org/variant-queries/ for the query shape.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .alleles import AlternateBases, ReferenceBases
from .errors import InvalidKeyError, InvalidRequestError
from .lookup import to_index_coordinate

VCF_SUFFIX = ".vcf.gz"
INDEX_SUFFIX = ".vcf.gz.tbi"

STRING_FIELDS = (
    "vcf_bucket",
    "vcf_key",
    "vcf_index_bucket",
    "vcf_index_key",
    "reference_name",
    "reference_bases",
    "alternate_bases",
)


def verify_key(key: str, suffix: str) -> str:
    """Return ``key`` without ``suffix``, rejecting keys that lack it."""
    if key.endswith(suffix) and len(key) > len(suffix):
        return key[: -len(suffix)]
    raise InvalidKeyError(key, suffix)


@dataclass(frozen=True)
class RemoteObjectRef:
    container: str
    key: str

    def __str__(self) -> str:
        return f"{self.container}/{self.key}"


@dataclass(frozen=True)
class CoordinateQuery:
    reference_name: str
    start: int
    reference_bases: ReferenceBases
    alternate_bases: AlternateBases

    @classmethod
    def build(cls, reference_name: str, start: int, reference_bases: str, alternate_bases: str) -> "CoordinateQuery":
        to_index_coordinate(start)
        return cls(
            reference_name=reference_name,
            start=int(start),
            reference_bases=ReferenceBases.parse(reference_bases),
            alternate_bases=AlternateBases.parse(alternate_bases),
        )


@dataclass(frozen=True)
class SequenceQueryRequest:
    vcf_bucket: str
    vcf_key: str
    vcf_index_bucket: str
    vcf_index_key: str
    reference_name: str
    start: int
    reference_bases: str
    alternate_bases: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SequenceQueryRequest":
        if not isinstance(payload, Mapping):
            raise InvalidRequestError(f"Request payload must be an object, got {type(payload).__name__}")

        missing = [name for name in (*STRING_FIELDS, "start") if name not in payload]
        if missing:
            raise InvalidRequestError(f"Request is missing required fields: {', '.join(missing)}")

        values = {}
        for name in STRING_FIELDS:
            value = payload[name]
            if not isinstance(value, str) or not value.strip():
                raise InvalidRequestError(f"Field {name!r} must be a non-empty string")
            values[name] = value

        start = payload["start"]
        if isinstance(start, bool) or not isinstance(start, int):
            raise InvalidRequestError(f"Field 'start' must be an integer, got {start!r}")
        return cls(start=start, **values)

    @property
    def data_ref(self) -> RemoteObjectRef:
        return RemoteObjectRef(self.vcf_bucket, self.vcf_key)

    @property
    def index_ref(self) -> RemoteObjectRef:
        return RemoteObjectRef(self.vcf_index_bucket, self.vcf_index_key)

    def validate(self) -> CoordinateQuery:
        """Check everything that can be checked without touching the network."""
        verify_key(self.vcf_index_key, INDEX_SUFFIX)
        verify_key(self.vcf_key, VCF_SUFFIX)
        return CoordinateQuery.build(
            self.reference_name, self.start, self.reference_bases, self.alternate_bases
        )


@dataclass(frozen=True)
class SequenceQueryResponse:
    found: bool

    def to_payload(self) -> dict:
        return {"found": self.found}
