"""Structured reference/alternate alleles used for exact-match comparison."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Tuple

from .errors import AlleleParseError

BASES_RE = re.compile(r"^[ACGTN]+$")
SYMBOLIC_RE = re.compile(r"^<[^<>,\s]+>$")
# t[p[, t]p], ]p]t, [p[t, plus single breakends like .A / A.
BREAKEND_RE = re.compile(r"^([ACGTN]*[\[\]][^\[\]\s]+[\[\]][ACGTN]*|\.[ACGTN]+|[ACGTN]+\.)$")


@dataclass(frozen=True)
class ReferenceBases:
    bases: str

    @classmethod
    def parse(cls, value: str) -> "ReferenceBases":
        bases = value.strip().upper()
        if not bases:
            raise AlleleParseError(value, "reference bases are empty")
        if not BASES_RE.match(bases):
            raise AlleleParseError(value, "reference bases must be drawn from A, C, G, T, N")
        return cls(bases)

    def __str__(self) -> str:
        return self.bases


def _parse_alternate(allele: str, original: str) -> str:
    if allele == "*":
        return allele
    if SYMBOLIC_RE.match(allele):
        return allele
    upper = allele.upper()
    if BASES_RE.match(upper):
        return upper
    if BREAKEND_RE.match(upper):
        return upper
    raise AlleleParseError(original, f"unrecognised alternate allele {allele!r}")


@dataclass(frozen=True)
class AlternateBases:
    alleles: Tuple[str, ...]

    @classmethod
    def parse(cls, value: str) -> "AlternateBases":
        text = value.strip()
        if not text:
            raise AlleleParseError(value, "alternate bases are empty")
        if text == ".":
            return cls(())
        return cls(tuple(_parse_alternate(a, value) for a in text.split(",")))

    def __str__(self) -> str:
        return ",".join(self.alleles) if self.alleles else "."
