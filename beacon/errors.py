"""Error taxonomy for beacon lookups.

Every failure carries a stable ``kind`` string so the entry points can
report it without leaking the class hierarchy.
"""
from __future__ import annotations


class BeaconError(Exception):
    """Base class for every failure the lookup reports to its caller."""

    kind = "BeaconError"


class InputValidationError(BeaconError, ValueError):
    kind = "InputValidationError"


class InvalidRequestError(InputValidationError):
    """A request payload field is missing or has the wrong type."""


class InvalidKeyError(InputValidationError):
    """An object key does not carry the suffix its format requires."""

    def __init__(self, key: str, suffix: str):
        super().__init__(f"Invalid key: {key} (expected suffix {suffix!r})")
        self.key = key
        self.suffix = suffix


class UnknownReferenceError(InputValidationError):
    def __init__(self, reference_name: str):
        super().__init__(f"Reference sequence not present in index: {reference_name}")
        self.reference_name = reference_name


class CoordinateRangeError(InputValidationError):
    def __init__(self, start, lower: int, upper: int):
        super().__init__(f"Start coordinate {start!r} outside [{lower}, {upper}]")
        self.start = start


class FetchError(BeaconError):
    """A remote read failed; ``byte_range`` is ``None`` for whole-object reads."""

    kind = "FetchError"

    def __init__(self, message: str, *, byte_range=None):
        super().__init__(message)
        self.byte_range = byte_range


class FetchTimeoutError(FetchError):
    pass


class ParseError(BeaconError):
    kind = "ParseError"


class IndexParseError(ParseError):
    pass


class BlockDecodeError(ParseError):
    pass


class HeaderParseError(ParseError):
    pass


class RecordParseError(ParseError):
    pass


class AlleleParseError(RecordParseError):
    def __init__(self, value: str, reason: str):
        super().__init__(f"Invalid allele {value!r}: {reason}")
        self.value = value


class CoordinateOverflowError(RecordParseError, OverflowError):
    kind = "OverflowError"
