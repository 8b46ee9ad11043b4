"""Per-range record scan with the sorted-file early exit."""
from __future__ import annotations

import enum
import logging
import threading
from typing import Optional

from .query import CoordinateQuery
from .vcf import VcfHeader, open_records

log = logging.getLogger(__name__)


class MatchOutcome(enum.Enum):
    MATCHED = "matched"
    # block exhausted with no evidence either way
    NOT_MATCHED = "not_matched"
    # a record beyond the queried position was reached
    PAST_END = "past_end"


def scan(
    block,
    query: CoordinateQuery,
    header: VcfHeader,
    *,
    stop_event: Optional[threading.Event] = None,
) -> MatchOutcome:
    """Scan one fetched range for a record matching ``query`` exactly.

    Records are visited in file order. Scanning stops at the first
    record positioned after ``query.start`` on the queried reference,
    or at the first record of a later reference. Record alleles are only
    parsed for records at the queried position.
    """
    on_reference = False
    visited = 0
    for record in open_records(block, header):
        if stop_event is not None and stop_event.is_set():
            # a match was already reported elsewhere; this result is discarded
            return MatchOutcome.NOT_MATCHED
        visited += 1
        if record.chromosome != query.reference_name:
            if on_reference:
                log.debug("Left %s after %d records in %s", query.reference_name, visited, block.byte_range)
                return MatchOutcome.PAST_END
            continue
        on_reference = True

        if record.position > query.start:
            log.debug("Passed %d after %d records in %s", query.start, visited, block.byte_range)
            return MatchOutcome.PAST_END
        if (
            record.position == query.start
            and record.parsed_reference() == query.reference_bases
            and record.parsed_alternate() == query.alternate_bases
        ):
            log.debug("Matched %s:%d in %s", query.reference_name, query.start, block.byte_range)
            return MatchOutcome.MATCHED

    return MatchOutcome.NOT_MATCHED
