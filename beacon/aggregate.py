"""Order-independent aggregation of per-range scan outcomes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .fetch import RangeOutcome
from .ranges import ByteRange
from .scan import MatchOutcome

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupResult:
    found: bool
    ranges_scanned: int = 0
    matched_range: Optional[ByteRange] = None


def aggregate(outcomes: Iterable[RangeOutcome]) -> LookupResult:
    """Combine per-range outcomes into one answer.

    Returns as soon as any range reports a match. Otherwise every
    outcome is consumed before answering: a ``PAST_END`` in one range
    says nothing about the others. If no range matched and any range
    failed, the failure of the lowest-offset range is raised, since an
    unread range is not evidence of absence.
    """
    failures: List[RangeOutcome] = []
    scanned = 0
    for outcome in outcomes:
        if not outcome.ok:
            failures.append(outcome)
            continue
        scanned += 1
        if outcome.result is MatchOutcome.MATCHED:
            for failed in failures:
                log.warning("Range %s failed but a match was found elsewhere: %s", failed.byte_range, failed.error)
            return LookupResult(found=True, ranges_scanned=scanned, matched_range=outcome.byte_range)

    if failures:
        failures.sort(key=lambda o: o.byte_range.start)
        for failed in failures[1:]:
            log.warning("Range %s also failed: %s", failed.byte_range, failed.error)
        raise failures[0].error
    return LookupResult(found=False, ranges_scanned=scanned)
