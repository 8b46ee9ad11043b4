"""Concurrent range fetcher: one worker per merged byte range."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Optional

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from .errors import BeaconError, FetchError
from .ranges import ByteRange
from .storage import BlobStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedBlock:
    byte_range: ByteRange
    data: bytes


@dataclass(frozen=True)
class RangeOutcome:
    """Result of one range's worker: a value or the error that stopped it."""

    byte_range: ByteRange
    result: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def fetch_range(store: BlobStore, ref, byte_range: ByteRange, *, timeout: Optional[float] = None) -> FetchedBlock:
    """Fetch exactly ``byte_range`` of ``ref``; short transfers are failures."""
    data = store.get_range(ref.container, ref.key, byte_range, timeout=timeout)
    expected = byte_range.length
    if expected is not None and len(data) != expected:
        raise FetchError(
            f"Range fetch returned {len(data)} bytes, expected {expected} for {ref} {byte_range}",
            byte_range=byte_range,
        )
    if expected is None and not data:
        raise FetchError(f"Range fetch returned no data for {ref} {byte_range}", byte_range=byte_range)
    return FetchedBlock(byte_range, data)


def fetch_all(
    store: BlobStore,
    ref,
    ranges: Iterable[ByteRange],
    *,
    timeout: Optional[float] = None,
    process: Optional[Callable[[FetchedBlock], Any]] = None,
    max_workers: Optional[int] = None,
    stop_event: Optional[threading.Event] = None,
    progress: bool = False,
) -> Iterator[RangeOutcome]:
    """Fetch every range concurrently, yielding outcomes as they complete.

    Each worker fetches its range and, when ``process`` is given, hands
    the block to it; the outcome then carries ``process``'s return value
    instead of the block. A failing range does not disturb its siblings.
    Closing the generator early sets ``stop_event`` and abandons any
    work still queued or in flight.
    """
    ranges = list(ranges)
    if not ranges:
        return
    workers = len(ranges) if max_workers is None else min(max_workers, len(ranges))
    stop_event = stop_event if stop_event is not None else threading.Event()

    def worker(byte_range: ByteRange):
        block = fetch_range(store, ref, byte_range, timeout=timeout)
        log.debug("Fetched %s (%d bytes)", byte_range, len(block.data))
        return block if process is None else process(block)

    pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="beacon-range")
    bar = tqdm(total=len(ranges), desc="Ranges", unit="range", disable=not progress, leave=False)
    # console log handlers write through tqdm.write while the bar is drawn
    redirect = logging_redirect_tqdm() if progress else nullcontext()
    try:
        with redirect:
            futs = {pool.submit(worker, byte_range): byte_range for byte_range in ranges}
            for fut in as_completed(futs):
                byte_range = futs[fut]
                try:
                    outcome = RangeOutcome(byte_range, result=fut.result())
                except BeaconError as exc:
                    log.debug("Range %s failed: %s", byte_range, exc)
                    outcome = RangeOutcome(byte_range, error=exc)
                bar.update(1)
                yield outcome
    finally:
        stop_event.set()
        pool.shutdown(wait=False, cancel_futures=True)
        bar.close()
