import logging
import os
import sys
import threading
import time

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..")))
from beacon.errors import FetchError, FetchTimeoutError
from beacon.fetch import fetch_all, fetch_range
from beacon.query import RemoteObjectRef
from beacon.ranges import ByteRange
from beacon.tests.helpers import MemoryStore

pytestmark = pytest.mark.timeout(30)

REF = RemoteObjectRef("bucket", "data.vcf.gz")
DATA = bytes(range(256)) * 4


@pytest.fixture
def store():
    return MemoryStore({("bucket", "data.vcf.gz"): DATA})


def test_fetch_range_returns_exact_bytes(store):
    block = fetch_range(store, REF, ByteRange(10, 20))
    assert block.data == DATA[10:20]
    assert fetch_range(store, REF, ByteRange(1000)).data == DATA[1000:]


def test_short_transfer_is_a_failure():
    store = MemoryStore({("bucket", "data.vcf.gz"): DATA}, truncate_starts={10})
    with pytest.raises(FetchError) as excinfo:
        fetch_range(store, REF, ByteRange(10, 30))
    assert excinfo.value.byte_range == ByteRange(10, 30)


def test_open_ended_range_past_the_object_is_a_failure(store):
    with pytest.raises(FetchError):
        fetch_range(store, REF, ByteRange(len(DATA)))


def test_fetch_all_reports_failures_as_outcomes():
    store = MemoryStore({("bucket", "data.vcf.gz"): DATA}, fail_starts={100}, timeout_starts={200})
    ranges = [ByteRange(0, 10), ByteRange(100, 110), ByteRange(200, 210)]

    outcomes = {o.byte_range.start: o for o in fetch_all(store, REF, ranges, process=lambda b: len(b.data))}

    assert outcomes[0].ok and outcomes[0].result == 10
    assert isinstance(outcomes[100].error, FetchError)
    assert isinstance(outcomes[200].error, FetchTimeoutError)


def test_fetch_all_runs_ranges_concurrently(store):
    barrier = threading.Barrier(3, timeout=10)
    names = set()

    def process(block):
        names.add(threading.current_thread().name)
        barrier.wait()
        return block.byte_range.start

    ranges = [ByteRange(0, 10), ByteRange(20, 30), ByteRange(40, 50)]
    results = sorted(o.result for o in fetch_all(store, REF, ranges, process=process))

    assert results == [0, 20, 40]
    assert len(names) == 3
    assert all(name.startswith("beacon-range") for name in names)


def test_closing_early_sets_stop_event_and_drops_queued_work():
    store = MemoryStore({("bucket", "data.vcf.gz"): DATA}, delays={20: 0.3})
    stop_event = threading.Event()
    ranges = [ByteRange(0, 10), ByteRange(20, 30), ByteRange(40, 50)]

    outcomes = fetch_all(store, REF, ranges, max_workers=1, stop_event=stop_event)
    first = next(outcomes)
    outcomes.close()
    time.sleep(0.5)

    assert first.byte_range == ByteRange(0, 10)
    assert stop_event.is_set()
    assert len(store.range_calls) < 3


def test_no_ranges_yields_nothing(store):
    assert list(fetch_all(store, REF, [])) == []
    assert store.calls == []


def test_progress_routes_console_logging_through_tqdm(store):
    root = logging.getLogger()
    console = logging.StreamHandler(sys.stderr)
    root.addHandler(console)
    seen = []

    def process(block):
        seen.append(console in root.handlers)
        return block.byte_range.start

    try:
        outcomes = list(fetch_all(store, REF, [ByteRange(0, 10), ByteRange(20, 30)], process=process, progress=True))
        assert len(outcomes) == 2
        assert seen == [False, False]
        assert console in root.handlers

        seen.clear()
        list(fetch_all(store, REF, [ByteRange(0, 10)], process=process))
        assert seen == [True]
    finally:
        root.removeHandler(console)
