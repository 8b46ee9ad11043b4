"""Lookup pipeline: index -> candidate ranges -> merged ranges -> fetch + scan -> answer."""
from __future__ import annotations

import logging
import threading
import time
from contextlib import closing
from typing import Optional

from .aggregate import LookupResult, aggregate
from .config import BeaconConfig
from .fetch import FetchedBlock, fetch_all, fetch_range
from .lookup import header_range, lookup
from .query import CoordinateQuery, RemoteObjectRef, SequenceQueryRequest, SequenceQueryResponse
from .ranges import merge
from .scan import scan
from .storage import BlobStore, create_blob_store
from .tabix import TabixIndex, parse_index
from .vcf import VcfHeader, read_header

log = logging.getLogger(__name__)


def load_index(store: BlobStore, ref: RemoteObjectRef, *, timeout: Optional[float] = None) -> TabixIndex:
    data = store.get(ref.container, ref.key, timeout=timeout)
    index = parse_index(data)
    log.info("Loaded index %s (%d bytes, %d references)", ref, len(data), len(index.references))
    return index


def load_header(
    store: BlobStore,
    ref: RemoteObjectRef,
    index: TabixIndex,
    *,
    timeout: Optional[float] = None,
) -> VcfHeader:
    block = fetch_range(store, ref, header_range(index), timeout=timeout)
    header = read_header(block.data)
    log.debug("Read VCF header from %s %s (%d samples)", ref, block.byte_range, len(header.samples))
    return header


def search(
    store: BlobStore,
    data_ref: RemoteObjectRef,
    index: TabixIndex,
    query: CoordinateQuery,
    config: BeaconConfig,
) -> LookupResult:
    """Run the range pipeline for one query against an already-parsed index."""
    candidates = lookup(index, query.reference_name, query.start)
    merged = merge(candidates, max_gap=config.merge_gap)
    log.info(
        "%s:%d -> %d candidate ranges, %d after merging",
        query.reference_name, query.start, len(candidates), len(merged),
    )
    if not merged:
        return LookupResult(found=False)

    header = load_header(store, data_ref, index, timeout=config.fetch_timeout)
    stop_event = threading.Event()

    def scan_block(block: FetchedBlock):
        return scan(block, query, header, stop_event=stop_event)

    outcomes = fetch_all(
        store,
        data_ref,
        merged,
        timeout=config.fetch_timeout,
        process=scan_block,
        max_workers=config.max_concurrency,
        stop_event=stop_event,
        progress=config.progress,
    )
    with closing(outcomes):
        return aggregate(outcomes)


def beacon_query(
    request: SequenceQueryRequest,
    *,
    store: Optional[BlobStore] = None,
    config: Optional[BeaconConfig] = None,
) -> SequenceQueryResponse:
    """Answer whether the request's VCF holds the exact variant."""
    config = config if config is not None else BeaconConfig.from_env()
    query = request.validate()
    store = store if store is not None else create_blob_store(config)

    t0 = time.monotonic()
    index = load_index(store, request.index_ref, timeout=config.fetch_timeout)
    result = search(store, request.data_ref, index, query, config)
    log.info(
        "Query %s:%d %s>%s in %s: found=%s (%d ranges scanned, %.2fs)",
        query.reference_name,
        query.start,
        query.reference_bases,
        query.alternate_bases,
        request.data_ref,
        result.found,
        result.ranges_scanned,
        time.monotonic() - t0,
    )
    return SequenceQueryResponse(found=result.found)
