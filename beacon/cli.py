"""Command line entrypoint for running a single beacon sequence query."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Sequence

from .config import VALID_STORES, BeaconConfig
from .engine import beacon_query
from .errors import BeaconError
from .logging_utils import configure_logging, log_runtime_environment
from .query import SequenceQueryRequest

log = logging.getLogger(__name__)

# flag destination -> request field
REQUEST_FLAGS = {
    "vcf_bucket": "vcf_bucket",
    "vcf_key": "vcf_key",
    "index_bucket": "vcf_index_bucket",
    "index_key": "vcf_index_key",
    "reference_name": "reference_name",
    "start": "start",
    "reference_bases": "reference_bases",
    "alternate_bases": "alternate_bases",
}


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:  # pragma: no cover - argparse sanitises this path in tests
        raise argparse.ArgumentTypeError("Expected an integer value") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("Value must be a positive integer")
    return parsed


def _non_negative_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:  # pragma: no cover - argparse sanitises this path in tests
        raise argparse.ArgumentTypeError("Expected an integer value") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("Value must be zero or a positive integer")
    return parsed


def _positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Expected a number") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("Value must be positive")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Check whether a remote bgzipped, tabix-indexed VCF holds a variant at an exact "
            "position with the given alleles, reading only the blocks the index points at."
        ),
    )
    request = parser.add_argument_group("request")
    request.add_argument(
        "--payload",
        type=str,
        help="Full request as a JSON object; individual flags override its fields.",
    )
    request.add_argument(
        "--payload-file",
        type=str,
        help="Read the JSON request from this file ('-' for stdin).",
    )
    request.add_argument("--vcf-bucket", type=str, help="Container holding the .vcf.gz file.")
    request.add_argument("--vcf-key", type=str, help="Key of the .vcf.gz file.")
    request.add_argument("--index-bucket", type=str, help="Container holding the .vcf.gz.tbi index.")
    request.add_argument("--index-key", type=str, help="Key of the .vcf.gz.tbi index.")
    request.add_argument("--reference-name", type=str, help="Chromosome or contig, as named in the index.")
    request.add_argument("--start", type=int, help="1-based position (VCF POS).")
    request.add_argument("--reference-bases", type=str, help="Expected REF bases.")
    request.add_argument("--alternate-bases", type=str, help="Expected ALT bases.")

    runtime = parser.add_argument_group("runtime")
    runtime.add_argument("--store", choices=VALID_STORES, help="Blob store backend (default: BEACON_STORE or gcs).")
    runtime.add_argument("--timeout", type=_positive_float, help="Per-fetch timeout in seconds.")
    runtime.add_argument(
        "--max-concurrency",
        type=_positive_int,
        help="Cap on concurrent range fetches (default: one per merged range).",
    )
    runtime.add_argument(
        "--merge-gap",
        type=_non_negative_int,
        help="Also merge ranges separated by at most this many bytes.",
    )
    runtime.add_argument("--http-endpoint", type=str, help="Base URL for the http store.")
    runtime.add_argument("--local-root", type=str, help="Root directory for the local store.")
    runtime.add_argument("--project", type=str, help="Google Cloud project billed for requester-pays reads.")
    runtime.add_argument("--log-level", type=str, help="Logging level (default: BEACON_LOG_LEVEL or INFO).")
    runtime.add_argument("--progress", action="store_true", help="Show a progress bar over fetched ranges.")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _read_payload(args: argparse.Namespace) -> dict:
    payload: dict = {}
    if args.payload_file:
        if args.payload_file == "-":
            payload.update(json.load(sys.stdin))
        else:
            with open(args.payload_file, "r") as fh:
                payload.update(json.load(fh))
    if args.payload:
        payload.update(json.loads(args.payload))
    for dest, field_name in REQUEST_FLAGS.items():
        value = getattr(args, dest, None)
        if value is not None:
            payload[field_name] = value
    return payload


def apply_cli_configuration(args: argparse.Namespace, base: BeaconConfig | None = None) -> BeaconConfig:
    """Layer CLI flags over the environment configuration."""
    config = base if base is not None else BeaconConfig.from_env()
    return config.with_overrides(
        store=args.store,
        fetch_timeout=args.timeout,
        max_concurrency=args.max_concurrency,
        merge_gap=args.merge_gap,
        http_endpoint=args.http_endpoint,
        local_root=args.local_root,
        google_project=args.project,
        log_level=args.log_level.upper() if args.log_level else None,
        progress=True if args.progress else None,
    )


def _emit_error(kind: str, message: str) -> int:
    print(json.dumps({"error": kind, "message": message}))
    return 2


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = apply_cli_configuration(args)
    except ValueError as exc:
        return _emit_error("ConfigurationError", str(exc))

    configure_logging(config.log_level)
    log_runtime_environment("beacon-query")

    try:
        payload = _read_payload(args)
    except (OSError, ValueError, TypeError) as exc:
        return _emit_error("InputValidationError", f"Could not read request payload: {exc}")

    try:
        request = SequenceQueryRequest.from_payload(payload)
        response = beacon_query(request, config=config)
    except BeaconError as exc:
        log.error("Query failed (%s): %s", exc.kind, exc)
        return _emit_error(exc.kind, str(exc))

    print(json.dumps(response.to_payload()))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI execution
    sys.exit(main())
