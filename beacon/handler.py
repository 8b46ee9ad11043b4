"""AWS Lambda entry point: ``{"found": bool}`` per invocation."""
from __future__ import annotations

from .config import BeaconConfig
from .engine import beacon_query
from .logging_utils import configure_logging
from .query import SequenceQueryRequest


def lambda_handler(event, context=None) -> dict:
    # errors propagate so the runtime reports their type to the caller
    config = BeaconConfig.from_env()
    configure_logging(config.log_level)
    request = SequenceQueryRequest.from_payload(event)
    return beacon_query(request, config=config).to_payload()
