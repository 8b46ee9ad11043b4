"""Logging setup shared by the CLI and the Lambda handler."""
from __future__ import annotations

import logging
import sys
from importlib import metadata

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
_RUNTIME_PACKAGES = ("numpy", "requests", "tqdm", "google-cloud-storage", "boto3")


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler once and apply ``level``.

    Runtimes that already attached a root handler (AWS Lambda does) keep
    theirs; only the level changes.
    """
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger().setLevel(level.upper())
    # per-request chatter from the HTTP stack drowns out range-level detail
    for noisy in ("urllib3", "google.auth", "botocore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _version(package: str) -> str:
    try:
        return metadata.version(package)
    except metadata.PackageNotFoundError:
        return "not installed"


def log_runtime_environment(prefix: str = "") -> None:
    label = f"{prefix} " if prefix else ""
    logging.getLogger("beacon").debug(
        "%sEnvironment: python=%s; %s; platform=%s",
        label,
        sys.version.split()[0],
        "; ".join(f"{name}={_version(name)}" for name in _RUNTIME_PACKAGES),
        sys.platform,
    )
