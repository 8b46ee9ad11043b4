"""Runtime configuration, read from the environment with CLI overrides on top."""
from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

VALID_STORES = ("gcs", "s3", "http", "local")
DEFAULT_STORE = "gcs"
DEFAULT_FETCH_TIMEOUT = 30.0
DEFAULT_LOG_LEVEL = "INFO"


def _optional(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _optional(env, name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _parse_int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = _optional(env, name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _parse_bool(env: Mapping[str, str], name: str) -> bool:
    raw = _optional(env, name)
    return raw is not None and raw.lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class BeaconConfig:
    """Settings for one lookup.

    ``max_concurrency=None`` runs one fetch worker per merged range.
    ``merge_gap`` additionally merges ranges at most that many bytes apart.
    """

    store: str = DEFAULT_STORE
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    max_concurrency: Optional[int] = None
    merge_gap: int = 0
    http_endpoint: Optional[str] = None
    local_root: Optional[str] = None
    google_project: Optional[str] = None
    aws_region: Optional[str] = None
    log_level: str = DEFAULT_LOG_LEVEL
    progress: bool = False

    def __post_init__(self):
        if self.store not in VALID_STORES:
            raise ValueError(f"Unknown blob store {self.store!r}. Valid options: {list(VALID_STORES)}")
        if not self.fetch_timeout > 0:
            raise ValueError(f"fetch_timeout must be positive, got {self.fetch_timeout}")
        if self.max_concurrency is not None and self.max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be a positive integer, got {self.max_concurrency}")
        if self.merge_gap < 0:
            raise ValueError(f"merge_gap must be non-negative, got {self.merge_gap}")
        if self.store == "http" and not self.http_endpoint:
            raise ValueError("The http blob store needs an endpoint (BEACON_HTTP_ENDPOINT)")
        if self.store == "local" and not self.local_root:
            raise ValueError("The local blob store needs a root directory (BEACON_LOCAL_ROOT)")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level {self.log_level!r}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BeaconConfig":
        env = os.environ if environ is None else environ
        return cls(
            store=(_optional(env, "BEACON_STORE") or DEFAULT_STORE).lower(),
            fetch_timeout=_parse_float(env, "BEACON_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT),
            max_concurrency=_parse_int(env, "BEACON_MAX_CONCURRENCY", None),
            merge_gap=_parse_int(env, "BEACON_MERGE_GAP", 0),
            http_endpoint=_optional(env, "BEACON_HTTP_ENDPOINT"),
            local_root=_optional(env, "BEACON_LOCAL_ROOT"),
            google_project=_optional(env, "GOOGLE_PROJECT"),
            aws_region=_optional(env, "AWS_REGION"),
            log_level=(_optional(env, "BEACON_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
            progress=_parse_bool(env, "BEACON_PROGRESS"),
        )

    def with_overrides(self, **overrides) -> "BeaconConfig":
        """Copy with every non-``None`` override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes)
