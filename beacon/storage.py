"""Blob stores: whole-object and byte-range reads from object storage.

Every backend maps its own failures onto :class:`FetchError` so callers
only ever see one error type for remote reads.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import requests
from google import resumable_media
from google.api_core import exceptions as gcs_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from .config import BeaconConfig
from .errors import FetchError, FetchTimeoutError
from .ranges import ByteRange

log = logging.getLogger(__name__)

# credential refreshes and media downloads raise outside the api_core hierarchy
_GCS_ERRORS = (
    gcs_exceptions.GoogleAPIError,
    auth_exceptions.GoogleAuthError,
    resumable_media.InvalidResponse,
    resumable_media.DataCorruption,
    requests.exceptions.RequestException,
)


class BlobStore(ABC):
    """Read access to ``container``/``key`` objects."""

    name = "abstract"

    @abstractmethod
    def get(self, container: str, key: str, *, timeout: Optional[float] = None) -> bytes:
        """Download a whole object."""

    @abstractmethod
    def get_range(
        self,
        container: str,
        key: str,
        byte_range: ByteRange,
        *,
        timeout: Optional[float] = None,
    ) -> bytes:
        """Download ``byte_range`` of an object."""


class GCSBlobStore(BlobStore):
    """Google Cloud Storage, billing requester-pays buckets to ``project``."""

    name = "gcs"

    def __init__(self, project: Optional[str] = None, client=None):
        self.project = project
        self.client = client if client is not None else storage.Client(project=project)

    def _blob(self, container: str, key: str):
        bucket = self.client.bucket(container, user_project=self.project)
        return bucket.blob(key)

    def _download(self, container, key, byte_range, timeout, **kwargs) -> bytes:
        try:
            if timeout is not None:
                kwargs["timeout"] = timeout
            return self._blob(container, key).download_as_bytes(**kwargs)
        except (requests.exceptions.Timeout, gcs_exceptions.DeadlineExceeded) as exc:
            raise FetchTimeoutError(
                f"Timed out reading gs://{container}/{key} {byte_range or ''}", byte_range=byte_range
            ) from exc
        except _GCS_ERRORS as exc:
            raise FetchError(
                f"Failed reading gs://{container}/{key} {byte_range or ''}: {exc}", byte_range=byte_range
            ) from exc

    def get(self, container, key, *, timeout=None) -> bytes:
        return self._download(container, key, None, timeout)

    def get_range(self, container, key, byte_range, *, timeout=None) -> bytes:
        if byte_range.is_empty:
            return b""
        # download_as_bytes uses an inclusive end
        end = None if byte_range.end is None else byte_range.end - 1
        return self._download(container, key, byte_range, timeout, start=byte_range.start, end=end)


class S3BlobStore(BlobStore):
    """Amazon S3 via boto3 (``pip install beacon-lookup[s3]``)."""

    name = "s3"

    def __init__(self, region: Optional[str] = None, client=None, timeout: Optional[float] = None):
        from botocore import exceptions as botocore_exceptions

        self._timeout_errors = (
            botocore_exceptions.ReadTimeoutError,
            botocore_exceptions.ConnectTimeoutError,
        )
        self._errors = (botocore_exceptions.BotoCoreError, botocore_exceptions.ClientError)
        if client is None:
            import boto3
            from botocore.config import Config

            client = boto3.client(
                "s3",
                region_name=region,
                config=Config(connect_timeout=timeout, read_timeout=timeout),
            )
        self.client = client

    def _get_object(self, container, key, byte_range, **kwargs) -> bytes:
        try:
            resp = self.client.get_object(Bucket=container, Key=key, **kwargs)
            return resp["Body"].read()
        except self._timeout_errors as exc:
            raise FetchTimeoutError(
                f"Timed out reading s3://{container}/{key} {byte_range or ''}", byte_range=byte_range
            ) from exc
        except self._errors as exc:
            raise FetchError(
                f"Failed reading s3://{container}/{key} {byte_range or ''}: {exc}", byte_range=byte_range
            ) from exc

    # boto3 clients take their timeouts at construction
    def get(self, container, key, *, timeout=None) -> bytes:
        return self._get_object(container, key, None)

    def get_range(self, container, key, byte_range, *, timeout=None) -> bytes:
        if byte_range.is_empty:
            return b""
        return self._get_object(container, key, byte_range, Range=byte_range.http_header())


class HTTPBlobStore(BlobStore):
    """Plain HTTP(S) object endpoint serving ``{endpoint}/{container}/{key}``."""

    name = "http"

    def __init__(self, endpoint: str, session: Optional[requests.Session] = None):
        self.endpoint = endpoint.rstrip("/")
        self.session = session if session is not None else requests.Session()

    def url(self, container: str, key: str) -> str:
        return f"{self.endpoint}/{quote(container, safe='')}/{quote(key)}"

    def _request(self, url, byte_range, timeout, headers=None) -> requests.Response:
        try:
            resp = self.session.get(url, headers=headers or {}, timeout=timeout)
            resp.raise_for_status()
            return resp
        except requests.exceptions.Timeout as exc:
            raise FetchTimeoutError(f"Timed out reading {url} {byte_range or ''}", byte_range=byte_range) from exc
        except requests.exceptions.RequestException as exc:
            raise FetchError(f"Failed reading {url} {byte_range or ''}: {exc}", byte_range=byte_range) from exc

    def get(self, container, key, *, timeout=None) -> bytes:
        return self._request(self.url(container, key), None, timeout).content

    def get_range(self, container, key, byte_range, *, timeout=None) -> bytes:
        if byte_range.is_empty:
            return b""
        url = self.url(container, key)
        resp = self._request(url, byte_range, timeout, headers={"Range": byte_range.http_header()})
        whole_object = byte_range.start == 0 and byte_range.end is None
        if resp.status_code != 206 and not whole_object:
            raise FetchError(
                f"Range request to {url} returned status {resp.status_code}; server may ignore range requests",
                byte_range=byte_range,
            )
        return resp.content


class LocalBlobStore(BlobStore):
    """Objects laid out as ``{root}/{container}/{key}`` on the local filesystem."""

    name = "local"

    def __init__(self, root):
        self.root = Path(root).resolve()

    def path(self, container: str, key: str) -> Path:
        path = (self.root / container / key).resolve()
        if self.root not in path.parents:
            raise FetchError(f"Object {container}/{key} resolves outside {self.root}")
        return path

    def get(self, container, key, *, timeout=None) -> bytes:
        path = self.path(container, key)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise FetchError(f"Failed reading {path}: {exc}") from exc

    def get_range(self, container, key, byte_range, *, timeout=None) -> bytes:
        path = self.path(container, key)
        try:
            with path.open("rb") as fh:
                fh.seek(byte_range.start)
                length = byte_range.length
                return fh.read(-1 if length is None else length)
        except OSError as exc:
            raise FetchError(f"Failed reading {path} {byte_range}: {exc}", byte_range=byte_range) from exc


def create_blob_store(config: BeaconConfig) -> BlobStore:
    """Build the blob store named by ``config.store``."""
    log.debug("Using %s blob store", config.store)
    if config.store == "gcs":
        return GCSBlobStore(project=config.google_project)
    if config.store == "s3":
        return S3BlobStore(region=config.aws_region, timeout=config.fetch_timeout)
    if config.store == "http":
        return HTTPBlobStore(config.http_endpoint)
    if config.store == "local":
        return LocalBlobStore(config.local_root)
    raise ValueError(f"Unknown blob store: {config.store}")
