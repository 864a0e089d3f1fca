"""Blob store interface and S3 implementation."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from pixproxy.common.errors import BlobStoreError, NotFoundError
from pixproxy.common.files import content_type_for_extension, get_file_extension

logger = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "NoSuchBucket", "404", "NotFound"}


@dataclass(frozen=True)
class Blob:
    data: bytes
    content_type: str


class BlobStore(Protocol):
    """Abstract interface for byte blobs addressed by (bucket, key)."""

    def get(self, bucket: str, key: str) -> Blob:
        """Return the blob or raise NotFoundError."""
        ...

    def put(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        ...


class S3BlobStore:
    """S3-backed blob store."""

    def __init__(self, client: Any = None, region: Optional[str] = None):
        self._client = client or boto3.client("s3", region_name=region)

    def get(self, bucket: str, key: str) -> Blob:
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
            data = response["Body"].read()
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in _MISSING_CODES:
                raise NotFoundError(f"File not found: {key}") from exc
            raise BlobStoreError(f"S3 get failed for {bucket}/{key}: {exc}") from exc
        except BotoCoreError as exc:
            raise BlobStoreError(f"S3 get failed for {bucket}/{key}: {exc}") from exc
        content_type = content_type_for_extension(get_file_extension(key))
        return Blob(data=data, content_type=content_type)

    def put(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        try:
            self._client.put_object(Bucket=bucket, Key=key, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as exc:
            raise BlobStoreError(f"S3 put failed for {bucket}/{key}: {exc}") from exc


class InMemoryBlobStore:
    """In-memory blob store for tests and local development."""

    def __init__(self) -> None:
        self._blobs: Dict[Tuple[str, str], Blob] = {}
        self._lock = threading.Lock()

    def get(self, bucket: str, key: str) -> Blob:
        with self._lock:
            blob = self._blobs.get((bucket, key))
        if blob is None:
            raise NotFoundError(f"File not found: {key}")
        return blob

    def put(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        with self._lock:
            self._blobs[(bucket, key)] = Blob(data=data, content_type=content_type)

    def keys(self, bucket: str) -> list:
        with self._lock:
            return sorted(k for b, k in self._blobs if b == bucket)


class CacheStore:
    """Best-effort cache of transformed images under a bucket prefix."""

    def __init__(self, store: BlobStore, bucket: str, prefix: str = "_cache/"):
        self.store = store
        self.bucket = bucket
        self.prefix = prefix

    def _path(self, cache_key: str) -> str:
        return f"{self.prefix}{cache_key}"

    def check(self, cache_key: str) -> Optional[Blob]:
        try:
            return self.store.get(self.bucket, self._path(cache_key))
        except NotFoundError:
            logger.debug("cache miss: %s", cache_key)
            return None
        except BlobStoreError as exc:
            logger.warning("cache read failed for %s: %s", cache_key, exc)
            return None

    def write(self, cache_key: str, data: bytes) -> None:
        logger.info("Writing %s to cache.", cache_key)
        content_type = content_type_for_extension(get_file_extension(cache_key))
        try:
            self.store.put(self.bucket, self._path(cache_key), data, content_type)
        except BlobStoreError as exc:
            logger.warning("cache write failed for %s: %s", cache_key, exc)
