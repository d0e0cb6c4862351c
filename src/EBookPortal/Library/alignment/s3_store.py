"""S3-compatible blob store backend.

Works against AWS S3 and any S3-compatible endpoint (``endpoint_url``), such
as the S3 gateway of a hosted database's storage service. Provides:
  - Name-ordered listing paginated up to ``list_limit``
  - Write-once puts (existing keys are never overwritten)
  - Presigned GET URLs for time-limited access
"""

from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Dict, List, Optional

from EBookPortal.Library.alignment.blob_store import DEFAULT_LIST_LIMIT, BlobStore
from EBookPortal.Library.alignment.errors import StoreError
from EBookPortal.Library.alignment.models import StorageObject
from EBookPortal.Library.alignment.remote import DEFAULT_TIMEOUT_S

logger = logging.getLogger(__name__)

# list_objects_v2 returns at most this many keys per request.
S3_MAX_PAGE_SIZE = 1000


def _error_code(exc: Exception) -> Optional[str]:
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        return response.get("Error", {}).get("Code")
    return None


class S3BlobStore(BlobStore):
    """Blob store backed by a single S3 bucket.

    Thread-safe; the boto3 client is shared across worker threads.
    """

    backend = "s3"

    def __init__(
        self,
        bucket: str,
        *,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        list_limit: int = DEFAULT_LIST_LIMIT,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        client: Any = None,
        check_bucket: bool = True,
    ):
        """Initialize S3 blob store.

        Args:
            bucket: Bucket name
            region: Bucket region (default 'us-east-1')
            endpoint_url: Custom S3 endpoint for S3-compatible services
            list_limit: Maximum objects per listing
            timeout_s: Deadline for each call
            client: Pre-built boto3 S3 client (tests, custom sessions)
            check_bucket: Issue head_bucket on startup
        """
        super().__init__(list_limit=list_limit, timeout_s=timeout_s)
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self._lock = RLock()
        self.s3_client = client

        if self.s3_client is None:
            self._init_client()
        if check_bucket:
            self._check_bucket()

    def _init_client(self) -> None:
        """Initialize S3 client."""
        import boto3
        from botocore.config import Config

        logger.info(
            f"Connecting to S3 bucket: {self.bucket} "
            f"(region: {self.region}, endpoint: {self.endpoint_url or 'aws'})"
        )
        self.s3_client = boto3.client(
            "s3",
            region_name=self.region,
            endpoint_url=self.endpoint_url,
            config=Config(
                connect_timeout=self.timeout_s,
                read_timeout=self.timeout_s,
                retries={"max_attempts": 2},
            ),
        )

    def _check_bucket(self) -> None:
        try:
            self.s3_client.head_bucket(Bucket=self.bucket)
        except Exception as e:
            logger.error(f"Failed to reach bucket {self.bucket}: {e}")
            raise StoreError(f"Bucket {self.bucket} is not reachable: {e}", operation="connect") from e
        logger.info("S3 blob store initialized")

    @staticmethod
    def _to_object(item: Dict[str, Any]) -> StorageObject:
        metadata = {
            "size": item.get("Size"),
            "etag": (item.get("ETag") or "").strip('"') or None,
            "last_modified": item.get("LastModified"),
        }
        return StorageObject(name=item["Key"], metadata=metadata)

    def _list(self, prefix_filter: Optional[str], limit: int) -> List[StorageObject]:
        params: Dict[str, Any] = {
            "Bucket": self.bucket,
            "PaginationConfig": {"PageSize": min(limit, S3_MAX_PAGE_SIZE)},
        }
        if prefix_filter:
            params["Prefix"] = prefix_filter

        objects: List[StorageObject] = []
        truncated = False
        with self._lock:
            paginator = self.s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                contents = page.get("Contents", [])
                room = limit - len(objects)
                objects.extend(self._to_object(item) for item in contents[:room])
                if len(contents) > room or (len(objects) >= limit and page.get("IsTruncated")):
                    truncated = True
                    break

        if truncated:
            logger.warning(
                f"Listing of {self.bucket} truncated at {limit} objects; raise storage.list_limit"
            )
        return objects

    def _get(self, name: str) -> bytes:
        with self._lock:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=name)
        return response["Body"].read()

    def _exists(self, name: str) -> bool:
        try:
            with self._lock:
                self.s3_client.head_object(Bucket=self.bucket, Key=name)
        except Exception as e:
            if _error_code(e) in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
        return True

    def _put(self, name: str, data: bytes, content_type: Optional[str]) -> None:
        if self._exists(name):
            raise StoreError(f"Object already exists: {name}", operation="put", key=name)

        extra: Dict[str, Any] = {"CacheControl": "max-age=3600"}
        if content_type:
            extra["ContentType"] = content_type

        logger.info(f"Uploading {len(data)} bytes to s3://{self.bucket}/{name}")
        with self._lock:
            self.s3_client.put_object(Bucket=self.bucket, Key=name, Body=data, **extra)

    def _delete(self, name: str) -> None:
        # S3 deletes are silent for absent keys; check first so callers see not-found.
        if not self._exists(name):
            raise StoreError(f"Object not found: {name}", operation="delete", key=name)
        with self._lock:
            self.s3_client.delete_object(Bucket=self.bucket, Key=name)

    def _sign(self, name: str, expires_in: int) -> str:
        with self._lock:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": name},
                ExpiresIn=expires_in,
            )

    def close(self) -> None:
        client, self.s3_client = self.s3_client, None
        if client is not None and hasattr(client, "close"):
            client.close()


__all__ = ["S3BlobStore"]
