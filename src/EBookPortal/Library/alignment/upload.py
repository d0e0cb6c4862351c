"""Two-phase book upload with a compensating delete.

Writes the file to the blob store under a freshly generated key, then inserts
the catalog row. If the insert fails, the object just written is removed so
no orphan is left behind. A write that times out keeps running in its
worker thread; it is awaited for ``settle_timeout_s`` and removed if it
lands. The client's filename only contributes its
extension; keys are ``<prefix><epoch-ms>-<6 base36 chars><.ext>``.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
from pathlib import PurePath
from typing import Callable, Optional

from EBookPortal.Library.alignment.blob_store import BlobStore
from EBookPortal.Library.alignment.errors import CatalogError, StoreError, UploadError
from EBookPortal.Library.alignment.models import BookRecord, UploadMetadata
from EBookPortal.Library.alignment.store import BookCatalog

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase
DEFAULT_AUTHOR = "Unknown Author"
DEFAULT_CONTENT_TYPE = "application/pdf"
# How long a timed-out write is awaited before its key is reported as orphaned.
DEFAULT_SETTLE_TIMEOUT_S = 30.0


def extension_of(filename: str) -> str:
    """Lowercased extension of ``filename`` including the dot, or ``""``."""
    return PurePath(filename).suffix.lower()


def generate_key(filename: str, prefix: str = "") -> str:
    """Generate a collision-resistant object key for an upload.

    Examples:
        >>> key = generate_key("Chapter 1.PDF")
        >>> key.endswith(".pdf")
        True
    """
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{prefix}{millis}-{suffix}{extension_of(filename)}"


class UploadTransaction:
    """Uploads a book file and registers it in the catalog."""

    def __init__(
        self,
        catalog: BookCatalog,
        store: BlobStore,
        *,
        key_prefix: str = "",
        key_factory: Optional[Callable[[str], str]] = None,
        settle_timeout_s: float = DEFAULT_SETTLE_TIMEOUT_S,
    ):
        self.catalog = catalog
        self.store = store
        self.key_prefix = key_prefix
        self.settle_timeout_s = settle_timeout_s
        self._key_factory = key_factory or (lambda filename: generate_key(filename, key_prefix))

    @staticmethod
    def _validate(data: bytes, filename: str, metadata: UploadMetadata) -> None:
        if not data:
            raise UploadError(UploadError.VALIDATE, "Please select a file to upload")
        if not filename.strip():
            raise UploadError(UploadError.VALIDATE, "File name is required")
        if not metadata.title.strip():
            raise UploadError(UploadError.VALIDATE, "Title is required")
        if not metadata.subject_id.strip():
            raise UploadError(UploadError.VALIDATE, "Subject is required")

    async def upload(
        self,
        data: bytes,
        filename: str,
        metadata: UploadMetadata,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> BookRecord:
        """Store ``data`` and insert a matching active catalog row.

        Args:
            data: File contents
            filename: Client-side name (only the extension is used)
            metadata: Title, subject and optional author/description
            content_type: MIME type recorded on the object

        Returns:
            The inserted BookRecord

        Raises:
            UploadError: stage "validate", "store-write" or "catalog-insert"
        """
        self._validate(data, filename, metadata)
        key = self._key_factory(filename)

        try:
            await self.store.put_object(key, data, content_type)
        except StoreError as e:
            logger.error(
                f"Upload of {filename!r} failed writing {key}: {e}",
                extra={"stage": UploadError.STORE_WRITE},
            )
            if e.timed_out:
                await self._settle_abandoned_put(key, e.pending)
            raise UploadError(UploadError.STORE_WRITE, f"File upload failed: {e}") from e

        ext = extension_of(filename).lstrip(".")
        try:
            record = await self.catalog.insert(
                title=metadata.title.strip(),
                author=(metadata.author or "").strip() or DEFAULT_AUTHOR,
                description=(metadata.description or "").strip(),
                file_path=key,
                file_size=len(data),
                file_type=ext or "pdf",
                download_count=0,
                is_active=True,
                subject_id=metadata.subject_id,
            )
        except CatalogError as e:
            logger.error(
                f"Catalog insert failed for {key}, removing uploaded object: {e}",
                extra={"stage": UploadError.CATALOG_INSERT},
            )
            await self._compensate(key)
            raise UploadError(UploadError.CATALOG_INSERT, f"Database error: {e}") from e

        logger.info(
            f"Uploaded {metadata.title!r} as {key} ({len(data)} bytes)",
            extra={"book_id": record.id},
        )
        return record

    async def _settle_abandoned_put(self, key: str, pending) -> None:
        """Wait out a timed-out write and remove the object if it landed."""
        try:
            await asyncio.wait_for(asyncio.shield(pending), timeout=self.settle_timeout_s)
        except asyncio.TimeoutError:
            logger.warning(
                f"Write of {key} still running after {self.settle_timeout_s:.1f}s, "
                f"object may be orphaned",
                extra={"stage": UploadError.STORE_WRITE},
            )
            return
        except Exception as e:
            logger.debug(f"Timed-out write of {key} did not complete: {e}")
            return
        logger.info(f"Timed-out write of {key} completed late, removing it")
        await self._compensate(key)

    async def _compensate(self, key: str) -> None:
        try:
            await self.store.delete_object(key)
        except StoreError as e:
            logger.warning(
                f"Cleanup of {key} failed, object is orphaned: {e}",
                extra={"stage": "compensate"},
            )


__all__ = ["UploadTransaction", "generate_key", "extension_of"]
