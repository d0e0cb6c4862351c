"""Entry points of the storage alignment core.

``StorageAlignmentService`` wires the engines to one catalog and one blob
store. Both collaborators are passed in; nothing here reaches for a global
client.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple

from EBookPortal.Library.alignment.access import AccessResolver
from EBookPortal.Library.alignment.audit import AuditEngine
from EBookPortal.Library.alignment.blob_store import BlobStore
from EBookPortal.Library.alignment.errors import CatalogError
from EBookPortal.Library.alignment.gc import CleanupEngine
from EBookPortal.Library.alignment.models import (
    AuditEntry,
    AuditReport,
    BookRecord,
    CleanupResult,
    RepairResult,
    ResolveResult,
    StorageObject,
    UploadMetadata,
    ValidationResult,
)
from EBookPortal.Library.alignment.paths import resolve
from EBookPortal.Library.alignment.repair import RepairEngine
from EBookPortal.Library.alignment.store import BookCatalog
from EBookPortal.Library.alignment.upload import UploadTransaction
from EBookPortal.Library.alignment.verify import ValidationEngine
from EBookPortal.Library.config import AlignmentConfig

logger = logging.getLogger(__name__)


class StorageAlignmentService:
    """Facade over the audit, repair, upload, cleanup and access engines."""

    def __init__(
        self,
        catalog: BookCatalog,
        store: BlobStore,
        config: Optional[AlignmentConfig] = None,
    ):
        self.catalog = catalog
        self.store = store
        self.config = config or AlignmentConfig()

        prefix = self.config.path_prefix
        self.auditor = AuditEngine(catalog, store, prefix=prefix)
        self.repairer = RepairEngine(catalog)
        self.uploader = UploadTransaction(catalog, store, key_prefix=self.config.upload_prefix)
        self.cleaner = CleanupEngine(
            catalog,
            store,
            markers=self.config.placeholder_markers,
            temp_extensions=self.config.temp_extensions,
        )
        self.validator = ValidationEngine(catalog, store)
        self.access = AccessResolver(
            store,
            catalog=catalog,
            prefix=prefix,
            ttl_s=self.config.signed_url_ttl_s,
            match_tail=self.config.match_tail,
        )

    async def audit(self) -> AuditReport:
        return await self.auditor.audit()

    async def repair(self, mismatches: Iterable[AuditEntry]) -> RepairResult:
        return await self.repairer.repair(mismatches)

    async def reconcile(self) -> Tuple[RepairResult, AuditReport]:
        """Audit, repair every path mismatch, then audit again.

        Returns:
            (repair tally, post-repair report)
        """
        before = await self.audit()
        result = await self.repair(before.mismatches)
        after = await self.audit()
        logger.info(
            f"Reconcile: path mismatches {before.summary.path_mismatches} -> "
            f"{after.summary.path_mismatches}, missing {after.summary.missing_files}"
        )
        return result, after

    async def upload(
        self,
        data: bytes,
        filename: str,
        metadata: UploadMetadata,
        content_type: str = "application/pdf",
    ) -> BookRecord:
        return await self.uploader.upload(data, filename, metadata, content_type)

    async def cleanup_placeholders(self, dry_run: bool = False) -> CleanupResult:
        return await self.cleaner.cleanup_placeholders(dry_run=dry_run)

    async def validate_active_books(self) -> ValidationResult:
        return await self.validator.validate_active_books()

    def resolve(
        self,
        recorded_path: str,
        listing: Iterable[StorageObject],
        match_tail: Optional[bool] = None,
    ) -> ResolveResult:
        """Resolve a path against a listing the caller already holds."""
        if match_tail is None:
            match_tail = self.config.match_tail
        return resolve(
            recorded_path, listing, prefix=self.config.path_prefix, match_tail=match_tail
        )

    async def signed_url(self, recorded_path: str, expires_in: Optional[int] = None) -> str:
        return await self.access.signed_url(recorded_path, expires_in)

    async def download_url(self, book_id: str, expires_in: Optional[int] = None) -> str:
        """Signed URL for an active book, recorded as a download.

        Raises:
            CatalogError: If the book does not exist or is inactive
            StoreError: If its file cannot be found or signed
        """
        book = await self.catalog.get(book_id)
        if book is None or not book.is_active:
            raise CatalogError(f"Book not found: {book_id}", operation="get")
        return await self.access.download_url(book, expires_in)


__all__ = ["StorageAlignmentService"]
