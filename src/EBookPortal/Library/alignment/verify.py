"""Strict validation of active books against the store.

Unlike the audit, validation does not try alternative spellings: a book is
valid only if an object exists under exactly its recorded path.
"""

from __future__ import annotations

import logging
from typing import List

from EBookPortal.Library.alignment.blob_store import BlobStore
from EBookPortal.Library.alignment.errors import AuditError, CatalogError, StoreError
from EBookPortal.Library.alignment.models import ValidationResult
from EBookPortal.Library.alignment.store import BookCatalog

logger = logging.getLogger(__name__)


class ValidationEngine:
    """Checks each active book for an object at its exact recorded path."""

    def __init__(self, catalog: BookCatalog, store: BlobStore):
        self.catalog = catalog
        self.store = store

    async def validate_active_books(self) -> ValidationResult:
        """Count valid and invalid active books.

        Raises:
            AuditError: If the catalog or the listing cannot be fetched
        """
        try:
            records = await self.catalog.list_active()
        except CatalogError as e:
            raise AuditError(f"Failed to fetch books: {e}") from e
        try:
            listing = await self.store.list_objects()
        except StoreError as e:
            raise AuditError(f"Failed to list storage files: {e}") from e

        names = {obj.name for obj in listing}
        valid = 0
        issues: List[str] = []
        for record in records:
            if record.file_path in names:
                valid += 1
            else:
                issues.append(f'Book "{record.title}" has missing file: {record.file_path}')

        if issues:
            logger.warning(f"Validation found {len(issues)} of {len(records)} books without files")
        else:
            logger.info(f"Validation passed for {valid} books")
        return ValidationResult(valid=valid, invalid=len(issues), issues=tuple(issues))


__all__ = ["ValidationEngine"]
