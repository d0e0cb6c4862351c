"""Removal of placeholder and temporary entries from catalog and store.

Runs two independent phases:
  - Catalog: rows whose path contains a placeholder marker, or whose
    recorded size is 0, are deleted
  - Store: objects whose name contains a marker or ends in a temporary
    extension are deleted

Both phases continue past per-item failures and a failure to fetch one
side does not stop the other; every problem is reported in ``errors``.
Dry-run mode counts candidates without deleting anything.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from EBookPortal.Library.alignment.blob_store import BlobStore
from EBookPortal.Library.alignment.errors import CatalogError, StoreError
from EBookPortal.Library.alignment.models import CleanupResult, StorageObject
from EBookPortal.Library.alignment.store import BookCatalog

logger = logging.getLogger(__name__)

DEFAULT_MARKERS = ("placeholder", "temp")
DEFAULT_TEMP_EXTENSIONS = (".tmp",)


def is_placeholder_object(
    name: str,
    markers: Sequence[str] = DEFAULT_MARKERS,
    temp_extensions: Sequence[str] = DEFAULT_TEMP_EXTENSIONS,
) -> bool:
    """True if an object name looks like a placeholder or temporary file."""
    lowered = name.lower()
    return any(m in lowered for m in markers) or lowered.endswith(tuple(temp_extensions))


class CleanupEngine:
    """Deletes placeholder rows and temporary objects."""

    def __init__(
        self,
        catalog: BookCatalog,
        store: BlobStore,
        *,
        markers: Sequence[str] = DEFAULT_MARKERS,
        temp_extensions: Sequence[str] = DEFAULT_TEMP_EXTENSIONS,
    ):
        self.catalog = catalog
        self.store = store
        self.markers = tuple(m.lower() for m in markers)
        self.temp_extensions = tuple(ext.lower() for ext in temp_extensions)

    async def cleanup_placeholders(self, dry_run: bool = False) -> CleanupResult:
        """Remove placeholder catalog rows and temporary store objects.

        Args:
            dry_run: Count candidates only (default: False)

        Returns:
            CleanupResult with rows cleaned, objects removed and errors
        """
        errors: List[str] = []
        cleaned = await self._clean_catalog(errors, dry_run)
        removed = await self._clean_store(errors, dry_run)

        action = "would remove" if dry_run else "removed"
        logger.info(
            f"Cleanup {action} {cleaned} catalog rows and {removed} store objects "
            f"({len(errors)} errors)"
        )
        return CleanupResult(
            cleaned=cleaned, removed_objects=removed, errors=tuple(errors), dry_run=dry_run
        )

    async def _clean_catalog(self, errors: List[str], dry_run: bool) -> int:
        try:
            rows = await self.catalog.find_placeholders(self.markers)
        except CatalogError as e:
            logger.error(f"Failed to query placeholder books: {e}")
            errors.append(f"Failed to query placeholder books: {e}")
            return 0

        if dry_run:
            for row in rows:
                logger.info(f"[DRY-RUN] Would delete book {row.title!r} ({row.file_path})")
            return len(rows)

        cleaned = 0
        for row in rows:
            try:
                await self.catalog.delete(row.id)
                cleaned += 1
                logger.info(
                    f"Deleted placeholder book {row.title!r} ({row.file_path})",
                    extra={"book_id": row.id},
                )
            except CatalogError as e:
                errors.append(f"Failed to delete {row.title}: {e}")
                logger.error(f"Failed to delete {row.title!r}: {e}", extra={"book_id": row.id})
        return cleaned

    async def _clean_store(self, errors: List[str], dry_run: bool) -> int:
        try:
            listing = await self.store.list_objects()
        except StoreError as e:
            logger.error(f"Failed to list storage files: {e}")
            errors.append(f"Failed to list storage files: {e}")
            return 0

        candidates: List[StorageObject] = [
            obj
            for obj in listing
            if is_placeholder_object(obj.name, self.markers, self.temp_extensions)
        ]

        if dry_run:
            for obj in candidates:
                logger.info(f"[DRY-RUN] Would remove object {obj.name}")
            return len(candidates)

        removed = 0
        for obj in candidates:
            try:
                await self.store.delete_object(obj.name)
                removed += 1
            except StoreError as e:
                errors.append(f"Failed to remove file {obj.name}: {e}")
                logger.error(f"Failed to remove file {obj.name}: {e}")
        return removed


__all__ = ["CleanupEngine", "is_placeholder_object", "DEFAULT_MARKERS", "DEFAULT_TEMP_EXTENSIONS"]
