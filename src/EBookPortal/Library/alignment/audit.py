# === NAVMAP v1 ===
# {
#   "module": "EBookPortal.Library.alignment.audit",
#   "purpose": "Catalog vs. blob store alignment audit",
#   "sections": [
#     {
#       "id": "classify",
#       "name": "classify",
#       "anchor": "function-classify",
#       "kind": "function"
#     },
#     {
#       "id": "auditengine",
#       "name": "AuditEngine",
#       "anchor": "class-auditengine",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Catalog vs. blob store alignment audit.

Compares every active book against one listing of the store and classifies
each row:
  - accessible: the recorded path exists exactly
  - path-mismatch: an alternative spelling of the path exists
  - missing: no spelling of the path exists

The audit is read-only and fails fast: if either the catalog or the listing
cannot be fetched, AuditError is raised and no partial report is returned.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, List

from EBookPortal.Library.alignment.blob_store import BlobStore
from EBookPortal.Library.alignment.errors import AuditError, CatalogError, StoreError
from EBookPortal.Library.alignment.models import (
    AlignmentStatus,
    AuditEntry,
    AuditReport,
    AuditSummary,
    BookRecord,
    StorageObject,
)
from EBookPortal.Library.alignment.paths import DEFAULT_PATH_PREFIX, ListingIndex, resolve
from EBookPortal.Library.alignment.store import BookCatalog

logger = logging.getLogger(__name__)


def classify(record: BookRecord, index: ListingIndex, prefix: str = DEFAULT_PATH_PREFIX) -> AuditEntry:
    """Classify one record against an indexed listing (exact matching only)."""
    result = resolve(record.file_path, index, prefix=prefix)
    if result.exists and result.actual_path == record.file_path:
        status = AlignmentStatus.ACCESSIBLE
        suggested = None
    elif result.exists:
        status = AlignmentStatus.PATH_MISMATCH
        suggested = result.actual_path
    else:
        status = AlignmentStatus.MISSING
        suggested = None

    return AuditEntry(
        book_id=record.id,
        title=record.title,
        database_path=record.file_path,
        status=status,
        suggested_path=suggested,
    )


def build_report(
    records: Iterable[BookRecord],
    listing: Iterable[StorageObject],
    prefix: str = DEFAULT_PATH_PREFIX,
) -> AuditReport:
    """Assemble an AuditReport from already-fetched rows and objects.

    Args:
        records: Active book rows in catalog order
        listing: Store objects
        prefix: Folder prefix used for alternative spellings

    Returns:
        AuditReport whose summary counts sum to the number of records
    """
    objects = tuple(listing)
    index = ListingIndex(objects)
    entries: List[AuditEntry] = []

    for record in records:
        entry = classify(record, index, prefix)
        logger.debug(f"{entry.status.value}: {record.title!r} ({record.file_path})")
        entries.append(entry)

    counts = Counter(entry.status for entry in entries)
    summary = AuditSummary(
        total_books=len(entries),
        accessible_files=counts[AlignmentStatus.ACCESSIBLE],
        path_mismatches=counts[AlignmentStatus.PATH_MISMATCH],
        missing_files=counts[AlignmentStatus.MISSING],
    )
    return AuditReport(
        entries=tuple(entries),
        storage_files=objects,
        summary=summary,
        generated_at=datetime.now(timezone.utc),
    )


class AuditEngine:
    """Runs alignment audits against a catalog and a blob store."""

    def __init__(self, catalog: BookCatalog, store: BlobStore, *, prefix: str = DEFAULT_PATH_PREFIX):
        self.catalog = catalog
        self.store = store
        self.prefix = prefix

    async def audit(self) -> AuditReport:
        """Classify every active book against the current store listing.

        Returns:
            AuditReport with one entry per active book

        Raises:
            AuditError: If the catalog or the listing cannot be fetched
        """
        try:
            records = await self.catalog.list_active()
        except CatalogError as e:
            logger.error(f"Audit aborted, catalog unavailable: {e}")
            raise AuditError(f"Failed to fetch books: {e}") from e

        try:
            listing = await self.store.list_objects()
        except StoreError as e:
            logger.error(f"Audit aborted, storage listing unavailable: {e}")
            raise AuditError(f"Failed to list storage files: {e}") from e

        report = build_report(records, listing, self.prefix)
        s = report.summary
        logger.info(
            f"Audit complete: {s.total_books} books, {s.accessible_files} accessible, "
            f"{s.path_mismatches} path mismatches, {s.missing_files} missing "
            f"({len(report.storage_files)} objects in store)"
        )
        return report


__all__ = ["AuditEngine", "build_report", "classify"]
