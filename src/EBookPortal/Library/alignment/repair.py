"""Repair of path mismatches found by an audit.

Only entries with an existing object and a suggested path are actionable;
everything else is skipped. Each row is re-read before it is rewritten, so a
row that was deleted or already corrected since the audit is left alone and
a second pass over the same mismatches reports ``fixed=0``.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from EBookPortal.Library.alignment.errors import CatalogError
from EBookPortal.Library.alignment.models import AuditEntry, RepairResult
from EBookPortal.Library.alignment.store import BookCatalog

logger = logging.getLogger(__name__)


class RepairEngine:
    """Rewrites catalog paths to the spelling present in the store."""

    def __init__(self, catalog: BookCatalog):
        self.catalog = catalog

    async def repair(self, mismatches: Iterable[AuditEntry]) -> RepairResult:
        """Update ``file_path`` for each fixable mismatch.

        Continues past per-row failures; each failure contributes one entry
        to ``errors``.

        Args:
            mismatches: Entries from an AuditReport (any status accepted)

        Returns:
            RepairResult tally
        """
        fixed = failed = skipped = 0
        errors: List[str] = []

        for entry in mismatches:
            if not entry.exists or not entry.suggested_path:
                skipped += 1
                continue

            try:
                current = await self.catalog.get(entry.book_id)
                if current is None:
                    logger.warning(
                        f"Skipping {entry.title!r}: book {entry.book_id} no longer exists",
                        extra={"book_id": entry.book_id},
                    )
                    skipped += 1
                    continue
                if current.file_path == entry.suggested_path:
                    logger.debug(f"Skipping {entry.title!r}: path already {entry.suggested_path}")
                    skipped += 1
                    continue

                await self.catalog.update(entry.book_id, file_path=entry.suggested_path)
                fixed += 1
                logger.info(
                    f"Fixed path for {entry.title!r}: {current.file_path} -> {entry.suggested_path}",
                    extra={"book_id": entry.book_id},
                )
            except CatalogError as e:
                failed += 1
                errors.append(f"Failed to fix {entry.title}: {e}")
                logger.error(f"Failed to fix {entry.title!r}: {e}", extra={"book_id": entry.book_id})

        logger.info(f"Repair complete: {fixed} fixed, {failed} failed, {skipped} skipped")
        return RepairResult(fixed=fixed, failed=failed, skipped=skipped, errors=tuple(errors))


__all__ = ["RepairEngine"]
