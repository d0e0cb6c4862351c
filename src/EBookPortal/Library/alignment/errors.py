"""
Error Types for Storage Alignment

Every failure that leaves an adapter is one of the domain errors below;
library-specific exceptions (SQLAlchemyError, botocore ClientError, OSError,
timeouts) are translated at the adapter boundary and chained with ``from``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional


class AlignmentError(Exception):
    """Base exception for catalog/storage alignment errors.

    ``pending`` is set when a call timed out: it is the future of the worker
    thread, which keeps running and may still commit its side effect.
    """

    pending: Optional[asyncio.Future[Any]] = None

    @property
    def timed_out(self) -> bool:
        return self.pending is not None


class StoreError(AlignmentError):
    """Blob store listing, read, write, delete or signing failed.

    A listing failure is never equivalent to an empty bucket.
    """

    def __init__(self, message: str, *, operation: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.key = key


class CatalogError(AlignmentError):
    """Catalog query, insert, update or delete failed."""

    def __init__(self, message: str, *, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class AuditError(AlignmentError):
    """A report (audit or validation) could not be assembled.

    Raised instead of returning a partial report; the underlying
    StoreError/CatalogError is available as ``__cause__``.
    """


class UploadError(AlignmentError):
    """Upload transaction failed at ``stage``.

    Stages:
        validate: input rejected before any remote call
        store-write: the object could not be written; catalog untouched
        catalog-insert: the row could not be inserted; the written object was
            removed on a best-effort basis
    """

    VALIDATE = "validate"
    STORE_WRITE = "store-write"
    CATALOG_INSERT = "catalog-insert"

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        return f"[{self.stage}] {self.args[0]}"


__all__ = [
    "AlignmentError",
    "StoreError",
    "CatalogError",
    "AuditError",
    "UploadError",
]
