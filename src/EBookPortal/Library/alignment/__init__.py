"""Catalog/storage alignment for the e-book library.

Detects and repairs drift between the book catalog and the blob store:
  - audit: classify every active book as accessible, mismatched or missing
  - repair: rewrite mismatched paths to the spelling present in the store
  - upload: store a file and register it, undoing the write on failure
  - cleanup: remove placeholder rows and temporary objects
  - validate: strict exact-path check
  - access: signed URLs for recorded paths
"""

from EBookPortal.Library.alignment.access import AccessResolver
from EBookPortal.Library.alignment.audit import AuditEngine
from EBookPortal.Library.alignment.blob_store import BlobStore, LocalBlobStore
from EBookPortal.Library.alignment.errors import (
    AlignmentError,
    AuditError,
    CatalogError,
    StoreError,
    UploadError,
)
from EBookPortal.Library.alignment.gc import CleanupEngine
from EBookPortal.Library.alignment.models import (
    AlignmentStatus,
    AuditEntry,
    AuditReport,
    AuditSummary,
    BookRecord,
    CleanupResult,
    MismatchEntry,
    RepairResult,
    ResolveResult,
    StorageObject,
    UploadMetadata,
    ValidationResult,
)
from EBookPortal.Library.alignment.paths import alternatives_of, resolve
from EBookPortal.Library.alignment.repair import RepairEngine
from EBookPortal.Library.alignment.s3_store import S3BlobStore
from EBookPortal.Library.alignment.service import StorageAlignmentService
from EBookPortal.Library.alignment.store import BookCatalog, SQLCatalog
from EBookPortal.Library.alignment.upload import UploadTransaction
from EBookPortal.Library.alignment.verify import ValidationEngine

__all__ = [
    "AccessResolver",
    "AlignmentError",
    "AlignmentStatus",
    "AuditEngine",
    "AuditEntry",
    "AuditError",
    "AuditReport",
    "AuditSummary",
    "BlobStore",
    "BookCatalog",
    "BookRecord",
    "CatalogError",
    "CleanupEngine",
    "CleanupResult",
    "LocalBlobStore",
    "MismatchEntry",
    "RepairEngine",
    "RepairResult",
    "ResolveResult",
    "S3BlobStore",
    "SQLCatalog",
    "StorageAlignmentService",
    "StorageObject",
    "StoreError",
    "UploadError",
    "UploadMetadata",
    "UploadTransaction",
    "ValidationEngine",
    "ValidationResult",
    "alternatives_of",
    "resolve",
]
