"""Records and result types shared by the alignment engines.

All types are frozen dataclasses: engines build them once and hand them to
callers (CLI, web handlers) without further mutation.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class BookRecord:
    """A row of the book catalog."""

    id: str
    title: str
    file_path: str
    file_size: Optional[int]
    is_active: bool
    subject_id: str
    author: str = "Unknown Author"
    description: str = ""
    file_type: str = "pdf"
    download_count: int = 0
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.created_at is not None:
            data["created_at"] = self.created_at.isoformat()
        return data


@dataclass(frozen=True)
class StorageObject:
    """An object in the blob store; ``name`` is the exact key."""

    name: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def tail(self) -> str:
        """Terminal path segment of the key."""
        return self.name.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class ResolveResult:
    """Outcome of resolving a recorded path against a listing."""

    exists: bool
    actual_path: Optional[str] = None


class AlignmentStatus(str, Enum):
    """Classification of a catalog row against the store."""

    ACCESSIBLE = "accessible"
    PATH_MISMATCH = "path-mismatch"
    MISSING = "missing"


@dataclass(frozen=True)
class AuditEntry:
    """Classification of one active book.

    ``suggested_path`` is only set for path mismatches.
    """

    book_id: str
    title: str
    database_path: str
    status: AlignmentStatus
    suggested_path: Optional[str] = None

    @property
    def exists(self) -> bool:
        return self.status is not AlignmentStatus.MISSING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "book_id": self.book_id,
            "title": self.title,
            "database_path": self.database_path,
            "status": self.status.value,
            "suggested_path": self.suggested_path,
            "exists": self.exists,
        }


# The repair engine consumes audit entries under this name.
MismatchEntry = AuditEntry


@dataclass(frozen=True)
class AuditSummary:
    """Aggregate counts; the three buckets always add up to total_books."""

    total_books: int
    accessible_files: int
    path_mismatches: int
    missing_files: int


@dataclass(frozen=True)
class AuditReport:
    """Point-in-time comparison of the active catalog against the store."""

    entries: Tuple[AuditEntry, ...]
    storage_files: Tuple[StorageObject, ...]
    summary: AuditSummary
    generated_at: datetime

    @property
    def mismatches(self) -> List[AuditEntry]:
        """Entries that are not accessible at their recorded path."""
        return [e for e in self.entries if e.status is not AlignmentStatus.ACCESSIBLE]

    @property
    def path_mismatches(self) -> List[AuditEntry]:
        return [e for e in self.entries if e.status is AlignmentStatus.PATH_MISMATCH]

    @property
    def missing(self) -> List[AuditEntry]:
        return [e for e in self.entries if e.status is AlignmentStatus.MISSING]

    @property
    def is_aligned(self) -> bool:
        return self.summary.accessible_files == self.summary.total_books

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "summary": asdict(self.summary),
            "storage_files": [obj.name for obj in self.storage_files],
            "mismatches": [e.to_dict() for e in self.mismatches],
        }


@dataclass(frozen=True)
class RepairResult:
    """Tally of a repair pass."""

    fixed: int
    failed: int
    skipped: int
    errors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class UploadMetadata:
    """Caller-supplied fields for a new book."""

    title: str
    subject_id: str
    author: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class CleanupResult:
    """Tally of a placeholder cleanup.

    ``cleaned`` counts catalog rows, ``removed_objects`` counts store objects.
    In dry-run mode both count candidates instead of deletions.
    """

    cleaned: int
    removed_objects: int
    errors: Tuple[str, ...] = ()
    dry_run: bool = False


@dataclass(frozen=True)
class ValidationResult:
    """Exact-match validation of active books."""

    valid: int
    invalid: int
    issues: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.invalid == 0


__all__ = [
    "BookRecord",
    "StorageObject",
    "ResolveResult",
    "AlignmentStatus",
    "AuditEntry",
    "MismatchEntry",
    "AuditSummary",
    "AuditReport",
    "RepairResult",
    "UploadMetadata",
    "CleanupResult",
    "ValidationResult",
]
