"""Book catalog port and SQLAlchemy-backed implementation."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Engine, Row, make_url
from sqlalchemy.exc import ArgumentError

from EBookPortal.Library.alignment.errors import CatalogError
from EBookPortal.Library.alignment.models import BookRecord
from EBookPortal.Library.alignment.remote import DEFAULT_TIMEOUT_S, run_blocking

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {"title", "author", "description", "file_path", "file_size", "file_type", "is_active", "subject_id"}
)


class BookCatalog:
    """Base class for book catalog backends.

    Engines call the async methods; backends implement the blocking
    ``_``-prefixed hooks, which are run with a deadline and have their
    failures translated into CatalogError.
    """

    def __init__(self, *, timeout_s: float = DEFAULT_TIMEOUT_S):
        self.timeout_s = timeout_s

    def _list_active(self) -> List[BookRecord]:
        raise NotImplementedError

    def _get(self, book_id: str) -> Optional[BookRecord]:
        raise NotImplementedError

    def _find_placeholders(self, markers: Sequence[str]) -> List[BookRecord]:
        raise NotImplementedError

    def _insert(self, fields: Dict[str, Any]) -> BookRecord:
        raise NotImplementedError

    def _update(self, book_id: str, fields: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _delete(self, book_id: str) -> None:
        raise NotImplementedError

    def _increment_downloads(self, book_id: str) -> int:
        raise NotImplementedError

    def close(self) -> None:
        """Release connections. Safe to call multiple times."""

    async def _run(self, operation: str, hook, *args):
        return await run_blocking(
            hook, *args, operation=operation, error_cls=CatalogError, timeout_s=self.timeout_s
        )

    async def list_active(self) -> List[BookRecord]:
        """All rows with ``is_active`` set, ordered by title."""
        return await self._run("list_active", self._list_active)

    async def get(self, book_id: str) -> Optional[BookRecord]:
        """Fetch one row by id, or None if it does not exist."""
        return await self._run("get", self._get, book_id)

    async def find_placeholders(self, markers: Sequence[str]) -> List[BookRecord]:
        """Rows whose path contains any marker (case-insensitive) or whose size is 0."""
        return await self._run("find_placeholders", self._find_placeholders, list(markers))

    async def insert(self, **fields: Any) -> BookRecord:
        """Insert a new row and return it as stored.

        Raises:
            CatalogError: If the row cannot be inserted
        """
        return await self._run("insert", self._insert, dict(fields))

    async def update(self, book_id: str, **fields: Any) -> None:
        """Update columns of an existing row.

        Raises:
            CatalogError: If the row does not exist or the update fails
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise CatalogError(f"Cannot update fields: {sorted(unknown)}", operation="update")
        await self._run("update", self._update, book_id, dict(fields))

    async def delete(self, book_id: str) -> None:
        """Delete a row.

        Raises:
            CatalogError: If the row does not exist or the delete fails
        """
        await self._run("delete", self._delete, book_id)

    async def record_download(self, book_id: str) -> int:
        """Atomically add one to a row's ``download_count``.

        Returns:
            The count after the increment

        Raises:
            CatalogError: If the row does not exist or the update fails
        """
        return await self._run("record_download", self._increment_downloads, book_id)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_books_table(metadata: MetaData, name: str = "ebooks") -> Table:
    """Declare the book table (mirrors the portal's ``ebooks`` schema)."""
    return Table(
        name,
        metadata,
        Column("id", String(36), primary_key=True),
        Column("title", Text, nullable=False),
        Column("author", Text, nullable=False, default="Unknown Author"),
        Column("description", Text, nullable=False, default=""),
        Column("file_path", Text, nullable=False),
        Column("file_size", Integer, nullable=True),
        Column("file_type", String(32), nullable=False, default="pdf"),
        Column("download_count", Integer, nullable=False, default=0),
        Column("is_active", Boolean, nullable=False, default=True, index=True),
        Column("subject_id", String(64), nullable=False, index=True),
        Column("created_at", DateTime(timezone=True), nullable=False, default=_utcnow),
    )


def _ensure_sqlite_parent(url: str) -> None:
    """Create the directory holding a file-based SQLite database."""
    try:
        database = make_url(url).database
    except ArgumentError:
        return
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    Path(database).parent.mkdir(parents=True, exist_ok=True)


class SQLCatalog(BookCatalog):
    """Book catalog stored in any SQLAlchemy-supported database.

    Postgres in production; SQLite for development and tests.
    """

    def __init__(
        self,
        url: str,
        *,
        table: str = "ebooks",
        create_schema: bool = True,
        pool_size: int = 5,
        echo_sql: bool = False,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        """Initialize the catalog.

        Args:
            url: SQLAlchemy database URL
            table: Book table name
            create_schema: Create the table if it does not exist
            pool_size: Connection pool size (ignored for SQLite)
            echo_sql: Log emitted SQL
            timeout_s: Deadline for each catalog call
        """
        super().__init__(timeout_s=timeout_s)
        self.url = url
        self._lock = threading.RLock()
        self.metadata = MetaData()
        self.books = build_books_table(self.metadata, table)
        self.engine: Optional[Engine] = self._create_engine(url, pool_size, echo_sql)

        if create_schema:
            self.metadata.create_all(self.engine)
        logger.info(f"Book catalog ready (table={table}, dialect={self.engine.dialect.name})")

    @staticmethod
    def _create_engine(url: str, pool_size: int, echo_sql: bool) -> Engine:
        kwargs: Dict[str, Any] = {"echo": echo_sql, "pool_pre_ping": True}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
        else:
            kwargs["pool_size"] = pool_size
        try:
            if url.startswith("sqlite"):
                _ensure_sqlite_parent(url)
            return create_engine(url, **kwargs)
        except Exception as e:
            raise CatalogError(f"Failed to initialize catalog: {e}", operation="connect") from e

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise CatalogError("Catalog is closed")
        return self.engine

    def _to_record(self, row: Row) -> BookRecord:
        m = row._mapping
        return BookRecord(
            id=m["id"],
            title=m["title"],
            file_path=m["file_path"],
            file_size=m["file_size"],
            is_active=bool(m["is_active"]),
            subject_id=m["subject_id"],
            author=m["author"],
            description=m["description"],
            file_type=m["file_type"],
            download_count=m["download_count"],
            created_at=m["created_at"],
        )

    def _list_active(self) -> List[BookRecord]:
        stmt = (
            self.books.select()
            .where(self.books.c.is_active.is_(True))
            .order_by(self.books.c.title, self.books.c.id)
        )
        with self._require_engine().connect() as conn:
            return [self._to_record(row) for row in conn.execute(stmt)]

    def _get(self, book_id: str) -> Optional[BookRecord]:
        stmt = self.books.select().where(self.books.c.id == book_id)
        with self._require_engine().connect() as conn:
            row = conn.execute(stmt).first()
        return self._to_record(row) if row is not None else None

    def _find_placeholders(self, markers: Sequence[str]) -> List[BookRecord]:
        path = func.lower(self.books.c.file_path, type_=Text)
        conditions = [path.contains(marker.lower(), autoescape=True) for marker in markers]
        conditions.append(self.books.c.file_size == 0)
        stmt = self.books.select().where(or_(*conditions)).order_by(self.books.c.title, self.books.c.id)
        with self._require_engine().connect() as conn:
            return [self._to_record(row) for row in conn.execute(stmt)]

    def _insert(self, fields: Dict[str, Any]) -> BookRecord:
        values = dict(fields)
        values.setdefault("id", str(uuid.uuid4()))
        values.setdefault("created_at", _utcnow())
        with self._lock, self._require_engine().begin() as conn:
            conn.execute(self.books.insert().values(**values))
            row = conn.execute(self.books.select().where(self.books.c.id == values["id"])).first()
        logger.info(f"Inserted book {values['id']} ({values.get('title')!r})")
        return self._to_record(row)

    def _update(self, book_id: str, fields: Dict[str, Any]) -> None:
        stmt = self.books.update().where(self.books.c.id == book_id).values(**fields)
        with self._lock, self._require_engine().begin() as conn:
            affected = conn.execute(stmt).rowcount
        if affected == 0:
            raise CatalogError(f"Book not found: {book_id}", operation="update")

    def _delete(self, book_id: str) -> None:
        stmt = self.books.delete().where(self.books.c.id == book_id)
        with self._lock, self._require_engine().begin() as conn:
            affected = conn.execute(stmt).rowcount
        if affected == 0:
            raise CatalogError(f"Book not found: {book_id}", operation="delete")

    def _increment_downloads(self, book_id: str) -> int:
        books = self.books
        stmt = (
            books.update()
            .where(books.c.id == book_id)
            .values(download_count=books.c.download_count + 1)
        )
        with self._lock, self._require_engine().begin() as conn:
            if conn.execute(stmt).rowcount == 0:
                raise CatalogError(f"Book not found: {book_id}", operation="record_download")
            count = conn.execute(
                select(books.c.download_count).where(books.c.id == book_id)
            ).scalar_one()
        logger.debug(f"Book {book_id} download count is now {count}")
        return count

    def close(self) -> None:
        """Dispose the engine's connection pool."""
        with self._lock:
            if self.engine is not None:
                self.engine.dispose()
                self.engine = None
                logger.debug("Catalog connection closed")


__all__ = ["BookCatalog", "SQLCatalog", "build_books_table", "UPDATABLE_FIELDS"]
