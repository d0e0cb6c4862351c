"""Shared fixtures for the library alignment tests.

Real adapters (SQLite-backed SQLCatalog, LocalBlobStore) are used wherever
possible. Failure injection subclasses them and breaks individual blocking
hooks, so the async wrappers still perform the error translation under test.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional, Set

import pytest

from EBookPortal.Library.alignment.blob_store import LocalBlobStore
from EBookPortal.Library.alignment.store import SQLCatalog

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n%%EOF\n"


class BrokenStore(LocalBlobStore):
    """LocalBlobStore whose hooks can be made to fail or stall."""

    def __init__(self, root_dir: str, **kwargs):
        super().__init__(root_dir, **kwargs)
        self.fail_list = False
        self.fail_put = False
        self.fail_delete: Set[str] = set()
        self.fail_all_deletes = False
        self.list_delay_s = 0.0
        self.put_delay_s = 0.0
        self.deleted: list = []

    def _list(self, prefix_filter, limit):
        if self.list_delay_s:
            time.sleep(self.list_delay_s)
        if self.fail_list:
            raise ConnectionError("storage endpoint unreachable")
        return super()._list(prefix_filter, limit)

    def _put(self, name, data, content_type):
        if self.put_delay_s:
            time.sleep(self.put_delay_s)
        if self.fail_put:
            raise ConnectionError("upload rejected")
        super()._put(name, data, content_type)

    def _delete(self, name):
        if self.fail_all_deletes or name in self.fail_delete:
            raise PermissionError(f"not allowed to delete {name}")
        super()._delete(name)
        self.deleted.append(name)


class FlakyCatalog(SQLCatalog):
    """SQLCatalog whose hooks can be made to fail per operation or per row."""

    def __init__(self, url: str, **kwargs):
        super().__init__(url, **kwargs)
        self.fail_list = False
        self.fail_insert = False
        self.fail_placeholders = False
        self.fail_update_ids: Set[str] = set()
        self.fail_delete_ids: Set[str] = set()
        self.update_calls: list = []

    def _list_active(self):
        if self.fail_list:
            raise RuntimeError("relation unavailable")
        return super()._list_active()

    def _find_placeholders(self, markers):
        if self.fail_placeholders:
            raise RuntimeError("query cancelled")
        return super()._find_placeholders(markers)

    def _insert(self, fields):
        if self.fail_insert:
            raise RuntimeError("duplicate key value violates unique constraint")
        return super()._insert(fields)

    def _update(self, book_id, fields):
        self.update_calls.append((book_id, dict(fields)))
        if book_id in self.fail_update_ids:
            raise RuntimeError("row is locked")
        super()._update(book_id, fields)

    def _delete(self, book_id):
        if book_id in self.fail_delete_ids:
            raise RuntimeError("permission denied for table ebooks")
        super()._delete(book_id)


def _sqlite_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'library.sqlite'}"


@pytest.fixture
def catalog(tmp_path):
    cat = FlakyCatalog(_sqlite_url(tmp_path), timeout_s=5.0)
    yield cat
    cat.close()


@pytest.fixture
def store(tmp_path):
    s = BrokenStore(str(tmp_path / "bucket"), timeout_s=5.0)
    yield s
    s.close()


@pytest.fixture
def add_book(catalog):
    """Insert a catalog row synchronously."""

    def _add(
        title: str,
        file_path: str,
        *,
        file_size: Optional[int] = 2048,
        is_active: bool = True,
        subject_id: str = "cs-101",
    ):
        return asyncio.run(
            catalog.insert(
                title=title,
                file_path=file_path,
                file_size=file_size,
                is_active=is_active,
                subject_id=subject_id,
            )
        )

    return _add


@pytest.fixture
def put_object(store):
    """Write an object to the store synchronously."""

    def _put(name: str, data: bytes = PDF_BYTES) -> str:
        return asyncio.run(store.put_object(name, data))

    return _put


@pytest.fixture
def object_names(store):
    """Current object names in the store."""

    def _names():
        return [obj.name for obj in asyncio.run(store.list_objects())]

    return _names
