"""Tests for the filesystem blob store."""

from __future__ import annotations

import asyncio
import logging
import shutil

import pytest

from EBookPortal.Library.alignment import blob_store
from EBookPortal.Library.alignment.blob_store import LocalBlobStore
from EBookPortal.Library.alignment.errors import StoreError


class TestLocalListing:
    """Test listing semantics."""

    def test_sorted_flat_keys(self, store, put_object):
        """Test nested files are listed as '/'-separated keys in name order."""
        put_object("b.pdf")
        put_object("books/a.pdf")
        put_object("a.pdf")

        names = [o.name for o in asyncio.run(store.list_objects())]

        assert names == ["a.pdf", "b.pdf", "books/a.pdf"]

    def test_metadata(self, store, put_object):
        """Test size and modification time are exposed."""
        put_object("a.pdf", b"12345")

        (obj,) = asyncio.run(store.list_objects())

        assert obj.metadata["size"] == 5
        assert "last_modified" in obj.metadata
        assert obj.tail == "a.pdf"

    def test_prefix_filter(self, store, put_object):
        """Test listing narrowed to a key prefix."""
        put_object("books/a.pdf")
        put_object("other/b.pdf")

        names = [o.name for o in asyncio.run(store.list_objects(prefix_filter="books/"))]

        assert names == ["books/a.pdf"]

    def test_limit_truncates_with_warning(self, tmp_path, caplog):
        """Test listing stops at the page limit and warns."""
        store = LocalBlobStore(str(tmp_path / "bucket"), list_limit=2)
        for name in ["c.pdf", "a.pdf", "b.pdf"]:
            asyncio.run(store.put_object(name, b"x"))

        with caplog.at_level(logging.WARNING):
            names = [o.name for o in asyncio.run(store.list_objects())]

        assert names == ["a.pdf", "b.pdf"]
        assert "truncated" in caplog.text

    def test_missing_root_is_error(self, tmp_path):
        """Test a vanished bucket is a failure, not an empty listing."""
        store = LocalBlobStore(str(tmp_path / "bucket"))
        shutil.rmtree(tmp_path / "bucket")

        with pytest.raises(StoreError):
            asyncio.run(store.list_objects())

    def test_timeout(self, store):
        """Test a stalled listing raises StoreError."""
        store.timeout_s = 0.05
        store.list_delay_s = 0.3

        with pytest.raises(StoreError, match="timed out") as exc_info:
            asyncio.run(store.list_objects())

        assert exc_info.value.timed_out
        assert exc_info.value.operation == "list"


class TestLocalObjects:
    """Test object reads, writes and deletes."""

    def test_roundtrip(self, store):
        """Test written bytes are read back."""
        asyncio.run(store.put_object("books/a.pdf", b"content"))

        assert asyncio.run(store.get_object("books/a.pdf")) == b"content"

    def test_no_overwrite(self, store, put_object):
        """Test writing an existing key fails."""
        put_object("a.pdf")

        with pytest.raises(StoreError, match="already exists"):
            asyncio.run(store.put_object("a.pdf", b"new"))

    def test_delete_missing(self, store):
        """Test deleting an absent key reports not-found."""
        with pytest.raises(StoreError, match="not found"):
            asyncio.run(store.delete_object("nope.pdf"))

    def test_delete(self, store, put_object, object_names):
        """Test delete removes the object."""
        put_object("a.pdf")

        asyncio.run(store.delete_object("a.pdf"))

        assert object_names() == []

    @pytest.mark.parametrize("key", ["../escape.pdf", "/abs.pdf", "books/../../x.pdf", ""])
    def test_invalid_keys(self, store, key):
        """Test keys escaping the root are rejected."""
        with pytest.raises(StoreError):
            asyncio.run(store.put_object(key, b"x"))

    def test_get_missing(self, store):
        """Test reading an absent key fails."""
        with pytest.raises(StoreError):
            asyncio.run(store.get_object("nope.pdf"))


class TestPartialWrites:
    """Test temporary files used for atomic writes."""

    def test_failed_write_leaves_no_partial(self, store, monkeypatch):
        """Test a failed rename removes the temporary file."""

        def refuse(src, dst):
            raise OSError("disk quota exceeded")

        monkeypatch.setattr(blob_store.os, "replace", refuse)

        with pytest.raises(StoreError, match="disk quota exceeded"):
            asyncio.run(store.put_object("books/a.pdf", b"data"))

        assert [p for p in store.root.rglob("*") if p.is_file()] == []

    def test_partial_files_not_listed(self, store, put_object, object_names):
        """Test in-progress writes are invisible to listings."""
        put_object("books/a.pdf")
        (store.root / "books" / "b.pdf.part").write_bytes(b"half")

        assert object_names() == ["books/a.pdf"]

    def test_partial_suffix_reserved(self, store):
        """Test keys cannot use the temporary-file suffix."""
        with pytest.raises(StoreError, match="reserved suffix"):
            asyncio.run(store.put_object("books/a.part", b"data"))
