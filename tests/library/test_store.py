"""Tests for the SQLAlchemy book catalog."""

from __future__ import annotations

import asyncio

import pytest

from EBookPortal.Library.alignment.errors import CatalogError
from EBookPortal.Library.alignment.store import SQLCatalog
from EBookPortal.Library.config import CatalogConfig


class TestCatalogQueries:
    """Test catalog reads."""

    def test_insert_defaults(self, catalog):
        """Test column defaults match the portal schema."""
        record = asyncio.run(catalog.insert(title="T", file_path="t.pdf", subject_id="s"))

        assert len(record.id) == 36
        assert record.author == "Unknown Author"
        assert record.description == ""
        assert record.file_type == "pdf"
        assert record.download_count == 0
        assert record.is_active
        assert record.created_at is not None

    def test_list_active_ordered(self, catalog, add_book):
        """Test only active rows are listed, by title."""
        add_book("Beta", "b.pdf")
        add_book("Alpha", "a.pdf")
        add_book("Gamma", "g.pdf", is_active=False)

        titles = [b.title for b in asyncio.run(catalog.list_active())]

        assert titles == ["Alpha", "Beta"]

    def test_get(self, catalog, add_book):
        """Test fetch by id."""
        book = add_book("Alpha", "a.pdf")

        assert asyncio.run(catalog.get(book.id)) == book
        assert asyncio.run(catalog.get("missing-id")) is None

    def test_find_placeholders_case_insensitive(self, catalog, add_book):
        """Test marker matching ignores case and includes empty files."""
        add_book("A", "books/PlaceHolder.pdf")
        add_book("B", "Temp/b.pdf")
        add_book("C", "books/c.pdf", file_size=0)
        add_book("D", "books/d.pdf")

        found = asyncio.run(catalog.find_placeholders(["placeholder", "temp"]))

        assert [b.title for b in found] == ["A", "B", "C"]

    def test_find_placeholders_escapes_wildcards(self, catalog, add_book):
        """Test markers are matched literally."""
        add_book("A", "books/a.pdf")

        assert asyncio.run(catalog.find_placeholders(["%"])) == []


class TestCatalogWrites:
    """Test catalog mutations and their failures."""

    def test_update(self, catalog, add_book):
        """Test a path update is persisted."""
        book = add_book("Alpha", "a.pdf")

        asyncio.run(catalog.update(book.id, file_path="books/a.pdf"))

        assert asyncio.run(catalog.get(book.id)).file_path == "books/a.pdf"

    def test_update_missing_row(self, catalog):
        """Test updating an absent row fails."""
        with pytest.raises(CatalogError, match="not found"):
            asyncio.run(catalog.update("missing-id", file_path="x.pdf"))

    def test_update_unknown_field(self, catalog, add_book):
        """Test only known columns can be updated."""
        book = add_book("Alpha", "a.pdf")

        with pytest.raises(CatalogError, match="Cannot update"):
            asyncio.run(catalog.update(book.id, id="other"))

    def test_delete(self, catalog, add_book):
        """Test delete removes the row and a second delete fails."""
        book = add_book("Alpha", "a.pdf")

        asyncio.run(catalog.delete(book.id))

        assert asyncio.run(catalog.get(book.id)) is None
        with pytest.raises(CatalogError):
            asyncio.run(catalog.delete(book.id))

    def test_hook_failure_translated(self, catalog):
        """Test backend exceptions surface as CatalogError with the cause chained."""
        catalog.fail_list = True

        with pytest.raises(CatalogError) as exc_info:
            asyncio.run(catalog.list_active())

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_closed_catalog(self, tmp_path):
        """Test a closed catalog raises CatalogError and close is repeatable."""
        catalog = SQLCatalog(f"sqlite:///{tmp_path / 'closed.sqlite'}")
        catalog.close()
        catalog.close()

        with pytest.raises(CatalogError):
            asyncio.run(catalog.list_active())

    def test_custom_table_name(self, tmp_path):
        """Test the table name is configurable."""
        catalog = SQLCatalog(f"sqlite:///{tmp_path / 'custom.sqlite'}", table="library_books")
        try:
            asyncio.run(catalog.insert(title="T", file_path="t.pdf", subject_id="s"))
            assert catalog.books.name == "library_books"
            assert len(asyncio.run(catalog.list_active())) == 1
        finally:
            catalog.close()

    def test_missing_sqlite_directory_created(self, tmp_path):
        """Test a file database under a not-yet-existing directory can be opened."""
        path = tmp_path / "state" / "nested" / "library.sqlite"
        catalog = SQLCatalog(f"sqlite:///{path}")
        try:
            asyncio.run(catalog.insert(title="T", file_path="t.pdf", subject_id="s"))
            assert path.is_file()
        finally:
            catalog.close()

    def test_default_url_works_in_fresh_directory(self, tmp_path, monkeypatch):
        """Test the configured default database opens without preparing state/."""
        monkeypatch.chdir(tmp_path)
        catalog = SQLCatalog(CatalogConfig().url)
        try:
            assert asyncio.run(catalog.list_active()) == []
            assert (tmp_path / "state" / "library.sqlite").is_file()
        finally:
            catalog.close()


class TestDownloadCount:
    """Test the download counter."""

    def test_record_download(self, catalog, add_book):
        """Test each call adds one and returns the new count."""
        book = add_book("Alpha", "a.pdf")

        assert asyncio.run(catalog.record_download(book.id)) == 1
        assert asyncio.run(catalog.record_download(book.id)) == 2
        assert asyncio.run(catalog.get(book.id)).download_count == 2

    def test_concurrent_downloads_all_counted(self, catalog, add_book):
        """Test concurrent increments are not lost."""
        book = add_book("Alpha", "a.pdf")

        async def burst():
            await asyncio.gather(*(catalog.record_download(book.id) for _ in range(20)))

        asyncio.run(burst())

        assert asyncio.run(catalog.get(book.id)).download_count == 20

    def test_missing_book(self, catalog):
        """Test counting a download for an unknown id fails."""
        with pytest.raises(CatalogError, match="Book not found"):
            asyncio.run(catalog.record_download("no-such-id"))
