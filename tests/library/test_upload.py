"""Tests for the two-phase upload transaction."""

from __future__ import annotations

import asyncio
import logging
import re

import pytest

from EBookPortal.Library.alignment.errors import StoreError, UploadError
from EBookPortal.Library.alignment.models import UploadMetadata
from EBookPortal.Library.alignment.upload import UploadTransaction, extension_of, generate_key

PDF_BYTES = b"%PDF-1.4\n%%EOF\n"
KEY_PATTERN = re.compile(r"^\d{13}-[0-9a-z]{6}\.pdf$")


def upload(catalog, store, data=PDF_BYTES, filename="Lecture Notes.PDF", **kwargs):
    metadata = kwargs.pop("metadata", UploadMetadata(title="  Data Structures ", subject_id="cs-201"))
    tx = UploadTransaction(catalog, store, **kwargs)
    return asyncio.run(tx.upload(data, filename, metadata))


class TestKeyGeneration:
    """Test object key generation."""

    def test_key_format(self):
        """Test keys are timestamp, random suffix and lowercased extension."""
        assert KEY_PATTERN.match(generate_key("Chapter 1.PDF"))

    def test_key_prefix(self):
        """Test configured prefix is prepended."""
        assert generate_key("a.pdf", prefix="books/").startswith("books/")

    def test_keys_unique(self):
        """Test consecutive keys differ."""
        assert len({generate_key("a.pdf") for _ in range(50)}) == 50

    def test_extension_of(self):
        """Test extension extraction ignores the rest of the name."""
        assert extension_of("My Book.Final.PDF") == ".pdf"
        assert extension_of("README") == ""


class TestUploadSuccess:
    """Test the happy path."""

    def test_object_and_row_created(self, catalog, store, object_names):
        """Test upload stores the object and inserts a matching active row."""
        record = upload(catalog, store)

        assert KEY_PATTERN.match(record.file_path)
        assert object_names() == [record.file_path]
        assert record.title == "Data Structures"
        assert record.author == "Unknown Author"
        assert record.description == ""
        assert record.file_size == len(PDF_BYTES)
        assert record.file_type == "pdf"
        assert record.download_count == 0
        assert record.is_active
        assert record.subject_id == "cs-201"
        assert asyncio.run(store.get_object(record.file_path)) == PDF_BYTES

    def test_optional_fields(self, catalog, store):
        """Test author and description are stored when given."""
        metadata = UploadMetadata(
            title="Networks", subject_id="cs-301", author="A. Tanenbaum", description="5th ed."
        )
        record = upload(catalog, store, metadata=metadata)

        assert record.author == "A. Tanenbaum"
        assert record.description == "5th ed."

    def test_uploaded_book_audits_accessible(self, catalog, store):
        """Test a fresh upload is immediately aligned."""
        from EBookPortal.Library.alignment.audit import AuditEngine

        upload(catalog, store, key_prefix="books/")
        report = asyncio.run(AuditEngine(catalog, store).audit())

        assert report.summary.accessible_files == 1


class TestUploadFailures:
    """Test failure stages and compensation."""

    def test_store_write_failure(self, catalog, store):
        """Test a failed write never touches the catalog."""
        store.fail_put = True

        with pytest.raises(UploadError) as exc_info:
            upload(catalog, store)

        assert exc_info.value.stage == "store-write"
        assert "File upload failed" in str(exc_info.value)
        assert asyncio.run(catalog.list_active()) == []

    def test_timed_out_write_is_removed_when_it_lands(self, catalog, store, object_names):
        """Test a write that completes after its timeout does not leave an orphan."""
        store.timeout_s = 0.1
        store.put_delay_s = 0.4

        with pytest.raises(UploadError) as exc_info:
            upload(catalog, store)

        assert exc_info.value.stage == "store-write"
        assert exc_info.value.__cause__.timed_out
        assert object_names() == []
        assert len(store.deleted) == 1
        assert asyncio.run(catalog.list_active()) == []

    def test_timed_out_write_still_running_is_logged(self, catalog, store, caplog):
        """Test a write outliving the settle window is reported as possibly orphaned."""
        store.timeout_s = 0.05
        store.put_delay_s = 0.4

        with caplog.at_level(logging.WARNING, logger="EBookPortal.Library.alignment.upload"):
            with pytest.raises(UploadError) as exc_info:
                upload(catalog, store, settle_timeout_s=0.05)

        assert exc_info.value.stage == "store-write"
        warning = [r for r in caplog.records if "may be orphaned" in r.getMessage()]
        assert len(warning) == 1
        assert warning[0].stage == "store-write"

    def test_existing_key_not_overwritten(self, catalog, store, put_object):
        """Test a key collision is a store-write failure."""
        put_object("fixed.pdf", b"original")

        with pytest.raises(UploadError) as exc_info:
            upload(catalog, store, key_factory=lambda name: "fixed.pdf")

        assert exc_info.value.stage == "store-write"
        assert asyncio.run(store.get_object("fixed.pdf")) == b"original"

    def test_catalog_insert_failure_removes_object(self, catalog, store, object_names):
        """Test the compensating delete leaves no orphan."""
        catalog.fail_insert = True

        with pytest.raises(UploadError) as exc_info:
            upload(catalog, store)

        assert exc_info.value.stage == "catalog-insert"
        assert "Database error" in str(exc_info.value)
        assert object_names() == []
        assert len(store.deleted) == 1

    def test_compensation_failure_is_logged(self, catalog, store, object_names, caplog):
        """Test a failed compensating delete is logged, not raised."""
        catalog.fail_insert = True
        store.fail_all_deletes = True

        with caplog.at_level(logging.WARNING, logger="EBookPortal.Library.alignment.upload"):
            with pytest.raises(UploadError) as exc_info:
                upload(catalog, store)

        assert exc_info.value.stage == "catalog-insert"
        assert not isinstance(exc_info.value.__cause__, StoreError)
        assert len(object_names()) == 1
        assert "orphaned" in caplog.text

    @pytest.mark.parametrize(
        "data, metadata",
        [
            (b"", UploadMetadata(title="T", subject_id="s")),
            (PDF_BYTES, UploadMetadata(title="   ", subject_id="s")),
            (PDF_BYTES, UploadMetadata(title="T", subject_id="")),
        ],
    )
    def test_validation(self, catalog, store, object_names, data, metadata):
        """Test invalid input is rejected before any remote call."""
        with pytest.raises(UploadError) as exc_info:
            upload(catalog, store, data=data, metadata=metadata)

        assert exc_info.value.stage == "validate"
        assert object_names() == []
        assert asyncio.run(catalog.list_active()) == []
