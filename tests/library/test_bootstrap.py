"""Tests for building the alignment system from configuration."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from EBookPortal.Library.alignment.blob_store import LocalBlobStore
from EBookPortal.Library.alignment.bootstrap import LibraryBootstrap, build_blob_store
from EBookPortal.Library.alignment.s3_store import S3BlobStore
from EBookPortal.Library.alignment.store import SQLCatalog
from EBookPortal.Library.config import LibraryConfig, StorageConfig


def make_config(tmp_path, **storage):
    return LibraryConfig(
        catalog={"url": f"sqlite:///{tmp_path / 'boot.sqlite'}"},
        storage={"root_dir": str(tmp_path / "bucket"), **storage},
        alignment={"remote_timeout_s": 3.0},
    )


class TestLibraryBootstrap:
    """Test lifecycle of bootstrapped components."""

    def test_context_manager(self, tmp_path):
        """Test components are built from config and closed on exit."""
        with LibraryBootstrap(make_config(tmp_path)) as bootstrap:
            assert isinstance(bootstrap.catalog, SQLCatalog)
            assert isinstance(bootstrap.store, LocalBlobStore)
            assert bootstrap.catalog.timeout_s == 3.0
            report = asyncio.run(bootstrap.service.audit())
            assert report.summary.total_books == 0
            catalog = bootstrap.catalog

        assert catalog.engine is None

    def test_uninitialized_access(self, tmp_path):
        """Test properties fail before initialize()."""
        bootstrap = LibraryBootstrap(make_config(tmp_path))

        with pytest.raises(RuntimeError):
            _ = bootstrap.catalog
        with pytest.raises(RuntimeError):
            _ = bootstrap.service

    def test_bad_catalog_url(self, tmp_path):
        """Test an unusable database URL is a ValueError."""
        config = make_config(tmp_path)
        config.catalog.url = "notadialect://nowhere"

        with pytest.raises(ValueError, match="Failed to initialize catalog"):
            LibraryBootstrap(config).initialize()


class TestBuildBlobStore:
    """Test blob store factory."""

    def test_fs(self, tmp_path):
        """Test filesystem backend honours list limit."""
        store = build_blob_store(StorageConfig(root_dir=str(tmp_path), list_limit=7), 1.0)

        assert isinstance(store, LocalBlobStore)
        assert store.list_limit == 7

    def test_s3(self):
        """Test S3 backend is built with endpoint and region."""
        config = StorageConfig(
            backend="s3", bucket="ebooks", region="eu-west-1", endpoint_url="http://minio:9000"
        )
        with patch.object(S3BlobStore, "_init_client"), patch.object(S3BlobStore, "_check_bucket"):
            store = build_blob_store(config, 2.0)

        assert isinstance(store, S3BlobStore)
        assert (store.bucket, store.region, store.endpoint_url) == (
            "ebooks",
            "eu-west-1",
            "http://minio:9000",
        )
        assert store.timeout_s == 2.0
