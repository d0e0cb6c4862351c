# === NAVMAP v1 ===
# {
#   "module": "EBookPortal.Library.alignment.bootstrap",
#   "purpose": "Build catalog, blob store and service from configuration",
#   "sections": [
#     {
#       "id": "build-catalog",
#       "name": "build_catalog",
#       "anchor": "function-build-catalog",
#       "kind": "function"
#     },
#     {
#       "id": "build-blob-store",
#       "name": "build_blob_store",
#       "anchor": "function-build-blob-store",
#       "kind": "function"
#     },
#     {
#       "id": "librarybootstrap",
#       "name": "LibraryBootstrap",
#       "anchor": "class-librarybootstrap",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Bootstrap and initialization for the alignment system.

Provides factory functions that turn configuration into a catalog, a blob
store and the service facade, plus a context manager that owns their
lifetimes.
"""

from __future__ import annotations

import logging
from typing import Optional

from EBookPortal.Library.alignment.blob_store import BlobStore, LocalBlobStore
from EBookPortal.Library.alignment.errors import AlignmentError
from EBookPortal.Library.alignment.s3_store import S3BlobStore
from EBookPortal.Library.alignment.service import StorageAlignmentService
from EBookPortal.Library.alignment.store import BookCatalog, SQLCatalog
from EBookPortal.Library.config import CatalogConfig, LibraryConfig, StorageConfig

logger = logging.getLogger(__name__)


def build_catalog(config: CatalogConfig, timeout_s: float) -> BookCatalog:
    """Build the book catalog from config.

    Raises:
        ValueError: If the catalog cannot be initialized
    """
    logger.info(f"Initializing book catalog (table={config.table})")
    try:
        return SQLCatalog(
            config.url,
            table=config.table,
            create_schema=config.create_schema,
            pool_size=config.pool_size,
            echo_sql=config.echo_sql,
            timeout_s=timeout_s,
        )
    except Exception as e:
        logger.error(f"Failed to initialize book catalog: {e}")
        raise ValueError(f"Failed to initialize catalog: {e}") from e


def build_blob_store(config: StorageConfig, timeout_s: float) -> BlobStore:
    """Build the blob store from config.

    Raises:
        ValueError: If the backend is unknown or cannot be reached
    """
    if config.backend == "fs":
        return LocalBlobStore(config.root_dir, list_limit=config.list_limit, timeout_s=timeout_s)

    if config.backend == "s3":
        if not config.bucket:
            raise ValueError("S3 backend requires bucket to be configured")
        try:
            return S3BlobStore(
                config.bucket,
                region=config.region,
                endpoint_url=config.endpoint_url,
                list_limit=config.list_limit,
                timeout_s=timeout_s,
            )
        except AlignmentError as e:
            raise ValueError(f"Failed to initialize storage: {e}") from e

    raise ValueError(f"Unknown storage backend: {config.backend}")


class LibraryBootstrap:
    """Owns the catalog and blob store built from a LibraryConfig."""

    def __init__(self, config: LibraryConfig):
        self.config = config
        self._catalog: Optional[BookCatalog] = None
        self._store: Optional[BlobStore] = None
        self._service: Optional[StorageAlignmentService] = None

    def initialize(self) -> LibraryBootstrap:
        timeout_s = self.config.alignment.remote_timeout_s
        self._catalog = build_catalog(self.config.catalog, timeout_s)
        try:
            self._store = build_blob_store(self.config.storage, timeout_s)
        except Exception:
            self._catalog.close()
            raise
        self._service = StorageAlignmentService(self._catalog, self._store, self.config.alignment)
        logger.info(f"Library bootstrap complete: storage backend={self.config.storage.backend}")
        return self

    @property
    def catalog(self) -> BookCatalog:
        if self._catalog is None:
            raise RuntimeError("Catalog not initialized. Call initialize() first.")
        return self._catalog

    @property
    def store(self) -> BlobStore:
        if self._store is None:
            raise RuntimeError("Blob store not initialized. Call initialize() first.")
        return self._store

    @property
    def service(self) -> StorageAlignmentService:
        if self._service is None:
            raise RuntimeError("Service not initialized. Call initialize() first.")
        return self._service

    def close(self) -> None:
        """Close the catalog and the blob store."""
        if self._store is not None:
            self._store.close()
        if self._catalog is not None:
            self._catalog.close()
        logger.debug("Library resources closed")

    def __enter__(self) -> LibraryBootstrap:
        return self.initialize()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


__all__ = ["LibraryBootstrap", "build_catalog", "build_blob_store"]
