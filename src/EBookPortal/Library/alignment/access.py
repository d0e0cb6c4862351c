"""Time-limited access to book files.

Before signing, the recorded path is resolved against the store so readers
still get their file while a row awaits repair. Handing out a download URL
for a book also bumps its download count in the catalog.
"""

from __future__ import annotations

import logging
from typing import Optional

from EBookPortal.Library.alignment.blob_store import BlobStore
from EBookPortal.Library.alignment.errors import CatalogError, StoreError
from EBookPortal.Library.alignment.models import BookRecord
from EBookPortal.Library.alignment.paths import DEFAULT_PATH_PREFIX, resolve
from EBookPortal.Library.alignment.store import BookCatalog

logger = logging.getLogger(__name__)

DEFAULT_SIGNED_URL_TTL_S = 3600


class AccessResolver:
    """Produces signed URLs for recorded catalog paths."""

    def __init__(
        self,
        store: BlobStore,
        *,
        catalog: Optional[BookCatalog] = None,
        prefix: str = DEFAULT_PATH_PREFIX,
        ttl_s: int = DEFAULT_SIGNED_URL_TTL_S,
        match_tail: bool = False,
    ):
        self.store = store
        self.catalog = catalog
        self.prefix = prefix
        self.ttl_s = ttl_s
        self.match_tail = match_tail

    async def actual_path(self, recorded_path: str) -> str:
        """Key under which ``recorded_path`` is actually stored.

        Raises:
            StoreError: If the listing fails or no spelling of the path exists
        """
        listing = await self.store.list_objects()
        result = resolve(recorded_path, listing, prefix=self.prefix, match_tail=self.match_tail)
        if not result.exists or result.actual_path is None:
            raise StoreError(f"File not found in storage: {recorded_path}", key=recorded_path)
        if result.actual_path != recorded_path:
            logger.info(f"Serving {recorded_path} from {result.actual_path}")
        return result.actual_path

    async def signed_url(self, recorded_path: str, expires_in: Optional[int] = None) -> str:
        """Signed URL for the object behind ``recorded_path``.

        Args:
            recorded_path: Path stored in the catalog row
            expires_in: Lifetime in seconds (default: configured TTL)
        """
        key = await self.actual_path(recorded_path)
        return await self.store.signed_url(key, expires_in or self.ttl_s)

    async def download_url(self, book: BookRecord, expires_in: Optional[int] = None) -> str:
        """Signed URL for ``book`` that also counts as one download.

        The count is only recorded once the file has been resolved and
        signed. A failed increment is logged and does not block the download.
        """
        url = await self.signed_url(book.file_path, expires_in)
        if self.catalog is None:
            return url
        try:
            await self.catalog.record_download(book.id)
        except CatalogError as e:
            logger.warning(
                f"Could not record download of {book.title!r}: {e}", extra={"book_id": book.id}
            )
        return url


__all__ = ["AccessResolver", "DEFAULT_SIGNED_URL_TTL_S"]
