# === NAVMAP v1 ===
# {
#   "module": "EBookPortal.Library.alignment.blob_store",
#   "purpose": "Blob store port and filesystem-backed implementation",
#   "sections": [
#     {
#       "id": "blobstore",
#       "name": "BlobStore",
#       "anchor": "class-blobstore",
#       "kind": "class"
#     },
#     {
#       "id": "localblobstore",
#       "name": "LocalBlobStore",
#       "anchor": "class-localblobstore",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Blob store port and filesystem-backed implementation.

``BlobStore`` exposes async operations to the engines and delegates to
blocking ``_list/_get/_put/_delete/_sign`` hooks that backends implement.
The public methods run hooks through ``run_blocking`` so every backend gets
the same timeout and error translation:

  - listing failure or timeout → StoreError (never an empty listing)
  - writes never overwrite an existing key
  - deleting an absent key → StoreError
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional

from EBookPortal.Library.alignment.errors import StoreError
from EBookPortal.Library.alignment.models import StorageObject
from EBookPortal.Library.alignment.remote import DEFAULT_TIMEOUT_S, run_blocking

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 1000
# In-progress writes; never listed as objects.
PARTIAL_SUFFIX = ".part"


class BlobStore:
    """Base class for blob store backends.

    Subclasses implement the blocking hooks; callers use the async methods.
    """

    backend = "abstract"

    def __init__(self, *, list_limit: int = DEFAULT_LIST_LIMIT, timeout_s: float = DEFAULT_TIMEOUT_S):
        self.list_limit = list_limit
        self.timeout_s = timeout_s

    # Blocking hooks -----------------------------------------------------

    def _list(self, prefix_filter: Optional[str], limit: int) -> List[StorageObject]:
        raise NotImplementedError

    def _get(self, name: str) -> bytes:
        raise NotImplementedError

    def _put(self, name: str, data: bytes, content_type: Optional[str]) -> None:
        raise NotImplementedError

    def _delete(self, name: str) -> None:
        raise NotImplementedError

    def _sign(self, name: str, expires_in: int) -> str:
        raise NotImplementedError

    def close(self) -> None:
        """Release client resources. Safe to call multiple times."""

    # Public API ---------------------------------------------------------

    async def list_objects(self, prefix_filter: Optional[str] = None) -> List[StorageObject]:
        """List objects sorted by name, bounded by ``list_limit``.

        Args:
            prefix_filter: Only return keys starting with this string

        Raises:
            StoreError: If the listing cannot be obtained
        """
        objects = await run_blocking(
            self._list,
            prefix_filter,
            self.list_limit,
            operation="list",
            error_cls=StoreError,
            timeout_s=self.timeout_s,
        )
        objects = sorted(objects, key=lambda obj: obj.name)
        logger.debug(f"Listed {len(objects)} objects from {self.backend} store")
        return objects

    async def get_object(self, name: str) -> bytes:
        """Read an object's bytes."""
        return await run_blocking(
            self._get, name, operation="get", error_cls=StoreError, timeout_s=self.timeout_s
        )

    async def put_object(self, name: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Write a new object; fails if ``name`` already exists.

        Returns:
            The key written
        """
        await run_blocking(
            self._put,
            name,
            data,
            content_type,
            operation="put",
            error_cls=StoreError,
            timeout_s=self.timeout_s,
        )
        logger.info(f"Stored object {name} ({len(data)} bytes)")
        return name

    async def delete_object(self, name: str) -> None:
        """Delete an object.

        Raises:
            StoreError: If the object does not exist or cannot be removed
        """
        await run_blocking(
            self._delete, name, operation="delete", error_cls=StoreError, timeout_s=self.timeout_s
        )
        logger.info(f"Deleted object {name}")

    async def signed_url(self, name: str, expires_in: int) -> str:
        """Produce a time-limited URL granting read access to ``name``."""
        return await run_blocking(
            self._sign,
            name,
            expires_in,
            operation="sign",
            error_cls=StoreError,
            timeout_s=self.timeout_s,
        )


class LocalBlobStore(BlobStore):
    """Filesystem-backed blob store.

    ``root_dir`` plays the role of the bucket; keys are ``/``-separated paths
    relative to it. Suitable for development and tests.
    """

    backend = "fs"

    def __init__(
        self,
        root_dir: str,
        *,
        list_limit: int = DEFAULT_LIST_LIMIT,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        super().__init__(list_limit=list_limit, timeout_s=timeout_s)
        self.root = Path(root_dir)
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        logger.info(f"Local blob store rooted at {self.root}")

    def _path_for(self, name: str) -> Path:
        pure = PurePosixPath(name)
        if not name or pure.is_absolute() or ".." in pure.parts:
            raise StoreError(f"Invalid object key: {name!r}", key=name)
        return self.root.joinpath(*pure.parts)

    def _list(self, prefix_filter: Optional[str], limit: int) -> List[StorageObject]:
        if not self.root.is_dir():
            raise StoreError(f"Storage root does not exist: {self.root}", operation="list")

        names: List[str] = []
        for dirpath, _dirnames, filenames in os.walk(self.root):
            for filename in filenames:
                if filename.endswith(PARTIAL_SUFFIX):
                    continue
                rel = Path(dirpath, filename).relative_to(self.root).as_posix()
                if prefix_filter and not rel.startswith(prefix_filter):
                    continue
                names.append(rel)
        names.sort()

        if len(names) > limit:
            logger.warning(
                f"Listing truncated at {limit} of {len(names)} objects; raise storage.list_limit"
            )
            names = names[:limit]

        objects = []
        for name in names:
            stat = (self.root / name).stat()
            metadata: Dict[str, Any] = {
                "size": stat.st_size,
                "last_modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
            }
            objects.append(StorageObject(name=name, metadata=metadata))
        return objects

    def _get(self, name: str) -> bytes:
        path = self._path_for(name)
        if not path.is_file():
            raise StoreError(f"Object not found: {name}", operation="get", key=name)
        return path.read_bytes()

    def _put(self, name: str, data: bytes, content_type: Optional[str]) -> None:
        path = self._path_for(name)
        if name.endswith(PARTIAL_SUFFIX):
            raise StoreError(f"Invalid object key: {name!r} uses a reserved suffix", key=name)
        with self._lock:
            if path.exists():
                raise StoreError(f"Object already exists: {name}", operation="put", key=name)
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_name(path.name + PARTIAL_SUFFIX)
            try:
                tmp.write_bytes(data)
                os.replace(tmp, path)
            finally:
                tmp.unlink(missing_ok=True)

    def _delete(self, name: str) -> None:
        path = self._path_for(name)
        with self._lock:
            if not path.is_file():
                raise StoreError(f"Object not found: {name}", operation="delete", key=name)
            path.unlink()

    def _sign(self, name: str, expires_in: int) -> str:
        path = self._path_for(name)
        if not path.is_file():
            raise StoreError(f"Object not found: {name}", operation="sign", key=name)
        # Local files have no access control; the URI does not expire.
        return path.resolve().as_uri()


__all__ = ["BlobStore", "LocalBlobStore", "DEFAULT_LIST_LIMIT"]
