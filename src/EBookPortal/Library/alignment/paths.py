"""Path normalization and existence resolution.

Recorded catalog paths drift between two conventions: with and without a
folder prefix (``books/``). ``alternatives_of`` enumerates the spellings a
stored object might actually use, and ``resolve`` picks the first one present
in a listing. Both are pure; callers supply the listing.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, Dict, Iterable, List, Optional

from EBookPortal.Library.alignment.models import ResolveResult, StorageObject

logger = logging.getLogger(__name__)

DEFAULT_PATH_PREFIX = "books/"


def strip_prefix(path: str, prefix: str = DEFAULT_PATH_PREFIX) -> str:
    """Canonical form of ``path``: one leading ``prefix`` removed if present."""
    return path[len(prefix) :] if path.startswith(prefix) else path


def tail_of(path: str) -> str:
    """Terminal segment of a ``/``-separated path."""
    return path.rsplit("/", 1)[-1]


def alternatives_of(path: str, prefix: str = DEFAULT_PATH_PREFIX) -> List[str]:
    """Alternative spellings of ``path`` in priority order.

    1. prefix stripped (when present)
    2. prefix prepended (when absent)
    3. canonical form
    4. canonical form with the prefix re-added

    Duplicates and ``path`` itself are dropped; order is preserved.

    Examples:
        >>> alternatives_of("x.pdf")
        ['books/x.pdf']
        >>> alternatives_of("books/x.pdf")
        ['x.pdf']
    """
    canonical = strip_prefix(path, prefix)
    if path.startswith(prefix):
        toggled = path[len(prefix) :]
    else:
        toggled = prefix + path
    candidates = [toggled, canonical, prefix + canonical]

    seen = {path}
    alternatives: List[str] = []
    for candidate in candidates:
        if candidate not in seen:
            seen.add(candidate)
            alternatives.append(candidate)
    return alternatives


class ListingIndex:
    """Set-backed lookup over a store listing.

    Built once per audit so each row resolves in constant time.
    """

    def __init__(self, listing: Iterable[StorageObject]):
        self.names: AbstractSet[str] = frozenset(obj.name for obj in listing)
        # First key (in name order) carrying each terminal segment.
        self.tails: Dict[str, str] = {}
        for name in sorted(self.names):
            self.tails.setdefault(tail_of(name), name)

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __len__(self) -> int:
        return len(self.names)

    def by_tail(self, candidate: str) -> Optional[str]:
        """Key sharing the terminal segment of ``candidate``, if any."""
        return self.tails.get(tail_of(candidate))


def resolve(
    recorded_path: str,
    listing,
    *,
    prefix: str = DEFAULT_PATH_PREFIX,
    match_tail: bool = False,
) -> ResolveResult:
    """Resolve ``recorded_path`` against a listing.

    The exact path is tried first, then each alternative in priority order;
    the first candidate found is returned as ``actual_path``. With
    ``match_tail``, when no candidate matches exactly, an object sharing the
    terminal segment is accepted and its key returned. That fallback is only
    meaningful for listings narrowed by a name search.

    Args:
        recorded_path: Path stored in the catalog row
        listing: Iterable of StorageObject, or a prebuilt ListingIndex
        prefix: Folder prefix used to derive alternatives
        match_tail: Enable the terminal-segment fallback

    Returns:
        ResolveResult; never raises for any string input
    """
    index = listing if isinstance(listing, ListingIndex) else ListingIndex(listing)

    if recorded_path in index:
        return ResolveResult(exists=True, actual_path=recorded_path)

    for candidate in alternatives_of(recorded_path, prefix):
        if candidate in index:
            logger.debug(f"Resolved {recorded_path!r} via alternative {candidate!r}")
            return ResolveResult(exists=True, actual_path=candidate)

    if match_tail:
        key = index.by_tail(recorded_path)
        if key is not None:
            logger.debug(f"Resolved {recorded_path!r} by terminal segment to {key!r}")
            return ResolveResult(exists=True, actual_path=key)

    return ResolveResult(exists=False, actual_path=None)


def suggested_path_for(result: ResolveResult, recorded_path: str) -> Optional[str]:
    """Return the path a row should be repaired to, or None if already aligned."""
    if result.exists and result.actual_path != recorded_path:
        return result.actual_path
    return None


__all__ = [
    "DEFAULT_PATH_PREFIX",
    "ListingIndex",
    "alternatives_of",
    "resolve",
    "strip_prefix",
    "suggested_path_for",
    "tail_of",
]
