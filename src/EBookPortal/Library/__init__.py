"""
E-book Library Storage Alignment

Keeps the book catalog (relational rows naming file paths) and the blob
store holding the PDFs in agreement. The heavy lifting lives in
``EBookPortal.Library.alignment``; configuration and logging helpers live
alongside it.
"""

from __future__ import annotations

from .config import LibraryConfig, load_config

__all__ = ["LibraryConfig", "load_config"]
