"""EBookPortal backend packages.

Subpackages:
  - Library: catalog/storage alignment for the e-book collection
"""
