"""
Library Configuration Package

Public API for loading, validating, and introspecting library configuration.

Example:
    from EBookPortal.Library.config import load_config, LibraryConfig

    # Load from file with env/CLI overrides
    config = load_config(
        path="library.yaml",
        cli_overrides={"storage": {"backend": "s3", "bucket": "ebooks"}}
    )

    # Get config hash for reproducibility
    config_id = config.config_hash()
"""

from .loader import (
    export_config_schema,
    load_config,
    validate_config_file,
)
from .models import (
    AlignmentConfig,
    CatalogConfig,
    LibraryConfig,
    LoggingConfig,
    StorageConfig,
)

__all__ = [
    # Models
    "LibraryConfig",
    "CatalogConfig",
    "StorageConfig",
    "AlignmentConfig",
    "LoggingConfig",
    # Loading/validation
    "load_config",
    "validate_config_file",
    "export_config_schema",
]
