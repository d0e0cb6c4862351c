# === NAVMAP v1 ===
# {
#   "module": "EBookPortal.Library.config.models",
#   "purpose": "Pydantic v2 configuration models for the e-book library",
#   "sections": [
#     {
#       "id": "catalogconfig",
#       "name": "CatalogConfig",
#       "anchor": "class-catalogconfig",
#       "kind": "class"
#     },
#     {
#       "id": "storageconfig",
#       "name": "StorageConfig",
#       "anchor": "class-storageconfig",
#       "kind": "class"
#     },
#     {
#       "id": "alignmentconfig",
#       "name": "AlignmentConfig",
#       "anchor": "class-alignmentconfig",
#       "kind": "class"
#     },
#     {
#       "id": "loggingconfig",
#       "name": "LoggingConfig",
#       "anchor": "class-loggingconfig",
#       "kind": "class"
#     },
#     {
#       "id": "libraryconfig",
#       "name": "LibraryConfig",
#       "anchor": "class-libraryconfig",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pydantic v2 Configuration Models for the E-book Library

Provides strict, typed configuration for the storage alignment subsystem:
- Catalog database connection (any SQLAlchemy URL)
- Blob store backend (filesystem or S3-compatible bucket)
- Alignment policy (path prefix, placeholder markers, timeouts, URL TTLs)
- Logging (console level, optional JSON log file)
- Top-level LibraryConfig as single source of truth

All models use extra="forbid" for strict validation. Environment variables
and CLI overrides follow: file < env < CLI precedence.
"""

from __future__ import annotations

from typing import ClassVar, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CatalogConfig(BaseModel):
    """Book catalog database configuration."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    url: str = Field(
        default="sqlite:///state/library.sqlite",
        description="SQLAlchemy database URL (postgresql+psycopg://..., sqlite:///...)",
    )
    table: str = Field(default="ebooks", description="Name of the book table")
    create_schema: bool = Field(
        default=True,
        description="Create the book table on startup if it does not exist",
    )
    pool_size: int = Field(default=5, description="Connection pool size (non-SQLite URLs)")
    echo_sql: bool = Field(default=False, description="Log emitted SQL statements")

    @field_validator("pool_size")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("pool_size must be >= 1")
        return v


class StorageConfig(BaseModel):
    """Blob store backend holding the book files."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    backend: Literal["fs", "s3"] = Field(
        default="fs",
        description="Storage backend: filesystem or S3-compatible bucket",
    )
    root_dir: str = Field(
        default="data/ebooks",
        description="Root directory acting as the bucket for the fs backend",
    )
    bucket: Optional[str] = Field(
        default=None,
        description="Bucket name (required if backend='s3')",
    )
    region: str = Field(default="us-east-1", description="Bucket region")
    endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom S3 endpoint (e.g. a hosted storage gateway's S3 API)",
    )
    list_limit: int = Field(
        default=1000,
        description="Maximum number of objects returned by a single listing",
    )

    @field_validator("list_limit")
    @classmethod
    def validate_list_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("list_limit must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_bucket(self) -> "StorageConfig":
        if self.backend == "s3" and not self.bucket:
            raise ValueError("S3 backend requires bucket to be configured")
        return self


class AlignmentConfig(BaseModel):
    """Policy knobs for audit, repair, upload and cleanup."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    path_prefix: str = Field(
        default="books/",
        description="Folder prefix that recorded paths may or may not carry",
    )
    upload_prefix: str = Field(
        default="",
        description="Prefix prepended to generated upload keys",
    )
    match_tail: bool = Field(
        default=False,
        description="Accept a terminal-segment match when resolving paths",
    )
    placeholder_markers: List[str] = Field(
        default=["placeholder", "temp"],
        description="Substrings marking placeholder/temporary paths (case-insensitive)",
    )
    temp_extensions: List[str] = Field(
        default=[".tmp"],
        description="Object name suffixes treated as temporary files",
    )
    remote_timeout_s: float = Field(
        default=10.0,
        description="Timeout for each catalog/store call in seconds",
    )
    signed_url_ttl_s: int = Field(
        default=3600,
        description="Lifetime of signed access URLs in seconds",
    )

    @field_validator("path_prefix")
    @classmethod
    def validate_path_prefix(cls, v: str) -> str:
        if not v:
            raise ValueError("path_prefix must not be empty")
        return v if v.endswith("/") else v + "/"

    @field_validator("placeholder_markers", "temp_extensions")
    @classmethod
    def lowercase_markers(cls, v: List[str]) -> List[str]:
        return [item.lower() for item in v if item]

    @field_validator("remote_timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("remote_timeout_s must be > 0")
        return v

    @field_validator("signed_url_ttl_s")
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        if v < 1:
            raise ValueError("signed_url_ttl_s must be >= 1")
        return v


class LoggingConfig(BaseModel):
    """Console and file logging configuration."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    level: str = Field(default="INFO", description="Log level for the library logger")
    json_file: Optional[str] = Field(
        default=None,
        description="Path of a rotating JSON-lines log file (disabled when unset)",
    )
    max_log_size_mb: float = Field(default=10.0, description="Rotate the JSON log at this size")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level


class LibraryConfig(BaseModel):
    """Top-level configuration for the e-book library backend."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    catalog: CatalogConfig = Field(default_factory=CatalogConfig, description="Catalog database")
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Blob store")
    alignment: AlignmentConfig = Field(
        default_factory=AlignmentConfig, description="Alignment policy"
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging")

    def config_hash(self) -> str:
        """
        Compute deterministic SHA256 hash of config for reproducibility.

        Returns:
            Hex-encoded SHA256 hash of normalized config JSON.
        """
        import hashlib
        import json

        normalized = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(normalized.encode()).hexdigest()
