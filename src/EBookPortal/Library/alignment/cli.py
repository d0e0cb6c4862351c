"""CLI commands for catalog/storage alignment.

Provides 8 commands:
  - audit: Compare active books against the store
  - repair: Rewrite mismatched catalog paths (dry-run by default)
  - cleanup: Remove placeholder rows and temporary objects (dry-run by default)
  - validate: Strict exact-path check of active books
  - upload: Upload a book file and register it
  - resolve: Show where a recorded path actually lives
  - signed-url: Produce a time-limited URL for a recorded path
  - download: Produce a download URL for a book and count the download
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from EBookPortal.Library.alignment.bootstrap import LibraryBootstrap
from EBookPortal.Library.alignment.models import AuditReport, UploadMetadata
from EBookPortal.Library.config import LibraryConfig, load_config
from EBookPortal.Library.logging_config import setup_logging

logger = logging.getLogger(__name__)
app = typer.Typer(help="E-book catalog/storage alignment commands")


def _config_option():
    return typer.Option(None, "--config", "-c", help="Config file path (YAML/JSON)")


def _load(config_path: Optional[str]) -> LibraryConfig:
    config = load_config(path=config_path) if config_path else load_config()
    setup_logging(config.logging)
    return config


def _echo_summary(report: AuditReport) -> None:
    s = report.summary
    typer.echo(f"Books:           {s.total_books}")
    typer.echo(f"Accessible:      {s.accessible_files}")
    typer.echo(f"Path mismatches: {s.path_mismatches}")
    typer.echo(f"Missing files:   {s.missing_files}")
    typer.echo(f"Storage objects: {len(report.storage_files)}")


@app.command()
def audit(
    config_path: Optional[str] = _config_option(),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
) -> None:
    """Audit active books against the blob store."""
    try:
        config = _load(config_path)
        with LibraryBootstrap(config) as bootstrap:
            report = asyncio.run(bootstrap.service.audit())
    except Exception as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
        return

    _echo_summary(report)
    for entry in report.mismatches:
        if entry.suggested_path:
            typer.echo(f"  ~ {entry.title}: {entry.database_path} -> {entry.suggested_path}")
        else:
            typer.echo(f"  ✗ {entry.title}: {entry.database_path} (missing)")
    if report.is_aligned:
        typer.echo("✓ Catalog and storage are aligned")


@app.command()
def repair(
    config_path: Optional[str] = _config_option(),
    dry_run: bool = typer.Option(True, "--dry-run/--apply", help="Dry-run mode (default: true)"),
) -> None:
    """Fix catalog paths that point to an alternative spelling of a stored file.

    Use --dry-run to preview, then --apply to execute and re-audit.
    """
    try:
        config = _load(config_path)
        with LibraryBootstrap(config) as bootstrap:
            service = bootstrap.service
            if dry_run:
                report = asyncio.run(service.audit())
                fixable = report.path_mismatches
                for entry in fixable:
                    typer.echo(f"  ~ {entry.title}: {entry.database_path} -> {entry.suggested_path}")
                typer.echo(f"✓ would fix {len(fixable)} paths ({report.summary.missing_files} missing)")
                return
            result, after = asyncio.run(service.reconcile())
    except Exception as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)

    for message in result.errors:
        typer.echo(f"  ✗ {message}", err=True)
    typer.echo(f"✓ fixed {result.fixed} paths ({result.failed} failed, {result.skipped} skipped)")
    _echo_summary(after)
    if result.failed:
        raise typer.Exit(1)


@app.command()
def cleanup(
    config_path: Optional[str] = _config_option(),
    dry_run: bool = typer.Option(True, "--dry-run/--apply", help="Dry-run mode (default: true)"),
) -> None:
    """Remove placeholder catalog rows and temporary storage objects."""
    try:
        config = _load(config_path)
        with LibraryBootstrap(config) as bootstrap:
            result = asyncio.run(bootstrap.service.cleanup_placeholders(dry_run=dry_run))
    except Exception as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)

    for message in result.errors:
        typer.echo(f"  ✗ {message}", err=True)
    action = "would remove" if dry_run else "removed"
    typer.echo(f"✓ {action} {result.cleaned} books and {result.removed_objects} files")
    if result.errors:
        raise typer.Exit(1)


@app.command()
def validate(config_path: Optional[str] = _config_option()) -> None:
    """Check that every active book has a file at exactly its recorded path."""
    try:
        config = _load(config_path)
        with LibraryBootstrap(config) as bootstrap:
            result = asyncio.run(bootstrap.service.validate_active_books())
    except Exception as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)

    for issue in result.issues:
        typer.echo(f"  ✗ {issue}")
    typer.echo(f"Valid: {result.valid}  Invalid: {result.invalid}")
    if not result.ok:
        raise typer.Exit(1)
    typer.echo("✓ All active books have files")


@app.command()
def upload(
    file_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to upload"),
    title: str = typer.Option(..., "--title", help="Book title"),
    subject_id: str = typer.Option(..., "--subject-id", help="Subject identifier"),
    author: Optional[str] = typer.Option(None, "--author", help="Author"),
    description: Optional[str] = typer.Option(None, "--description", help="Description"),
    config_path: Optional[str] = _config_option(),
) -> None:
    """Upload a book file and register it in the catalog."""
    metadata = UploadMetadata(
        title=title, subject_id=subject_id, author=author, description=description
    )
    try:
        config = _load(config_path)
        data = file_path.read_bytes()
        with LibraryBootstrap(config) as bootstrap:
            record = asyncio.run(bootstrap.service.upload(data, file_path.name, metadata))
    except Exception as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"✓ uploaded {record.title!r} as {record.file_path} (id {record.id})")


@app.command()
def resolve(
    recorded_path: str = typer.Argument(..., help="Path as recorded in the catalog"),
    match_tail: bool = typer.Option(False, "--match-tail", help="Accept terminal-segment matches"),
    config_path: Optional[str] = _config_option(),
) -> None:
    """Show which stored object a recorded path resolves to."""
    try:
        config = _load(config_path)
        with LibraryBootstrap(config) as bootstrap:
            listing = asyncio.run(bootstrap.store.list_objects())
            result = bootstrap.service.resolve(recorded_path, listing, match_tail=match_tail)
    except Exception as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)

    if not result.exists:
        typer.echo(f"✗ {recorded_path} not found in storage")
        raise typer.Exit(1)
    typer.echo(f"✓ {recorded_path} -> {result.actual_path}")


@app.command("signed-url")
def signed_url(
    recorded_path: str = typer.Argument(..., help="Path as recorded in the catalog"),
    expires: Optional[int] = typer.Option(None, "--expires", help="Lifetime in seconds"),
    config_path: Optional[str] = _config_option(),
) -> None:
    """Print a time-limited URL for a recorded path."""
    try:
        config = _load(config_path)
        with LibraryBootstrap(config) as bootstrap:
            url = asyncio.run(bootstrap.service.signed_url(recorded_path, expires))
    except Exception as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(url)


@app.command()
def download(
    book_id: str = typer.Argument(..., help="Catalog id of the book"),
    expires: Optional[int] = typer.Option(None, "--expires", help="Lifetime in seconds"),
    config_path: Optional[str] = _config_option(),
) -> None:
    """Print a download URL for a book and count the download."""
    try:
        config = _load(config_path)
        with LibraryBootstrap(config) as bootstrap:
            url = asyncio.run(bootstrap.service.download_url(book_id, expires))
    except Exception as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(url)


if __name__ == "__main__":
    app()
