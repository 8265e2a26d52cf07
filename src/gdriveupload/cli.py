"""CLI entry point for gdriveupload."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from gdriveupload.auth import CredentialStore
from gdriveupload.config import AppConfig, load_config
from gdriveupload.errors import GDriveUploadError
from gdriveupload.log import setup_logging
from gdriveupload.quota import get_quota
from gdriveupload.registry import AccountRegistry, build_registry
from gdriveupload.uploader import Uploader
from gdriveupload.util.units import format_bytes

logger = logging.getLogger("gdriveupload")

app = typer.Typer(help="Upload files to Google Drive accounts with copy retention.")

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="TOML config file; repeat to layer files (default: config.toml).",
)
VerboseOption = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")


def _open_registry(config_files: Optional[List[Path]]) -> AccountRegistry:
    config: AppConfig = load_config(*(config_files or []))
    store = CredentialStore(config.secret)
    return build_registry(
        config.accounts,
        store=store,
        callback_host_port=config.callback_host_port,
    )


@app.command()
def upload(
    file: Path = typer.Argument(..., help="Local file to upload."),
    account: Optional[str] = typer.Option(
        None, "--account", "-a", help="Account id (default: first enabled account)."
    ),
    config_files: Optional[List[Path]] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Upload FILE, pruning old copies and freeing trash if needed."""
    setup_logging(verbose)
    try:
        registry = _open_registry(config_files)
        result = Uploader(registry).upload_file(str(file), account)
    except GDriveUploadError as exc:
        logger.error("%s", exc)
        raise typer.Exit(1)

    typer.echo(f"{result.name} | {format_bytes(result.size)} | {result.location}")


@app.command()
def quota(
    config_files: Optional[List[Path]] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Show the storage quota of every enabled account."""
    setup_logging(verbose)
    try:
        registry = _open_registry(config_files)
        for handle in registry:
            q = get_quota(handle)
            typer.echo(
                f"{handle.id} | total {format_bytes(q.total_bytes)} | "
                f"used {format_bytes(q.used_bytes)} | free {format_bytes(q.free_bytes)} | "
                f"trash {format_bytes(q.used_in_trash_bytes)}"
            )
    except GDriveUploadError as exc:
        logger.error("%s", exc)
        raise typer.Exit(1)


def main() -> None:
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
