"""Unified CLI entrypoint for clipflow."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from clipflow.app import ClipflowApp, build_app
from clipflow.cli import models, state
from clipflow.cli.ui import (
    console,
    display_files_table,
    display_processing_summary,
    display_settings_panel,
    format_progress,
)
from clipflow.config import setup_logging
from clipflow.database import DuckDBKeyValueStore
from clipflow.exceptions import StorageError
from clipflow.models import QueueStats
from clipflow.settings import Settings

LOGGER = logging.getLogger(__name__)

app = typer.Typer(
    name="clipflow",
    help="Transcribe and summarize every media file in a directory tree",
    add_completion=False,
)

app.add_typer(state.app, name="state")
app.add_typer(models.app, name="models")


async def _process(settings: Settings, storage: DuckDBKeyValueStore, directory: Path | None, watch: bool) -> bool:
    """Open the directory, work through both queues and print the results.

    Returns:
        False when no directory could be opened
    """
    status = console.status("Scanning media directory...")
    clipflow: ClipflowApp | None = None

    def on_stats_change(_name: str, _stats: QueueStats) -> None:
        if clipflow is None:
            return
        queues = clipflow.queues
        status.update(
            format_progress(
                queues.transcription.get_stats(),
                queues.summarization.get_stats(),
                queues.overall_progress,
            )
        )

    clipflow = build_app(settings, storage, on_stats_change=on_stats_change)
    try:
        with status:
            opened = await clipflow.start(directory)
            if not opened:
                message = clipflow.library.error or "No media directory selected"
                console.print(f"[red]Error:[/red] {message}")
                return False

            display_settings_panel(settings, clipflow.library.root_path or "")
            if watch:
                status.update("Watching for changes (Ctrl+C to stop)...")
                await asyncio.Event().wait()
            await clipflow.run_until_idle()

        files = clipflow.library.get_all_files()
        display_files_table(files, clipflow.library.root_path)
        display_processing_summary(files)
        return True
    finally:
        await clipflow.close()


@app.command()
def run(
    directory: Annotated[
        Path | None,
        typer.Argument(help="Media directory to process. Defaults to the directory used last time."),
    ] = None,
    watch: Annotated[bool, typer.Option("--watch/--no-watch", help="Keep running and pick up new files")] = False,
    db: Annotated[Path | None, typer.Option("--db", help="DuckDB file to use instead of the default")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """Transcribe pending files, then summarize every finished transcript."""
    setup_logging(force=verbose, level_name="DEBUG" if verbose else None)

    try:
        settings = Settings.from_env()
    except ValueError as e:
        console.print(f"[red]Invalid settings:[/red] {e}")
        raise typer.Exit(1)

    try:
        storage = DuckDBKeyValueStore(db)
    except StorageError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    try:
        ok = asyncio.run(_process(settings, storage, directory, watch))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted, progress saved[/yellow]")
        raise typer.Exit(130)
    finally:
        storage.close()

    if not ok:
        raise typer.Exit(1)


def main() -> NoReturn:
    """Main entrypoint for clipflow CLI."""
    app()
    raise SystemExit(0)


if __name__ == "__main__":
    main()
