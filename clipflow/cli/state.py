"""Commands for inspecting and editing the persisted status map."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from clipflow.cli.ui import console, display_records_table
from clipflow.database import DuckDBKeyValueStore
from clipflow.exceptions import StorageError
from clipflow.status_store import FileStatusStore

app = typer.Typer(name="state", help="Inspect and reset stored file statuses")

DbOption = Annotated[Path | None, typer.Option("--db", help="DuckDB file to use instead of the default")]


def _open_store(db_path: Path | None) -> tuple[DuckDBKeyValueStore, FileStatusStore]:
    try:
        storage = DuckDBKeyValueStore(db_path)
    except StorageError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    store = FileStatusStore(storage, save_delay=0)
    store.load()
    return storage, store


@app.command()
def show(db: DbOption = None) -> None:
    """Show the remembered directory and every stored status."""
    storage, store = _open_store(db)
    try:
        if store.root_path is None and len(store) == 0:
            console.print("[yellow]No stored statuses[/yellow]")
            raise typer.Exit(0)
        console.print(f"[bold]Directory:[/bold] {store.root_path or 'N/A'}")
        display_records_table(store.records)
    finally:
        store.close()
        storage.close()


@app.command()
def reset(db: DbOption = None) -> None:
    """Reset completed and failed files so the next run transcribes them again."""
    storage, store = _open_store(db)
    try:
        count = store.reset_all_terminal()
        console.print(f"Reset {count} file(s) to pending")
    finally:
        store.close()
        storage.close()


@app.command()
def retranscribe(
    paths: Annotated[list[Path], typer.Argument(help="Media files to transcribe again")],
    db: DbOption = None,
) -> None:
    """Mark files for transcription on the next run, dropping their transcript and summary."""
    storage, store = _open_store(db)
    try:
        resolved = [str(path.expanduser().resolve()) for path in paths]
        known = [path for path in resolved if path in store]
        unknown = [path for path in resolved if path not in store]
        for path in unknown:
            console.print(f"[yellow]No stored status for {path}[/yellow]")
        store.retranscribe_all(known)
        console.print(f"Marked {len(known)} file(s) for retranscription")
    finally:
        store.close()
        storage.close()


@app.command()
def clear(
    db: DbOption = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Forget the remembered directory and every stored status."""
    if not yes:
        typer.confirm("Delete all stored statuses?", abort=True)
    storage, store = _open_store(db)
    try:
        store.clear()
        console.print("[green]Cleared stored statuses[/green]")
    finally:
        store.close()
        storage.close()
