"""Commands for managing the local Whisper models."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table

from clipflow.cli.ui import console
from clipflow.exceptions import ModelDownloadError
from clipflow.jobs.transcription import format_file_size
from clipflow.services.whisper_engine import MODEL_REPOS, WhisperEngine

app = typer.Typer(name="models", help="List, download and delete local Whisper models")

ModelArgument = Annotated[str, typer.Argument(help=f"Model id, one of: {', '.join(MODEL_REPOS)}")]


def _check_model(model: str) -> None:
    if model not in MODEL_REPOS:
        console.print(f"[red]Error:[/red] Unknown model '{model}'. Choose one of: {', '.join(MODEL_REPOS)}")
        raise typer.Exit(1)


@app.command("list")
def list_models() -> None:
    """Show every offered model and whether it is downloaded."""
    table = Table(title="Whisper Models")
    table.add_column("Model", style="cyan")
    table.add_column("Repository")
    table.add_column("Installed")
    table.add_column("Size", justify="right")

    for status in WhisperEngine().models_status():
        installed = "[green]yes[/green]" if status.installed else "[dim]no[/dim]"
        size = format_file_size(status.size_on_disk) if status.installed else "-"
        table.add_row(status.id, status.repo_id, installed, size)

    console.print(table)


@app.command()
def download(model: ModelArgument) -> None:
    """Download a model into the Hugging Face cache."""
    _check_model(model)
    try:
        path = WhisperEngine().download_model(model)
    except ModelDownloadError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]Downloaded {model}[/green] to {path}")


@app.command()
def delete(
    model: ModelArgument,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Delete a downloaded model from the Hugging Face cache."""
    _check_model(model)
    engine = WhisperEngine()
    if not engine.is_model_installed(model):
        console.print(f"[yellow]Model {model} is not installed[/yellow]")
        return
    if not yes:
        typer.confirm(f"Delete model {model}?", abort=True)
    freed = engine.delete_model(model)
    console.print(f"[green]Deleted {model}[/green] ({format_file_size(freed)} freed)")
