"""UI utilities for CLI commands using Rich."""

from __future__ import annotations

from typing import Iterable, Mapping

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from clipflow.models import FileEntry, QueueStats, StatusRecord
from clipflow.settings import Settings

console = Console()

_STATUS_STYLES = {
    "pending": "dim",
    "extracting": "cyan",
    "transcribing": "blue",
    "summarizing": "blue",
    "completed": "green",
    "error": "red",
}


def _styled(status: str | None) -> str:
    if status is None:
        return "-"
    style = _STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def display_settings_panel(settings: Settings, directory: str) -> None:
    """Display the directory and provider choices for this run.

    Args:
        settings: Active settings
        directory: Root directory being processed
    """
    config_table = Table.grid(padding=(0, 2))
    config_table.add_row("[bold]Directory:[/bold]", directory)
    config_table.add_row("[bold]Transcription:[/bold]", settings.transcription_provider)
    if settings.transcription_provider == "local":
        config_table.add_row("[bold]Whisper model:[/bold]", settings.whisper_model)
    else:
        config_table.add_row("[bold]Whisper model:[/bold]", settings.openai_whisper_model)
    config_table.add_row("[bold]Language:[/bold]", settings.transcription_language)
    config_table.add_row("[bold]Summaries:[/bold]", settings.llm_provider)

    console.print("\n[bold]Clipflow Configuration[/bold]")
    console.print(Panel(config_table, border_style="blue", padding=(0, 1)))
    console.print()


def format_progress(transcription: QueueStats, summarization: QueueStats, overall: int) -> str:
    """One-line progress text for the live status spinner."""
    return (
        f"[bold]{overall}%[/bold]  "
        f"transcribing {transcription.active} (queued {transcription.pending})  "
        f"summarizing {summarization.active} (queued {summarization.pending})"
    )


def display_files_table(files: Iterable[FileEntry], root: str | None = None) -> None:
    """Display per-file transcription and summary status.

    Args:
        files: Files to list, in tree order
        root: Common prefix stripped from paths for readability
    """
    table = Table(title="Media Files", show_lines=False)
    table.add_column("File", overflow="fold")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Summary")
    table.add_column("Error", overflow="fold", style="red")

    prefix = f"{root.rstrip('/')}/" if root else ""
    for file in files:
        name = file.path[len(prefix) :] if prefix and file.path.startswith(prefix) else file.path
        table.add_row(
            name,
            _styled(file.status),
            f"{file.progress}%",
            _styled(file.summary_status),
            file.error or file.summary_error or "",
        )
    console.print(table)


def display_records_table(records: Mapping[str, StatusRecord]) -> None:
    """Display stored status records without scanning the directory."""
    table = Table(title="Stored Statuses")
    table.add_column("Path", overflow="fold")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Summary")
    table.add_column("Error", overflow="fold", style="red")

    for path in sorted(records):
        record = records[path]
        table.add_row(
            path,
            _styled(record.status),
            f"{record.progress}%",
            _styled(record.summary_status),
            record.error or record.summary_error or "",
        )
    console.print(table)


def display_processing_summary(files: list[FileEntry]) -> None:
    """Display counts of finished and failed work.

    Args:
        files: Every file in the directory, with merged statuses
    """
    transcribed = sum(1 for file in files if file.status == "completed")
    failed = sum(1 for file in files if file.status == "error")
    summarized = sum(1 for file in files if file.summary_status == "completed")
    summary_failed = sum(1 for file in files if file.summary_status == "error")

    console.print()
    summary_table = Table.grid(padding=(0, 2))
    summary_table.add_row("[bold]Files found:[/bold]", str(len(files)))
    summary_table.add_row("[bold]Transcribed:[/bold]", f"[green]{transcribed}[/green]")
    summary_table.add_row("[bold]Transcription failed:[/bold]", f"[red]{failed}[/red]")
    summary_table.add_row("[bold]Summarized:[/bold]", f"[green]{summarized}[/green]")
    summary_table.add_row("[bold]Summary failed:[/bold]", f"[red]{summary_failed}[/red]")

    console.print("[bold]Processing Summary[/bold]")
    console.print(Panel(summary_table, border_style="green", padding=(0, 1)))
