"""Wiring of the store, library, queues and orchestrators into one runtime.

Any change to the status map or the tree re-runs scheduling, so finished
transcriptions flow straight into summarization and new files on disk are
picked up without a separate trigger.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from clipflow.jobs import SummarizationOrchestrator, TranscriptionOrchestrator
from clipflow.library import MediaLibrary
from clipflow.models import FolderEntry, QueueStats, StatusMap
from clipflow.services.factory import ServiceFactory
from clipflow.services.interfaces import KeyValueStore
from clipflow.settings import LanguageMemory, Settings
from clipflow.status_store import FileStatusStore
from clipflow.task_queue import (
    SUMMARIZATION_CONCURRENCY,
    TRANSCRIPTION_CONCURRENCY,
    QueuePair,
    TaskQueue,
)

LOGGER = logging.getLogger(__name__)

StatsListener = Callable[[str, QueueStats], None]


class ClipflowApp:
    """Runtime for one media directory: restore, schedule, run and persist."""

    def __init__(
        self,
        settings: Settings,
        store: FileStatusStore,
        library: MediaLibrary,
        queues: QueuePair,
        transcription: TranscriptionOrchestrator,
        summarization: SummarizationOrchestrator,
        *,
        closables: list[Any] | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.library = library
        self.queues = queues
        self.transcription = transcription
        self.summarization = summarization
        self._closables = closables or []
        self._unsubscribers: list[Callable[[], None]] = []

    async def start(self, directory: str | Path | None = None) -> bool:
        """Restore persisted state, apply a language change, and start scheduling.

        Args:
            directory: Directory to open. None (or the stored directory) restores
                the previous session; anything else replaces it.

        Returns:
            Whether a directory is open afterwards
        """
        self.store.load()
        self.transcription.apply_language_change()
        self._unsubscribers.append(self.store.subscribe(self._on_statuses_changed))
        self._unsubscribers.append(self.library.subscribe(self._on_tree_changed))

        target = str(Path(directory).expanduser().resolve()) if directory is not None else None
        if target is None or target == self.store.root_path:
            await self.library.initialize()
        else:
            await self.library.set_root_directory(target)
        self.schedule()
        return self.library.root_folder is not None

    async def open_directory(self, path: str | Path) -> bool:
        """Switch to a directory. Returns False when it could not be opened."""
        await self.library.set_root_directory(str(Path(path).expanduser().resolve()))
        return self.library.root_folder is not None

    def schedule(self) -> tuple[int, int]:
        """Queue every file that needs transcription or summarization.

        Returns:
            Numbers of transcription and summarization jobs queued
        """
        files = self.library.get_all_files()
        if not files:
            return 0, 0
        return self.transcription.schedule(files), self.summarization.schedule(files)

    async def run_until_idle(self) -> None:
        """Wait until both queues are drained, including follow-up summaries."""
        await self.queues.drain()
        self.store.flush()

    async def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        await self.library.close()
        self.store.close()
        for resource in self._closables:
            await resource.aclose()

    def _on_statuses_changed(self, _records: StatusMap) -> None:
        self.schedule()

    def _on_tree_changed(self, _root: FolderEntry | None) -> None:
        self.schedule()


def build_app(
    settings: Settings,
    storage: KeyValueStore | None = None,
    *,
    on_stats_change: StatsListener | None = None,
) -> ClipflowApp:
    """Assemble the runtime from concrete services.

    Args:
        settings: Provider and timing settings
        storage: Durable key-value storage; defaults to the DuckDB store
        on_stats_change: Called with ("transcription" | "summarization", stats)
    """
    storage = storage if storage is not None else ServiceFactory.create_storage()
    store = FileStatusStore(storage, save_delay=settings.save_delay)
    library = MediaLibrary(
        store,
        ServiceFactory.create_scanner(),
        ServiceFactory.create_watcher(settings.poll_interval),
    )

    def _forward(name: str) -> Callable[[QueueStats], None] | None:
        if on_stats_change is None:
            return None
        return lambda stats: on_stats_change(name, stats)

    queues = QueuePair(
        TaskQueue(TRANSCRIPTION_CONCURRENCY, _forward("transcription"), name="transcription"),
        TaskQueue(SUMMARIZATION_CONCURRENCY, _forward("summarization"), name="summarization"),
    )

    credentials = ServiceFactory.create_credentials()
    ollama = ServiceFactory.create_ollama()
    openai = ServiceFactory.create_openai(credentials)
    summarizers = ServiceFactory.create_summarizers(credentials, ollama, openai)

    transcription = TranscriptionOrchestrator(
        store,
        queues.transcription,
        settings,
        credentials=credentials,
        local=ServiceFactory.create_local_transcriber(),
        cloud=openai,
        language_memory=LanguageMemory(storage),
    )
    summarization = SummarizationOrchestrator(
        store,
        queues.summarization,
        settings,
        summarizers=summarizers,
        credentials=credentials,
        ollama=ollama,
    )

    closables: list[Any] = [ollama, *(s for s in summarizers.values() if s is not ollama)]
    return ClipflowApp(settings, store, library, queues, transcription, summarization, closables=closables)
