"""The active media directory: scanned tree, selection, and the change watcher."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Final

from clipflow.models import FileChangeEvent, FileEntry, FolderEntry
from clipflow.services.interfaces import DirectoryScanner, DirectoryWatcher
from clipflow.status_store import FileStatusStore
from clipflow.tree import (
    build_tree,
    collect_file_paths,
    count_files,
    find_file,
    list_all_files,
    list_visible_files,
    merge_status,
)
from clipflow.tree import toggle_folder as toggle_tree_folder

LOGGER = logging.getLogger(__name__)

RESTORE_FAILED_MESSAGE: Final = "Previously selected directory is no longer accessible"

TreeListener = Callable[[FolderEntry | None], None]


class MediaLibrary:
    """Owns the selected root directory and keeps its tree in sync with disk.

    Statuses live in the FileStatusStore; the tree only carries a copy taken
    at scan time. File accessors merge the live status map back in.
    """

    def __init__(self, store: FileStatusStore, scanner: DirectoryScanner, watcher: DirectoryWatcher) -> None:
        self.store = store
        self.scanner = scanner
        self.watcher = watcher

        self.root_folder: FolderEntry | None = None
        self.selected_file_id: str | None = None
        self.is_loading = False
        self.error: str | None = None

        self._listeners: list[TreeListener] = []
        self._unsubscribe_watcher: Callable[[], None] | None = None
        self._refresh_task: asyncio.Task[None] | None = None
        self._refresh_requested = False

    @property
    def root_path(self) -> str | None:
        return self.store.root_path

    def subscribe(self, listener: TreeListener) -> Callable[[], None]:
        """Call listener with the new root folder whenever the tree is rebuilt or cleared."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --- lifecycle -----------------------------------------------------

    async def initialize(self) -> None:
        """Restore the directory remembered in the store.

        Statuses for files that disappeared since the last run are pruned.
        If the directory cannot be scanned any more, the stored root path and
        statuses are forgotten.
        """
        root_path = self.store.root_path
        if not root_path:
            return

        LOGGER.info("Restoring media directory: %s", root_path)
        self.is_loading = True
        try:
            raw = await self.scanner.scan(root_path)
            self.store.prune(collect_file_paths(raw))
            self.root_folder = build_tree(raw, self.store.records)
            await self._start_watching(root_path)
            self.error = None
        except OSError as e:
            LOGGER.error("Failed to restore directory %s: %s", root_path, e)
            await self._stop_watching()
            self.store.clear()
            self.root_folder = None
            self.error = RESTORE_FAILED_MESSAGE
        finally:
            self.is_loading = False
        self._notify()

    async def set_root_directory(self, path: str) -> None:
        """Switch to a new directory: stop the old watch, scan, build the tree and watch.

        On failure the root path and tree are both cleared, never left pointing
        at the previous directory.
        """
        self.is_loading = True
        try:
            await self._stop_watching()
            self.store.set_root_path(path)
            raw = await self.scanner.scan(path)
            self.store.prune(collect_file_paths(raw))
            self.root_folder = build_tree(raw, self.store.records)
            self.selected_file_id = None
            await self._start_watching(path)
            self.error = None
            LOGGER.info("Opened %s (%d media files)", path, count_files(self.root_folder))
        except OSError as e:
            LOGGER.error("Failed to open directory %s: %s", path, e)
            await self._stop_watching()
            self.store.set_root_path(None)
            self.root_folder = None
            self.error = str(e) or "Failed to set directory"
        finally:
            self.is_loading = False
        self._notify()

    async def refresh(self) -> None:
        """Rescan the current directory. A failed scan keeps the previous tree."""
        root_path = self.store.root_path
        if not root_path:
            return

        self.is_loading = True
        try:
            raw = await self.scanner.scan(root_path)
            self.root_folder = build_tree(raw, self.store.records)
            self.error = None
        except OSError as e:
            LOGGER.warning("Failed to rescan %s: %s", root_path, e)
            self.error = str(e) or "Failed to scan directory"
            return
        finally:
            self.is_loading = False
        self._notify()

    async def clear_root_directory(self) -> None:
        """Stop watching and forget the directory together with every status."""
        await self._stop_watching()
        self.store.clear()
        self.root_folder = None
        self.selected_file_id = None
        self.error = None
        self._notify()

    async def close(self) -> None:
        await self._stop_watching()
        task, self._refresh_task = self._refresh_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._listeners.clear()

    # --- tree access ---------------------------------------------------

    def toggle_folder(self, folder_id: str) -> None:
        if self.root_folder is None:
            return
        self.root_folder = toggle_tree_folder(self.root_folder, folder_id)

    def select_file(self, path: str | None) -> None:
        self.selected_file_id = path

    def get_selected_file(self) -> FileEntry | None:
        if self.selected_file_id is None or self.root_folder is None:
            return None
        file = find_file(self.root_folder, self.selected_file_id)
        if file is None:
            return None
        return merge_status(file, self.store.records)

    def get_all_files(self) -> list[FileEntry]:
        if self.root_folder is None:
            return []
        records = self.store.records
        return [merge_status(file, records) for file in list_all_files(self.root_folder)]

    def get_visible_files(self) -> list[FileEntry]:
        if self.root_folder is None:
            return []
        records = self.store.records
        return [merge_status(file, records) for file in list_visible_files(self.root_folder)]

    # --- watching ------------------------------------------------------

    async def _start_watching(self, path: str) -> None:
        await self.watcher.watch(path)
        self._unsubscribe_watcher = self.watcher.on_change(self._on_file_change)

    async def _stop_watching(self) -> None:
        if self._unsubscribe_watcher is not None:
            self._unsubscribe_watcher()
            self._unsubscribe_watcher = None
        await self.watcher.stop()

    def _on_file_change(self, event: FileChangeEvent) -> None:
        LOGGER.info("File change detected: %s %s", event.kind, event.path)
        if self._refresh_task is not None and not self._refresh_task.done():
            # One rescan covers a whole burst of events
            self._refresh_requested = True
            return
        self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_after_change())

    async def _refresh_after_change(self) -> None:
        while True:
            self._refresh_requested = False
            await self.refresh()
            if not self._refresh_requested:
                return

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.root_folder)
