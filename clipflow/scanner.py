"""Filesystem scanning and poll-based change watching for the media directory."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Final

from clipflow.exceptions import ScanError
from clipflow.models import FileChangeEvent, RawNode
from clipflow.services.interfaces import ChangeCallback

LOGGER = logging.getLogger(__name__)

VIDEO_EXTENSIONS: Final = frozenset({"mp4", "mkv", "avi", "mov", "webm", "flv", "wmv"})
AUDIO_EXTENSIONS: Final = frozenset({"mp3", "wav", "m4a", "flac", "aac", "ogg", "wma"})
SUPPORTED_EXTENSIONS: Final = VIDEO_EXTENSIONS | AUDIO_EXTENSIONS

DEFAULT_POLL_INTERVAL: Final = 2.0

Snapshot = dict[str, tuple[int, int]]


def media_extension(name: str) -> str | None:
    """Lower-cased extension without the dot, or None when there is none."""
    suffix = Path(name).suffix
    return suffix[1:].lower() if suffix else None


def is_supported_media(name: str) -> bool:
    return media_extension(name) in SUPPORTED_EXTENSIONS


def _sort_key(node: RawNode) -> tuple[bool, str, str]:
    return (not node.is_dir, node.name.casefold(), node.name)


def _file_node(entry: os.DirEntry[str]) -> RawNode | None:
    try:
        st = entry.stat()
    except OSError as e:
        LOGGER.debug("Skipping unreadable file %s: %s", entry.path, e)
        return None
    return RawNode(
        path=entry.path,
        name=entry.name,
        is_dir=False,
        size=st.st_size,
        modified=int(st.st_mtime),
        extension=media_extension(entry.name),
    )


def _list_children(directory: Path) -> tuple[RawNode, ...]:
    """Scan one directory level, recursing into subdirectories.

    Raises OSError when directory itself cannot be listed.
    """
    children: list[RawNode] = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if entry.name.startswith("."):
                continue
            try:
                # Directory symlinks are not followed to keep cyclic links from recursing forever
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue

            if is_dir:
                node = _directory_node(Path(entry.path))
                # Folders without any media below them are dropped
                if node is not None and node.children:
                    children.append(node)
            elif is_supported_media(entry.name):
                file_node = _file_node(entry)
                if file_node is not None:
                    children.append(file_node)

    children.sort(key=_sort_key)
    return tuple(children)


def _directory_node(directory: Path) -> RawNode | None:
    try:
        children = _list_children(directory)
        modified = int(directory.stat().st_mtime)
    except OSError as e:
        LOGGER.warning("Skipping unreadable directory %s: %s", directory, e)
        return None
    return RawNode(path=str(directory), name=directory.name, is_dir=True, modified=modified, children=children)


def scan_tree(path: str | Path) -> RawNode:
    """Scan path recursively into a tree of media files.

    Hidden entries are skipped, only supported media files are kept, and
    folders without media are dropped. The root is always returned, even
    when it contains nothing.

    Args:
        path: Root directory to scan

    Returns:
        Root node with sorted children (directories first, then by name)

    Raises:
        ScanError: If the root does not exist, is not a directory or cannot be read
    """
    root = Path(path).expanduser()
    if not root.exists():
        raise ScanError(f"Directory does not exist: {root}")
    if not root.is_dir():
        raise ScanError(f"Not a directory: {root}")

    try:
        children = _list_children(root)
        modified = int(root.stat().st_mtime)
    except OSError as e:
        raise ScanError(f"Failed to read directory {root}: {e}") from e

    return RawNode(path=str(root), name=root.name or str(root), is_dir=True, modified=modified, children=children)


class FileSystemScanner:
    """DirectoryScanner backed by os.scandir, run in a worker thread."""

    async def scan(self, path: str) -> RawNode:
        return await asyncio.to_thread(scan_tree, path)


def take_snapshot(root: str | Path) -> Snapshot:
    """Map every visible media file below root to its (size, mtime_ns)."""
    snapshot: Snapshot = {}
    pending = [Path(root)]
    while pending:
        directory = pending.pop()
        try:
            with os.scandir(directory) as entries:
                for entry in entries:
                    if entry.name.startswith("."):
                        continue
                    try:
                        if entry.is_dir(follow_symlinks=False):
                            pending.append(Path(entry.path))
                            continue
                        if not is_supported_media(entry.name):
                            continue
                        st = entry.stat()
                    except OSError:
                        continue
                    snapshot[entry.path] = (st.st_size, st.st_mtime_ns)
        except OSError:
            continue
    return snapshot


def diff_snapshots(before: Snapshot, after: Snapshot) -> list[FileChangeEvent]:
    """Describe how after differs from before, sorted by path within each kind."""
    events = [FileChangeEvent("Created", path) for path in sorted(after.keys() - before.keys())]
    events.extend(
        FileChangeEvent("Modified", path)
        for path in sorted(after.keys() & before.keys())
        if after[path] != before[path]
    )
    events.extend(FileChangeEvent("Removed", path) for path in sorted(before.keys() - after.keys()))
    return events


class PollingWatcher:
    """DirectoryWatcher that polls the tree and diffs stat snapshots.

    Only one directory is watched at a time; watch() replaces any previous watch.
    """

    def __init__(self, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self.poll_interval = poll_interval
        self._callbacks: list[ChangeCallback] = []
        self._task: asyncio.Task[None] | None = None
        self._path: str | None = None

    @property
    def watched_path(self) -> str | None:
        return self._path

    def on_change(self, callback: ChangeCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    async def watch(self, path: str) -> None:
        await self.stop()
        baseline = await asyncio.to_thread(take_snapshot, path)
        self._path = path
        self._task = asyncio.get_running_loop().create_task(self._poll(path, baseline), name=f"watch:{path}")
        LOGGER.info("Watching %s for changes (every %.1fs)", path, self.poll_interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        LOGGER.debug("Stopped watching %s", self._path)
        self._path = None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll(self, path: str, snapshot: Snapshot) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            current = await asyncio.to_thread(take_snapshot, path)
            events = diff_snapshots(snapshot, current)
            snapshot = current
            for event in events:
                LOGGER.debug("File %s: %s", event.kind.lower(), event.path)
                self._emit(event)

    def _emit(self, event: FileChangeEvent) -> None:
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:  # noqa: BLE001 - a failing listener must not stop the watch loop
                LOGGER.exception("File change listener failed for %s", event.path)
