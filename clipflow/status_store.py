"""Authoritative map from file path to processing status, with durable persistence.

The map is never mutated in place: every operation builds a new dict and
swaps it in, then notifies subscribers. Snapshots handed out earlier stay
valid and unchanged.

The root path is written to storage immediately. The status map is written
through a debounce timer: each change cancels the pending write and schedules
a new one ``save_delay`` seconds out, so a burst of progress updates ends in
one write of the latest values.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from types import MappingProxyType
from typing import Any, Callable, Final, Iterable, Mapping

from clipflow.exceptions import StorageError
from clipflow.models import (
    FILE_STATUSES,
    IN_FLIGHT_STATUSES,
    SUMMARY_STATUSES,
    TERMINAL_STATUSES,
    FileStatus,
    StatusMap,
    StatusRecord,
    Summary,
    SummaryStatus,
    Transcript,
)
from clipflow.services.interfaces import KeyValueStore

LOGGER = logging.getLogger(__name__)

ROOT_PATH_KEY: Final = "clipflow.media-root-path"
FILE_STATUSES_KEY: Final = "clipflow.media-file-statuses"
DEFAULT_SAVE_DELAY: Final = 1.0

StatusListener = Callable[[StatusMap], None]


def _clamp_progress(progress: float) -> int:
    return max(0, min(100, round(progress)))


def _recover_interrupted(record: StatusRecord) -> StatusRecord:
    if record.status in IN_FLIGHT_STATUSES:
        record = replace(record, status="pending", progress=0, error=None)
    if record.summary_status == "summarizing":
        record = replace(record, summary_status="pending", summary_error=None)
    return record


class FileStatusStore:
    """Per-file status records keyed by absolute path."""

    def __init__(self, storage: KeyValueStore, *, save_delay: float = DEFAULT_SAVE_DELAY) -> None:
        """Create an empty store. Call load() to restore persisted state.

        Args:
            storage: Durable key-value storage for the two persisted entries
            save_delay: Debounce window in seconds for status-map writes
        """
        self._storage = storage
        self._save_delay = save_delay
        self._records: dict[str, StatusRecord] = {}
        self._root_path: str | None = None
        self._listeners: list[StatusListener] = []
        self._save_handle: asyncio.TimerHandle | None = None

    # --- reading -------------------------------------------------------

    @property
    def records(self) -> StatusMap:
        return MappingProxyType(self._records)

    @property
    def root_path(self) -> str | None:
        return self._root_path

    def get(self, path: str) -> StatusRecord | None:
        return self._records.get(path)

    def __contains__(self, path: object) -> bool:
        return path in self._records

    def __len__(self) -> int:
        return len(self._records)

    def load(self) -> None:
        """Restore root path and status map from storage.

        Best effort: unreadable or malformed data is logged and treated as absent.
        Work that was in flight when the previous run stopped goes back to
        pending, so the next scheduling pass picks it up again.
        """
        self._root_path = self._read_root_path()
        records = self._read_statuses()
        interrupted = 0
        for path, record in records.items():
            recovered = _recover_interrupted(record)
            if recovered is not record:
                records[path] = recovered
                interrupted += 1
        self._records = records
        LOGGER.debug("Loaded %d file statuses (root: %s)", len(self._records), self._root_path)
        if interrupted:
            LOGGER.info("Re-queued %d file(s) interrupted by the previous run", interrupted)

    def _read_root_path(self) -> str | None:
        try:
            return self._storage.get(ROOT_PATH_KEY)
        except StorageError as error:
            LOGGER.error("Failed to get stored root path: %s", error)
            return None

    def _read_statuses(self) -> dict[str, StatusRecord]:
        try:
            raw = self._storage.get(FILE_STATUSES_KEY)
        except StorageError as error:
            LOGGER.error("Failed to read stored file statuses: %s", error)
            return {}
        if not raw:
            return {}

        try:
            payload: Any = json.loads(raw)
            if not isinstance(payload, dict):
                raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
            return {str(path): StatusRecord.from_dict(data) for path, data in payload.items()}
        except (ValueError, TypeError, KeyError) as error:
            LOGGER.error("Failed to parse stored file statuses: %s", error)
            return {}

    # --- subscriptions -------------------------------------------------

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Call listener with the new map after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --- root path -----------------------------------------------------

    def set_root_path(self, path: str | None) -> None:
        """Remember the selected directory. Written to storage immediately."""
        if path == self._root_path:
            return
        self._root_path = path
        try:
            if path:
                self._storage.set(ROOT_PATH_KEY, path)
            else:
                self._storage.delete(ROOT_PATH_KEY)
        except StorageError as error:
            LOGGER.error("Failed to save root path: %s", error)

    # --- transcription status -----------------------------------------

    def update_status(
        self,
        path: str,
        status: FileStatus,
        progress: float | None = None,
        error: str | None = None,
    ) -> None:
        """Merge a status change into the record for path.

        Omitted progress keeps the previous value. Omitted error clears the
        stored error, except while the status stays "error".
        """
        if status not in FILE_STATUSES:
            raise ValueError(f"Unknown status {status!r}")
        previous = self._records.get(path, StatusRecord())
        if status == "completed" and previous.transcript is None:
            raise ValueError(f"Cannot mark {path} completed without a transcript; use set_transcript()")

        if error is None and status == "error":
            error = previous.error
        record = replace(
            previous,
            status=status,
            progress=previous.progress if progress is None else _clamp_progress(progress),
            error=error,
        )
        self._put(path, record)

    def set_transcript(self, path: str, transcript: Transcript) -> None:
        """Store a finished transcript. Summary fields are left untouched."""
        previous = self._records.get(path, StatusRecord())
        self._put(path, replace(previous, status="completed", progress=100, error=None, transcript=transcript))

    def retranscribe(self, path: str) -> None:
        """Send one file back to pending, dropping its transcript and summary."""
        self.retranscribe_all([path])

    def retranscribe_all(self, paths: Iterable[str]) -> None:
        records = dict(self._records)
        for path in paths:
            records[path] = replace(
                records.get(path, StatusRecord()),
                status="pending",
                progress=0,
                error=None,
                transcript=None,
                summary=None,
                summary_status=None,
                summary_error=None,
            )
        self._commit(records)

    def reset_all_terminal(self) -> int:
        """Send every completed or failed file back to pending with no results.

        Returns:
            Number of records reset
        """
        records: dict[str, StatusRecord] = {}
        reset = 0
        for path, record in self._records.items():
            if record.status in TERMINAL_STATUSES:
                records[path] = StatusRecord()
                reset += 1
            else:
                records[path] = record
        if reset:
            LOGGER.info("Reset %d transcribed files to pending", reset)
            self._commit(records)
        return reset

    # --- summary status ------------------------------------------------

    def set_summary(self, path: str, summary: Summary) -> None:
        previous = self._records.get(path, StatusRecord())
        self._put(path, replace(previous, summary=summary, summary_status="completed", summary_error=None))

    def update_summary_status(self, path: str, status: SummaryStatus, error: str | None = None) -> None:
        if status not in SUMMARY_STATUSES:
            raise ValueError(f"Unknown summary status {status!r}")
        previous = self._records.get(path, StatusRecord())
        if status == "completed" and previous.summary is None:
            raise ValueError(f"Cannot mark summary of {path} completed without a summary; use set_summary()")
        self._put(path, replace(previous, summary_status=status, summary_error=error))

    def clear_summary(self, path: str) -> None:
        """Drop summary, summary status and summary error together."""
        previous = self._records.get(path, StatusRecord())
        self._put(path, replace(previous, summary=None, summary_status=None, summary_error=None))

    def reset_summary(self, path: str) -> None:
        """Drop the summary and mark it pending, in one record update."""
        previous = self._records.get(path, StatusRecord())
        self._put(path, replace(previous, summary=None, summary_status="pending", summary_error=None))

    # --- bulk operations -----------------------------------------------

    def prune(self, valid_paths: Iterable[str]) -> int:
        """Drop records for paths missing from the latest scan.

        Only meant for directory (re)initialization; steady-state updates never prune.

        Returns:
            Number of records removed
        """
        valid = set(valid_paths)
        kept: dict[str, StatusRecord] = {}
        removed = 0
        for path, record in self._records.items():
            if path in valid:
                kept[path] = record
            else:
                LOGGER.debug("Removing status for deleted file: %s", path)
                removed += 1
        if removed:
            LOGGER.info("Pruned %d statuses for files no longer on disk", removed)
            self._commit(kept)
        return removed

    def replace_all(self, records: Mapping[str, StatusRecord]) -> None:
        self._commit(dict(records))

    def clear(self) -> None:
        """Forget the root path and every status, in storage as well.

        A pending debounced write is cancelled first so it cannot land after the clear.
        """
        self._cancel_pending_save()
        self._records = {}
        self.set_root_path(None)
        self._write_statuses()
        self._notify()

    # --- persistence ---------------------------------------------------

    @property
    def has_pending_save(self) -> bool:
        return self._save_handle is not None

    def schedule_save(self) -> None:
        """(Re)start the debounce timer. Without a running loop, write right away."""
        self._cancel_pending_save()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._write_statuses()
            return
        self._save_handle = loop.call_later(self._save_delay, self._on_save_timer)

    def flush(self) -> bool:
        """Write a pending debounced save now. Returns True if one was pending."""
        if self._save_handle is None:
            return False
        self._cancel_pending_save()
        self._write_statuses()
        return True

    def close(self) -> None:
        self.flush()
        self._listeners.clear()

    def _on_save_timer(self) -> None:
        self._save_handle = None
        self._write_statuses()

    def _cancel_pending_save(self) -> None:
        if self._save_handle is not None:
            self._save_handle.cancel()
            self._save_handle = None

    def _write_statuses(self) -> None:
        payload = {path: record.to_dict() for path, record in self._records.items()}
        try:
            self._storage.set(FILE_STATUSES_KEY, json.dumps(payload, ensure_ascii=False))
        except StorageError as error:
            # In-memory state stays authoritative; the next change retries the write
            LOGGER.error("Failed to save file statuses: %s", error)

    # --- internals -----------------------------------------------------

    def _put(self, path: str, record: StatusRecord) -> None:
        records = dict(self._records)
        records[path] = record
        self._commit(records)

    def _commit(self, records: dict[str, StatusRecord]) -> None:
        self._records = records
        self._notify()
        self.schedule_save()

    def _notify(self) -> None:
        snapshot = self.records
        for listener in list(self._listeners):
            listener(snapshot)
