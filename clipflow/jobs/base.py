"""Shared scheduling logic for the per-file job orchestrators."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Iterable

from clipflow.exceptions import JobTimeoutError
from clipflow.models import FileEntry
from clipflow.settings import Settings
from clipflow.status_store import FileStatusStore
from clipflow.task_queue import Job, TaskQueue

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], int]


def now_ms() -> int:
    """Milliseconds since the epoch, the timestamp unit of result metadata."""
    return int(time.time() * 1000)


class JobOrchestrator(ABC):
    """Turns status-store state into queued jobs, one per eligible file.

    The store is the source of truth: a file is eligible purely from its
    status fields, and a job writes its outcome back to the store.
    """

    kind = "job"

    def __init__(
        self,
        store: FileStatusStore,
        queue: TaskQueue,
        settings: Settings,
        *,
        clock: Clock = now_ms,
    ) -> None:
        self.store = store
        self.queue = queue
        self.settings = settings
        self._clock = clock

    @abstractmethod
    def is_eligible(self, file: FileEntry) -> bool:
        """Whether the file's status calls for a new job, ignoring the queue."""

    @abstractmethod
    async def _run(self, file: FileEntry) -> None:
        """Process one file and record the outcome in the store."""

    def eligible(self, files: Iterable[FileEntry]) -> list[FileEntry]:
        return [file for file in files if self.is_eligible(file) and not self.queue.has(file.path)]

    def schedule(self, files: Iterable[FileEntry]) -> int:
        """Enqueue a job for every eligible file.

        A queue entry left over from an earlier run of the same path is
        forgotten first, since the store says the file needs a new run.

        Returns:
            Number of jobs enqueued
        """
        scheduled = 0
        for file in self.eligible(files):
            self.queue.reset_item(file.path)
            self.queue.enqueue(file.path, self._job_for(file))
            scheduled += 1
        if scheduled:
            LOGGER.info("Queued %d %s job(s)", scheduled, self.kind)
        return scheduled

    @asynccontextmanager
    async def _deadline(self, path: str) -> AsyncIterator[None]:
        """Bound the provider work of one job by the configured job timeout.

        Expiry raises JobTimeoutError inside the job body, so the failure is
        written to the store like any other provider error.
        """
        timeout = self.settings.job_timeout
        scope = asyncio.timeout(timeout)
        try:
            async with scope:
                yield
        except TimeoutError as error:
            if not scope.expired():
                raise
            raise JobTimeoutError(f"{self.kind.capitalize()} of {path} timed out after {timeout:g}s") from error

    def _job_for(self, file: FileEntry) -> Job:
        async def job() -> None:
            await self._run(file)

        return job
