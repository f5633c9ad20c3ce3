"""Bounded-concurrency FIFO scheduler for asynchronous jobs.

Jobs are zero-argument coroutine functions keyed by an opaque id (a file path
in practice). At most ``concurrency`` jobs run at once; the rest wait in
insertion order. Every state transition fires the stats-changed callback
synchronously, so subscribers always observe the latest counts.

All methods must be called from the thread running the event loop. There is
no locking: each transition is a plain, synchronous mutation of the four sets.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Final

from clipflow.models import QueueStats

LOGGER = logging.getLogger(__name__)

TRANSCRIPTION_CONCURRENCY: Final = 2
SUMMARIZATION_CONCURRENCY: Final = 3

Job = Callable[[], Awaitable[None]]
StatsCallback = Callable[[QueueStats], None]


class TaskQueue:
    """FIFO job queue with a fixed concurrency ceiling."""

    def __init__(
        self,
        concurrency: int,
        on_stats_change: StatsCallback | None = None,
        *,
        name: str = "queue",
    ) -> None:
        """Create an empty queue.

        Args:
            concurrency: Maximum number of jobs running at the same time
            on_stats_change: Called with fresh stats after every transition
            name: Label used in log messages
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")

        self.concurrency = concurrency
        self.name = name
        self._on_stats_change = on_stats_change

        self._pending: dict[str, Job] = {}
        self._active: dict[str, object] = {}
        self._completed: set[str] = set()
        self._errors: dict[str, BaseException] = {}
        self._running: set[asyncio.Task[None]] = set()

    def enqueue(self, task_id: str, task: Job) -> None:
        """Add a job unless the id is already pending, running or completed.

        An id that previously failed is retried; its old error is dropped.
        """
        if task_id in self._pending or task_id in self._active or task_id in self._completed:
            return

        self._errors.pop(task_id, None)
        self._pending[task_id] = task
        self._notify_stats_change()
        self._process_next()

    def dequeue(self, task_id: str) -> None:
        """Remove a job that has not started yet. Running jobs are unaffected."""
        if self._pending.pop(task_id, None) is not None:
            self._notify_stats_change()

    def has(self, task_id: str) -> bool:
        return task_id in self._pending or task_id in self._active

    def is_active(self, task_id: str) -> bool:
        return task_id in self._active

    def get_error(self, task_id: str) -> BaseException | None:
        return self._errors.get(task_id)

    def get_stats(self) -> QueueStats:
        return QueueStats(
            pending=len(self._pending),
            active=len(self._active),
            completed=len(self._completed),
            error=len(self._errors),
        )

    def clear_completed(self) -> None:
        """Forget finished jobs. Pending and running jobs are kept."""
        self._completed.clear()
        self._errors.clear()
        self._notify_stats_change()

    def reset_item(self, task_id: str) -> None:
        """Forget a finished job so the same id can be enqueued again."""
        was_completed = task_id in self._completed
        was_error = task_id in self._errors
        self._completed.discard(task_id)
        self._errors.pop(task_id, None)
        if was_completed or was_error:
            self._notify_stats_change()

    def clear(self) -> None:
        """Drop every job record.

        Jobs already running are not cancelled; their results are discarded
        when they finish.
        """
        self._pending.clear()
        self._active.clear()
        self._completed.clear()
        self._errors.clear()
        self._notify_stats_change()

    def has_running(self) -> bool:
        return bool(self._running)

    async def drain(self) -> None:
        """Wait until nothing is pending or running."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    def _process_next(self) -> None:
        if len(self._active) >= self.concurrency or not self._pending:
            return
        # Raises outside a loop before any job leaves the pending set
        loop = asyncio.get_running_loop()
        while len(self._active) < self.concurrency and self._pending:
            task_id = next(iter(self._pending))
            task = self._pending.pop(task_id)
            token = object()
            self._active[task_id] = token
            self._notify_stats_change()

            LOGGER.debug("[%s] starting %s", self.name, task_id)
            runner = loop.create_task(self._run(task_id, task, token), name=f"{self.name}:{task_id}")
            self._running.add(runner)
            runner.add_done_callback(self._running.discard)

    async def _run(self, task_id: str, task: Job, token: object) -> None:
        error: BaseException | None = None
        try:
            await task()
        except Exception as exc:  # noqa: BLE001 - one job's failure must not stop the queue
            error = exc

        if self._active.get(task_id) is not token:
            # The queue was cleared (and the id possibly re-enqueued) while this job ran
            LOGGER.debug("[%s] discarding result of cleared job %s", self.name, task_id)
            self._process_next()
            return

        del self._active[task_id]
        if error is None:
            self._completed.add(task_id)
        else:
            self._errors[task_id] = error
            LOGGER.warning("[%s] job %s failed: %s", self.name, task_id, error)
        self._notify_stats_change()
        self._process_next()

    def _notify_stats_change(self) -> None:
        if self._on_stats_change is not None:
            self._on_stats_change(self.get_stats())


class QueuePair:
    """The transcription and summarization queues with combined progress figures."""

    def __init__(
        self,
        transcription: TaskQueue | None = None,
        summarization: TaskQueue | None = None,
    ) -> None:
        self.transcription = transcription or TaskQueue(TRANSCRIPTION_CONCURRENCY, name="transcription")
        self.summarization = summarization or TaskQueue(SUMMARIZATION_CONCURRENCY, name="summarization")

    @property
    def is_processing(self) -> bool:
        t_stats = self.transcription.get_stats()
        s_stats = self.summarization.get_stats()
        return bool(t_stats.pending or t_stats.active or s_stats.pending or s_stats.active)

    @property
    def overall_progress(self) -> int:
        """Percentage of finished jobs (completed or failed) across both queues."""
        t_stats = self.transcription.get_stats()
        s_stats = self.summarization.get_stats()
        total = t_stats.total + s_stats.total
        if total == 0:
            return 0
        finished = t_stats.completed + t_stats.error + s_stats.completed + s_stats.error
        return round(finished / total * 100)

    def clear_completed(self) -> None:
        self.transcription.clear_completed()
        self.summarization.clear_completed()

    def clear(self) -> None:
        self.transcription.clear()
        self.summarization.clear()

    async def drain(self) -> None:
        """Wait until both queues are idle, including jobs started while waiting."""
        while self.transcription.has_running() or self.summarization.has_running():
            await self.transcription.drain()
            await self.summarization.drain()
