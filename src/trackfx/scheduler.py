"""Deduplicating job queue with a single deferred flush.

Jobs queued during one synchronous burst of mutations run together, once
each, at the next flush. The flush is deferred through a ``defer`` callable
(for example ``app.call_later``); without one, the running asyncio loop's
``call_soon`` is used, and outside any loop the queue waits for an explicit
``flush()``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from trackfx.errors import FlushFailure

logger = logging.getLogger("trackfx.scheduler")

Job = Callable[[], object]


class Scheduler:
    """Ordered, deduplicated job queue with one pending-flush flag."""

    def __init__(self, defer: Callable[[Callable[[], None]], object] | None = None, *, strict: bool = False) -> None:
        self.defer = defer
        self.strict = strict
        self._queue: list[Job] = []
        self._queued: set[Job] = set()
        self._pending = False

    @property
    def pending(self) -> bool:
        """True while a flush is scheduled or running."""
        return self._pending

    def __len__(self) -> int:
        return len(self._queue)

    def queue_job(self, job: Job) -> None:
        """Add job to the queue and make sure exactly one flush is scheduled."""
        if job not in self._queued:
            self._queued.add(job)
            self._queue.append(job)
        if not self._pending:
            self._pending = self._schedule_flush()

    def _schedule_flush(self) -> bool:
        """Arrange for flush() to run later. False if nothing could be arranged."""
        if self.defer is not None:
            self.defer(self.flush)
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Retried on the next queue_job.
            logger.debug("No event loop running; %d job(s) wait for flush()", len(self._queue))
            return False
        loop.call_soon(self.flush)
        return True

    def flush(self) -> None:
        """Run every queued job once, including jobs queued while flushing."""
        errors: list[BaseException] = []
        try:
            index = 0
            # The queue may grow while we walk it.
            while index < len(self._queue):
                job = self._queue[index]
                index += 1
                try:
                    job()
                except Exception as exc:
                    logger.exception("Scheduled job %r failed", job)
                    errors.append(exc)
            if index:
                logger.debug("Flushed %d job(s)", index)
        finally:
            self._queue.clear()
            self._queued.clear()
            self._pending = False
        if errors and self.strict:
            raise FlushFailure(errors) from errors[0]
