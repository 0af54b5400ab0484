"""
Claim loop for processing jobs.

Each iteration claims at most one job inside a transaction, runs the
processing callback while the row stays locked, writes the job back, and
commits. Concurrent loops, in this process or others, are kept apart only by
FOR UPDATE SKIP LOCKED.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pgqueue.constants import SPAN_PROCESS_JOB, JobKind
from pgqueue.db.connection import transaction
from pgqueue.db.models import QueueTables
from pgqueue.db.repository import JobRepository
from pgqueue.job import ScopedJob
from pgqueue.observability.logging import bound_context
from pgqueue.observability.metrics import get_metrics
from pgqueue.observability.tracing import get_tracer
from pgqueue.types.job import JobRow

logger = logging.getLogger(__name__)

# Callbacks may be plain (run in a thread) or coroutine functions; the return
# value is the job result
JobCallback = Callable[[ScopedJob], Any]
ErrorCallback = Callable[[Exception], Any]


class ClaimLoop:
    """
    One worker loop for one queue.

    Features:
    - Atomic claim using FOR UPDATE SKIP LOCKED, one job per transaction
    - Callback runs inside the claim's transaction; plain callbacks run in a
      worker thread
    - No delay between iterations while jobs keep coming, poll_interval
      otherwise
    - Failed iterations roll back and back off for poll_interval
    - Cooperative stop, observed only between iterations
    """

    def __init__(
        self,
        queue_name: str,
        callback: JobCallback,
        session_factory: async_sessionmaker[AsyncSession],
        tables: QueueTables,
        poll_interval: float,
        on_error: ErrorCallback | None = None,
    ):
        """
        Initialize the loop.

        Args:
            queue_name: The queue to claim jobs from.
            callback: Called with a ScopedJob; its return value is the result.
            session_factory: Factory for the per-iteration sessions.
            tables: The job and result tables.
            poll_interval: Seconds to wait after an empty claim or an error.
            on_error: Called with the exception of each failed iteration.
        """
        self.queue_name = queue_name
        self.poll_interval = poll_interval
        self._callback = callback
        self._session_factory = session_factory
        self._tables = tables
        self._on_error = on_error

        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._metrics = get_metrics()

    @property
    def stopping(self) -> bool:
        """Check if a stop has been requested."""
        return self._stop_event.is_set()

    @property
    def running(self) -> bool:
        """Check if the loop task is still running."""
        return self._task is not None and not self._task.done()

    def start(self) -> "ClaimLoop":
        """Start the loop as a task on the running event loop."""
        if self._task is not None:
            raise RuntimeError("Claim loop already started")
        self._task = asyncio.create_task(
            self.run(), name=f"pgqueue-claim-loop:{self.queue_name}"
        )
        return self

    def stop(self) -> None:
        """Ask the loop to exit after the current iteration."""
        self._stop_event.set()

    async def wait(self) -> None:
        """Wait for the loop task to finish."""
        if self._task is not None:
            await self._task

    async def run(self) -> None:
        """Run iterations until stop() is called."""
        logger.info(
            "Claim loop starting",
            extra={"queue": self.queue_name, "poll_interval": self.poll_interval},
        )

        while not self.stopping:
            try:
                processed = await self.run_once()
            except Exception as e:
                logger.exception(
                    f"Error processing job: {e}",
                    extra={"queue": self.queue_name},
                )
                self._metrics.record_job_failure(self.queue_name)
                await self._report_error(e)
                delay = self.poll_interval
            else:
                delay = 0 if processed else self.poll_interval

            await self._pause(delay)

        logger.info("Claim loop stopped", extra={"queue": self.queue_name})

    async def run_once(self) -> bool:
        """
        Run one claim transaction.

        Returns:
            True if a job was claimed and processed, False if none was
            eligible.
        """
        async with transaction(self._session_factory) as session:
            repo = JobRepository(session, self._tables)

            job = await repo.claim_next(self.queue_name)
            if job is None:
                self._metrics.record_claim_empty(self.queue_name)
                return False

            start_time = time.monotonic()
            kind = await self._execute(repo, job)
            duration = time.monotonic() - start_time

        self._metrics.record_job_processed(self.queue_name, kind, duration)
        logger.debug(
            "Finished job, lock released",
            extra={"job_id": job.id, "kind": kind.value, "duration": f"{duration:.3f}s"},
        )
        return True

    async def _execute(self, repo: JobRepository, job: JobRow) -> JobKind:
        """
        Run the callback for a claimed job and write the job back.

        Args:
            repo: Repository bound to the claim's transaction.
            job: The claimed job.

        Returns:
            Whether the job was handled as one-shot or recurring.
        """
        with bound_context(queue=self.queue_name, job_id=job.id):
            with get_tracer().start_as_current_span(SPAN_PROCESS_JOB) as span:
                span.set_attribute("job_id", job.id)
                span.set_attribute("queue", self.queue_name)

                out = await self._call(ScopedJob(job.id, job.payload, repo))

            if job.is_recurring:
                await repo.reschedule(job.id)
                return JobKind.RECURRING

            # delete_on_acknowledge False means a caller is waiting in done()
            if not job.delete_on_acknowledge:
                await repo.record_result(job.id, out)
            await repo.delete_job(job.id)
            return JobKind.ONE_SHOT

    async def _call(self, scoped: ScopedJob) -> Any:
        if inspect.iscoroutinefunction(self._callback):
            return await self._callback(scoped)

        # Plain functions run in a worker thread, off the event loop
        out = await asyncio.to_thread(self._callback, scoped)
        if inspect.isawaitable(out):
            out = await out
        return out

    async def _report_error(self, error: Exception) -> None:
        if self._on_error is None:
            return
        try:
            outcome = self._on_error(error)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("Error handler failed", extra={"queue": self.queue_name})

    async def _pause(self, delay: float) -> None:
        """Sleep for delay seconds, waking early if stop() is called."""
        if delay <= 0:
            # Still yield so other tasks run between back-to-back claims
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
