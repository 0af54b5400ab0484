"""
Queue controller.

A ``Queue`` is a named partition of the job table. It adds jobs, hands out
job handles, and starts claim loops that process the queue's jobs.
"""

import asyncio
import logging
from types import TracebackType
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pgqueue.config import get_settings
from pgqueue.constants import SPAN_ADD_JOB
from pgqueue.db.connection import get_session_factory, transaction
from pgqueue.db.models import get_tables
from pgqueue.db.repository import JobRepository
from pgqueue.job import Job
from pgqueue.observability.metrics import get_metrics
from pgqueue.observability.tracing import get_tracer
from pgqueue.types.job import JobOptions, TableOptions
from pgqueue.worker.loop import ClaimLoop, ErrorCallback, JobCallback

logger = logging.getLogger(__name__)


class Queue:
    """
    A single named queue.

    Any number of Queue instances, in any number of processes, may share a
    name; they then compete for the same jobs.
    """

    def __init__(
        self,
        name: str,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        *,
        table_options: TableOptions | None = None,
        poll_interval: float | None = None,
    ):
        """
        Initialize the queue.

        Args:
            name: Queue name.
            session_factory: Session factory to use. Defaults to the one
                created by init_db(), looked up when first needed.
            table_options: Table names. Defaults come from settings.
            poll_interval: Seconds between polls when the queue is empty,
                after a failed claim, and between done() checks.
        """
        settings = get_settings()

        self.name = name
        self.tables = get_tables(table_options)
        self.poll_interval = (
            poll_interval if poll_interval is not None else settings.poll_interval_seconds
        )

        self._session_factory = session_factory
        self._loops: list[ClaimLoop] = []
        self._metrics = get_metrics()

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            return get_session_factory()
        return self._session_factory

    async def add(
        self,
        payload: Any,
        options: JobOptions | None = None,
        *,
        interval_seconds: int | None = None,
        delete_on_acknowledge: bool | None = None,
    ) -> Job:
        """
        Add a single or recurring job to the queue.

        Recurring jobs never keep results: passing delete_on_acknowledge=False
        together with interval_seconds logs a warning and is ignored.

        Args:
            payload: JSON-serializable job data passed to the callback.
            options: Job options. Cannot be combined with the keyword
                arguments.
            interval_seconds: Run the job every N seconds.
            delete_on_acknowledge: Set to False to keep the result of a
                one-shot job for Job.done().

        Returns:
            Job: Handle for the new job.

        Raises:
            TypeError: If options is given together with keyword options.
        """
        if options is not None:
            if interval_seconds is not None or delete_on_acknowledge is not None:
                raise TypeError(
                    "Pass either options or interval_seconds/delete_on_acknowledge, not both"
                )
        else:
            options = JobOptions(
                interval_seconds=interval_seconds,
                delete_on_acknowledge=delete_on_acknowledge,
            )

        with get_tracer().start_as_current_span(SPAN_ADD_JOB) as span:
            span.set_attribute("queue", self.name)
            span.set_attribute("recurring", options.is_recurring)

            async with transaction(self.session_factory) as session:
                job_id = await JobRepository(session, self.tables).insert_job(
                    queue_name=self.name,
                    payload=payload,
                    interval_seconds=options.interval_seconds,
                    delete_on_acknowledge=options.should_delete_on_acknowledge,
                )

            span.set_attribute("job_id", job_id)

        self._metrics.record_job_added(self.name)
        return self.get_job(job_id)

    def get_job(self, id: int) -> Job:
        """
        Get a handle for a job. Does not check that the job exists.

        Args:
            id: Job ID.
        """
        return Job(id, self.session_factory, self.tables, self.poll_interval)

    def process(
        self,
        callback: JobCallback,
        *,
        on_error: ErrorCallback | None = None,
    ) -> ClaimLoop:
        """
        Start a claim loop that processes this queue's jobs.

        Must be called with an event loop running. Every call starts another
        independent loop; shutdown() stops all of them.

        A callback that raises is retried after poll_interval, so it may run
        more than once for the same job. Only writes made through the claim's
        transaction are rolled back; callbacks must be idempotent.

        Args:
            callback: Called with a ScopedJob for each claimed job. Its return
                value is the job result. Coroutine functions run on the event
                loop; plain functions run in a worker thread via
                asyncio.to_thread.
            on_error: Called with the exception whenever an iteration fails.

        Returns:
            ClaimLoop: The started loop.
        """
        loop = ClaimLoop(
            queue_name=self.name,
            callback=callback,
            session_factory=self.session_factory,
            tables=self.tables,
            poll_interval=self.poll_interval,
            on_error=on_error,
        )
        self._loops = [existing for existing in self._loops if existing.running]
        self._loops.append(loop)
        return loop.start()

    def shutdown(self) -> None:
        """
        Stop every claim loop started by this queue.

        Loops finish their current iteration first, so a job that is
        already claimed still runs to completion.
        """
        logger.info(
            "Shutting down queue",
            extra={"queue": self.name, "loops": len(self._loops)},
        )
        for loop in self._loops:
            loop.stop()

    async def join(self) -> None:
        """Wait for every claim loop started by this queue to finish."""
        await asyncio.gather(*(loop.wait() for loop in self._loops))

    async def count(self) -> int:
        """Get the number of job rows in this queue, recurring jobs included."""
        async with transaction(self.session_factory) as session:
            return await JobRepository(session, self.tables).count_jobs(self.name)

    async def __aenter__(self) -> "Queue":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown()
        await self.join()

    def __repr__(self) -> str:
        return f"Queue(name={self.name!r}, table={self.tables.jobs.name!r})"
