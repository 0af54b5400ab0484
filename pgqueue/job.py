"""
Job handles.

A ``Job`` refers to a job row from outside any claim and can wait for the
job's result. A ``ScopedJob`` is handed to the processing callback and is
bound to the claim's open transaction.
"""

import asyncio
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pgqueue.constants import SPAN_AWAIT_RESULT
from pgqueue.db.connection import transaction
from pgqueue.db.models import QueueTables
from pgqueue.db.repository import JobRepository
from pgqueue.exceptions import JobUsageError
from pgqueue.observability.tracing import get_tracer

logger = logging.getLogger(__name__)


class Job:
    """
    Represents a single or recurring job by ID.

    Each operation runs in its own transaction.
    """

    def __init__(
        self,
        id: int,
        session_factory: async_sessionmaker[AsyncSession],
        tables: QueueTables,
        poll_interval: float,
    ):
        self.id = id
        self._session_factory = session_factory
        self._tables = tables
        self.poll_interval = poll_interval

    async def done(self) -> Any:
        """
        Wait for a one-shot job to complete and return its result.

        Polls every ``poll_interval`` seconds for the stored result. The
        first poll that deletes a result row also deletes the job row and
        returns the result; the job row is not touched before that. There is
        no timeout, and a job added with delete_on_acknowledge left at True,
        or a recurring job, never stores a result, so this never returns for
        them.

        Returns:
            The value returned by the processing callback.
        """
        with get_tracer().start_as_current_span(SPAN_AWAIT_RESULT) as span:
            span.set_attribute("job_id", self.id)

            while True:
                async with transaction(self._session_factory) as session:
                    repo = JobRepository(session, self._tables)
                    results = await repo.consume_results(self.id)
                    if results:
                        await repo.delete_job(self.id)

                if results:
                    logger.debug("Consumed job result", extra={"job_id": self.id})
                    return results[0]

                await asyncio.sleep(self.poll_interval)

    async def remove(self) -> None:
        """Remove the job from the queue."""
        async with transaction(self._session_factory) as session:
            await JobRepository(session, self._tables).delete_job(self.id)

        logger.info("Removed job", extra={"job_id": self.id})

    def __repr__(self) -> str:
        return f"Job(id={self.id})"


class ScopedJob:
    """
    A job as seen by the processing callback.

    Operations run inside the transaction that claimed the job, so they
    commit or roll back together with the claim.
    """

    def __init__(self, id: int, data: Any, repository: JobRepository):
        self.id = id
        self.data = data
        self._repository = repository

    async def remove(self) -> None:
        """Remove the job as part of the current claim."""
        await self._repository.delete_job(self.id)
        logger.info("Removed job from inside its claim", extra={"job_id": self.id})

    def done(self) -> Any:
        """
        Always raises.

        The result is written by the transaction this handle is bound to,
        which cannot commit while the callback waits on it.

        Raises:
            JobUsageError: Every time.
        """
        raise JobUsageError(
            f"done() cannot be called on job {self.id} from inside its own "
            "processing callback; return the result or remove() the job instead"
        )

    def __repr__(self) -> str:
        return f"ScopedJob(id={self.id})"
