"""
Job repository for database operations.
Implements the data access patterns of the claim-execute-reschedule protocol.
"""

import logging
from typing import Any, Sequence

from sqlalchemy import (
    Interval,
    case,
    delete,
    func,
    insert,
    literal_column,
    or_,
    select,
    update,
)
from sqlalchemy.ext.asyncio import AsyncSession

from pgqueue.db.models import QueueTables
from pgqueue.types.job import JobRow

logger = logging.getLogger(__name__)

_ONE_SECOND = literal_column("interval '1 second'", type_=Interval)


class JobRepository:
    """
    Repository for job database operations.

    Every method runs on the session it was created with, so all calls made
    through one repository share a transaction. Implements:
    - Job insertion
    - Claiming with FOR UPDATE SKIP LOCKED
    - Rescheduling of recurring jobs with bounded catch-up
    - Result recording and consume-once result retrieval
    """

    def __init__(self, session: AsyncSession, tables: QueueTables):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
            tables: The job and result tables to operate on.
        """
        self._session = session
        self._jobs = tables.jobs
        self._results = tables.results

    async def insert_job(
        self,
        queue_name: str,
        payload: Any,
        interval_seconds: int | None = None,
        delete_on_acknowledge: bool = True,
    ) -> int:
        """
        Insert a new job with last_run set to the current time.

        Args:
            queue_name: The queue the job belongs to.
            payload: JSON-serializable job payload.
            interval_seconds: Run every N seconds; None for a one-shot job.
            delete_on_acknowledge: Discard the result of a one-shot job.

        Returns:
            The generated job ID.
        """
        stmt = (
            insert(self._jobs)
            .values(
                payload=payload,
                queue_name=queue_name,
                interval_seconds=interval_seconds,
                delete_on_acknowledge=delete_on_acknowledge,
                last_run=func.now(),
            )
            .returning(self._jobs.c.id)
        )

        result = await self._session.execute(stmt)
        job_id = result.scalar_one()

        logger.info(
            "Added job",
            extra={
                "job_id": job_id,
                "queue": queue_name,
                "interval_seconds": interval_seconds,
            },
        )
        return job_id

    async def get_job(self, job_id: int) -> JobRow | None:
        """
        Get a job by ID without locking it.

        Args:
            job_id: The job ID.

        Returns:
            The JobRow or None if not found.
        """
        stmt = select(self._jobs).where(self._jobs.c.id == job_id)
        result = await self._session.execute(stmt)
        row = result.first()
        return JobRow(**row._mapping) if row is not None else None

    async def claim_next(self, queue_name: str) -> JobRow | None:
        """
        Lock one eligible job using FOR UPDATE SKIP LOCKED.

        A job is eligible when it is one-shot, or when its interval has
        elapsed since last_run. Rows locked by other transactions are
        skipped rather than waited on, so concurrent claimants never block
        each other and never receive the same row. The lock is held until
        the session's transaction ends.

        Args:
            queue_name: The queue to claim from.

        Returns:
            The claimed JobRow, or None if nothing is eligible.
        """
        jobs = self._jobs
        stmt = (
            select(jobs)
            .where(
                jobs.c.queue_name == queue_name,
                or_(
                    jobs.c.interval_seconds.is_(None),
                    jobs.c.last_run < func.now() - jobs.c.interval_seconds * _ONE_SECOND,
                ),
            )
            .limit(1)
            .with_for_update(skip_locked=True)
        )

        result = await self._session.execute(stmt)
        row = result.first()

        if row is None:
            logger.debug("No eligible jobs", extra={"queue": queue_name})
            return None

        job = JobRow(**row._mapping)
        logger.debug(
            "Acquired lock on job",
            extra={"job_id": job.id, "queue": queue_name},
        )
        return job

    async def reschedule(self, job_id: int) -> None:
        """
        Move last_run of a recurring job forward after a claim.

        If the next fire time (last_run + interval) is still at least one
        interval in the past, the job has fallen behind and last_run advances
        by exactly one interval. Otherwise last_run becomes now. A backlog
        therefore shrinks by one interval per claim.

        Args:
            job_id: The job ID.
        """
        jobs = self._jobs
        interval = jobs.c.interval_seconds * _ONE_SECOND
        next_run = jobs.c.last_run + interval

        stmt = (
            update(jobs)
            .where(jobs.c.id == job_id)
            .values(
                last_run=case(
                    (next_run <= func.now() - interval, next_run),
                    else_=func.now(),
                )
            )
        )
        await self._session.execute(stmt)

    async def record_result(self, job_id: int, result: Any) -> None:
        """
        Store the result of a one-shot job for a later done() call.

        Args:
            job_id: The job ID.
            result: JSON-serializable callback output.
        """
        stmt = insert(self._results).values(
            job_id=job_id,
            result=result,
            time_run=func.clock_timestamp(),
        )
        await self._session.execute(stmt)

    async def delete_job(self, job_id: int) -> bool:
        """
        Delete a job row.

        Args:
            job_id: The job ID.

        Returns:
            True if a row was deleted.
        """
        stmt = delete(self._jobs).where(self._jobs.c.id == job_id)
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def consume_results(self, job_id: int) -> Sequence[Any]:
        """
        Delete and return the stored results of a job.

        DELETE ... RETURNING is atomic, so when several callers race for the
        same result exactly one of them gets a non-empty sequence.

        Args:
            job_id: The job ID.

        Returns:
            The deleted result payloads, empty if none were stored yet.
        """
        stmt = (
            delete(self._results)
            .where(self._results.c.job_id == job_id)
            .returning(self._results.c.result)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def count_jobs(self, queue_name: str) -> int:
        """
        Get the number of job rows in a queue, recurring jobs included.

        Args:
            queue_name: The queue name.

        Returns:
            Number of job rows.
        """
        stmt = (
            select(func.count())
            .select_from(self._jobs)
            .where(self._jobs.c.queue_name == queue_name)
        )
        result = await self._session.execute(stmt)
        return result.scalar() or 0
