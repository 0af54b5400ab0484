"""
Integration tests for claim loops processing jobs.
"""

import asyncio
from collections.abc import Callable

import pytest

from pgqueue.exceptions import JobUsageError
from pgqueue.job import ScopedJob
from pgqueue.queue import Queue
from pgqueue.worker.main import serve


class TestWorkerIntegration:
    """Integration tests for job processing."""

    @pytest.mark.asyncio
    async def test_process_one_shot_job(self, queue: Queue, wait_until: Callable):
        """Test a default one-shot job is processed once and deleted."""
        payloads = []

        async def callback(job: ScopedJob):
            payloads.append(job.data)
            return {"echo": job.data["n"]}

        await queue.add({"n": 1})
        queue.process(callback)

        await wait_until(lambda: len(payloads) == 1)
        queue.shutdown()
        await asyncio.wait_for(queue.join(), timeout=10)

        assert payloads == [{"n": 1}]
        assert await queue.count() == 0

    @pytest.mark.asyncio
    async def test_drains_backlog(self, queue: Queue, wait_until: Callable):
        """Test every queued job is processed exactly once."""
        seen = []

        for n in range(20):
            await queue.add({"n": n})

        queue.process(lambda job: seen.append(job.data["n"]))

        await wait_until(lambda: len(seen) == 20)

        assert sorted(seen) == list(range(20))
        assert await queue.count() == 0

    @pytest.mark.asyncio
    async def test_two_loops_claim_job_once(self, queue: Queue, wait_until: Callable):
        """Test competing loops never process the same job twice."""
        calls = []

        async def callback(job: ScopedJob):
            calls.append(job.id)
            await asyncio.sleep(0.2)

        queue.process(callback)
        queue.process(callback)
        job = await queue.add({"n": 1})

        await wait_until(lambda: len(calls) == 1)
        await asyncio.sleep(1.0)

        assert calls == [job.id]
        assert await queue.count() == 0

    @pytest.mark.asyncio
    async def test_failed_job_is_retried(self, queue: Queue, wait_until: Callable):
        """Test a failing callback rolls back and the job is processed later."""
        attempts = []
        errors = []

        async def callback(job: ScopedJob):
            attempts.append(job.id)
            if len(attempts) == 1:
                raise RuntimeError("first attempt fails")
            return "ok"

        job = await queue.add({"n": 1}, delete_on_acknowledge=False)
        queue.process(callback, on_error=errors.append)

        assert await asyncio.wait_for(job.done(), timeout=10) == "ok"
        assert attempts == [job.id, job.id]
        assert len(errors) == 1
        assert isinstance(errors[0], RuntimeError)

    @pytest.mark.asyncio
    async def test_recurring_job_runs_every_interval(self, queue: Queue):
        """Test a job every 1s runs exactly twice in 2.5s and is kept."""
        runs = []

        queue.process(lambda job: runs.append(job.id))
        await queue.add({"n": 1}, interval_seconds=1)

        await asyncio.sleep(2.5)
        queue.shutdown()
        await asyncio.wait_for(queue.join(), timeout=10)

        assert len(runs) == 2
        assert await queue.count() == 1

    @pytest.mark.asyncio
    async def test_remove_recurring_job_from_callback(
        self, queue: Queue, wait_until: Callable
    ):
        """Test a recurring job can remove itself inside its claim."""
        runs = []

        async def callback(job: ScopedJob):
            runs.append(job.id)
            await job.remove()

        await queue.add({}, interval_seconds=1)
        queue.process(callback)

        await wait_until(lambda: len(runs) == 1)
        await asyncio.sleep(1.5)

        assert len(runs) == 1
        assert await queue.count() == 0

    @pytest.mark.asyncio
    async def test_done_inside_callback_rolls_back(
        self, queue: Queue, wait_until: Callable
    ):
        """Test done() inside the callback fails and leaves the job in place."""
        errors = []

        async def callback(job: ScopedJob):
            return job.done()

        await queue.add({"n": 1})
        queue.process(callback, on_error=errors.append)

        await wait_until(lambda: len(errors) >= 1)
        queue.shutdown()
        await asyncio.wait_for(queue.join(), timeout=10)

        assert isinstance(errors[0], JobUsageError)
        assert await queue.count() == 1

    @pytest.mark.asyncio
    async def test_shutdown_lets_claimed_job_finish(
        self, queue: Queue, wait_until: Callable
    ):
        """Test shutdown() waits for the job in progress instead of interrupting it."""
        started = asyncio.Event()
        finished = []

        async def callback(job: ScopedJob):
            started.set()
            await asyncio.sleep(0.5)
            finished.append(job.id)

        job = await queue.add({})
        queue.process(callback)

        await asyncio.wait_for(started.wait(), timeout=10)
        queue.shutdown()
        await asyncio.wait_for(queue.join(), timeout=10)

        assert finished == [job.id]
        assert await queue.count() == 0

    @pytest.mark.asyncio
    async def test_serve_runs_until_shutdown(self, queue: Queue):
        """Test serve() processes with several loops and returns on shutdown."""
        seen = []

        async def callback(job: ScopedJob):
            seen.append(job.data["n"])
            if len(seen) == 5:
                queue.shutdown()

        for n in range(5):
            await queue.add({"n": n})

        await asyncio.wait_for(
            serve(queue, callback, concurrency=3, handle_signals=False),
            timeout=10,
        )

        assert sorted(seen) == list(range(5))
