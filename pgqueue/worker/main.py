"""
Worker process entry point.

Runs one or more claim loops for a queue until SIGTERM or SIGINT arrives.
"""

import asyncio
import logging
import signal

from pgqueue.config import get_settings
from pgqueue.db import close_db, init_db
from pgqueue.observability.logging import setup_logging
from pgqueue.observability.metrics import serve_metrics
from pgqueue.observability.tracing import setup_tracing
from pgqueue.queue import Queue
from pgqueue.worker.loop import ErrorCallback, JobCallback

logger = logging.getLogger(__name__)


async def serve(
    queue: Queue,
    callback: JobCallback,
    *,
    concurrency: int = 1,
    on_error: ErrorCallback | None = None,
    handle_signals: bool = True,
) -> None:
    """
    Process a queue until it is shut down.

    Args:
        queue: The queue to process.
        callback: Processing callback passed to every loop.
        concurrency: Number of claim loops to run.
        on_error: Error callback passed to every loop.
        handle_signals: Install SIGTERM/SIGINT handlers that shut the queue down.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    if handle_signals:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, queue.shutdown)

    logger.info(
        "Worker starting",
        extra={"queue": queue.name, "concurrency": concurrency},
    )

    for _ in range(concurrency):
        queue.process(callback, on_error=on_error)

    try:
        await queue.join()
    finally:
        if handle_signals:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)

    logger.info("Worker stopped", extra={"queue": queue.name})


async def run_async(queue_name: str, callback: JobCallback) -> None:
    """Run a worker for one queue using the configured database."""
    settings = get_settings()

    setup_logging()
    await init_db()

    if settings.metrics_port is not None:
        serve_metrics(settings.metrics_port)
    if settings.otel_enabled:
        setup_tracing()

    try:
        await serve(
            Queue(queue_name),
            callback,
            concurrency=settings.worker_concurrency,
        )
    finally:
        await close_db()


def run(queue_name: str, callback: JobCallback) -> None:
    """Run a worker for one queue, blocking until it is signalled to stop."""
    asyncio.run(run_async(queue_name, callback))
