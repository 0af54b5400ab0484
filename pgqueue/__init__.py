"""
PostgreSQL job queue

One-shot and recurring jobs stored in PostgreSQL, processed by any number of
worker loops that claim rows with FOR UPDATE SKIP LOCKED.
"""

__version__ = "1.0.0"

from pgqueue.config import Settings, get_settings
from pgqueue.db import close_db, create_tables, drop_tables, init_db
from pgqueue.exceptions import JobUsageError, QueueError
from pgqueue.job import Job, ScopedJob
from pgqueue.queue import Queue
from pgqueue.types.job import JobOptions, TableOptions
from pgqueue.worker.loop import ClaimLoop

__all__ = [
    "Queue",
    "Job",
    "ScopedJob",
    "JobOptions",
    "TableOptions",
    "ClaimLoop",
    "QueueError",
    "JobUsageError",
    "Settings",
    "get_settings",
    "init_db",
    "close_db",
    "create_tables",
    "drop_tables",
]
