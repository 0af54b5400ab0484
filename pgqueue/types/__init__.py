"""
Type definitions for the queue.
"""

from pgqueue.types.job import (
    JobOptions,
    JobRow,
    TableOptions,
)

__all__ = [
    "JobOptions",
    "JobRow",
    "TableOptions",
]
