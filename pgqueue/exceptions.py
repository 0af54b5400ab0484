"""
Queue exceptions.
"""


class QueueError(Exception):
    """Base class for errors raised by pgqueue."""


class JobUsageError(QueueError):
    """
    Raised when a job handle is used in a way that cannot succeed.

    The typical case is awaiting a result from inside the processing
    callback: the result row is only written once the callback's own
    transaction commits, so the wait could never finish.
    """
