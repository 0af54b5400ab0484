"""
Queue constants.
Centralized location for all constant values used across the package.
"""

from enum import StrEnum


class JobKind(StrEnum):
    """How a claimed job was written back after its callback returned."""

    ONE_SHOT = "one_shot"
    RECURRING = "recurring"


# Default values
DEFAULT_TABLE_NAME = "pgqueue_jobs"
DEFAULT_RESULT_TABLE_NAME = "pgqueue_results"
DEFAULT_POLL_INTERVAL_SECONDS = 1.0

# Metrics names
METRIC_JOBS_ADDED = "pgqueue_jobs_added_total"
METRIC_JOBS_PROCESSED = "pgqueue_jobs_processed_total"
METRIC_JOB_FAILURES = "pgqueue_job_failures_total"
METRIC_JOB_DURATION = "pgqueue_job_duration_seconds"
METRIC_CLAIMS_EMPTY = "pgqueue_claims_empty_total"

# Trace span names
SPAN_ADD_JOB = "add_job"
SPAN_PROCESS_JOB = "process_job"
SPAN_AWAIT_RESULT = "await_result"
