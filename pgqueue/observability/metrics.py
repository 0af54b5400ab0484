"""
Prometheus metrics collection.
"""

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    start_http_server,
)

from pgqueue.constants import (
    METRIC_CLAIMS_EMPTY,
    METRIC_JOB_DURATION,
    METRIC_JOB_FAILURES,
    METRIC_JOBS_ADDED,
    METRIC_JOBS_PROCESSED,
    JobKind,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for queues.

    Collects metrics for:
    - Job additions
    - Processed jobs by kind
    - Callback and store failures during claims
    - Callback duration
    - Claims that found nothing eligible
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.jobs_added = Counter(
            METRIC_JOBS_ADDED,
            "Total number of jobs added",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_processed = Counter(
            METRIC_JOBS_PROCESSED,
            "Total number of claims that completed and committed",
            ["queue", "kind"],
            registry=self._registry,
        )

        self.job_failures = Counter(
            METRIC_JOB_FAILURES,
            "Total number of claim transactions rolled back after an error",
            ["queue"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Processing callback duration in seconds",
            ["queue"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )

        self.claims_empty = Counter(
            METRIC_CLAIMS_EMPTY,
            "Total number of claims that found no eligible job",
            ["queue"],
            registry=self._registry,
        )

    def record_job_added(self, queue: str) -> None:
        """Record a job addition."""
        self.jobs_added.labels(queue=queue).inc()

    def record_job_processed(
        self,
        queue: str,
        kind: JobKind,
        duration_seconds: float,
    ) -> None:
        """Record a committed claim."""
        self.jobs_processed.labels(queue=queue, kind=kind.value).inc()
        self.job_duration.labels(queue=queue).observe(duration_seconds)

    def record_job_failure(self, queue: str) -> None:
        """Record a rolled back claim."""
        self.job_failures.labels(queue=queue).inc()

    def record_claim_empty(self, queue: str) -> None:
        """Record a claim that found nothing."""
        self.claims_empty.labels(queue=queue).inc()

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics


def serve_metrics(port: int) -> None:
    """
    Expose the default registry over HTTP on a background thread.

    Args:
        port: TCP port to listen on.
    """
    start_http_server(port)
