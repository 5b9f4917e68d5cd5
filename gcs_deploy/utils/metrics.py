"""
Prometheus metrics for deploy runs.

Tracks upload success/failure rates, bytes transferred, transfer latency,
GCS errors and CDN rewrites. Long-running build servers can expose them with
``start_http_server``; one-shot CLI runs simply leave them in the registry.

Metrics Provided:
    - gcs_deploy_upload_requests_total: Counter for uploads by status and bucket
    - gcs_deploy_upload_bytes_total: Counter for uploaded bytes
    - gcs_deploy_upload_duration_seconds: Histogram for transfer latency
    - gcs_deploy_gcs_errors_total: Counter for failed GCS calls by error type
    - gcs_deploy_rewritten_files_total: Counter for HTML/CSS files rewritten

Set METRICS_ENABLED=false to turn collection off.
"""

import os
from contextlib import nullcontext
from typing import Any, Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

from gcs_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class PrometheusMetrics:
    """
    Centralized Prometheus metrics for the deploy pipeline.

    Example:
        >>> metrics = get_metrics()
        >>> with metrics.track_upload():
        ...     blob.upload_from_filename(path)
        >>> metrics.record_upload_success(bytes_uploaded=1024, bucket="my-site")
    """

    def __init__(self, enabled: bool = True, registry: Optional[CollectorRegistry] = None) -> None:
        self.enabled = enabled
        self.registry = registry if registry is not None else REGISTRY

        if not self.enabled:
            logger.debug("Metrics collection disabled")
            return

        self.upload_requests = Counter(
            name="gcs_deploy_upload_requests_total",
            documentation="Total number of object uploads",
            labelnames=["status", "bucket"],
            registry=self.registry,
        )

        self.upload_bytes = Counter(
            name="gcs_deploy_upload_bytes_total",
            documentation="Total bytes uploaded to GCS",
            registry=self.registry,
        )

        self.upload_duration = Histogram(
            name="gcs_deploy_upload_duration_seconds",
            documentation="Time spent uploading a single object",
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=self.registry,
        )

        self.gcs_errors = Counter(
            name="gcs_deploy_gcs_errors_total",
            documentation="Total failed GCS calls",
            labelnames=["operation", "error_type"],
            registry=self.registry,
        )

        self.rewritten_files = Counter(
            name="gcs_deploy_rewritten_files_total",
            documentation="HTML/CSS files rewritten to CDN URLs",
            registry=self.registry,
        )

    def track_upload(self) -> Any:
        """Context manager timing one upload."""
        if not self.enabled:
            return nullcontext()
        return self.upload_duration.time()

    def record_upload_success(self, bytes_uploaded: int, bucket: str = "unknown") -> None:
        if not self.enabled:
            return
        self.upload_requests.labels(status="success", bucket=bucket).inc()
        self.upload_bytes.inc(bytes_uploaded)

    def record_upload_failure(self, bucket: str = "unknown") -> None:
        if not self.enabled:
            return
        self.upload_requests.labels(status="failure", bucket=bucket).inc()

    def record_gcs_error(self, operation: str, error_type: str) -> None:
        """
        Record GCS API error.

        Args:
            operation: GCS operation (upload)
            error_type: Exception class name (Forbidden, NotFound, ...)
        """
        if not self.enabled:
            return
        self.gcs_errors.labels(operation=operation, error_type=error_type).inc()

    def record_rewrites(self, count: int) -> None:
        if not self.enabled or count <= 0:
            return
        self.rewritten_files.inc(count)


# Global metrics instance (singleton)
_metrics_instance: Optional[PrometheusMetrics] = None


def get_metrics() -> PrometheusMetrics:
    """
    Get global metrics instance (singleton).

    Collectors register with the default Prometheus registry once per
    process, so every caller must share this instance.
    """
    global _metrics_instance
    if _metrics_instance is None:
        enabled = os.getenv("METRICS_ENABLED", "true").lower() == "true"
        _metrics_instance = PrometheusMetrics(enabled=enabled)
    return _metrics_instance
