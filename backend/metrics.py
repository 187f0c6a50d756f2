"""Prometheus metrics for Lingarr monitoring.

Exposes process, translation, provider-retry, queue and HTTP metrics.
Scraped via ``GET /api/v1/metrics`` (unauthenticated, for Prometheus).
"""

import logging
import os

import psutil
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

logger = logging.getLogger(__name__)

# -- Metric Definitions -------------------------------------------------------

# System
CPU_USAGE = Gauge("lingarr_cpu_usage_percent", "CPU usage percentage")
MEMORY_USAGE = Gauge("lingarr_memory_usage_bytes", "Memory usage in bytes")

# Business -- translation requests
ACTIVE_TRANSLATIONS = Gauge(
    "lingarr_active_translations",
    "Translation requests currently in progress",
)
TRANSLATION_TOTAL = Counter(
    "lingarr_translation_total",
    "Translation requests that reached a terminal status",
    ["status"],
)
TRANSLATION_DURATION = Histogram(
    "lingarr_translation_duration_seconds",
    "Duration of successful translation attempts in seconds",
    buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1800),
)

# Providers
PROVIDER_RETRY_TOTAL = Counter(
    "lingarr_provider_retry_total",
    "Outbound provider calls retried after a transient failure",
    ["provider"],
)

# Database
DATABASE_SIZE = Gauge("lingarr_database_size_bytes", "SQLite database file size")

# Queue
QUEUE_SIZE = Gauge("lingarr_queue_size", "Number of jobs waiting in the dispatcher", ["backend"])
QUEUE_ACTIVE = Gauge("lingarr_queue_active_jobs", "Number of running jobs", ["backend"])
QUEUE_FAILED = Gauge("lingarr_queue_failed_jobs", "Number of failed jobs", ["backend"])

# HTTP
HTTP_REQUEST_DURATION = Histogram(
    "lingarr_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint", "status"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
HTTP_REQUEST_TOTAL = Counter(
    "lingarr_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

# App info
APP_INFO = Info("lingarr", "Lingarr application information")


# -- Collection helpers --------------------------------------------------------


def collect_system_metrics() -> None:
    """Update process resource gauges."""
    try:
        CPU_USAGE.set(psutil.cpu_percent(interval=None))
        MEMORY_USAGE.set(psutil.Process().memory_info().rss)
    except Exception as exc:
        logger.debug("Failed to collect system metrics: %s", exc)


def collect_database_metrics(db_path: str) -> None:
    """Update database size gauge."""
    try:
        if db_path and os.path.exists(db_path):
            DATABASE_SIZE.set(os.path.getsize(db_path))
    except OSError as exc:
        logger.debug("Failed to stat database file: %s", exc)


def collect_queue_job_metrics() -> None:
    """Update queue depth gauges from the app's dispatcher."""
    try:
        from flask import current_app

        queue = getattr(current_app, "job_queue", None)
        if queue:
            backend = queue.get_backend_info().get("type", "unknown")
            QUEUE_SIZE.labels(backend=backend).set(queue.get_queue_length())
            QUEUE_ACTIVE.labels(backend=backend).set(len(queue.get_active_jobs()))
            QUEUE_FAILED.labels(backend=backend).set(len(queue.get_failed_jobs(100)))
    except Exception as exc:
        logger.debug("Failed to collect queue metrics: %s", exc)


# -- Recording helpers ---------------------------------------------------------


def set_active_translations(count: int) -> None:
    ACTIVE_TRANSLATIONS.set(count)


def record_translation(status: str, duration: float | None = None) -> None:
    """Record a request reaching a terminal status."""
    TRANSLATION_TOTAL.labels(status=status).inc()
    if duration is not None:
        TRANSLATION_DURATION.observe(duration)


def record_provider_retry(provider: str) -> None:
    PROVIDER_RETRY_TOTAL.labels(provider=provider or "unknown").inc()


def record_http_request(method: str, endpoint: str, status: str, duration: float) -> None:
    """Record an HTTP request metric."""
    HTTP_REQUEST_DURATION.labels(method=method, endpoint=endpoint, status=status).observe(duration)
    HTTP_REQUEST_TOTAL.labels(method=method, endpoint=endpoint, status=status).inc()


# -- Endpoint helper -----------------------------------------------------------


def generate_metrics(db_path: str) -> tuple[bytes, str]:
    """Collect all metrics and return Prometheus text output.

    Returns:
        (body_bytes, content_type)
    """
    collect_system_metrics()
    collect_database_metrics(db_path)
    collect_queue_job_metrics()

    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
