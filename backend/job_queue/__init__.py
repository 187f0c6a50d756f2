"""Job queue abstraction layer -- the dispatcher for translation jobs.

Package named 'job_queue' (not 'queue') to avoid shadowing Python's
stdlib queue module, which is used by concurrent.futures.

Provides a QueueBackend ABC and the in-process MemoryJobQueue. Jobs are
delivered at least once: a job that raises is retried up to its
max_retries budget with exponential backoff, and can be cancelled
cooperatively while it runs. Running jobs read their own metadata
(retry count, retry budget, cancellation event) via get_current_job().
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    """Unified job status across all queue backends."""

    QUEUED = "queued"
    RUNNING = "running"
    RETRYING = "retrying"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class JobInfo:
    """Unified job information across all queue backends."""

    id: str
    func_name: str
    status: JobStatus
    enqueued_at: str
    started_at: str | None = None
    completed_at: str | None = None
    result: Any | None = None
    error: str | None = None
    retry_count: int = 0
    max_retries: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "func_name": self.func_name,
            "status": self.status.value,
            "enqueued_at": self.enqueued_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "error": self.error,
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
        }


@dataclass
class JobContext:
    """Out-of-band metadata for the job attempt currently executing.

    retry_count is 0 on the first attempt and max_retry_count on the last.
    """

    job_id: str
    retry_count: int = 0
    max_retry_count: int = 0
    cancel_event: threading.Event = field(default_factory=threading.Event)

    @property
    def is_final_attempt(self) -> bool:
        return self.retry_count >= self.max_retry_count


_current = threading.local()


def get_current_job() -> JobContext | None:
    """Return the JobContext of the job running on this thread, if any."""
    return getattr(_current, "job", None)


def _set_current_job(context: JobContext | None) -> None:
    _current.job = context


class QueueBackend(ABC):
    """Abstract base class for job queue backends."""

    @abstractmethod
    def enqueue(self, func: Callable, *args, job_id: str = None,
                max_retries: int = 0, **kwargs) -> str:
        """Submit a function for background execution.

        Args:
            func: The callable to execute.
            *args: Positional arguments for the callable.
            job_id: Optional custom job ID. Auto-generated if not provided.
            max_retries: How many times a failing job is re-run.
            **kwargs: Keyword arguments for the callable.

        Returns:
            The job ID (str).
        """

    @abstractmethod
    def get_job(self, job_id: str) -> JobInfo | None:
        """Get job status and metadata.

        Returns:
            JobInfo if found, None otherwise.
        """

    @abstractmethod
    def cancel_job(self, job_id: str) -> bool:
        """Cancel a queued job or signal a running one to stop.

        Returns:
            True if the job was cancelled or signalled.
        """

    @abstractmethod
    def get_queue_length(self) -> int:
        """Get number of pending (queued) jobs."""

    @abstractmethod
    def get_active_jobs(self) -> list[JobInfo]:
        """Get currently executing (or retry-waiting) jobs."""

    @abstractmethod
    def get_failed_jobs(self, limit: int = 50) -> list[JobInfo]:
        """Get failed jobs.

        Args:
            limit: Maximum number of failed jobs to return.
        """

    @abstractmethod
    def clear_failed(self) -> int:
        """Clear all failed job records.

        Returns:
            Number of failed jobs cleared.
        """

    @abstractmethod
    def get_backend_info(self) -> dict:
        """Get backend type and status information.

        Returns:
            Dict with at least: type (str), plus backend-specific details.
        """

    def shutdown(self, wait: bool = False) -> None:
        """Release worker resources."""


def create_job_queue(max_workers: int = 2, retry_delay_seconds: float = 30) -> QueueBackend:
    """Create the dispatcher backend.

    Args:
        max_workers: Number of translations that may run concurrently.
        retry_delay_seconds: Base delay before a failed job is re-run.

    Returns:
        A QueueBackend instance.
    """
    from job_queue.memory_queue import MemoryJobQueue

    logger.info("Memory job queue: %d workers, retry base delay %ss",
                max_workers, retry_delay_seconds)
    return MemoryJobQueue(max_workers=max_workers, retry_delay_seconds=retry_delay_seconds)
