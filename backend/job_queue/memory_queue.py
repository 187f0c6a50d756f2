"""In-memory job queue using ThreadPoolExecutor.

Jobs are executed in-process via a bounded thread pool and do NOT persist
across restarts; unfinished translation requests are re-dispatched from
the database at startup instead.
"""

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime
from typing import Any

from job_queue import (
    JobContext,
    JobInfo,
    JobStatus,
    QueueBackend,
    _set_current_job,
)

logger = logging.getLogger(__name__)

# Auto-cleanup completed/failed jobs older than this (seconds)
_JOB_RETENTION_SECONDS = 24 * 60 * 60

# Run cleanup every N enqueue calls
_CLEANUP_INTERVAL = 50

_FINISHED = (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class MemoryJobQueue(QueueBackend):
    """QueueBackend implementation using ThreadPoolExecutor.

    A job that raises is re-run on the same worker after
    ``retry_delay_seconds * 2**retry_count`` seconds until its
    max_retries budget is spent. The backoff wait is interrupted by
    cancel_job().

    Completed/failed job metadata is retained for 24 hours for status
    queries, then automatically cleaned up.
    """

    def __init__(self, max_workers: int = 2, retry_delay_seconds: float = 30):
        """Initialize with a bounded thread pool.

        Args:
            max_workers: Maximum number of concurrent worker threads.
            retry_delay_seconds: Base delay between job-level retries.
        """
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="lingarr-job")
        self._max_workers = max_workers
        self._retry_delay_seconds = retry_delay_seconds
        self._jobs: dict = {}  # job_id -> job metadata dict
        self._lock = threading.Lock()
        self._enqueue_count = 0

    def enqueue(self, func, *args, job_id: str = None, max_retries: int = 0,
                **kwargs) -> str:
        """Submit a function for execution in the thread pool.

        Args:
            func: The callable to execute.
            *args: Positional arguments.
            job_id: Optional custom job ID. Auto-generated (uuid[:8]) if not provided.
            max_retries: Job-level retry budget.
            **kwargs: Keyword arguments.

        Returns:
            The job ID.
        """
        if job_id is None:
            job_id = uuid.uuid4().hex[:8]

        now = datetime.now(UTC).isoformat()
        func_name = getattr(func, "__name__", str(func))

        with self._lock:
            existing = self._jobs.get(job_id)
            if existing is not None and existing["status"] not in _FINISHED:
                logger.warning("Job %s is already queued or running, not enqueuing twice", job_id)
                return job_id
            self._jobs[job_id] = {
                "status": JobStatus.QUEUED,
                "func_name": func_name,
                "enqueued_at": now,
                "started_at": None,
                "completed_at": None,
                "result": None,
                "error": None,
                "retry_count": 0,
                "max_retries": max(0, int(max_retries)),
                "cancel_event": threading.Event(),
                "future": None,
            }
            future = self._executor.submit(self._run_job, job_id, func, *args, **kwargs)
            self._jobs[job_id]["future"] = future

        future.add_done_callback(lambda f: self._on_complete(job_id, f))
        logger.debug("Enqueued job %s: %s (max_retries=%d)", job_id, func_name, max_retries)

        self._enqueue_count += 1
        if self._enqueue_count % _CLEANUP_INTERVAL == 0:
            self._cleanup_old_jobs()

        return job_id

    def _run_job(self, job_id: str, func, *args, **kwargs) -> Any:
        """Execute the job function, re-running it on failure.

        Returns:
            The result of the first successful func(*args, **kwargs).
        """
        with self._lock:
            meta = self._jobs[job_id]
            cancel_event = meta["cancel_event"]
            max_retries = meta["max_retries"]

        retry_count = 0
        while True:
            with self._lock:
                meta["status"] = JobStatus.RUNNING
                meta["retry_count"] = retry_count
                meta["started_at"] = datetime.now(UTC).isoformat()

            _set_current_job(JobContext(
                job_id=job_id,
                retry_count=retry_count,
                max_retry_count=max_retries,
                cancel_event=cancel_event,
            ))
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                if cancel_event.is_set() or retry_count >= max_retries:
                    raise
                delay = self._retry_delay_seconds * (2 ** retry_count)
                retry_count += 1
                with self._lock:
                    meta["status"] = JobStatus.RETRYING
                    meta["error"] = str(exc)
                logger.warning("Job %s failed (%s), retry %d/%d in %.1fs",
                               job_id, exc, retry_count, max_retries, delay)
                if cancel_event.wait(delay):
                    logger.info("Job %s cancelled while waiting to retry", job_id)
                    raise
            finally:
                _set_current_job(None)

    def _on_complete(self, job_id: str, future: Future) -> None:
        """Callback when a job future completes (success, failure or cancel)."""
        now = datetime.now(UTC).isoformat()
        with self._lock:
            meta = self._jobs.get(job_id)
            if meta is None or meta.get("future") is not future:
                return

            meta["completed_at"] = now
            if future.cancelled():
                meta["status"] = JobStatus.CANCELLED
                return

            exc = future.exception()
            if meta["cancel_event"].is_set():
                meta["status"] = JobStatus.CANCELLED
                if exc is not None:
                    meta["error"] = str(exc)
            elif exc is not None:
                meta["status"] = JobStatus.FAILED
                meta["error"] = str(exc)
                logger.debug("Job %s failed: %s", job_id, exc)
            else:
                meta["status"] = JobStatus.COMPLETED
                meta["error"] = None
                meta["result"] = future.result()

    def _to_info(self, job_id: str, meta: dict) -> JobInfo:
        return JobInfo(
            id=job_id,
            func_name=meta["func_name"],
            status=meta["status"],
            enqueued_at=meta["enqueued_at"],
            started_at=meta["started_at"],
            completed_at=meta["completed_at"],
            result=meta["result"],
            error=meta["error"],
            retry_count=meta["retry_count"],
            max_retries=meta["max_retries"],
        )

    def get_job(self, job_id: str) -> JobInfo | None:
        """Get job status from the in-memory tracker."""
        with self._lock:
            meta = self._jobs.get(job_id)
            if meta is None:
                return None
            return self._to_info(job_id, meta)

    def cancel_job(self, job_id: str) -> bool:
        """Cancel a queued job, or signal a running one to stop.

        A queued job is removed from the pool. A running or retry-waiting
        job gets its cancellation event set; the job observes it at its
        next checkpoint.

        Returns:
            True if the job was cancelled or signalled.
        """
        with self._lock:
            meta = self._jobs.get(job_id)
            if meta is None or meta["status"] in _FINISHED:
                return False

            meta["cancel_event"].set()
            future = meta.get("future")

        # Future.cancel() runs _on_complete synchronously, which takes the lock
        if future is not None and future.cancel():
            logger.debug("Cancelled queued job %s", job_id)
            return True

        logger.debug("Signalled running job %s to cancel", job_id)
        return True

    def get_queue_length(self) -> int:
        """Get number of queued (not yet started) jobs."""
        with self._lock:
            return sum(
                1 for meta in self._jobs.values()
                if meta["status"] == JobStatus.QUEUED
            )

    def get_active_jobs(self) -> list[JobInfo]:
        """Get running and retry-waiting jobs."""
        with self._lock:
            return [
                self._to_info(job_id, meta)
                for job_id, meta in self._jobs.items()
                if meta["status"] in (JobStatus.RUNNING, JobStatus.RETRYING)
            ]

    def get_failed_jobs(self, limit: int = 50) -> list[JobInfo]:
        """Get failed jobs.

        Args:
            limit: Maximum number to return.
        """
        with self._lock:
            results = []
            for job_id, meta in self._jobs.items():
                if meta["status"] == JobStatus.FAILED:
                    results.append(self._to_info(job_id, meta))
                    if len(results) >= limit:
                        break
            return results

    def clear_failed(self) -> int:
        """Remove all failed job entries.

        Returns:
            Number of failed jobs cleared.
        """
        with self._lock:
            failed_ids = [
                jid for jid, meta in self._jobs.items()
                if meta["status"] == JobStatus.FAILED
            ]
            for jid in failed_ids:
                del self._jobs[jid]

        if failed_ids:
            logger.info("Cleared %d failed jobs from memory queue", len(failed_ids))
        return len(failed_ids)

    def get_backend_info(self) -> dict:
        """Get memory queue status information."""
        with self._lock:
            active = sum(1 for m in self._jobs.values()
                         if m["status"] in (JobStatus.RUNNING, JobStatus.RETRYING))
            queued = sum(1 for m in self._jobs.values() if m["status"] == JobStatus.QUEUED)
            total = len(self._jobs)

        return {
            "type": "memory",
            "max_workers": self._max_workers,
            "retry_delay_seconds": self._retry_delay_seconds,
            "active": active,
            "queued": queued,
            "total_tracked": total,
        }

    def shutdown(self, wait: bool = False) -> None:
        """Signal every unfinished job to stop and release the pool."""
        with self._lock:
            for meta in self._jobs.values():
                if meta["status"] not in _FINISHED:
                    meta["cancel_event"].set()
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def _cleanup_old_jobs(self) -> None:
        """Remove finished job entries older than _JOB_RETENTION_SECONDS."""
        cutoff = time.time() - _JOB_RETENTION_SECONDS
        with self._lock:
            old_ids = []
            for jid, meta in self._jobs.items():
                if meta["status"] in _FINISHED:
                    completed_at = meta.get("completed_at")
                    if completed_at:
                        try:
                            if datetime.fromisoformat(completed_at).timestamp() < cutoff:
                                old_ids.append(jid)
                        except (ValueError, TypeError):
                            old_ids.append(jid)
            for jid in old_ids:
                del self._jobs[jid]

        if old_ids:
            logger.debug("Cleaned up %d old job entries from memory queue", len(old_ids))
