"""Tests for the in-memory dispatcher: retries, job context and cancellation."""

import threading
import time

import pytest

from job_queue import JobContext, JobStatus, create_job_queue, get_current_job
from job_queue.memory_queue import MemoryJobQueue


@pytest.fixture
def queue():
    q = MemoryJobQueue(max_workers=2, retry_delay_seconds=0)
    yield q
    q.shutdown(wait=True)


def _wait_for(queue, job_id, statuses, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        job = queue.get_job(job_id)
        if job is not None and job.status in statuses:
            return job
        time.sleep(0.01)
    raise AssertionError(f"job {job_id} never reached {statuses}: {queue.get_job(job_id)}")


_DONE = (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


def test_job_completes_with_result(queue):
    job_id = queue.enqueue(lambda a, b: a + b, 2, 3, job_id="add")

    job = _wait_for(queue, job_id, _DONE)

    assert job_id == "add"
    assert job.status == JobStatus.COMPLETED
    assert job.result == 5
    assert job.completed_at is not None


def test_generated_job_id(queue):
    job_id = queue.enqueue(lambda: None)

    assert len(job_id) == 8
    _wait_for(queue, job_id, _DONE)


def test_failing_job_is_retried_until_success(queue):
    contexts = []

    def flaky():
        context = get_current_job()
        contexts.append((context.retry_count, context.max_retry_count, context.is_final_attempt))
        if len(contexts) < 3:
            raise RuntimeError("provider down")
        return "ok"

    job_id = queue.enqueue(flaky, job_id="flaky", max_retries=3)
    job = _wait_for(queue, job_id, _DONE)

    assert job.status == JobStatus.COMPLETED
    assert job.retry_count == 2
    assert contexts == [(0, 3, False), (1, 3, False), (2, 3, False)]


def test_retry_budget_exhausted(queue):
    contexts = []

    def always_fails():
        contexts.append(get_current_job())
        raise RuntimeError("still down")

    job_id = queue.enqueue(always_fails, job_id="doomed", max_retries=2)
    job = _wait_for(queue, job_id, _DONE)

    assert job.status == JobStatus.FAILED
    assert job.error == "still down"
    assert len(contexts) == 3
    assert [c.is_final_attempt for c in contexts] == [False, False, True]
    assert [f.id for f in queue.get_failed_jobs()] == ["doomed"]


def test_no_retries_by_default(queue):
    calls = []

    def fails():
        calls.append(1)
        raise ValueError("nope")

    job = _wait_for(queue, queue.enqueue(fails), _DONE)

    assert job.status == JobStatus.FAILED
    assert calls == [1]


def test_current_job_cleared_outside_jobs(queue):
    job = _wait_for(queue, queue.enqueue(get_current_job), _DONE)

    assert isinstance(job.result, JobContext)
    assert get_current_job() is None


def test_cancel_running_job_signals_event(queue):
    started = threading.Event()

    def long_running():
        context = get_current_job()
        started.set()
        context.cancel_event.wait(5)
        return "stopped"

    job_id = queue.enqueue(long_running, job_id="long")
    assert started.wait(5)

    assert queue.cancel_job(job_id) is True
    job = _wait_for(queue, job_id, _DONE)

    assert job.status == JobStatus.CANCELLED


def test_cancel_queued_job_never_runs():
    queue = MemoryJobQueue(max_workers=1, retry_delay_seconds=0)
    gate = threading.Event()
    ran = []
    try:
        queue.enqueue(gate.wait, 5, job_id="blocker")
        queue.enqueue(lambda: ran.append(1), job_id="victim")

        assert queue.cancel_job("victim") is True
        assert queue.get_job("victim").status == JobStatus.CANCELLED
        gate.set()
        _wait_for(queue, "blocker", _DONE)
    finally:
        gate.set()
        queue.shutdown(wait=True)

    assert ran == []


def test_cancel_interrupts_retry_backoff():
    queue = MemoryJobQueue(max_workers=1, retry_delay_seconds=30)
    calls = []

    def fails():
        calls.append(1)
        raise RuntimeError("down")

    try:
        job_id = queue.enqueue(fails, job_id="backoff", max_retries=5)
        _wait_for(queue, job_id, (JobStatus.RETRYING,))

        assert queue.cancel_job(job_id) is True
        job = _wait_for(queue, job_id, _DONE)
    finally:
        queue.shutdown(wait=True)

    assert job.status == JobStatus.CANCELLED
    assert calls == [1]


def test_cancel_unknown_or_finished_job(queue):
    job_id = queue.enqueue(lambda: 1, job_id="quick")
    _wait_for(queue, job_id, _DONE)

    assert queue.cancel_job("quick") is False
    assert queue.cancel_job("missing") is False


def test_duplicate_enqueue_of_active_job_is_ignored(queue):
    gate = threading.Event()
    calls = []

    def blocked():
        calls.append(1)
        gate.wait(5)

    queue.enqueue(blocked, job_id="translation-1")
    queue.enqueue(blocked, job_id="translation-1")
    gate.set()
    _wait_for(queue, "translation-1", _DONE)

    assert calls == [1]


def test_finished_job_id_can_be_enqueued_again(queue):
    _wait_for(queue, queue.enqueue(lambda: "first", job_id="again"), _DONE)

    job = _wait_for(queue, queue.enqueue(lambda: "second", job_id="again"), _DONE)

    assert job.result == "second"


def test_clear_failed(queue):
    def fails():
        raise RuntimeError("x")

    _wait_for(queue, queue.enqueue(fails, job_id="f1"), _DONE)
    _wait_for(queue, queue.enqueue(fails, job_id="f2"), _DONE)

    assert queue.clear_failed() == 2
    assert queue.get_failed_jobs() == []


def test_backend_info_and_job_dict(queue):
    job_id = queue.enqueue(lambda: None, job_id="info", max_retries=4)
    job = _wait_for(queue, job_id, _DONE)

    info = queue.get_backend_info()
    data = job.to_dict()

    assert info["type"] == "memory"
    assert info["max_workers"] == 2
    assert data["status"] == "completed"
    assert data["max_retries"] == 4
    assert "result" not in data


def test_create_job_queue():
    q = create_job_queue(max_workers=3, retry_delay_seconds=1)
    try:
        assert isinstance(q, MemoryJobQueue)
        assert q.get_backend_info()["max_workers"] == 3
    finally:
        q.shutdown()
