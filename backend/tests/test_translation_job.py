"""Tests for TranslationJob: one dispatcher attempt over a real request row."""

import os
import threading
import time
from unittest.mock import ANY, MagicMock

import pytest

from conftest import FakeSettingsStore
from db.repositories.translation_requests import (
    RequestStatus,
    TranslationRequestRepository,
    get_active_gauge,
)
from error_handler import ConfigurationError, NonRetryableProviderError, UnsupportedProviderError
from events.catalog import lingarr_signals
from job_queue import JobContext, JobStatus
from job_queue.memory_queue import MemoryJobQueue
from progress import ProgressService
from setting_keys import SERVICE_TYPE
from subtitle_service import read_subtitles
from translation import TranslationServiceFactory, register_builtin_services
from translation.base import TranslationService
from translation_job import TranslationJob, job_id_for


class EchoService(TranslationService):
    """Prefixes text with the target language; on_translate hooks each call."""

    name = "echo"
    display_name = "Echo"

    def __init__(self, settings_store=None):
        super().__init__(settings_store)
        self.calls = []
        self.on_translate = None

    def _translate(self, text, source_language, target_language, cancel):
        self.calls.append(text)
        if self.on_translate is not None:
            self.on_translate(len(self.calls), cancel)
        return f"[{target_language.upper()}] {text}"


class ProgressRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, name, data):
        self.events.append((data["progress"], data["completed"]))


@pytest.fixture
def store():
    return FakeSettingsStore({SERVICE_TYPE: "echo"})


@pytest.fixture
def factory(store):
    factory = TranslationServiceFactory(settings_store=store)
    register_builtin_services(factory)
    factory.register_service(EchoService)
    return factory


@pytest.fixture
def echo(factory):
    return factory.create_service("echo")


@pytest.fixture
def recorder():
    return ProgressRecorder()


@pytest.fixture
def notify():
    return MagicMock(return_value=True)


@pytest.fixture
def repo(app):
    return TranslationRequestRepository()


@pytest.fixture
def job(repo, factory, recorder, notify):
    return TranslationJob(repository=repo, factory=factory,
                          progress=ProgressService(emitter=recorder), notify=notify)


@pytest.fixture
def subtitle(create_test_subtitle):
    return create_test_subtitle("movie.srt", ["Hello World", "How are you", "Goodbye"])


def _request(repo, path, target="fr"):
    return repo.create_request(path, target, "en", title="Movie")


def _context(request, retry_count=0, max_retry_count=5):
    return JobContext(job_id=job_id_for(request["id"]), retry_count=retry_count,
                      max_retry_count=max_retry_count)


# ============================================================================
# Success
# ============================================================================


def test_translates_and_writes_output(job, repo, echo, recorder, notify, subtitle):
    request = _request(repo, subtitle)

    result = job.execute(request, context=_context(request))

    expected_path = os.path.join(os.path.dirname(subtitle), "movie.fr.srt")
    assert result["status"] == RequestStatus.COMPLETED
    assert result["output_path"] == expected_path
    assert result["completed_at"] is not None
    assert result["job_id"] == "translation-%d" % request["id"]

    written = read_subtitles(expected_path)
    assert [item.lines for item in written] == [
        ["[FR] Hello World"], ["[FR] How are you"], ["[FR] Goodbye"],
    ]
    assert echo.calls == ["Hello World", "How are you", "Goodbye"]

    assert recorder.events[-1] == (100, True)
    intermediate = [p for p, done in recorder.events[:-1]]
    assert intermediate == sorted(intermediate)
    assert all(1 <= p <= 99 for p in intermediate)

    assert get_active_gauge().value == 0
    notify.assert_called_once_with("Lingarr: translation complete", ANY, "info",
                                   "translation_complete")


def test_completion_event_published(job, repo, subtitle):
    received = []

    def listener(sender, data=None, **kwargs):
        received.append(data)

    signal = lingarr_signals.signal("translation_complete")
    signal.connect(listener)
    try:
        request = _request(repo, subtitle)
        job.execute(request, context=_context(request))
    finally:
        signal.disconnect(listener)

    assert len(received) == 1
    assert received[0]["request_id"] == request["id"]
    assert received[0]["service_type"] == "echo"
    assert received[0]["output_path"].endswith("movie.fr.srt")


def test_blank_units_are_copied_through(job, repo, echo, tmp_path):
    path = tmp_path / "gaps.srt"
    path.write_text(
        "1\n00:00:01,000 --> 00:00:02,000\nHello\n\n"
        "2\n00:00:03,000 --> 00:00:04,000\n<i></i>\n\n"
        "3\n00:00:05,000 --> 00:00:06,000\nBye\n\n",
        encoding="utf-8",
    )
    request = _request(repo, str(path))

    job.execute(request, context=_context(request))

    assert echo.calls == ["Hello", "Bye"]


def test_terminal_request_redelivery_is_skipped(job, repo, echo, subtitle):
    request = _request(repo, subtitle)
    first = job.execute(request, context=_context(request))
    calls_before = list(echo.calls)

    again = job.execute(request, context=_context(request, retry_count=1))

    assert again == first
    assert echo.calls == calls_before


def test_retry_after_failed_attempt_completes(job, repo, echo, subtitle):
    """An earlier attempt leaves the request in_progress for the next one."""
    def fail_once(call, cancel):
        if call == 1:
            raise NonRetryableProviderError("HTTP 401: unauthorized", status_code=401)

    echo.on_translate = fail_once
    request = _request(repo, subtitle)

    with pytest.raises(NonRetryableProviderError):
        job.execute(request, context=_context(request, retry_count=0))

    result = job.execute(request, context=_context(request, retry_count=1))

    assert result["status"] == RequestStatus.COMPLETED
    assert get_active_gauge().value == 0


# ============================================================================
# Cancellation
# ============================================================================


def test_cancel_between_units(job, repo, echo, recorder, notify, subtitle):
    cancel = threading.Event()

    def cancel_after_first(call, _cancel):
        if call == 1:
            cancel.set()

    echo.on_translate = cancel_after_first
    request = _request(repo, subtitle)

    result = job.execute(request, cancel=cancel, context=_context(request))

    assert result["status"] == RequestStatus.CANCELLED
    assert result["completed_at"] is not None
    assert echo.calls == ["Hello World"]
    assert not os.path.exists(os.path.join(os.path.dirname(subtitle), "movie.fr.srt"))
    assert recorder.events[-1] == (0, False)
    assert get_active_gauge().value == 0
    notify.assert_not_called()


def test_cancel_during_last_unit_skips_write(job, repo, echo, recorder, subtitle):
    cancel = threading.Event()

    def cancel_on_last(call, _cancel):
        if call == 3:
            cancel.set()

    echo.on_translate = cancel_on_last
    request = _request(repo, subtitle)

    result = job.execute(request, cancel=cancel, context=_context(request))

    assert result["status"] == RequestStatus.CANCELLED
    assert not os.path.exists(os.path.join(os.path.dirname(subtitle), "movie.fr.srt"))
    assert recorder.events[-1] == (0, False)


def test_cancel_before_start(job, repo, echo, subtitle):
    cancel = threading.Event()
    cancel.set()
    request = _request(repo, subtitle)

    result = job.execute(request, cancel=cancel, context=_context(request))

    assert result["status"] == RequestStatus.CANCELLED
    assert echo.calls == []


def test_cancel_uses_job_context_event(job, repo, echo, subtitle):
    request = _request(repo, subtitle)
    context = _context(request)
    context.cancel_event.set()

    result = job.execute(request, context=context)

    assert result["status"] == RequestStatus.CANCELLED


# ============================================================================
# Failure
# ============================================================================


def _fatal(call, cancel):
    raise NonRetryableProviderError("HTTP 400: bad language pair", status_code=400)


def test_intermediate_attempt_failure_stays_in_progress(job, repo, echo, notify, subtitle):
    echo.on_translate = _fatal
    request = _request(repo, subtitle)

    with pytest.raises(NonRetryableProviderError):
        job.execute(request, context=_context(request, retry_count=2, max_retry_count=5))

    stored = repo.get_request(request["id"])
    assert stored["status"] == RequestStatus.IN_PROGRESS
    assert stored["completed_at"] is None
    assert get_active_gauge().value == 1
    notify.assert_not_called()


def test_final_attempt_failure_marks_failed(job, repo, echo, notify, subtitle):
    echo.on_translate = _fatal
    request = _request(repo, subtitle)

    with pytest.raises(NonRetryableProviderError):
        job.execute(request, context=_context(request, retry_count=5, max_retry_count=5))

    stored = repo.get_request(request["id"])
    assert stored["status"] == RequestStatus.FAILED
    assert stored["completed_at"] is not None
    assert "TRANS_003" in stored["error"]
    assert get_active_gauge().value == 0
    assert not os.path.exists(os.path.join(os.path.dirname(subtitle), "movie.fr.srt"))
    notify.assert_called_once_with("Lingarr: translation failed", ANY, "warning",
                                   "translation_failed")


def test_single_attempt_outside_dispatcher_is_final(job, repo, echo, subtitle):
    echo.on_translate = _fatal
    request = _request(repo, subtitle)

    with pytest.raises(NonRetryableProviderError):
        job.execute(request)

    assert repo.get_request(request["id"])["status"] == RequestStatus.FAILED


def test_missing_configuration_fails_on_final_attempt(job, repo, store, subtitle):
    store.values[SERVICE_TYPE] = "deepl"
    request = _request(repo, subtitle)

    with pytest.raises(ConfigurationError):
        job.execute(request, context=_context(request, retry_count=5, max_retry_count=5))

    stored = repo.get_request(request["id"])
    assert stored["status"] == RequestStatus.FAILED
    assert "CFG_001" in stored["error"]


def test_unsupported_provider_fails(job, repo, store, subtitle):
    store.values[SERVICE_TYPE] = "babelfish"
    request = _request(repo, subtitle)

    with pytest.raises(UnsupportedProviderError):
        job.execute(request, context=_context(request, retry_count=0, max_retry_count=0))

    assert repo.get_request(request["id"])["status"] == RequestStatus.FAILED


def test_missing_subtitle_file(job, repo, tmp_path):
    request = _request(repo, str(tmp_path / "nope.srt"))

    with pytest.raises(FileNotFoundError):
        job.execute(request, context=_context(request, retry_count=0, max_retry_count=0))

    stored = repo.get_request(request["id"])
    assert stored["status"] == RequestStatus.FAILED
    assert stored["error"] == "Unexpected error (FileNotFoundError)"


# ============================================================================
# Cancellation racing a fault
# ============================================================================


def test_fault_after_cancel_records_cancellation(job, repo, echo, recorder, notify, subtitle):
    """A fault on a non-final attempt still settles the row once cancel was requested."""
    cancel = threading.Event()

    def cancel_then_fail(call, _cancel):
        cancel.set()
        raise NonRetryableProviderError("HTTP 400: bad language pair", status_code=400)

    echo.on_translate = cancel_then_fail
    request = _request(repo, subtitle)

    result = job.execute(request, cancel=cancel, context=_context(request, retry_count=0))

    stored = repo.get_request(request["id"])
    assert result["status"] == RequestStatus.CANCELLED
    assert stored["status"] == RequestStatus.CANCELLED
    assert stored["completed_at"] is not None
    assert recorder.events[-1] == (0, False)
    assert get_active_gauge().value == 0
    notify.assert_not_called()


def test_fault_after_cancel_under_dispatcher(app, job, repo, echo, subtitle):
    queue = MemoryJobQueue(max_workers=1, retry_delay_seconds=0)
    request = _request(repo, subtitle)

    def cancel_then_fail(call, cancel):
        cancel.set()
        raise FileNotFoundError(subtitle)

    echo.on_translate = cancel_then_fail

    def run(req):
        with app.app_context():
            return job.execute(req)

    try:
        job_id = queue.enqueue(run, request, job_id=job_id_for(request["id"]), max_retries=5)
        info = _wait_for_job(queue, job_id)
    finally:
        queue.shutdown(wait=True)

    assert info.status == JobStatus.CANCELLED
    assert echo.calls == ["Hello World"]
    stored = repo.get_request(request["id"])
    assert stored["status"] == RequestStatus.CANCELLED
    assert stored["completed_at"] is not None
    assert get_active_gauge().value == 0


# ============================================================================
# Dispatcher-driven attempts
# ============================================================================


def _wait_for_job(queue, job_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        info = queue.get_job(job_id)
        if info is not None and info.status in (JobStatus.COMPLETED, JobStatus.FAILED,
                                                JobStatus.CANCELLED):
            return info
        time.sleep(0.01)
    raise AssertionError(f"job {job_id} did not finish: {queue.get_job(job_id)}")


def test_dispatcher_retries_until_final_failure(app, job, repo, echo, notify, subtitle):
    """Intermediate attempts leave in_progress; only the last records failed."""
    transitions = []
    update_status = repo.update_status

    def recording_update(request_id, job_id, status, **kwargs):
        transitions.append(status)
        return update_status(request_id, job_id, status, **kwargs)

    repo.update_status = recording_update
    attempts = []

    def fail_and_observe(call, cancel):
        attempts.append(repo.get_request(request["id"])["status"])
        _fatal(call, cancel)

    echo.on_translate = fail_and_observe
    request = _request(repo, subtitle)
    queue = MemoryJobQueue(max_workers=1, retry_delay_seconds=0)

    def run(req):
        with app.app_context():
            return job.execute(req)

    try:
        job_id = queue.enqueue(run, request, job_id=job_id_for(request["id"]), max_retries=2)
        info = _wait_for_job(queue, job_id)
    finally:
        queue.shutdown(wait=True)

    assert info.status == JobStatus.FAILED
    assert info.retry_count == 2
    assert attempts == [RequestStatus.IN_PROGRESS] * 3
    assert transitions == [RequestStatus.IN_PROGRESS] * 3 + [RequestStatus.FAILED]
    stored = repo.get_request(request["id"])
    assert stored["status"] == RequestStatus.FAILED
    assert "TRANS_003" in stored["error"]
    assert get_active_gauge().value == 0
    notify.assert_called_once_with("Lingarr: translation failed", ANY, "warning",
                                   "translation_failed")
