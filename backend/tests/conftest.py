"""Shared pytest fixtures for all tests."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from config import reload_settings


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point the application at a fresh SQLite database in tmp_path."""
    db_path = tmp_path / "lingarr.db"
    monkeypatch.setenv("LINGARR_DB_PATH", str(db_path))
    monkeypatch.setenv("LINGARR_LOG_FILE", str(tmp_path / "lingarr.log"))
    monkeypatch.setenv("LINGARR_LOG_LEVEL", "ERROR")
    monkeypatch.setenv("LINGARR_REQUEUE_ON_STARTUP", "false")
    monkeypatch.setenv("LINGARR_PROVIDER_BASE_DELAY_MS", "1")
    monkeypatch.setenv("LINGARR_JOB_RETRY_DELAY_SECONDS", "0")
    reload_settings()
    yield str(db_path)
    reload_settings()


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Drop process-wide caches so tests never share provider or progress state."""
    import progress
    from notifier import invalidate_notifier
    from translation import invalidate_translation_factory

    invalidate_translation_factory()
    invalidate_notifier()
    progress._progress_service = None
    yield
    invalidate_translation_factory()
    invalidate_notifier()
    progress._progress_service = None


@pytest.fixture
def app(temp_db):
    """Flask app with an active application context."""
    from app import create_app
    from db import close_db

    application = create_app(testing=True)
    application.config["TESTING"] = True
    with application.app_context():
        yield application
        close_db()
    application.job_queue.shutdown(wait=True)


@pytest.fixture
def client(app):
    """Create a test client for Flask app."""
    with app.test_client() as client:
        yield client


@pytest.fixture
def fake_queue(app):
    """Replace the dispatcher with a MagicMock that never runs jobs."""
    real_queue = app.job_queue
    queue = MagicMock()
    queue.enqueue.side_effect = lambda func, *args, job_id=None, **kwargs: job_id
    queue.get_job.return_value = None
    queue.cancel_job.return_value = False
    queue.get_backend_info.return_value = {"type": "mock"}
    app.job_queue = queue
    yield queue
    app.job_queue = real_queue


@pytest.fixture
def create_test_subtitle(tmp_path):
    """Factory fixture to create SRT files with one cue per entry."""
    def _create(name="movie.srt", lines=None):
        if lines is None:
            lines = ["Hello World", "How are you"]

        content = ""
        for i, line in enumerate(lines, 1):
            content += f"{i}\n00:00:{(i-1)*3+1:02d},000 --> 00:00:{(i-1)*3+3:02d},000\n{line}\n\n"
        path = Path(tmp_path) / name
        path.write_text(content, encoding="utf-8")
        return str(path)

    return _create


class FakeSettingsStore:
    """In-memory stand-in for db.config (get_setting/get_settings)."""

    def __init__(self, values=None):
        self.values = dict(values or {})
        self.reads = 0

    def get_setting(self, key):
        return self.values.get(key)

    def get_settings(self, keys):
        self.reads += 1
        return {key: self.values.get(key) for key in keys}


@pytest.fixture
def settings_store():
    return FakeSettingsStore()


def make_response(status_code=200, json_data=None, text=None):
    """Build a requests.Response-like MagicMock."""
    resp = MagicMock()
    resp.status_code = status_code
    if json_data is None:
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        resp.json.return_value = json_data
    resp.text = text if text is not None else str(json_data or "")
    return resp
