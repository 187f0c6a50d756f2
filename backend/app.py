"""Application factory for the Lingarr Flask API server.

Uses the Flask Application Factory pattern: create_app() builds and
configures the application, initializes extensions, registers blueprints,
creates the dispatcher and re-queues unfinished translation requests.
"""

import logging
import os
import time

from flask import Flask

from extensions import socketio

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class StructuredJSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging (ELK, Loki, etc.)."""

    def format(self, record: logging.LogRecord) -> str:
        import json as _json
        from flask import g as _g

        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
        }

        request_id = getattr(_g, "request_id", None) if _has_app_context() else None
        if request_id:
            entry["request_id"] = request_id

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        return _json.dumps(entry, default=str)


def _has_app_context() -> bool:
    from flask import has_app_context
    return has_app_context()


class SocketIOLogHandler(logging.Handler):
    """Emits log entries to connected WebSocket clients."""

    def __init__(self, sio):
        super().__init__()
        self.sio = sio

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.sio.emit("log_entry", {"message": self.format(record)})
        except Exception:
            pass  # Never break the app because of log emission


def _setup_logging(settings) -> None:
    """Set up file handler and WebSocket handler on the root logger."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    root = logging.getLogger()
    root.setLevel(log_level)
    installed = {type(h) for h in root.handlers}

    if settings.log_format.lower() == "json":
        formatter: logging.Formatter = StructuredJSONFormatter()
    else:
        formatter = logging.Formatter(LOG_FORMAT)

    from logging.handlers import RotatingFileHandler
    if RotatingFileHandler not in installed:
        log_file = settings.log_file
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            fh = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
            fh.setLevel(log_level)
            fh.setFormatter(formatter)
            root.addHandler(fh)
        except Exception as e:
            logging.getLogger(__name__).warning("Could not set up log file %s: %s", log_file, e)

    if SocketIOLogHandler not in installed:
        ws_handler = SocketIOLogHandler(socketio)
        ws_handler.setLevel(log_level)
        ws_handler.setFormatter(logging.Formatter(LOG_FORMAT))  # Always text for WebSocket
        root.addHandler(ws_handler)


def create_app(testing=False):
    """Create and configure the Flask application.

    Args:
        testing: If True, skip re-queueing unfinished requests at startup.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    from config import get_settings, reload_settings
    settings = get_settings()

    _setup_logging(settings)
    logger = logging.getLogger(__name__)

    socketio.init_app(app, cors_allowed_origins="*", async_mode="threading")

    # Structured error handlers (LingarrError -> JSON, generic 500)
    from error_handler import register_error_handlers
    register_error_handlers(app)

    # ---- Flask-SQLAlchemy initialization ----
    app.config["SQLALCHEMY_DATABASE_URI"] = settings.get_database_url()
    if not settings.database_url or settings.database_url.startswith("sqlite"):
        # Worker threads share the engine
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "connect_args": {"check_same_thread": False, "timeout": 30},
        }
    else:
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {"pool_pre_ping": True}

    from extensions import db as sa_db
    sa_db.init_app(app)

    with app.app_context():
        from db import init_db
        init_db()

        from events import init_event_system
        init_event_system(app)

        # Runtime settings saved via the UI take precedence over env/defaults
        from db.config import get_all_settings
        _db_overrides = get_all_settings()
        if _db_overrides:
            logger.info("Applying %d config overrides from database", len(_db_overrides))
            settings = reload_settings(_db_overrides)

        from job_queue import create_job_queue
        app.job_queue = create_job_queue(
            max_workers=settings.max_parallel_translations,
            retry_delay_seconds=settings.job_retry_delay_seconds,
        )

        from routes import register_blueprints
        register_blueprints(app)

        from openapi import register_all_paths
        register_all_paths(app)

        _register_request_metrics(app)

        @socketio.on("connect")
        def handle_connect():
            logger.debug("WebSocket client connected")

        @socketio.on("disconnect")
        def handle_disconnect():
            logger.debug("WebSocket client disconnected")

        from translation_queue import requeue_unfinished_requests
        from db.repositories.translation_requests import TranslationRequestRepository
        if not testing and settings.requeue_on_startup:
            requeue_unfinished_requests(app)
        else:
            TranslationRequestRepository().update_active_count()

    from metrics import APP_INFO
    from version import __version__
    APP_INFO.info({"version": __version__})

    return app


def _register_request_metrics(app):
    """Record duration and count of every API request."""
    from flask import g, request

    from metrics import record_http_request

    @app.before_request
    def _start_timer():
        g.request_started = time.monotonic()

    @app.after_request
    def _record(response):
        started = getattr(g, "request_started", None)
        if started is not None and request.url_rule is not None:
            record_http_request(request.method, request.url_rule.rule,
                                str(response.status_code), time.monotonic() - started)
        return response
