"""Centralized error handling with structured JSON error responses.

Custom exception hierarchy with error codes, HTTP status mapping,
and troubleshooting hints. All LingarrError subtypes are automatically
caught by Flask error handlers and returned as structured JSON.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Optional

from flask import jsonify, g

logger = logging.getLogger(__name__)


# ─── Exception Hierarchy ─────────────────────────────────────────────────────


class LingarrError(Exception):
    """Base exception for all Lingarr application errors.

    Attributes:
        code: Machine-readable error code (e.g. "TRANS_001")
        http_status: HTTP status code to return
        context: Additional context data for debugging
        troubleshooting: Human-readable hint for resolving the issue
    """

    code: str = "LINGARR_000"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
        context: Optional[dict] = None,
        troubleshooting: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        self.context = context or {}
        self.troubleshooting = troubleshooting


class TranslationError(LingarrError):
    """A provider call did not produce a translation."""

    code = "TRANS_001"
    http_status = 500


class TransientProviderError(TranslationError):
    """Rate limiting, server error, timeout or connection failure."""

    code = "TRANS_002"
    http_status = 503

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs: object) -> None:
        super().__init__(message, **kwargs)  # type: ignore[arg-type]
        self.status_code = status_code


class NonRetryableProviderError(TranslationError):
    """Provider rejected the request (any non-2xx that is not transient)."""

    code = "TRANS_003"
    http_status = 502

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs: object) -> None:
        super().__init__(message, **kwargs)  # type: ignore[arg-type]
        self.status_code = status_code


class InvalidResponseError(NonRetryableProviderError):
    """Provider answered 2xx with an empty or malformed body."""

    code = "TRANS_004"
    http_status = 502


class UnsupportedProviderError(TranslationError):
    """No translation service registered under the configured name."""

    code = "TRANS_005"
    http_status = 400

    def __init__(self, name: str = "", **kwargs: object) -> None:
        super().__init__(
            f"Unsupported translation service: '{name}'",
            troubleshooting="Pick one of the services listed under /api/v1/providers.",
            **kwargs,  # type: ignore[arg-type]
        )


class ConfigurationError(LingarrError):
    """Configuration validation errors."""

    code = "CFG_001"
    http_status = 400


class PersistenceError(LingarrError):
    """Database operation errors."""

    code = "DB_001"
    http_status = 500


class RequestNotFoundError(LingarrError):
    """Translation request does not exist."""

    code = "REQ_001"
    http_status = 404

    def __init__(self, request_id: object = None, **kwargs: object) -> None:
        super().__init__(f"Translation request {request_id} not found", **kwargs)  # type: ignore[arg-type]


class InvalidTransitionError(LingarrError):
    """Status change not permitted from the request's current state."""

    code = "REQ_002"
    http_status = 409


class OutputPathConflictError(LingarrError):
    """Derived output path would overwrite the source subtitle."""

    code = "REQ_004"
    http_status = 400


class CancellationRequested(Exception):
    """Caller asked to stop. Not an error: the pipeline short-circuits to Cancelled."""


# ─── Structured Error Response Builder ───────────────────────────────────────


def _build_error_response(error: LingarrError) -> dict:
    """Build a structured JSON error response from a LingarrError."""
    response: dict = {
        "error": str(error),
        "code": error.code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    # Include request ID if available
    request_id = getattr(g, "request_id", None)
    if request_id:
        response["request_id"] = request_id

    if error.context:
        response["context"] = error.context

    if error.troubleshooting:
        response["troubleshooting"] = error.troubleshooting

    return response


# ─── Flask Error Handler Registration ────────────────────────────────────────


def register_error_handlers(app: object) -> None:
    """Register global error handlers on a Flask app.

    Call this once during app setup to install:
    - LingarrError handler (structured JSON)
    - Generic Exception handler (500 with logging)
    - before_request hook for request IDs
    """
    from flask import Flask
    flask_app: Flask = app  # type: ignore[assignment]

    @flask_app.before_request
    def _set_request_id() -> None:
        """Assign a unique request ID to every incoming request."""
        g.request_id = str(uuid.uuid4())[:8]

    @flask_app.errorhandler(LingarrError)
    def _handle_lingarr_error(error: LingarrError):  # type: ignore[return]
        """Return structured JSON for known application errors."""
        logger.warning(
            "[%s] %s: %s (request_id=%s)",
            error.code,
            error.__class__.__name__,
            error,
            getattr(g, "request_id", "?"),
        )
        return jsonify(_build_error_response(error)), error.http_status

    @flask_app.errorhandler(Exception)
    def _handle_generic_error(error: Exception):  # type: ignore[return]
        """Catch-all: log full traceback, return generic 500."""
        # Don't intercept HTTPException (404, 405, etc.) - let Flask handle those
        from werkzeug.exceptions import HTTPException
        if isinstance(error, HTTPException):
            return error

        request_id = getattr(g, "request_id", "?")
        logger.exception(
            "Unhandled exception (request_id=%s): %s", request_id, error
        )
        return jsonify({
            "error": "Internal server error",
            "code": "INTERNAL_ERROR",
            "request_id": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }), 500
