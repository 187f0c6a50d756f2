"""System routes - /health, /metrics, /queue, /events/catalog, /openapi.json, /notifications/status."""

import logging

from flask import Blueprint, Response, current_app, jsonify
from sqlalchemy import text

from version import __version__

bp = Blueprint("system", __name__, url_prefix="/api/v1")
logger = logging.getLogger(__name__)


@bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint.
    ---
    get:
      tags:
        - System
      summary: Basic health check
      description: Returns overall status, version, database connectivity and dispatcher state.
      responses:
        200:
          description: System is healthy
        503:
          description: Database unreachable
    """
    from db.repositories.translation_requests import get_active_gauge
    from extensions import db

    services = {}
    healthy = True
    try:
        db.session.execute(text("SELECT 1"))
        services["database"] = "ok"
    except Exception as exc:
        logger.warning("Health check: database unreachable: %s", exc)
        services["database"] = "error"
        healthy = False

    queue = getattr(current_app, "job_queue", None)
    services["queue"] = queue.get_backend_info() if queue else "not initialized"

    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "version": __version__,
        "active_translations": get_active_gauge().value,
        "services": services,
    }), 200 if healthy else 503


@bp.route("/metrics", methods=["GET"])
def prometheus_metrics():
    """Prometheus metrics endpoint."""
    from config import get_settings
    from metrics import generate_metrics

    body, content_type = generate_metrics(get_settings().db_path)
    return Response(body, mimetype=content_type)


@bp.route("/queue", methods=["GET"])
def queue_status():
    """Dispatcher state: backend info, running and failed jobs."""
    queue = current_app.job_queue
    return jsonify({
        "backend": queue.get_backend_info(),
        "queued": queue.get_queue_length(),
        "active": [job.to_dict() for job in queue.get_active_jobs()],
        "failed": [job.to_dict() for job in queue.get_failed_jobs(50)],
    })


@bp.route("/events/catalog", methods=["GET"])
def event_catalog():
    """List all WebSocket events and their payload keys."""
    from events.catalog import get_event_catalog
    return jsonify({"events": get_event_catalog()})


@bp.route("/openapi.json", methods=["GET"])
def openapi_spec():
    """Serve the OpenAPI 3.0.3 specification as JSON."""
    from openapi import spec
    return jsonify(spec.to_dict())


@bp.route("/notifications/status", methods=["GET"])
def notification_status():
    """Get notification configuration status.
    ---
    get:
      tags:
        - System
      summary: Get notification status
      description: Returns whether Apprise URLs are configured, their count and which events notify.
      responses:
        200:
          description: Notification configuration status
    """
    from notifier import get_notification_status
    return jsonify(get_notification_status())
