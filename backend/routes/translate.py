"""Translation routes - /translate, /translation-requests/*."""

import logging

from flask import Blueprint, jsonify, request

from db.repositories.translation_requests import RequestStatus, TranslationRequestRepository
from error_handler import RequestNotFoundError

bp = Blueprint("translate", __name__, url_prefix="/api/v1")
logger = logging.getLogger(__name__)


@bp.route("/translate", methods=["POST"])
def translate():
    """Queue a subtitle file for translation.
    ---
    post:
      tags:
        - Translate
      summary: Create a translation request
      description: >
        Creates a pending translation request and hands it to the dispatcher.
        Progress is published on the request_progress WebSocket event.
      requestBody:
        required: true
        content:
          application/json:
            schema:
              type: object
              required: [subtitle_to_translate, target_language]
              properties:
                subtitle_to_translate:
                  type: string
                  description: Path of the source subtitle file
                target_language:
                  type: string
                  example: fr
                source_language:
                  type: string
                  example: en
                title:
                  type: string
      responses:
        202:
          description: Request created and queued
        400:
          description: Missing or invalid fields
    """
    from translation_queue import submit_request

    data = request.get_json(silent=True) or {}
    created = submit_request(
        subtitle_to_translate=data.get("subtitle_to_translate", ""),
        target_language=data.get("target_language", ""),
        source_language=data.get("source_language"),
        title=data.get("title", ""),
    )
    return jsonify(created), 202


@bp.route("/translation-requests", methods=["GET"])
def list_requests():
    """List translation requests, newest first.
    ---
    get:
      tags:
        - Translate
      summary: List translation requests
      parameters:
        - in: query
          name: page
          schema:
            type: integer
            default: 1
        - in: query
          name: per_page
          schema:
            type: integer
            default: 50
        - in: query
          name: status
          schema:
            type: string
            enum: [pending, in_progress, completed, cancelled, failed]
      responses:
        200:
          description: Paginated request list
        400:
          description: Unknown status filter
    """
    page = request.args.get("page", 1, type=int)
    per_page = min(request.args.get("per_page", 50, type=int), 200)
    status = request.args.get("status")
    if status and status not in RequestStatus.ALL:
        return jsonify({"error": f"Unknown status: {status}"}), 400

    return jsonify(TranslationRequestRepository().get_requests(page, per_page, status))


@bp.route("/translation-requests/active", methods=["GET"])
def active_count():
    """Number of requests currently in progress."""
    return jsonify({"count": TranslationRequestRepository().get_active_count()})


@bp.route("/translation-requests/<int:request_id>", methods=["GET"])
def get_request(request_id):
    """Get one translation request."""
    found = TranslationRequestRepository().get_request(request_id)
    if found is None:
        raise RequestNotFoundError(request_id)
    return jsonify(found)


@bp.route("/translation-requests/<int:request_id>/cancel", methods=["POST"])
def cancel(request_id):
    """Cancel a pending or in-progress request.
    ---
    post:
      tags:
        - Translate
      summary: Cancel a translation request
      description: >
        Requests that are not yet running are cancelled immediately (200).
        A running job is signalled and records the cancellation at its
        next checkpoint (202).
      responses:
        200:
          description: Request cancelled
        202:
          description: Running job signalled
        404:
          description: Unknown request
        409:
          description: Request already finished
    """
    from translation_queue import cancel_request

    result, signalled = cancel_request(request_id)
    return jsonify({"request": result, "signalled": signalled}), 202 if signalled else 200


@bp.route("/translation-requests/<int:request_id>/retry", methods=["POST"])
def retry(request_id):
    """Re-submit a failed or cancelled request as a new request."""
    from translation_queue import retry_request

    return jsonify(retry_request(request_id)), 202
