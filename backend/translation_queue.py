"""Dispatch service: turns translation requests into dispatcher jobs.

Routes and startup recovery call these functions; the jobs themselves run
TranslationJob.execute() inside an application context on a worker thread.
"""

import logging

from flask import current_app

import subtitle_service
from config import get_settings
from db.repositories.translation_requests import RequestStatus, TranslationRequestRepository
from error_handler import InvalidTransitionError, LingarrError, RequestNotFoundError
from events import emit_event
from job_queue import JobStatus
from translation_job import TranslationJob, job_id_for

logger = logging.getLogger(__name__)


def _run_translation(app, request: dict):
    """Dispatcher entry point for one attempt."""
    with app.app_context():
        return TranslationJob().execute(request)


def _get_app(app=None):
    return app if app is not None else current_app._get_current_object()


def _dispatch(app, request: dict) -> str:
    settings = get_settings()
    job_id = app.job_queue.enqueue(
        _run_translation, app, request,
        job_id=job_id_for(request["id"]),
        max_retries=settings.job_max_retries,
    )
    logger.info("Dispatched translation request %d as job %s", request["id"], job_id)
    return job_id


def _validate_language(value: str, field: str) -> str:
    value = (value or "").strip().lower()
    if not value or len(value) > 10 or not all(c.isalpha() or c == "-" for c in value):
        raise LingarrError(
            f"Invalid {field}: '{value}'",
            code="REQ_003",
            http_status=400,
            context={"field": field},
        )
    return value


def submit_request(subtitle_to_translate: str, target_language: str,
                   source_language: str | None = None, title: str = "",
                   app=None) -> dict:
    """Create a pending request and hand it to the dispatcher.

    Returns:
        The created request dict.
    """
    if not subtitle_to_translate or not str(subtitle_to_translate).strip():
        raise LingarrError("subtitle_to_translate is required", code="REQ_003",
                           http_status=400, context={"field": "subtitle_to_translate"})

    app = _get_app(app)
    target = _validate_language(target_language, "target_language")
    source = _validate_language(source_language or get_settings().default_source_language,
                                "source_language")
    subtitle_service.create_file_path(str(subtitle_to_translate).strip(), target)

    repo = TranslationRequestRepository()
    request = repo.create_request(
        subtitle_to_translate=str(subtitle_to_translate).strip(),
        target_language=target,
        source_language=source,
        title=title or "",
    )
    job_id = _dispatch(app, request)
    emit_event("translation_requested", {
        "request_id": request["id"],
        "job_id": job_id,
        "title": request["title"],
        "target_language": target,
    })
    return request


def cancel_request(request_id: int, app=None) -> tuple[dict, bool]:
    """Cancel a request.

    A job that is actually running is only signalled; it records the
    cancellation itself at its next checkpoint. Otherwise the request is
    moved to cancelled here.

    Returns:
        (request dict, signalled_only)

    Raises:
        RequestNotFoundError: Unknown request id.
        InvalidTransitionError: Request already reached a terminal status.
    """
    app = _get_app(app)
    repo = TranslationRequestRepository()
    request = repo.get_request(request_id)
    if request is None:
        raise RequestNotFoundError(request_id)
    if request["status"] in RequestStatus.TERMINAL:
        raise InvalidTransitionError(
            f"Request {request_id} is already {request['status']}",
            context={"request_id": request_id, "status": request["status"]},
        )

    job_id = request["job_id"] or job_id_for(request_id)
    job = app.job_queue.get_job(job_id)
    app.job_queue.cancel_job(job_id)
    if job is not None and job.status == JobStatus.RUNNING:
        logger.info("Signalled running job %s to cancel request %d", job_id, request_id)
        return request, True

    cancelled = repo.update_status(request_id, request["job_id"], RequestStatus.CANCELLED)
    from progress import get_progress_service
    get_progress_service().emit(cancelled, 0, False)
    emit_event("translation_cancelled", {"request_id": request_id, "job_id": job_id})
    return cancelled, False


def retry_request(request_id: int, app=None) -> dict:
    """Re-submit a failed or cancelled request as a new pending request."""
    repo = TranslationRequestRepository()
    request = repo.get_request(request_id)
    if request is None:
        raise RequestNotFoundError(request_id)
    if request["status"] not in (RequestStatus.FAILED, RequestStatus.CANCELLED):
        raise InvalidTransitionError(
            f"Only failed or cancelled requests can be retried (request {request_id} is {request['status']})",
            context={"request_id": request_id, "status": request["status"]},
        )

    logger.info("Retrying translation request %d", request_id)
    return submit_request(
        subtitle_to_translate=request["subtitle_to_translate"],
        target_language=request["target_language"],
        source_language=request["source_language"],
        title=request["title"],
        app=app,
    )


def requeue_unfinished_requests(app) -> int:
    """Re-dispatch pending/in_progress requests left over from a previous run.

    Must be called inside an application context.
    """
    repo = TranslationRequestRepository()
    repo.update_active_count()
    unfinished = repo.get_unfinished_requests()
    for request in unfinished:
        _dispatch(app, request)
    if unfinished:
        logger.info("Re-queued %d unfinished translation requests", len(unfinished))
    return len(unfinished)
