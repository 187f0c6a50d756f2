"""Translation job -- the unit of work the dispatcher runs per request.

One execute() call is one dispatcher attempt. It never loops for
job-level retries itself: unhandled faults are logged and re-raised so the
dispatcher can run a fresh attempt, and only the final attempt records the
request as failed. Earlier attempts leave it in_progress for the next one.
A fault that surfaces once cancellation was requested is recorded as a
cancellation instead, since no further attempt will follow.
"""

import logging
import threading
import time

import subtitle_service
from db.repositories.translation_requests import RequestStatus, TranslationRequestRepository
from error_handler import CancellationRequested, InvalidTransitionError, LingarrError
from job_queue import JobContext, get_current_job
from subtitle_translator import SubtitleTranslator

logger = logging.getLogger(__name__)


def job_id_for(request_id: int) -> str:
    return f"translation-{request_id}"


def _short_error(exc: Exception) -> str:
    if isinstance(exc, LingarrError):
        return f"[{exc.code}] {exc}"[:300]
    return f"Unexpected error ({type(exc).__name__})"


class TranslationJob:
    """Drives one translation request from in_progress to a terminal status."""

    def __init__(self, repository=None, factory=None, progress=None,
                 subtitles=subtitle_service, notify=None):
        if repository is None:
            repository = TranslationRequestRepository()
        if factory is None:
            from translation import get_translation_factory
            factory = get_translation_factory()
        if progress is None:
            from progress import get_progress_service
            progress = get_progress_service()
        if notify is None:
            from notifier import send_notification as notify
        self._repo = repository
        self._factory = factory
        self._progress = progress
        self._subtitles = subtitles
        self._notify = notify

    def execute(self, request: dict, cancel: threading.Event | None = None,
                context: JobContext | None = None) -> dict | None:
        """Translate one request end to end.

        Args:
            request: Request dict as stored (needs at least ``id``).
            cancel: Cooperative cancellation event. Defaults to the
                current dispatcher job's event.
            context: Dispatcher metadata. Defaults to get_current_job();
                outside a dispatcher the single attempt is also the final one.

        Returns:
            The request dict in its final state for this attempt.

        Raises:
            Exception: Any fault of this attempt, for the dispatcher to retry.
        """
        context = context or get_current_job() or JobContext(job_id=job_id_for(request["id"]))
        if cancel is None:
            cancel = context.cancel_event
        request_id = request["id"]

        try:
            current = self._repo.update_status(request_id, context.job_id, RequestStatus.IN_PROGRESS)
        except InvalidTransitionError:
            existing = self._repo.get_request(request_id)
            if existing and existing["status"] in RequestStatus.TERMINAL:
                logger.info("Request %d is already %s, skipping job %s",
                            request_id, existing["status"], context.job_id)
                return existing
            raise

        started = time.monotonic()
        subtitle_path = current["subtitle_to_translate"]
        try:
            service_type = self._factory.get_configured_service_type()
            service = self._factory.create_service(service_type)
            logger.info("Translation job started for %s (request %d, job %s, attempt %d/%d, service %s)",
                        subtitle_path, request_id, context.job_id,
                        context.retry_count + 1, context.max_retry_count + 1, service_type)

            items = self._subtitles.read_subtitles(subtitle_path)
            translator = SubtitleTranslator(service, self._progress, current)
            translated = translator.translate(items, cancel)

            if cancel.is_set():
                raise CancellationRequested(f"Request {request_id} cancelled before write")

            output_path = self._subtitles.create_file_path(subtitle_path, current["target_language"])
            self._subtitles.write_subtitles(output_path, translated)

            done = self._repo.update_status(request_id, context.job_id, RequestStatus.COMPLETED,
                                            output_path=output_path, error="")
            self._progress.emit(done, 100, True)
            logger.info("Translation job completed for request %d: %s", request_id, output_path)
            self._on_completed(done, service_type, time.monotonic() - started)
            return done

        except CancellationRequested as exc:
            logger.info("Translation cancelled for %s (request %d): %s", subtitle_path, request_id, exc)
            return self._cancel(current, context)

        except Exception as exc:
            # The dispatcher never re-runs a cancelled job, so this attempt must settle the row
            if cancel.is_set():
                logger.info("Translation cancelled for %s (request %d) after fault: %s",
                            subtitle_path, request_id, exc)
                return self._cancel(current, context)
            logger.exception("Translation job failed for %s (request %d, job %s, attempt %d/%d)",
                             subtitle_path, request_id, context.job_id,
                             context.retry_count + 1, context.max_retry_count + 1)
            if context.is_final_attempt:
                self._fail(current, context, exc)
            raise

    def _cancel(self, request: dict, context: JobContext) -> dict:
        try:
            cancelled = self._repo.update_status(request["id"], context.job_id, RequestStatus.CANCELLED)
        except InvalidTransitionError as exc:
            logger.warning("Could not mark request %d cancelled: %s", request["id"], exc)
            cancelled = self._repo.get_request(request["id"]) or request
        self._progress.emit(cancelled, 0, False)
        self._record("cancelled")
        self._emit("translation_cancelled", {"request_id": request["id"], "job_id": context.job_id})
        return cancelled

    def _fail(self, request: dict, context: JobContext, exc: Exception) -> None:
        try:
            self._repo.update_status(request["id"], context.job_id, RequestStatus.FAILED,
                                     error=_short_error(exc))
        except Exception:
            logger.exception("Could not mark request %d failed", request["id"])
            return
        self._progress.reset(request["id"])
        self._record("failed")
        self._emit("translation_failed", {
            "request_id": request["id"],
            "job_id": context.job_id,
            "error": _short_error(exc),
        })
        self._notify(
            "Lingarr: translation failed",
            f"Translation of {request.get('title') or request['subtitle_to_translate']} "
            f"to {request['target_language']} failed after {context.retry_count + 1} attempt(s).",
            "warning",
            "translation_failed",
        )

    def _on_completed(self, request: dict, service_type: str, duration: float) -> None:
        self._record("completed", duration)
        self._emit("translation_complete", {
            "request_id": request["id"],
            "job_id": request["job_id"],
            "output_path": request["output_path"],
            "service_type": service_type,
        })
        self._notify(
            "Lingarr: translation complete",
            f"{request.get('title') or request['subtitle_to_translate']} "
            f"translated to {request['target_language']}.",
            "info",
            "translation_complete",
        )

    def _record(self, status: str, duration: float | None = None) -> None:
        try:
            from metrics import record_translation
            record_translation(status, duration)
        except Exception as exc:
            logger.debug("Failed to record translation metric: %s", exc)

    def _emit(self, event_name: str, data: dict) -> None:
        try:
            from events import emit_event
            emit_event(event_name, data)
        except Exception as exc:
            logger.debug("Failed to emit %s: %s", event_name, exc)
