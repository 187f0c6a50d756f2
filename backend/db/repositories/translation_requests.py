"""Translation request repository -- owner of the request lifecycle.

Every status change goes through update_status(), which applies the
transition table under a process-wide lock inside a single transaction.
The ActiveTranslationGauge lives here too: it is only ever adjusted
after a transition has committed.
"""

import logging
import threading
from typing import Optional

from sqlalchemy import func, select

from db.models.core import TranslationRequest
from db.repositories.base import BaseRepository
from error_handler import InvalidTransitionError, RequestNotFoundError
from transaction_manager import transaction

logger = logging.getLogger(__name__)


class RequestStatus:
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    ACTIVE = (PENDING, IN_PROGRESS)
    TERMINAL = (COMPLETED, CANCELLED, FAILED)
    ALL = ACTIVE + TERMINAL


# from-status -> allowed to-statuses (same-status calls are handled separately)
_TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.IN_PROGRESS, RequestStatus.CANCELLED},
    RequestStatus.IN_PROGRESS: {
        RequestStatus.COMPLETED,
        RequestStatus.CANCELLED,
        RequestStatus.FAILED,
    },
}


class ActiveTranslationGauge:
    """Process-wide count of requests currently in progress."""

    def __init__(self):
        self._lock = threading.Lock()
        self._value = 0

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def decrement(self) -> int:
        with self._lock:
            self._value = max(0, self._value - 1)
            return self._value

    def set(self, value: int) -> int:
        with self._lock:
            self._value = max(0, int(value))
            return self._value


_gauge = ActiveTranslationGauge()

# Serializes read-check-write of request rows across worker threads
_transition_lock = threading.RLock()


def get_active_gauge() -> ActiveTranslationGauge:
    return _gauge


class TranslationRequestRepository(BaseRepository):
    """Repository for translation_requests table operations."""

    def create_request(self, subtitle_to_translate: str, target_language: str,
                       source_language: str, title: str = "") -> dict:
        """Insert a new pending request and return it as a dict."""
        now = self._now()
        with transaction() as session:
            request = TranslationRequest(
                title=title or "",
                subtitle_to_translate=subtitle_to_translate,
                source_language=source_language,
                target_language=target_language,
                status=RequestStatus.PENDING,
                output_path="",
                error="",
                created_at=now,
                updated_at=now,
                completed_at=None,
            )
            session.add(request)
            session.flush()
            result = self._to_dict(request)
        logger.debug("Created translation request %d for %s", result["id"], subtitle_to_translate)
        return result

    def get_request(self, request_id: int) -> Optional[dict]:
        """Get a request by id, or None."""
        return self._to_dict(self.session.get(TranslationRequest, request_id, populate_existing=True))

    def get_requests(self, page: int = 1, per_page: int = 50,
                     status: Optional[str] = None) -> dict:
        """Get a page of requests, newest first.

        Returns:
            Dict with data, page, per_page, total, total_pages.
        """
        page = max(1, page)
        per_page = max(1, min(per_page, 500))

        count_stmt = select(func.count()).select_from(TranslationRequest)
        stmt = select(TranslationRequest)
        if status:
            count_stmt = count_stmt.where(TranslationRequest.status == status)
            stmt = stmt.where(TranslationRequest.status == status)

        total = self.session.execute(count_stmt).scalar() or 0
        stmt = (stmt.order_by(TranslationRequest.created_at.desc(), TranslationRequest.id.desc())
                .limit(per_page).offset((page - 1) * per_page))
        rows = self.session.execute(stmt.execution_options(populate_existing=True)).scalars().all()

        return {
            "data": [self._to_dict(r) for r in rows],
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": max(1, (total + per_page - 1) // per_page),
        }

    def get_unfinished_requests(self) -> list[dict]:
        """Get pending and in-progress requests, oldest first."""
        stmt = (
            select(TranslationRequest)
            .where(TranslationRequest.status.in_(RequestStatus.ACTIVE))
            .order_by(TranslationRequest.id.asc())
            .execution_options(populate_existing=True)
        )
        return [self._to_dict(r) for r in self.session.execute(stmt).scalars().all()]

    def update_status(self, request_id: int, job_id: Optional[str], status: str,
                      output_path: Optional[str] = None,
                      error: Optional[str] = None) -> dict:
        """Apply one lifecycle transition atomically.

        Same-status calls are idempotent: nothing changes except that an
        in_progress re-entry rebinds job_id for a fresh dispatcher attempt.

        Raises:
            RequestNotFoundError: If the request does not exist.
            InvalidTransitionError: If the transition is not allowed, or
                job_id is already bound to another active request.
            PersistenceError: If the write fails.
        """
        if status not in RequestStatus.ALL:
            raise InvalidTransitionError(f"Unknown status: {status}",
                                         context={"request_id": request_id})

        with _transition_lock:
            with transaction() as session:
                request = session.get(TranslationRequest, request_id)
                if request is None:
                    raise RequestNotFoundError(request_id)
                session.refresh(request)

                previous = request.status
                if previous == status:
                    if status == RequestStatus.IN_PROGRESS and job_id and job_id != request.job_id:
                        self._check_job_binding(session, request_id, job_id)
                        request.job_id = job_id
                        request.updated_at = self._now()
                    return self._to_dict(request)

                if status not in _TRANSITIONS.get(previous, ()):
                    raise InvalidTransitionError(
                        f"Cannot move request {request_id} from {previous} to {status}",
                        context={"request_id": request_id, "from": previous, "to": status},
                    )

                now = self._now()
                if status == RequestStatus.IN_PROGRESS and job_id:
                    self._check_job_binding(session, request_id, job_id)
                    request.job_id = job_id
                request.status = status
                request.updated_at = now
                if status in RequestStatus.TERMINAL:
                    request.completed_at = now
                if output_path is not None:
                    request.output_path = output_path
                if error is not None:
                    request.error = error[:2000]
                result = self._to_dict(request)

            self._adjust_gauge(previous, status)

        logger.info("Translation request %d: %s -> %s", request_id, previous, status)
        return result

    def _check_job_binding(self, session, request_id: int, job_id: str):
        stmt = select(TranslationRequest.id).where(
            TranslationRequest.job_id == job_id,
            TranslationRequest.id != request_id,
            TranslationRequest.status.in_(RequestStatus.ACTIVE),
        )
        other = session.execute(stmt).first()
        if other is not None:
            raise InvalidTransitionError(
                f"Job {job_id} is already bound to active request {other[0]}",
                context={"request_id": request_id, "job_id": job_id},
            )

    def _adjust_gauge(self, previous: str, status: str):
        if status == RequestStatus.IN_PROGRESS:
            _gauge.increment()
        elif previous == RequestStatus.IN_PROGRESS:
            _gauge.decrement()
        else:
            return
        _publish_active_count(_gauge.value)

    def update_active_count(self) -> int:
        """Recompute the gauge from the in_progress row count and publish it."""
        with _transition_lock:
            stmt = (select(func.count()).select_from(TranslationRequest)
                    .where(TranslationRequest.status == RequestStatus.IN_PROGRESS))
            count = self.session.execute(stmt).scalar() or 0
            value = _gauge.set(count)
        _publish_active_count(value)
        return value

    def get_active_count(self) -> int:
        return _gauge.value


def _publish_active_count(count: int):
    """Mirror the gauge to Prometheus and WebSocket clients (best effort)."""
    try:
        from metrics import set_active_translations
        set_active_translations(count)
    except Exception as exc:
        logger.debug("Failed to update active translations metric: %s", exc)
    try:
        from events import emit_event
        emit_event("active_count", {"count": count})
    except Exception as exc:
        logger.debug("Failed to emit active_count event: %s", exc)
