"""Progress emitter for translation requests.

Publishes request_progress events on the blinker bus (bridged to Socket.IO).
Delivery is fire-and-forget: nothing raised here reaches the caller.
"""

import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class ProgressService:
    """Emits per-request progress, keeping percentages non-decreasing.

    The cancellation event (0, success=False) is always forwarded, whatever
    was emitted before it. Terminal events (100/True or 0/False) forget the
    request so a later retry starts from zero again.
    """

    def __init__(self, emitter=None):
        if emitter is None:
            from events import emit_event as emitter
        self._emit = emitter
        self._last: dict[int, int] = {}
        self._lock = threading.Lock()

    def emit(self, request: dict, progress: int, success: bool) -> None:
        try:
            request_id = request["id"]
            progress = max(0, min(100, int(progress)))
            cancellation = progress == 0 and not success
            terminal = cancellation or (progress == 100 and success)

            with self._lock:
                last = self._last.get(request_id, 0)
                if not cancellation:
                    progress = max(progress, last)
                if terminal:
                    self._last.pop(request_id, None)
                else:
                    self._last[request_id] = progress

            self._emit("request_progress", {
                "request_id": request_id,
                "progress": progress,
                "completed": bool(success),
            })
        except Exception as exc:
            logger.warning("Failed to emit progress for request %s: %s",
                           request.get("id") if isinstance(request, dict) else request, exc)

    def reset(self, request_id: int) -> None:
        with self._lock:
            self._last.pop(request_id, None)


_progress_service: Optional[ProgressService] = None
_progress_lock = threading.Lock()


def get_progress_service() -> ProgressService:
    """Get or create the singleton ProgressService (thread-safe)."""
    global _progress_service
    if _progress_service is None:
        with _progress_lock:
            if _progress_service is None:
                _progress_service = ProgressService()
    return _progress_service
