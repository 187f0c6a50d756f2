"""Unit-by-unit subtitle translation with progress reporting."""

import logging
import threading

from error_handler import (
    CancellationRequested,
    NonRetryableProviderError,
    TransientProviderError,
)
from subtitle_service import SubtitleItem
from translation.base import Cancelled, Fatal, Success, Transient, TranslationService

logger = logging.getLogger(__name__)


class SubtitleTranslator:
    """Translates a sequence of SubtitleItems through one TranslationService.

    Lines of a unit are joined with a space and sent as one text. Blank
    units are copied through untouched. Progress is emitted after every
    unit and kept within 1..99; the job emits 100 once output is written.
    """

    def __init__(self, service: TranslationService, progress, request: dict):
        self._service = service
        self._progress = progress
        self._request = request

    def translate(self, items: list[SubtitleItem],
                  cancel: threading.Event | None = None) -> list[SubtitleItem]:
        """Translate all items in place and return them.

        Raises:
            CancellationRequested: If cancel is set before or during a unit.
            TransientProviderError / NonRetryableProviderError: Provider failure.
        """
        source = self._request["source_language"]
        target = self._request["target_language"]
        total = len(items)

        for index, item in enumerate(items, start=1):
            if cancel is not None and cancel.is_set():
                raise CancellationRequested(
                    f"Request {self._request['id']} cancelled at unit {index}/{total}")

            text = item.text
            if text:
                outcome = self._service.translate_outcome(text, source, target, cancel)
                match outcome:
                    case Success(text=translated):
                        item.translated_lines = [translated.strip()]
                    case Cancelled():
                        raise CancellationRequested(
                            f"Request {self._request['id']} cancelled at unit {index}/{total}")
                    case Transient(reason=reason, status_code=status_code):
                        raise TransientProviderError(reason, status_code=status_code)
                    case Fatal(reason=reason, status_code=status_code):
                        raise NonRetryableProviderError(reason, status_code=status_code)

            # 0/False is reserved for the cancellation event
            self._progress.emit(self._request, max(1, min(99, index * 100 // total)), False)

        return items
