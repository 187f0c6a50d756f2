"""Bounded retry with exponential backoff for outbound provider calls.

send_with_retry() runs one HTTP call, retrying it while the provider
answers 429/5xx or the connection fails. Any other status is handed back
untouched so the adapter can decide how to surface it. A set cancellation
event aborts immediately with CancellationRequested and is never counted
as a provider failure.
"""

import logging
import random
import threading
from collections.abc import Callable
from concurrent.futures import Future, wait as wait_futures

import requests

from error_handler import CancellationRequested, TransientProviderError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY_MS = 5000
MAX_JITTER_MS = 100

# How often an in-flight call checks the cancel event
CANCEL_POLL_SECONDS = 0.05

SUCCESS = "success"
RETRYABLE = "retryable"
FATAL = "fatal"

# Transport faults worth retrying; cancellation is checked separately
TRANSIENT_EXCEPTIONS = (requests.ConnectionError, requests.Timeout)


def classify_response(resp: requests.Response) -> str:
    """Classify an HTTP response as success, retryable or fatal."""
    status = resp.status_code
    if 200 <= status < 300:
        return SUCCESS
    if status == 429 or 500 <= status < 600:
        return RETRYABLE
    return FATAL


def compute_delay_ms(attempt: int, base_delay_ms: int = DEFAULT_BASE_DELAY_MS) -> int:
    """Backoff for 0-based attempt n: base * 2**n plus 0-99 ms of jitter."""
    return base_delay_ms * (2 ** attempt) + random.randrange(0, MAX_JITTER_MS)


def _event_wait(cancel: threading.Event | None) -> Callable[[float], bool]:
    if cancel is None:
        idle = threading.Event()
        return idle.wait
    return cancel.wait


def _raise_if_cancelled(cancel: threading.Event | None, label: str):
    if cancel is not None and cancel.is_set():
        logger.debug("%s: cancellation requested, aborting call", label or "provider")
        raise CancellationRequested(f"{label or 'provider'} call cancelled")


def _call_abortable(
    send: Callable[[], requests.Response],
    cancel: threading.Event | None,
    abort: Callable[[], None] | None,
    label: str,
) -> requests.Response:
    """Run send() on a worker thread and abandon it once cancel is set.

    abort() is invoked on cancellation to release the connection; the
    abandoned thread ends at the request timeout and its result is dropped.
    """
    if cancel is None:
        return send()

    future: Future = Future()

    def _run():
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(send())
        except BaseException as exc:
            future.set_exception(exc)

    threading.Thread(target=_run, name=f"{label or 'provider'}-call", daemon=True).start()
    while True:
        wait_futures([future], timeout=CANCEL_POLL_SECONDS)
        if future.done():
            return future.result()
        if cancel.is_set():
            logger.info("%s: cancellation requested, abandoning in-flight call", label or "provider")
            if abort is not None:
                try:
                    abort()
                except Exception as exc:
                    logger.debug("%s: abort failed: %s", label or "provider", exc)
            raise CancellationRequested(f"{label or 'provider'} call cancelled in flight")


def send_with_retry(
    send: Callable[[], requests.Response],
    cancel: threading.Event | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    wait: Callable[[float], bool] | None = None,
    label: str = "",
    abort: Callable[[], None] | None = None,
) -> requests.Response:
    """Perform send() with bounded retry on transient failure.

    Args:
        send: Zero-argument callable performing the HTTP call.
        cancel: Cooperative cancellation event.
        max_attempts: Total attempts including the first.
        base_delay_ms: Delay before the first retry, doubled per attempt.
        wait: ``wait(seconds) -> bool`` used for backoff; returns True when
            cancelled during the wait. Defaults to ``cancel.wait``.
        label: Provider name for logs and the retry counter.
        abort: Called when cancel interrupts an in-flight call, to drop
            its connection (the adapter closes its session).

    Returns:
        The success response, or the last non-retryable/retryable response
        when no transport fault was captured.

    Raises:
        CancellationRequested: If cancel is set before, during or after a call.
        TransientProviderError: If attempts ran out after a transport fault.
    """
    max_attempts = max(1, max_attempts)
    wait = wait or _event_wait(cancel)
    last_fault: Exception | None = None
    last_response: requests.Response | None = None

    for attempt in range(max_attempts):
        _raise_if_cancelled(cancel, label)
        try:
            resp = _call_abortable(send, cancel, abort, label)
        except TRANSIENT_EXCEPTIONS as exc:
            _raise_if_cancelled(cancel, label)
            last_fault = exc
            reason = f"{type(exc).__name__}: {exc}"
        else:
            _raise_if_cancelled(cancel, label)
            outcome = classify_response(resp)
            if outcome != RETRYABLE:
                return resp
            last_response = resp
            last_fault = None
            reason = f"HTTP {resp.status_code}"

        if attempt + 1 >= max_attempts:
            break

        delay_ms = compute_delay_ms(attempt, base_delay_ms)
        logger.warning("%s: attempt %d/%d failed (%s), retrying in %d ms",
                       label or "provider", attempt + 1, max_attempts, reason, delay_ms)
        _record_retry(label)
        if wait(delay_ms / 1000.0):
            _raise_if_cancelled(cancel, label)
            raise CancellationRequested(f"{label or 'provider'} call cancelled during backoff")

    if last_fault is not None:
        raise TransientProviderError(
            f"{label or 'provider'} unreachable after {max_attempts} attempts: {last_fault}",
        ) from last_fault

    logger.warning("%s: giving up after %d attempts (HTTP %s)",
                   label or "provider", max_attempts, last_response.status_code)
    return last_response


def _record_retry(label: str):
    try:
        from metrics import record_provider_retry
        record_provider_retry(label)
    except Exception as exc:
        logger.debug("Failed to record provider retry: %s", exc)
