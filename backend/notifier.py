"""Notification module using Apprise.

Supports any Apprise-compatible URL (Pushover, Discord, Telegram, Gotify, etc.).
Delivery is best effort: every failure is logged and never raised.
"""

import json
import logging
import threading

import apprise

logger = logging.getLogger(__name__)

_apprise_instance = None
_apprise_lock = threading.Lock()

_SEVERITY_TYPES = {
    "info": apprise.NotifyType.INFO,
    "warning": apprise.NotifyType.WARNING,
}


def _get_apprise():
    """Get or create the singleton Apprise instance (thread-safe)."""
    global _apprise_instance
    if _apprise_instance is not None:
        return _apprise_instance

    with _apprise_lock:
        if _apprise_instance is not None:
            return _apprise_instance

        from config import get_settings

        urls = _parse_notification_urls(get_settings().notification_urls_json)
        if not urls:
            return None

        ap = apprise.Apprise()
        for url in urls:
            ap.add(url)

        _apprise_instance = ap
        return ap


def _parse_notification_urls(urls_json: str) -> list[str]:
    """Parse notification URLs from JSON array or newline-separated string."""
    if not urls_json or not urls_json.strip():
        return []

    try:
        parsed = json.loads(urls_json)
        if isinstance(parsed, list):
            return [u.strip() for u in parsed if isinstance(u, str) and u.strip()]
    except (json.JSONDecodeError, TypeError):
        pass

    return [u.strip() for u in urls_json.strip().splitlines() if u.strip()]


def invalidate_notifier():
    """Reset the cached Apprise instance (call on config change)."""
    global _apprise_instance
    with _apprise_lock:
        _apprise_instance = None
    logger.debug("Notifier cache invalidated")


def _is_enabled(event_type: str | None) -> bool:
    if event_type is None:
        return True

    from config import get_settings

    settings = get_settings()
    toggles = {
        "translation_complete": settings.notify_on_translation_complete,
        "translation_failed": settings.notify_on_translation_failed,
    }
    return toggles.get(event_type, False)


def send_notification(title: str, body: str, severity: str = "info",
                      event_type: str | None = None) -> bool:
    """Send a notification if its event type is enabled.

    Args:
        title: Notification title
        body: Free-text body
        severity: 'info' or 'warning'
        event_type: Optional toggle name ('translation_complete', 'translation_failed')

    Returns:
        True if Apprise accepted the message.
    """
    try:
        if not _is_enabled(event_type):
            logger.debug("Notification suppressed for event_type=%s", event_type)
            return False

        ap = _get_apprise()
        if not ap:
            return False

        notify_type = _SEVERITY_TYPES.get(severity, apprise.NotifyType.INFO)
        sent = bool(ap.notify(title=title, body=body, notify_type=notify_type))
        if sent:
            logger.info("Notification sent: [%s] %s", severity, title)
        else:
            logger.warning("Notification delivery failed: [%s] %s", severity, title)
        return sent
    except Exception as exc:
        logger.warning("Failed to send notification: %s", exc)
        return False


def get_notification_status() -> dict:
    """Get notification configuration status."""
    from config import get_settings

    settings = get_settings()
    urls = _parse_notification_urls(settings.notification_urls_json)

    return {
        "configured": len(urls) > 0,
        "url_count": len(urls),
        "events": {
            "translation_complete": settings.notify_on_translation_complete,
            "translation_failed": settings.notify_on_translation_failed,
        },
    }
