"""Tests for Apprise-backed notifications."""

from unittest.mock import MagicMock, patch

import apprise
import pytest

import notifier
from config import reload_settings


@pytest.fixture(autouse=True)
def _settings():
    yield
    reload_settings()
    notifier.invalidate_notifier()


def _configure(**overrides):
    reload_settings(overrides)
    notifier.invalidate_notifier()


@pytest.mark.parametrize("raw, expected", [
    ("", []),
    ('["pover://u@t", " discord://a/b "]', ["pover://u@t", "discord://a/b"]),
    ("pover://u@t\n\njson://host", ["pover://u@t", "json://host"]),
    ('{"not": "a list"}', ['{"not": "a list"}']),
])
def test_parse_notification_urls(raw, expected):
    assert notifier._parse_notification_urls(raw) == expected


def test_not_configured_sends_nothing():
    _configure(notification_urls_json="")

    assert notifier.send_notification("Title", "Body") is False


def test_send_uses_severity_type():
    _configure(notification_urls_json='["json://localhost"]', notify_on_translation_failed="true")
    fake = MagicMock()
    fake.notify.return_value = True

    with patch("notifier.apprise.Apprise", return_value=fake):
        sent = notifier.send_notification("Failed", "Body", "warning", "translation_failed")

    assert sent is True
    fake.add.assert_called_once_with("json://localhost")
    fake.notify.assert_called_once_with(title="Failed", body="Body",
                                        notify_type=apprise.NotifyType.WARNING)


def test_disabled_event_is_suppressed():
    _configure(notification_urls_json='["json://localhost"]',
               notify_on_translation_complete="false")

    with patch("notifier.apprise.Apprise") as apprise_cls:
        sent = notifier.send_notification("Done", "Body", "info", "translation_complete")

    assert sent is False
    apprise_cls.assert_not_called()


def test_delivery_errors_never_raise():
    _configure(notification_urls_json='["json://localhost"]')
    fake = MagicMock()
    fake.notify.side_effect = RuntimeError("network down")

    with patch("notifier.apprise.Apprise", return_value=fake):
        assert notifier.send_notification("Title", "Body") is False


def test_notification_status():
    _configure(notification_urls_json="json://a\njson://b", notify_on_translation_complete="true")

    status = notifier.get_notification_status()

    assert status == {
        "configured": True,
        "url_count": 2,
        "events": {"translation_complete": True, "translation_failed": True},
    }
