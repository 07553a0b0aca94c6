import pytest
import requests

from safety_chat import notifier as notifier_module
from safety_chat.notifier import EmergencyNotifier, build_alert_text, send_sms
from safety_chat.store import Message


class FakeResponse:
    def __init__(self, ok=True, status_code=200):
        self.ok = ok
        self.status_code = status_code


@pytest.fixture
def posts(monkeypatch):
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return FakeResponse()

    monkeypatch.setattr(notifier_module.requests, "post", fake_post)
    return calls


def emergency(**extra):
    payload = {
        "name": "Alice",
        "text": "help",
        "timestamp": 1,
        "type": "emergency",
        "phone": "555",
    }
    payload.update(extra)
    return Message.from_payload(payload)


def test_alert_text_includes_maps_link():
    text = build_alert_text(emergency(location={"latitude": 12.5, "longitude": 77.25}))
    assert "Alice raised an emergency." in text
    assert "help" in text
    assert "https://maps.google.com/?q=12.5,77.25" in text


def test_alert_text_without_location():
    assert "Location:\nNot available" in build_alert_text(emergency())


def test_notify_sends_sms_to_contacts(posts):
    sent = EmergencyNotifier("key-123", ["9000000001", "9000000002"]).notify(emergency())

    assert sent is True
    assert len(posts) == 1
    assert posts[0]["url"] == notifier_module.FAST2SMS_URL
    assert posts[0]["headers"]["authorization"] == "key-123"
    assert posts[0]["json"]["numbers"] == "9000000001,9000000002"
    assert posts[0]["timeout"] == 8


def test_notify_without_api_key_only_logs(posts, caplog):
    with caplog.at_level("WARNING"):
        assert EmergencyNotifier("", ["9000000001"]).notify(emergency()) is False
    assert posts == []
    assert "EMERGENCY ALERT" in caplog.text
    assert "Location: Not available" in caplog.text


def test_notify_without_contacts(posts):
    assert EmergencyNotifier("key-123", []).notify(emergency()) is False
    assert posts == []


def test_send_sms_network_error_returns_false(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.ConnectionError("no route to host")

    monkeypatch.setattr(notifier_module.requests, "post", boom)
    assert send_sms("key", ["1"], "hi") is False


def test_send_sms_rejected_returns_false(monkeypatch):
    monkeypatch.setattr(
        notifier_module.requests, "post", lambda *a, **kw: FakeResponse(ok=False, status_code=401)
    )
    assert send_sms("key", ["1"], "hi") is False


def test_from_config():
    notifier = EmergencyNotifier.from_config({"FAST2SMS_API_KEY": "k", "EMERGENCY_CONTACTS": ["1", "2"]})
    assert notifier.api_key == "k"
    assert notifier.contacts == ["1", "2"]
