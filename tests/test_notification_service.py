import aiohttp
import pytest

from cryptotrack.core.config import settings
from cryptotrack.core.exceptions import NotificationFailed
from cryptotrack.models.rules import (
    AlertRule,
    Direction,
    MarketSnapshot,
    PercentChangeCondition,
    PriceCondition,
    VolumeCondition,
)
from cryptotrack.services.notification_service import NotificationService, render_alert_message


def _http_error(status):
    return aiohttp.ClientResponseError(request_info=None, history=(), status=status, message="error")


def _alert(condition, **fields):
    return AlertRule(id="alert-1", user_id="user-1", asset="bitcoin", condition=condition, **fields)


SNAPSHOT = MarketSnapshot(current_price=50123.456, percent_change_24h=5.0123, total_volume_24h=1234567890.0)


@pytest.fixture
def sleeps(monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr("cryptotrack.services.notification_service.asyncio.sleep", fake_sleep)
    return delays


@pytest.fixture
def email_settings(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_ENABLED", True)
    monkeypatch.setattr(settings, "EMAIL_API_KEY", "re_test")
    monkeypatch.setattr(settings, "EMAIL_MAX_ATTEMPTS", 3)
    monkeypatch.setattr(settings, "EMAIL_BACKOFF_SECONDS", 1.0)


def test_render_price_message_names_observed_value_and_threshold():
    message = render_alert_message(_alert(PriceCondition(50000, Direction.ABOVE)), SNAPSHOT)

    assert message["subject"] == "BITCOIN Alert Triggered"
    assert "Your price alert for BITCOIN has been triggered." in message["html"]
    assert "Current price: $50,123.46" in message["html"]
    assert "Target price (above): $50,000.00" in message["html"]


def test_render_percentage_and_volume_messages():
    percent = render_alert_message(_alert(PercentChangeCondition(5, Direction.ABOVE)), SNAPSHOT)
    volume = render_alert_message(_alert(VolumeCondition(1e9)), SNAPSHOT)

    assert "24h Price Change: 5.01%" in percent["html"]
    assert "Target Change (above): 5%" in percent["html"]
    assert "24h Volume: $1,234,567,890" in volume["html"]
    assert "Volume Threshold: $1,000,000,000.00" in volume["html"]


def test_render_includes_creation_price_for_micro_prices():
    alert = _alert(PriceCondition(0.00005, Direction.BELOW), creation_snapshot_price=0.00006225)
    message = render_alert_message(alert, MarketSnapshot(current_price=0.00004))
    assert "Price when created: $0.00006225" in message["html"]
    assert "Current price: $0.00004" in message["html"]


@pytest.mark.asyncio
async def test_send_posts_resend_payload(email_settings, sleeps, monkeypatch):
    service = NotificationService()
    captured = {}

    async def fake_post(payload):
        captured.update(payload)
        return {"id": "email-1"}

    monkeypatch.setattr(service, "_post_email", fake_post)
    body = await service.send("owner@example.com", _alert(PriceCondition(50000, Direction.ABOVE)), SNAPSHOT)

    assert body == {"id": "email-1"}
    assert captured["to"] == ["owner@example.com"]
    assert captured["from"] == settings.EMAIL_FROM
    assert captured["subject"] == "BITCOIN Alert Triggered"
    assert "html" in captured
    assert sleeps == []


@pytest.mark.asyncio
async def test_send_retries_with_exponential_backoff(email_settings, sleeps, monkeypatch):
    service = NotificationService()
    attempts = []

    async def flaky_post(payload):
        attempts.append(payload)
        if len(attempts) < 3:
            raise _http_error(503)
        return {"id": "email-2"}

    monkeypatch.setattr(service, "_post_email", flaky_post)
    body = await service.send("owner@example.com", _alert(VolumeCondition(1)), SNAPSHOT)

    assert body == {"id": "email-2"}
    assert len(attempts) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_send_raises_after_exhausting_attempts(email_settings, sleeps, monkeypatch):
    service = NotificationService()
    calls = []

    async def failing_post(payload):
        calls.append(payload)
        raise aiohttp.ClientConnectionError("connection reset")

    monkeypatch.setattr(service, "_post_email", failing_post)

    with pytest.raises(NotificationFailed) as exc:
        await service.send("owner@example.com", _alert(VolumeCondition(1)), SNAPSHOT)

    assert exc.value.attempts == 3
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_send_does_not_retry_client_errors(email_settings, sleeps, monkeypatch):
    service = NotificationService()
    calls = []

    async def rejected_post(payload):
        calls.append(payload)
        raise _http_error(422)

    monkeypatch.setattr(service, "_post_email", rejected_post)

    with pytest.raises(NotificationFailed):
        await service.send("owner@example.com", _alert(VolumeCondition(1)), SNAPSHOT)
    assert len(calls) == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_send_requires_configured_transport(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_ENABLED", True)
    monkeypatch.setattr(settings, "EMAIL_API_KEY", None)
    service = NotificationService()

    assert not service.is_email_enabled()
    with pytest.raises(NotificationFailed):
        await service.send("owner@example.com", _alert(VolumeCondition(1)), SNAPSHOT)
