import pytest

from cryptotrack.core.exceptions import DataUnavailable, NotificationFailed, StoreUnavailable
from cryptotrack.models.rules import (
    AlertRule,
    Direction,
    MarketSnapshot,
    PercentChangeCondition,
    PriceCondition,
    VolumeCondition,
)
from cryptotrack.core.config import settings
from cryptotrack.services.alert_sweep import AlertSweepService
from cryptotrack.services.notification_service import NotificationService


class FakeRepository:
    def __init__(self, alerts, addresses=None):
        self.alerts = list(alerts)
        self.addresses = addresses or {}
        self.fail_list = False
        self.fail_mark = set()
        self.triggered = []
        self.claimed = set()
        self.address_lookups = []

    def fetch_active(self):
        if self.fail_list:
            raise StoreUnavailable("connection refused")
        return list(self.alerts)

    def mark_triggered(self, alert_id):
        if alert_id in self.fail_mark:
            raise StoreUnavailable(f"write failed for {alert_id}")
        self.triggered.append(alert_id)

    def claim(self, alert_id):
        if alert_id in self.claimed:
            return False
        self.claimed.add(alert_id)
        return True

    def resolve_notification_address(self, user_id):
        self.address_lookups.append(user_id)
        return self.addresses.get(user_id)


class FakeGateway:
    def __init__(self, snapshots, unavailable=()):
        self.snapshots = snapshots
        self.unavailable = set(unavailable)

    async def fetch(self, asset):
        if asset in self.unavailable:
            raise DataUnavailable(asset, ["p1: HTTP 500"])
        return self.snapshots[asset]

    async def close(self):
        return None


class FakeNotifier:
    def __init__(self, fail=False, enabled=True):
        self.fail = fail
        self.enabled = enabled
        self.sent = []

    def is_email_enabled(self):
        return self.enabled

    async def send(self, address, alert, snapshot):
        if self.fail:
            raise NotificationFailed("transport down", attempts=3)
        self.sent.append((address, alert.id))
        return {"id": "email"}

    async def close(self):
        return None


def _rule(alert_id, asset, condition, user_id="user-1", notify=True):
    return AlertRule(id=alert_id, user_id=user_id, asset=asset, condition=condition, notify_by_email=notify)


SNAPSHOTS = {
    "bitcoin": MarketSnapshot(current_price=50000.0, percent_change_24h=1.0, total_volume_24h=3e10),
    "ethereum": MarketSnapshot(current_price=2500.0, percent_change_24h=5.01, total_volume_24h=1e9),
    "solana": MarketSnapshot(current_price=150.0, percent_change_24h=-2.0, total_volume_24h=999_999_999),
}


def _service(repository, gateway=None, notifier=None, **kwargs):
    return AlertSweepService(
        repository,
        gateway or FakeGateway(SNAPSHOTS),
        notifier or FakeNotifier(),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_sweep_triggers_notifies_and_marks_matching_alerts():
    repository = FakeRepository(
        [
            _rule("btc-above", "bitcoin", PriceCondition(50000, Direction.ABOVE)),
            _rule("btc-below", "bitcoin", PriceCondition(49999, Direction.BELOW)),
            _rule("eth-pct", "ethereum", PercentChangeCondition(5, Direction.ABOVE)),
            _rule("sol-vol", "solana", VolumeCondition(1_000_000_000)),
        ],
        addresses={"user-1": "owner@example.com"},
    )
    notifier = FakeNotifier()

    summary = await _service(repository, notifier=notifier).run_sweep()

    assert summary.total_checked == 4
    assert sorted(summary.processed_ids) == ["btc-above", "eth-pct"]
    assert sorted(repository.triggered) == ["btc-above", "eth-pct"]
    assert sorted(alert_id for _, alert_id in notifier.sent) == ["btc-above", "eth-pct"]
    assert summary.errors == []


@pytest.mark.asyncio
async def test_empty_sweep_returns_success_summary():
    summary = await _service(FakeRepository([])).run_sweep()
    response = summary.to_response()

    assert response["status"] == "success"
    assert response["processed"] == []
    assert response["errors"] == []
    assert response["totalChecked"] == 0


@pytest.mark.asyncio
async def test_list_failure_is_fatal():
    repository = FakeRepository([])
    repository.fail_list = True

    with pytest.raises(StoreUnavailable):
        await _service(repository).run_sweep()


@pytest.mark.asyncio
async def test_per_alert_failures_are_isolated():
    class ExplodingCondition:
        kind = "price"

        @property
        def threshold(self):
            raise RuntimeError("corrupt record")

    repository = FakeRepository(
        [
            _rule("no-data", "dogecoin", PriceCondition(1, Direction.ABOVE)),
            _rule("write-fails", "bitcoin", PriceCondition(1, Direction.ABOVE)),
            _rule("corrupt", "bitcoin", ExplodingCondition()),
            _rule("ok", "ethereum", PriceCondition(2000, Direction.ABOVE), notify=False),
        ]
    )
    repository.fail_mark.add("write-fails")
    gateway = FakeGateway(SNAPSHOTS, unavailable={"dogecoin"})

    summary = await _service(repository, gateway=gateway).run_sweep()

    assert summary.processed_ids == ["ok"]
    errors = {error.id: error for error in summary.errors}
    assert set(errors) == {"no-data", "write-fails", "corrupt"}
    assert errors["no-data"].stage == "fetch"
    assert errors["write-fails"].stage == "mark_triggered"
    assert "dogecoin" in errors["no-data"].message
    assert repository.triggered == ["ok"]


@pytest.mark.asyncio
async def test_notification_failure_does_not_block_trigger():
    repository = FakeRepository(
        [_rule("btc", "bitcoin", PriceCondition(100, Direction.ABOVE))],
        addresses={"user-1": "owner@example.com"},
    )

    summary = await _service(repository, notifier=FakeNotifier(fail=True)).run_sweep()

    assert summary.processed_ids == ["btc"]
    assert repository.triggered == ["btc"]
    assert summary.errors == []
    assert [error.id for error in summary.notification_errors] == ["btc"]


@pytest.mark.asyncio
async def test_missing_address_skips_email_but_still_triggers():
    repository = FakeRepository([_rule("btc", "bitcoin", PriceCondition(100, Direction.ABOVE))])
    notifier = FakeNotifier()

    summary = await _service(repository, notifier=notifier).run_sweep()

    assert summary.processed_ids == ["btc"]
    assert notifier.sent == []
    assert repository.address_lookups == ["user-1"]


@pytest.mark.asyncio
async def test_email_disabled_alerts_skip_address_lookup():
    repository = FakeRepository(
        [_rule("btc", "bitcoin", PriceCondition(100, Direction.ABOVE), notify=False)],
        addresses={"user-1": "owner@example.com"},
    )
    notifier = FakeNotifier()

    summary = await _service(repository, notifier=notifier).run_sweep()

    assert summary.processed_ids == ["btc"]
    assert repository.address_lookups == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_claim_mode_fires_each_alert_once_across_overlapping_sweeps():
    alert = _rule("btc", "bitcoin", PriceCondition(100, Direction.ABOVE))
    repository = FakeRepository([alert], addresses={"user-1": "owner@example.com"})
    notifier = FakeNotifier()
    service = _service(repository, notifier=notifier, claim_before_notify=True)

    first = await service.run_sweep()
    # The fake still lists the alert, as an overlapping sweep would have.
    second = await service.run_sweep()

    assert first.processed_ids == ["btc"]
    assert second.processed_ids == []
    assert notifier.sent == [("owner@example.com", "btc")]
    assert repository.triggered == []


@pytest.mark.asyncio
async def test_sweep_response_contract():
    repository = FakeRepository(
        [
            _rule("btc", "bitcoin", PriceCondition(1, Direction.ABOVE), notify=False),
            _rule("doge", "dogecoin", PriceCondition(1, Direction.ABOVE)),
        ]
    )
    gateway = FakeGateway(SNAPSHOTS, unavailable={"dogecoin"})

    response = (await _service(repository, gateway=gateway, max_concurrency=1).run_sweep()).to_response()

    assert response["status"] == "success"
    assert response["processed"] == ["btc"]
    assert response["errors"][0]["id"] == "doge"
    assert set(response["errors"][0]) == {"id", "message"}
    assert response["totalChecked"] == 2


@pytest.mark.asyncio
async def test_switched_off_email_transport_is_a_skip_not_a_failure(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_ENABLED", False)
    repository = FakeRepository(
        [_rule("a1", "bitcoin", PriceCondition(100, Direction.ABOVE))],
        addresses={"user-1": "owner@example.com"},
    )

    summary = await _service(repository, notifier=NotificationService()).run_sweep()

    assert summary.processed_ids == ["a1"]
    assert repository.triggered == ["a1"]
    assert summary.errors == []
    assert summary.notification_errors == []
    assert repository.address_lookups == []


@pytest.mark.asyncio
async def test_unconfigured_notifier_skips_address_lookup():
    repository = FakeRepository(
        [_rule("btc", "bitcoin", PriceCondition(100, Direction.ABOVE))],
        addresses={"user-1": "owner@example.com"},
    )
    notifier = FakeNotifier(enabled=False)

    summary = await _service(repository, notifier=notifier).run_sweep()

    assert summary.processed_ids == ["btc"]
    assert notifier.sent == []
    assert repository.address_lookups == []
    assert summary.notification_errors == []


@pytest.mark.asyncio
async def test_status_reports_last_sweep():
    repository = FakeRepository(
        [
            _rule("btc", "bitcoin", PriceCondition(100, Direction.ABOVE), notify=False),
            _rule("doge", "dogecoin", PriceCondition(1, Direction.ABOVE)),
        ]
    )
    service = _service(repository, gateway=FakeGateway(SNAPSHOTS, unavailable={"dogecoin"}))

    assert service.get_status() == {"last_sweep": None}

    await service.run_sweep()
    last = service.get_status()["last_sweep"]

    assert last["total_checked"] == 2
    assert last["triggered"] == 1
    assert last["errors"] == 1
    assert last["notification_errors"] == 0
    assert last["finished_at"] >= last["started_at"]
