"""Unit tests for the activity and alert ring buffers."""

import re
from datetime import datetime, timedelta, timezone

from src.medboard.observability.activity_log import (
    MAX_ACTIVITY_LOGS,
    MAX_ALERTS,
    ActivityLog,
    AlertLog,
    alert_severity_for,
    new_alert_id,
)


class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self):
        self.now = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


# ---------------------------------------------------------------------------
# ActivityLog
# ---------------------------------------------------------------------------


def test_activity_newest_first():
    log = ActivityLog(clock=FakeClock())
    log.append("info", "system", "first")
    log.append("success", "user", "second")

    recent = log.recent(10)
    assert [entry.message for entry in recent] == ["second", "first"]
    assert recent[0].timestamp > recent[1].timestamp


def test_activity_capacity_evicts_oldest():
    """After 101 entries only the newest 100 remain."""
    log = ActivityLog()
    for i in range(MAX_ACTIVITY_LOGS + 1):
        log.append("info", "system", f"m{i}")

    assert len(log) == MAX_ACTIVITY_LOGS
    recent = log.recent(MAX_ACTIVITY_LOGS + 10)
    assert len(recent) == MAX_ACTIVITY_LOGS
    assert recent[0].message == f"m{MAX_ACTIVITY_LOGS}"
    assert recent[-1].message == "m1"


def test_activity_recent_limit():
    log = ActivityLog()
    for i in range(5):
        log.append("info", "system", f"m{i}")

    assert [e.message for e in log.recent(2)] == ["m4", "m3"]
    assert log.recent(0) == []


def test_activity_details_kept():
    log = ActivityLog()
    entry = log.append("warning", "mcp", "slow", {"ms": 900})
    assert entry.details == {"ms": 900}


# ---------------------------------------------------------------------------
# Alert derivation and ids
# ---------------------------------------------------------------------------


def test_only_error_activity_derives_alert():
    assert alert_severity_for("error") == "error"
    for activity_type in ("info", "warning", "success"):
        assert alert_severity_for(activity_type) is None


def test_alert_id_format_and_uniqueness():
    ids = {new_alert_id() for _ in range(500)}
    assert len(ids) == 500
    assert all(re.fullmatch(r"alert-\d+-[0-9a-f]{9}", alert_id) for alert_id in ids)


# ---------------------------------------------------------------------------
# AlertLog
# ---------------------------------------------------------------------------


def test_alert_capacity_evicts_oldest():
    alerts = AlertLog()
    for i in range(MAX_ALERTS + 5):
        alerts.create("warning", "system", f"a{i}")

    assert len(alerts) == MAX_ALERTS
    assert alerts.all()[-1].message == "a5"


def test_active_excludes_acknowledged():
    alerts = AlertLog()
    first = alerts.create("error", "memory", "first")
    alerts.create("critical", "system", "second")

    assert alerts.acknowledge(first.id) is True
    assert [a.message for a in alerts.active()] == ["second"]
    assert len(alerts.all()) == 2


def test_acknowledge_is_idempotent_and_ignores_unknown():
    alerts = AlertLog()
    alert = alerts.create("error", "memory", "x")

    assert alerts.acknowledge(alert.id) is True
    assert alerts.acknowledge(alert.id) is True
    assert alerts.acknowledge("alert-0-unknown") is False
    assert alerts.active() == []


def test_active_returns_copies():
    """Mutating a returned alert does not affect the buffer."""
    alerts = AlertLog()
    alert = alerts.create("error", "memory", "x")

    copy = alerts.active()[0]
    copy.acknowledged = True

    assert alerts.active()[0].id == alert.id
    assert alerts.active()[0].acknowledged is False


def test_alert_uses_injected_factories():
    counter = iter(range(100))
    alerts = AlertLog(clock=FakeClock(), id_factory=lambda: f"alert-{next(counter)}")

    a = alerts.create("info", "user", "one", {"k": 1})
    b = alerts.create("info", "user", "two")

    assert (a.id, b.id) == ("alert-0", "alert-1")
    assert a.details == {"k": 1}
    assert a.acknowledged is False
