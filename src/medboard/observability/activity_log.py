"""Bounded, process-lifetime activity and alert buffers.

Both buffers keep newest entries first and silently evict the oldest
entry once their capacity is exceeded. Nothing here is persisted.

Derivation rule: every activity entry of type ``error`` produces exactly
one alert of severity ``error`` with the same category, message and
details (see ``alert_severity_for``). No other activity type creates an
alert.
"""

from __future__ import annotations

import time
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from .models import (
    ActivityCategory,
    ActivityLogEntry,
    ActivityType,
    Alert,
    AlertSeverity,
)

MAX_ACTIVITY_LOGS = 100
MAX_ALERTS = 50

# activity type -> severity of the alert it derives
_DERIVED_ALERTS: dict[str, AlertSeverity] = {"error": "error"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def alert_severity_for(activity_type: ActivityType) -> Optional[AlertSeverity]:
    """Severity of the alert an activity of this type derives, if any."""
    return _DERIVED_ALERTS.get(activity_type)


def new_alert_id() -> str:
    """Time-prefixed id with a random suffix.

    Unique within one process in practice; not a cross-process identifier.
    """
    return f"alert-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class ActivityLog:
    """Ring buffer of activity entries, newest first."""

    def __init__(self, capacity: int = MAX_ACTIVITY_LOGS, clock: Callable[[], datetime] = _utcnow):
        self.capacity = capacity
        self._clock = clock
        self._entries: deque[ActivityLogEntry] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._entries)

    def append(
        self,
        activity_type: ActivityType,
        category: ActivityCategory,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> ActivityLogEntry:
        entry = ActivityLogEntry(
            timestamp=self._clock(),
            type=activity_type,
            category=category,
            message=message,
            details=details,
        )
        self._entries.appendleft(entry)
        return entry

    def recent(self, limit: int) -> list[ActivityLogEntry]:
        """Most recent ``limit`` entries, newest first."""
        if limit <= 0:
            return []
        return list(self._entries)[:limit]


class AlertLog:
    """Ring buffer of alerts, newest first, with in-place acknowledgment."""

    def __init__(
        self,
        capacity: int = MAX_ALERTS,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = new_alert_id,
    ):
        self.capacity = capacity
        self._clock = clock
        self._id_factory = id_factory
        self._alerts: deque[Alert] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._alerts)

    def create(
        self,
        severity: AlertSeverity,
        category: ActivityCategory,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> Alert:
        alert = Alert(
            id=self._id_factory(),
            severity=severity,
            category=category,
            message=message,
            timestamp=self._clock(),
            acknowledged=False,
            details=details,
        )
        self._alerts.appendleft(alert)
        return alert

    def all(self) -> list[Alert]:
        return list(self._alerts)

    def active(self) -> list[Alert]:
        """Unacknowledged alerts in buffer order (newest first), as copies."""
        return [replace(alert) for alert in self._alerts if not alert.acknowledged]

    def acknowledge(self, alert_id: str) -> bool:
        """Mark an alert acknowledged. Unknown ids are ignored.

        Returns:
            True if an alert with this id exists (acknowledged now or before).
        """
        for alert in self._alerts:
            if alert.id == alert_id:
                alert.acknowledged = True
                return True
        return False
