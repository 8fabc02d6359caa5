"""Status dashboard orchestrator.

Owns a DashboardCollector, a DashboardRenderer and a RefreshScheduler,
and writes rendered reports to a rich Console.

Lifecycle:
    uninitialized -> initialized -> (auto_refreshing) -> closed

display(), start_auto_refresh() and get_status() require an initialized
dashboard; close() is always safe.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import structlog
from rich.console import Console
from rich.text import Text

from .activity_log import MAX_ACTIVITY_LOGS
from .models import (
    ActivityCategory,
    ActivityLogEntry,
    ActivityType,
    Alert,
    AlertSeverity,
    Environment,
    StatusSnapshot,
)
from .renderer import DashboardRenderer
from .scheduler import RefreshScheduler
from .snapshot_collector import DashboardCollector
from .tool_probes import ExecutableProbe

logger = structlog.get_logger(__name__)

DEFAULT_SESSION_ID = "dashboard-session"


class DashboardState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    AUTO_REFRESHING = "auto_refreshing"
    CLOSED = "closed"


class DashboardStateError(RuntimeError):
    """Operation not allowed in the dashboard's current lifecycle state."""


@dataclass(frozen=True)
class DashboardConfig:
    """Dashboard settings, usually built from the config manager."""

    project_path: Path = Path(".")
    db_path: Optional[Path] = None
    environment: Environment = "development"
    refresh_seconds: float = 5.0
    recent_activity_limit: int = 20
    use_colors: bool = True
    probe_timeout_seconds: float = 1.0

    @classmethod
    def from_config(cls, manager: Any) -> "DashboardConfig":
        """Build settings from a loaded ConfigManager."""
        return cls(
            project_path=Path(manager.get("project.path")).expanduser(),
            db_path=manager.resolve_database_path(),
            environment=manager.get("system.environment"),
            refresh_seconds=float(manager.get("dashboard.refresh_seconds")),
            recent_activity_limit=int(manager.get("dashboard.recent_activity_limit")),
            use_colors=bool(manager.get("dashboard.use_colors")),
            probe_timeout_seconds=float(manager.get("dashboard.probe_timeout_seconds")),
        )


class StatusDashboard:
    """Collect, render and display project status on demand or periodically."""

    def __init__(
        self,
        config: Optional[DashboardConfig] = None,
        *,
        collector: Optional[DashboardCollector] = None,
        renderer: Optional[DashboardRenderer] = None,
        console: Optional[Console] = None,
    ):
        self.config = config or DashboardConfig()
        self.collector = collector or DashboardCollector(
            self.config.project_path,
            db_path=self.config.db_path,
            environment=self.config.environment,
            probe=ExecutableProbe(timeout_seconds=self.config.probe_timeout_seconds),
            recent_activity_limit=min(self.config.recent_activity_limit, MAX_ACTIVITY_LOGS),
        )
        self.renderer = renderer or DashboardRenderer(use_colors=self.config.use_colors)
        self.console = console or Console()
        self.scheduler = RefreshScheduler(self.config.refresh_seconds, self.display)
        self.state = DashboardState.UNINITIALIZED
        self._last_snapshot: Optional[StatusSnapshot] = None

    @property
    def last_snapshot(self) -> Optional[StatusSnapshot]:
        """Most recently collected snapshot, if any."""
        return self._last_snapshot

    @property
    def is_auto_refreshing(self) -> bool:
        return self.scheduler.is_running

    async def initialize(self, session_id: str = DEFAULT_SESSION_ID) -> None:
        """Bind the collector to a store session.

        A store that cannot be opened is logged as an error activity; the
        dashboard still initializes and reports zeroed memory/progress.
        """
        if self.state is DashboardState.CLOSED:
            raise DashboardStateError("Dashboard is closed")

        bound = await self.collector.initialize(session_id)
        if self.state is DashboardState.UNINITIALIZED:
            self.state = DashboardState.INITIALIZED
        self.collector.log_activity("success", "system", "Dashboard initialized")
        logger.info("dashboard_initialized", session_id=session_id, store_bound=bound)

    async def display(self) -> StatusSnapshot:
        """One collect + render + write cycle."""
        self._require_ready("display")
        snapshot = await self._collect()
        output = self.renderer.render(snapshot)
        self.console.clear()
        self.console.print(Text.from_ansi(output), soft_wrap=True)
        return snapshot

    async def start_auto_refresh(self) -> None:
        """Display now, then every ``refresh_seconds``. No-op while running."""
        self._require_ready("start_auto_refresh")
        if self.scheduler.is_running:
            return

        await self.display()
        # A concurrent caller may have started the loop or closed us during display()
        if self.state is DashboardState.CLOSED or not self.scheduler.start():
            return
        self.state = DashboardState.AUTO_REFRESHING
        self.collector.log_activity(
            "info",
            "system",
            f"Auto-refresh started ({self.scheduler.interval_seconds:g}s interval)",
        )

    async def stop_auto_refresh(self) -> None:
        """Cancel future refreshes. No-op when not running."""
        if not await self.scheduler.stop():
            return
        if self.state is DashboardState.AUTO_REFRESHING:
            self.state = DashboardState.INITIALIZED
        self.collector.log_activity("info", "system", "Auto-refresh stopped")

    def set_refresh_interval(self, seconds: float) -> None:
        """Change the refresh interval; a running loop uses it from its next sleep."""
        self.scheduler.interval_seconds = seconds
        logger.info("dashboard_refresh_interval_changed", interval_seconds=seconds)

    async def get_status(self) -> StatusSnapshot:
        """Collect a fresh snapshot without rendering it."""
        self._require_ready("get_status")
        return await self._collect()

    def log_activity(
        self,
        activity_type: ActivityType,
        category: ActivityCategory,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> ActivityLogEntry:
        return self.collector.log_activity(activity_type, category, message, details)

    def create_alert(
        self,
        severity: AlertSeverity,
        category: ActivityCategory,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> Alert:
        return self.collector.create_alert(severity, category, message, details)

    def acknowledge_alert(self, alert_id: str) -> None:
        self.collector.acknowledge_alert(alert_id)

    async def close(self) -> None:
        """Stop refreshing, let an in-flight refresh finish, then release the store.

        Safe to call repeatedly.
        """
        if self.state is DashboardState.CLOSED:
            return
        await self.stop_auto_refresh()
        await self.scheduler.drain()
        await self.collector.close()
        self.state = DashboardState.CLOSED
        logger.info("dashboard_closed")

    # ------------------------------------------------------------------
    # Config hot reload
    # ------------------------------------------------------------------

    def watch_config(self, manager: Any) -> None:
        """Apply dynamic dashboard settings as the config manager updates them."""
        manager.subscribe(self._on_config_update)

    def _on_config_update(self, key: str, value: Any) -> None:
        if key == "dashboard.refresh_seconds":
            self.set_refresh_interval(float(value))
        elif key == "dashboard.use_colors":
            self.renderer.use_colors = bool(value)
        elif key == "dashboard.recent_activity_limit":
            self.collector.recent_activity_limit = min(int(value), MAX_ACTIVITY_LOGS)
        elif key == "dashboard.probe_timeout_seconds":
            self.collector.probe.timeout_seconds = float(value)
        else:
            return
        logger.info("dashboard_config_applied", key=key, value=value)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _collect(self) -> StatusSnapshot:
        snapshot = await self.collector.collect()
        self._last_snapshot = snapshot
        return snapshot

    def _require_ready(self, operation: str) -> None:
        if self.state is DashboardState.UNINITIALIZED:
            raise DashboardStateError(f"{operation}() called before initialize()")
        if self.state is DashboardState.CLOSED:
            raise DashboardStateError(f"{operation}() called after close()")
