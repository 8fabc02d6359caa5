"""Status collector for the dashboard.

Gathers a full StatusSnapshot from the project-memory store, from the
external tool probes and from the collector's own activity/alert buffers.

Design principles:
- Independent failure domains: every sub-collection catches its own
  errors and degrades to default values; collect() never raises
- Concurrent: system/tool/memory/progress collection run together and
  are joined before the snapshot is returned
- Non-blocking: filesystem stat and version lookup run via asyncio.to_thread
- Read-only: no side effects on the store
"""

from __future__ import annotations

import asyncio
import importlib.metadata
import os
import subprocess
import time
from collections import Counter, defaultdict
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog

from ..persistence.memory_store import MemoryStore
from .activity_log import (
    MAX_ACTIVITY_LOGS,
    MAX_ALERTS,
    ActivityLog,
    AlertLog,
    alert_severity_for,
)
from .models import (
    ActivityCategory,
    ActivityLogEntry,
    ActivityType,
    Alert,
    AlertSeverity,
    DatabaseInfo,
    Environment,
    MemoryStatus,
    PhaseProgress,
    ProgressStatus,
    StatusSnapshot,
    SystemStatus,
    TaskCounts,
    ToolStatus,
)
from .tool_probes import (
    TOOL_CATALOGUE,
    ExecutableProbe,
    ToolSpec,
    build_tool_status,
    catalogue_executables,
)

logger = structlog.get_logger(__name__)

DEFAULT_DB_RELATIVE_PATH = Path(".memory") / "project-memory.db"
SLOW_COLLECTION_MS = 1000

StoreFactory = Callable[[Path, str], Any]

_LOG_LEVELS: dict[str, str] = {"error": "error", "warning": "warning"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DashboardCollector:
    """Leaf producer of StatusSnapshots.

    Owns the activity and alert ring buffers and, once bound, the store
    session (released by close()).
    """

    def __init__(
        self,
        project_path: str | Path,
        *,
        db_path: Optional[str | Path] = None,
        environment: Environment = "development",
        probe: Optional[ExecutableProbe] = None,
        catalogue: tuple[ToolSpec, ...] = TOOL_CATALOGUE,
        store_factory: StoreFactory = MemoryStore,
        recent_activity_limit: int = 20,
        activity_capacity: int = MAX_ACTIVITY_LOGS,
        alert_capacity: int = MAX_ALERTS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.project_path = Path(project_path)
        self.db_path = Path(db_path) if db_path is not None else self.project_path / DEFAULT_DB_RELATIVE_PATH
        self.environment = environment
        self.probe = probe or ExecutableProbe()
        self.catalogue = catalogue
        self.recent_activity_limit = recent_activity_limit
        self._store_factory = store_factory
        self._store: Any = None
        self._clock = clock
        self._started = time.monotonic()
        self._version: Optional[str] = None
        self._tool_states: dict[str, str] = {}
        self._unbound_reported = False
        self._activity = ActivityLog(activity_capacity, clock=clock)
        self._alerts = AlertLog(alert_capacity, clock=clock)

    @property
    def is_bound(self) -> bool:
        return self._store is not None

    # ------------------------------------------------------------------
    # Store binding
    # ------------------------------------------------------------------

    async def initialize(self, session_id: str) -> bool:
        """Bind a store session. Failure is logged, never raised.

        Returns:
            True if the store is bound and usable.
        """
        if self._store is not None:
            await self._release_store()

        store = self._store_factory(self.db_path, session_id)
        try:
            await store.initialize()
        except Exception as exc:  # noqa: BLE001
            self.log_activity(
                "error",
                "memory",
                "Failed to connect to project memory",
                {"error": str(exc), "db_path": str(self.db_path)},
            )
            self._unbound_reported = True
            await _close_quietly(store)
            return False

        self._store = store
        self._unbound_reported = False
        logger.info("collector_store_bound", session_id=session_id, db_path=str(self.db_path))
        return True

    async def close(self) -> None:
        """Release the store session; safe to call repeatedly."""
        await self._release_store()

    async def _release_store(self) -> None:
        store, self._store = self._store, None
        if store is not None:
            await _close_quietly(store)
            logger.info("collector_store_released", db_path=str(self.db_path))

    # ------------------------------------------------------------------
    # Snapshot assembly
    # ------------------------------------------------------------------

    async def collect(self) -> StatusSnapshot:
        """Assemble a full StatusSnapshot from all subsystems.

        Sub-collections run concurrently; a failing sub-collection yields
        its default value plus an error activity entry.

        Returns:
            Fresh StatusSnapshot with current system state.
        """
        timestamp = self._clock()
        start_ns = time.perf_counter_ns()

        results = await asyncio.gather(
            self.collect_system_status(),
            self.collect_tool_status(),
            self.collect_memory_status(),
            self.collect_progress_status(),
            return_exceptions=True,
        )
        system = self._or_default("system", results[0], self._fallback_system_status)
        tools = self._or_default("mcp", results[1], list)
        memory = self._or_default("memory", results[2], MemoryStatus)
        progress = self._or_default("progress", results[3], ProgressStatus)

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        if duration_ms > SLOW_COLLECTION_MS:
            logger.warning(
                "snapshot_collection_slow",
                duration_ms=round(duration_ms, 1),
                threshold_ms=SLOW_COLLECTION_MS,
            )
        else:
            logger.debug("snapshot_collected", duration_ms=round(duration_ms, 1))

        return StatusSnapshot(
            timestamp=timestamp,
            system=system,
            tools=tuple(tools),
            memory=memory,
            progress=progress,
            recent_activity=tuple(self.get_recent_activity(self.recent_activity_limit)),
            alerts=tuple(self.get_active_alerts()),
        )

    def _or_default(self, category: ActivityCategory, result: Any, default: Callable[[], Any]) -> Any:
        if not isinstance(result, BaseException):
            return result
        if isinstance(result, asyncio.CancelledError):
            raise result
        self.log_activity(
            "error",
            category,
            f"Failed to collect {category} status",
            {"error": str(result)},
        )
        return default()

    # ------------------------------------------------------------------
    # Individual collection functions
    # ------------------------------------------------------------------

    async def collect_system_status(self) -> SystemStatus:
        """Store connectivity, uptime, version and environment."""
        exists, size = await asyncio.to_thread(_stat_store, self.db_path)
        if self._version is None:
            self._version = await asyncio.to_thread(_get_version)

        return SystemStatus(
            status="healthy" if exists else "degraded",
            uptime_seconds=time.monotonic() - self._started,
            version=self._version,
            environment=self.environment,
            database=DatabaseInfo(connected=exists, size_bytes=size, path=str(self.db_path)),
        )

    def _fallback_system_status(self) -> SystemStatus:
        return SystemStatus(
            status="error",
            uptime_seconds=time.monotonic() - self._started,
            version=self._version or "unknown",
            environment=self.environment,
            database=DatabaseInfo(connected=False, size_bytes=0, path=str(self.db_path)),
        )

    async def collect_tool_status(self) -> list[ToolStatus]:
        """Probe each distinct executable once, then derive every tool's status."""
        probes = await self.probe.probe_many(catalogue_executables(self.catalogue))
        checked_at = self._clock()
        tools = [build_tool_status(spec, probes, checked_at) for spec in self.catalogue]
        self._note_tool_transitions(tools)
        return tools

    def _note_tool_transitions(self, tools: list[ToolStatus]) -> None:
        for tool in tools:
            previous = self._tool_states.get(tool.name)
            self._tool_states[tool.name] = tool.status
            if previous == tool.status:
                continue
            if tool.status in ("unavailable", "degraded"):
                self.log_activity(
                    "warning",
                    "mcp",
                    f"{tool.name} is {tool.status}",
                    {"error": tool.error_message},
                )
            elif previous is not None and tool.status == "available":
                self.log_activity("success", "mcp", f"{tool.name} is available again")

    async def collect_memory_status(self) -> MemoryStatus:
        """Tier counts and task partition; zeros when unbound or on failure.

        An unbound store is reported once per unbound period rather than on
        every collection, so a long outage yields a single error activity
        and alert instead of filling the alert buffer.
        """
        store = self._store
        if store is None:
            if not self._unbound_reported:
                self._unbound_reported = True
                self.log_activity(
                    "error",
                    "memory",
                    "Project memory store not connected",
                    {"db_path": str(self.db_path)},
                )
            return MemoryStatus()

        try:
            stats, todos = await asyncio.gather(store.get_stats(), store.get_todos())
        except Exception as exc:  # noqa: BLE001
            self.log_activity("error", "memory", "Failed to collect memory status", {"error": str(exc)})
            return MemoryStatus()

        by_status = Counter(todo.get("status") for todo in todos)
        return MemoryStatus(
            short_term=_count(stats, "short_term"),
            short_term_sessions=_count(stats, "short_term_sessions"),
            working=_count(stats, "working"),
            working_phases=_count(stats, "working_phases"),
            long_term=_count(stats, "long_term"),
            episodic=_count(stats, "episodic"),
            checkpoints=_count(stats, "checkpoints"),
            citations=_count(stats, "citations"),
            verified_citations=_count(stats, "verified_citations"),
            auto_save=True,
            tasks=TaskCounts(
                total=len(todos),
                pending=by_status["pending"],
                in_progress=by_status["in_progress"],
                completed=by_status["completed"],
                blocked=by_status["blocked"],
            ),
        )

    async def collect_progress_status(self) -> ProgressStatus:
        """Per-phase task completion plus the current phase and task."""
        store = self._store
        if store is None:
            return ProgressStatus()

        try:
            phase_rows, todos = await asyncio.gather(store.get_phase_progress(), store.get_todos())
        except Exception as exc:  # noqa: BLE001
            self.log_activity("error", "progress", "Failed to collect progress status", {"error": str(exc)})
            return ProgressStatus()

        tasks_by_phase: dict[Any, list[dict]] = defaultdict(list)
        for todo in todos:
            tasks_by_phase[todo.get("phase_name")].append(todo)

        phases = []
        for row in phase_rows:
            name = row.get("phase_name")
            phase_tasks = tasks_by_phase.get(name, [])
            gate = row.get("quality_gate_passed")
            phases.append(
                PhaseProgress(
                    name=str(name) if name is not None else "",
                    status=row.get("status") or "pending",
                    total_tasks=len(phase_tasks),
                    completed_tasks=sum(1 for t in phase_tasks if t.get("status") == "completed"),
                    started_at=_as_text(row.get("started_at")),
                    completed_at=_as_text(row.get("completed_at")),
                    quality_gate_passed=bool(gate) if gate is not None else None,
                )
            )

        current_phase = next((p.name for p in phases if p.status == "in_progress"), None)
        current_task = next(
            (t.get("task_description") for t in todos if t.get("status") == "in_progress"),
            None,
        )
        return ProgressStatus(phases=tuple(phases), current_phase=current_phase, current_task=current_task)

    # ------------------------------------------------------------------
    # Activity / alert API
    # ------------------------------------------------------------------

    def log_activity(
        self,
        activity_type: ActivityType,
        category: ActivityCategory,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> ActivityLogEntry:
        """Record an activity entry; error entries also raise an alert."""
        entry = self._activity.append(activity_type, category, message, details)
        log = getattr(logger, _LOG_LEVELS.get(activity_type, "info"))
        log("dashboard_activity", type=activity_type, category=category, message=message)

        severity = alert_severity_for(activity_type)
        if severity is not None:
            self.create_alert(severity, category, message, details)
        return entry

    def create_alert(
        self,
        severity: AlertSeverity,
        category: ActivityCategory,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> Alert:
        alert = self._alerts.create(severity, category, message, details)
        logger.info("dashboard_alert_created", alert_id=alert.id, severity=severity, category=category)
        return alert

    def get_recent_activity(self, limit: int = 20) -> list[ActivityLogEntry]:
        return self._activity.recent(limit)

    def get_active_alerts(self) -> list[Alert]:
        return self._alerts.active()

    def acknowledge_alert(self, alert_id: str) -> None:
        if self._alerts.acknowledge(alert_id):
            logger.info("dashboard_alert_acknowledged", alert_id=alert_id)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def _stat_store(db_path: Path) -> tuple[bool, int]:
    """Return (exists, size_bytes) for the store file (blocking)."""
    try:
        return True, os.path.getsize(db_path)
    except OSError:
        return False, 0


def _get_version() -> str:
    """Get application version from importlib.metadata or git hash fallback.

    Returns:
        Version string like "0.1.0" or "git:<hash>" or "unknown".
    """
    try:
        return importlib.metadata.version("medboard")
    except importlib.metadata.PackageNotFoundError:
        pass

    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            timeout=5,
            check=False,
        )
        if result.returncode == 0:
            return f"git:{result.stdout.decode().strip()}"
    except (OSError, subprocess.SubprocessError):
        pass

    return "unknown"


def _count(stats: Any, name: str) -> int:
    value = stats.get(name, 0) if isinstance(stats, dict) else getattr(stats, name, 0)
    return int(value or 0)


def _as_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


async def _close_quietly(store: Any) -> None:
    try:
        await store.close()
    except Exception as exc:  # noqa: BLE001
        logger.warning("store_close_failed", error=str(exc))
