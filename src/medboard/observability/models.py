"""Observability data models for the status dashboard.

A StatusSnapshot is produced fresh on every collection and never mutated
afterwards. Alerts are the one mutable record (their acknowledged flag);
snapshots hold copies, so acknowledging an alert never rewrites a
snapshot that was already taken.

Derived percentages (phase progress, overall progress) are properties
computed from the task/phase counts, so they cannot drift from them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

HealthState = Literal["healthy", "degraded", "error"]
Environment = Literal["development", "production", "test"]
ToolCategory = Literal["database", "citation", "statistics", "document", "quality"]
ToolState = Literal["available", "unavailable", "degraded", "unknown"]
ActivityType = Literal["info", "warning", "error", "success"]
ActivityCategory = Literal["system", "mcp", "memory", "progress", "user"]
AlertSeverity = Literal["info", "warning", "error", "critical"]
PhaseState = Literal["pending", "in_progress", "completed", "failed"]
TaskState = Literal["pending", "in_progress", "completed", "blocked"]

# Fixed display order of tool categories
TOOL_CATEGORIES: tuple[ToolCategory, ...] = (
    "database",
    "citation",
    "statistics",
    "document",
    "quality",
)


def percent(part: int, whole: int) -> int:
    """Integer percentage rounded half-up; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


@dataclass(frozen=True)
class DatabaseInfo:
    """Store artifact as seen on the filesystem."""

    connected: bool  # True iff the store file exists at `path`
    size_bytes: int
    path: str


@dataclass(frozen=True)
class SystemStatus:
    """Process-level health of the dashboard host."""

    status: HealthState
    uptime_seconds: float  # Since collector construction
    version: str
    environment: Environment
    database: DatabaseInfo


@dataclass(frozen=True)
class DependencyStatus:
    """Availability of one dependency of a tool."""

    name: str
    available: bool
    version: Optional[str] = None


@dataclass(frozen=True)
class ToolStatus:
    """Availability of one catalogued research tool."""

    name: str
    category: ToolCategory
    status: ToolState
    last_checked: datetime
    dependencies: tuple[DependencyStatus, ...] = ()
    response_time_ms: Optional[float] = None
    error_message: Optional[str] = None

    @property
    def missing_dependencies(self) -> tuple[DependencyStatus, ...]:
        return tuple(dep for dep in self.dependencies if not dep.available)


@dataclass(frozen=True)
class TaskCounts:
    """Task list partitioned by status."""

    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    blocked: int = 0


@dataclass(frozen=True)
class MemoryStatus:
    """Counts per memory tier plus the task partition."""

    short_term: int = 0
    short_term_sessions: int = 0
    working: int = 0
    working_phases: int = 0
    long_term: int = 0
    episodic: int = 0
    checkpoints: int = 0
    citations: int = 0
    verified_citations: int = 0
    auto_save: bool = False  # Checkpoints are written only through a bound session
    tasks: TaskCounts = field(default_factory=TaskCounts)


@dataclass(frozen=True)
class PhaseProgress:
    """One workflow phase with its task completion."""

    name: str
    status: PhaseState
    total_tasks: int = 0
    completed_tasks: int = 0
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    quality_gate_passed: Optional[bool] = None

    @property
    def progress(self) -> int:
        return percent(self.completed_tasks, self.total_tasks)


@dataclass(frozen=True)
class ProgressStatus:
    """Per-phase progress plus the currently active phase and task."""

    phases: tuple[PhaseProgress, ...] = ()
    current_phase: Optional[str] = None
    current_task: Optional[str] = None

    @property
    def completed_phases(self) -> int:
        return sum(1 for phase in self.phases if phase.status == "completed")

    @property
    def overall_progress(self) -> int:
        return percent(self.completed_phases, len(self.phases))


@dataclass(frozen=True)
class ActivityLogEntry:
    """Transient activity record kept in a bounded in-memory buffer."""

    timestamp: datetime
    type: ActivityType
    category: ActivityCategory
    message: str
    details: Optional[dict[str, Any]] = None


@dataclass
class Alert:
    """Notification that stays active until acknowledged."""

    id: str  # "alert-<epoch ms>-<random hex>", unique within the process
    severity: AlertSeverity
    category: ActivityCategory
    message: str
    timestamp: datetime
    acknowledged: bool = False
    details: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class StatusSnapshot:
    """Complete dashboard status collected at a point in time."""

    timestamp: datetime  # UTC
    system: SystemStatus
    tools: tuple[ToolStatus, ...]
    memory: MemoryStatus
    progress: ProgressStatus
    recent_activity: tuple[ActivityLogEntry, ...]  # Newest first
    alerts: tuple[Alert, ...]  # Unacknowledged only, newest first
