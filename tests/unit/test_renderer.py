"""Unit tests for the dashboard renderer."""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from src.medboard.observability.models import (
    ActivityLogEntry,
    Alert,
    DatabaseInfo,
    DependencyStatus,
    MemoryStatus,
    PhaseProgress,
    ProgressStatus,
    StatusSnapshot,
    SystemStatus,
    TaskCounts,
    ToolStatus,
)
from src.medboard.observability.renderer import DashboardRenderer

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def _system(status="healthy"):
    return SystemStatus(
        status=status,
        uptime_seconds=3725,
        version="0.1.0",
        environment="test",
        database=DatabaseInfo(connected=status == "healthy", size_bytes=1536, path="/p/.memory/project-memory.db"),
    )


def _snapshot(**overrides):
    base = StatusSnapshot(
        timestamp=NOW,
        system=_system(),
        tools=(),
        memory=MemoryStatus(),
        progress=ProgressStatus(),
        recent_activity=(),
        alerts=(),
    )
    return replace(base, **overrides)


@pytest.fixture
def renderer():
    return DashboardRenderer(use_colors=False)


def test_sections_in_order(renderer):
    output = renderer.render(_snapshot())
    titles = [
        "Status Dashboard",
        "System Status",
        "MCP Tools Status",
        "Memory System Status",
        "Progress Status",
        "Recent Activity",
        "Active Alerts",
    ]
    positions = [output.index(title) for title in titles]
    assert positions == sorted(positions)


def test_render_is_deterministic():
    snapshot = _snapshot(
        alerts=(Alert("alert-1-abc", "warning", "mcp", "slow", NOW),),
        recent_activity=(ActivityLogEntry(NOW, "info", "system", "tick"),),
    )
    for use_colors in (True, False):
        renderer = DashboardRenderer(use_colors=use_colors)
        assert renderer.render(snapshot) == renderer.render(snapshot)


def test_header_and_system(renderer):
    output = renderer.render(_snapshot())
    assert "Last Updated: 2024-05-01 12:00:00 UTC" in output
    assert "✅ HEALTHY" in output
    assert "Uptime: 1h 2m 5s" in output
    assert "Version: 0.1.0" in output
    assert "Environment: test" in output
    assert "Database: ✅ Connected" in output
    assert "Database Size: 1.5 KB" in output
    assert "Database Path: /p/.memory/project-memory.db" in output


def test_degraded_badge(renderer):
    output = renderer.render(_snapshot(system=_system("degraded")))
    assert "⚠️  DEGRADED" in output
    assert "HEALTHY" not in output
    assert "Database: ❌ Disconnected" in output


def test_no_colors_means_no_escape_codes(renderer):
    assert "\x1b[" not in renderer.render(_snapshot())


def test_colors_enabled_emits_escape_codes():
    assert "\x1b[" in DashboardRenderer(use_colors=True).render(_snapshot())


def test_tools_grouped_by_category_with_summary(renderer):
    tools = (
        ToolStatus("PDF Export", "document", "degraded", NOW,
                   (DependencyStatus("Pandoc", False),), error_message="Pandoc not installed (optional)"),
        ToolStatus("PubMed Search", "database", "available", NOW),
        ToolStatus("Meta-Analysis", "statistics", "unavailable", NOW,
                   (DependencyStatus("R", False), DependencyStatus("meta package", False)),
                   error_message="R not installed or not in PATH"),
    )
    output = renderer.render(_snapshot(tools=tools))

    assert output.index("Medical Databases:") < output.index("Statistical Analysis:") < output.index("Document Generation:")
    assert "Citation Management:" not in output
    assert f"✅ {'PubMed Search'.ljust(25)} AVAILABLE" in output
    assert "⚠️  R not installed or not in PATH" in output
    assert "Dependencies: R, meta package (missing)" in output
    assert "Summary: 1/3 tools available (33%)" in output


def test_empty_tools_summary(renderer):
    assert "Summary: 0/0 tools available (0%)" in renderer.render(_snapshot())


def test_memory_section(renderer):
    memory = MemoryStatus(
        short_term=12, short_term_sessions=3, working=4, working_phases=2, long_term=5, episodic=6,
        checkpoints=2, citations=9, verified_citations=7, auto_save=True,
        tasks=TaskCounts(total=10, pending=4, in_progress=1, completed=4, blocked=1),
    )
    output = renderer.render(_snapshot(memory=memory))

    assert "Short-term Memory:      12 items (3 sessions)" in output
    assert "Working Memory:          4 items (2 phases)" in output
    assert "Auto-save:          ✅ Enabled" in output
    assert "Episodic Memory:         6 decisions" in output
    assert "Citations:               9 total (7 verified)" in output
    assert "In Progress:           1" in output


def test_progress_section_with_phases(renderer):
    progress = ProgressStatus(
        phases=(
            PhaseProgress("search", "completed", total_tasks=4, completed_tasks=4),
            PhaseProgress("screening", "in_progress", total_tasks=3, completed_tasks=1),
        ),
        current_phase="screening",
        current_task="Screen abstracts",
    )
    output = renderer.render(_snapshot(progress=progress))

    assert f"Overall Progress: [{'█' * 20}{'░' * 20}] 50%" in output
    assert "Current Phase: screening" in output
    assert "Current Task:  Screen abstracts" in output
    assert f"✅ {'search'.ljust(20)} [{'█' * 20}] 100% (4/4 tasks)" in output
    assert "🔄 screening" in output
    assert "33% (1/3 tasks)" in output


def test_progress_placeholder(renderer):
    output = renderer.render(_snapshot())
    assert "No phases defined yet" in output
    assert "Overall Progress:" in output and " 0%" in output
    assert "Current Phase" not in output


def test_activity_limited_to_ten(renderer):
    entries = tuple(
        ActivityLogEntry(NOW, "info", "system", f"event-{i:02d}") for i in range(15)
    )
    output = renderer.render(_snapshot(recent_activity=entries))

    assert "event-09" in output
    assert "event-10" not in output
    assert "12:00:00 [system] event-00" in output


def test_activity_placeholder(renderer):
    assert "No recent activity" in renderer.render(_snapshot())


def test_alerts_all_clear(renderer):
    assert "✅ No active alerts - All systems operational" in renderer.render(_snapshot())


def test_alerts_listed(renderer):
    alerts = (
        Alert("alert-2-b", "critical", "system", "Store unreachable", NOW),
        Alert("alert-1-a", "error", "memory", "Query failed", NOW),
    )
    output = renderer.render(_snapshot(alerts=alerts))

    assert "🔴 12:00:00 CRITICAL Store unreachable" in output
    assert "❌ 12:00:00 ERROR Query failed" in output
    assert "No active alerts" not in output


def test_degraded_snapshot_with_single_critical_alert(renderer):
    """Degraded system, no tools, zero memory and one critical alert."""
    alert = Alert("alert-1-x", "critical", "system", "Disk full", NOW)
    output = renderer.render(_snapshot(system=_system("degraded"), alerts=(alert,)))

    alerts_section = output[output.index("Active Alerts"):]
    alert_lines = [line for line in alerts_section.splitlines() if "Disk full" in line]
    assert len(alert_lines) == 1
    assert "CRITICAL" in alert_lines[0]
    assert "HEALTHY" not in output


def test_memory_section_without_store(renderer):
    output = renderer.render(_snapshot(memory=MemoryStatus()))

    assert "Working Memory:          0 items (0 phases)" in output
    assert "Auto-save:          ❌ Disabled" in output
