"""Dashboard renderer: StatusSnapshot -> report text.

render() is pure. The same snapshot always yields byte-identical text,
and nothing here touches the terminal, the clock or the collector.
"""

from __future__ import annotations

from .formatters import (
    colorize,
    format_bytes,
    format_time,
    format_uptime,
    render_progress_bar,
)
from .models import (
    TOOL_CATEGORIES,
    MemoryStatus,
    ProgressStatus,
    StatusSnapshot,
    SystemStatus,
    ToolStatus,
    percent,
)

REPORT_WIDTH = 80
MAX_ACTIVITY_LINES = 10
OVERALL_BAR_WIDTH = 40
PHASE_BAR_WIDTH = 20

CATEGORY_LABELS = {
    "database": "Medical Databases",
    "citation": "Citation Management",
    "statistics": "Statistical Analysis",
    "document": "Document Generation",
    "quality": "Quality Assessment",
}

# state -> (label, color)
_HEALTH_BADGES = {
    "healthy": ("✅ HEALTHY", "green"),
    "degraded": ("⚠️  DEGRADED", "yellow"),
    "error": ("❌ ERROR", "red"),
}
_TOOL_STYLES = {
    "available": ("✅", "green"),
    "unavailable": ("❌", "red"),
    "degraded": ("⚠️", "yellow"),
}
_PHASE_ICONS = {
    "completed": "✅",
    "in_progress": "🔄",
    "pending": "⏳",
    "failed": "❌",
}
_ACTIVITY_ICONS = {
    "success": "✅",
    "info": "ℹ️",
    "warning": "⚠️",
    "error": "❌",
}
_ALERT_STYLES = {
    "critical": ("🔴", "red"),
    "error": ("❌", "red"),
    "warning": ("⚠️", "yellow"),
    "info": ("ℹ️", "cyan"),
}


class DashboardRenderer:
    """Formats snapshots as a fixed-width terminal report."""

    def __init__(self, use_colors: bool = True):
        self.use_colors = use_colors

    def render(self, snapshot: StatusSnapshot) -> str:
        sections = [
            self.render_header(snapshot),
            self.render_system(snapshot.system),
            self.render_tools(snapshot.tools),
            self.render_memory(snapshot.memory),
            self.render_progress(snapshot.progress),
            self.render_activity(snapshot),
            self.render_alerts(snapshot),
        ]
        return "\n\n".join(sections)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def render_header(self, snapshot: StatusSnapshot) -> str:
        rule = self._color("═" * REPORT_WIDTH, "cyan")
        return "\n".join(
            [
                rule,
                self._color("  📊 MedResearch AI - Status Dashboard", "cyan", bold=True),
                rule,
                "",
                f"  Last Updated: {format_time(snapshot.timestamp)} UTC",
                f"  System Status: {self._health_badge(snapshot.system.status)}",
                f"  Uptime: {format_uptime(snapshot.system.uptime_seconds)}",
            ]
        )

    def render_system(self, system: SystemStatus) -> str:
        database = system.database
        lines = self._section_title("🖥️  System Status")
        lines += [
            f"  Version: {system.version}",
            f"  Environment: {system.environment}",
            f"  Database: {'✅ Connected' if database.connected else '❌ Disconnected'}",
            f"  Database Size: {format_bytes(database.size_bytes)}",
            f"  Database Path: {database.path}",
        ]
        return "\n".join(lines)

    def render_tools(self, tools: tuple[ToolStatus, ...]) -> str:
        lines = self._section_title("🔧 MCP Tools Status")

        for category in TOOL_CATEGORIES:
            in_category = [tool for tool in tools if tool.category == category]
            if not in_category:
                continue
            lines.append(f"  {CATEGORY_LABELS[category]}:")
            for tool in in_category:
                lines.extend(self._tool_lines(tool))
            lines.append("")

        available = sum(1 for tool in tools if tool.status == "available")
        total = len(tools)
        lines.append(f"  Summary: {available}/{total} tools available ({percent(available, total)}%)")
        return "\n".join(lines)

    def _tool_lines(self, tool: ToolStatus) -> list[str]:
        icon, color = _TOOL_STYLES.get(tool.status, ("❓", "gray"))
        status_text = self._color(tool.status.upper(), color)
        lines = [f"    {icon} {tool.name.ljust(25)} {status_text}"]
        if tool.error_message:
            lines.append(f"       {self._color('⚠️  ' + tool.error_message, 'yellow')}")
        missing = tool.missing_dependencies
        if missing:
            lines.append(f"       Dependencies: {', '.join(dep.name for dep in missing)} (missing)")
        return lines

    def render_memory(self, memory: MemoryStatus) -> str:
        tasks = memory.tasks
        lines = self._section_title("🧠 Memory System Status")
        lines += [
            f"  Short-term Memory:  {memory.short_term:>6} items ({memory.short_term_sessions} sessions)",
            f"  Working Memory:     {memory.working:>6} items ({memory.working_phases} phases)",
            f"  Long-term Memory:   {memory.long_term:>6} items",
            f"  Episodic Memory:    {memory.episodic:>6} decisions",
            "",
            f"  Checkpoints:        {memory.checkpoints:>6} saved",
            f"  Auto-save:          {'✅ Enabled' if memory.auto_save else '❌ Disabled'}",
            "",
            f"  Citations:          {memory.citations:>6} total ({memory.verified_citations} verified)",
            "",
            "  Todo List:",
            f"    Total:            {tasks.total:>6}",
            f"    Pending:          {tasks.pending:>6}",
            f"    In Progress:      {tasks.in_progress:>6}",
            f"    Completed:        {tasks.completed:>6}",
            f"    Blocked:          {tasks.blocked:>6}",
        ]
        return "\n".join(lines)

    def render_progress(self, progress: ProgressStatus) -> str:
        overall = progress.overall_progress
        lines = self._section_title("📈 Progress Status")
        lines.append(f"  Overall Progress: {self._bar(overall, OVERALL_BAR_WIDTH)} {overall}%")
        lines.append("")

        if progress.current_phase:
            lines.append(f"  Current Phase: {self._color(progress.current_phase, 'cyan', bold=True)}")
        if progress.current_task:
            lines.append(f"  Current Task:  {progress.current_task}")
        lines.append("")

        if not progress.phases:
            lines.append("  No phases defined yet")
            return "\n".join(lines)

        lines.append("  Phases:")
        for phase in progress.phases:
            icon = _PHASE_ICONS.get(phase.status, "❓")
            lines.append(
                f"    {icon} {phase.name.ljust(20)} {self._bar(phase.progress, PHASE_BAR_WIDTH)} "
                f"{phase.progress}% ({phase.completed_tasks}/{phase.total_tasks} tasks)"
            )
        return "\n".join(lines)

    def render_activity(self, snapshot: StatusSnapshot) -> str:
        lines = self._section_title("📋 Recent Activity")
        if not snapshot.recent_activity:
            lines.append("  No recent activity")
            return "\n".join(lines)

        for entry in snapshot.recent_activity[:MAX_ACTIVITY_LINES]:
            icon = _ACTIVITY_ICONS.get(entry.type, "•")
            category = self._color(f"[{entry.category}]", "gray")
            lines.append(f"  {icon} {format_time(entry.timestamp, short=True)} {category} {entry.message}")
        return "\n".join(lines)

    def render_alerts(self, snapshot: StatusSnapshot) -> str:
        lines = self._section_title("🚨 Active Alerts")
        if not snapshot.alerts:
            lines.append(self._color("  ✅ No active alerts - All systems operational", "green"))
        for alert in snapshot.alerts:
            icon, color = _ALERT_STYLES.get(alert.severity, ("•", "gray"))
            severity = self._color(alert.severity.upper(), color)
            lines.append(f"  {icon} {format_time(alert.timestamp, short=True)} {severity} {alert.message}")

        lines.append("")
        lines.append(self._color("═" * REPORT_WIDTH, "cyan"))
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _section_title(self, title: str) -> list[str]:
        rule = self._color("─" * REPORT_WIDTH, "gray")
        return [rule, self._color(f"  {title}", "white", bold=True), rule, ""]

    def _health_badge(self, status: str) -> str:
        badge, color = _HEALTH_BADGES.get(status, ("❓ UNKNOWN", "gray"))
        return self._color(badge, color, bold=True)

    def _bar(self, progress: int, width: int) -> str:
        return render_progress_bar(progress, width, use_colors=self.use_colors)

    def _color(self, text: str, color: str, bold: bool = False) -> str:
        return colorize(text, color, bold=bold, enabled=self.use_colors)
