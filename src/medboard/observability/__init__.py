"""Observability subsystem for the project status dashboard.

snapshot_collector gathers StatusSnapshots, renderer turns them into the
report, dashboard drives display and auto-refresh.
"""

from .dashboard import DashboardConfig, DashboardState, DashboardStateError, StatusDashboard
from .renderer import DashboardRenderer
from .snapshot_collector import DashboardCollector

__all__ = [
    "DashboardCollector",
    "DashboardConfig",
    "DashboardRenderer",
    "DashboardState",
    "DashboardStateError",
    "StatusDashboard",
]
