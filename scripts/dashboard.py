#!/usr/bin/env python3
"""
Status dashboard launcher.

Loads config/default.toml (+ .env and MEDBOARD_* overrides), configures
logging, then either renders the report once or keeps refreshing it
until interrupted.

Usage:
    python -m scripts.dashboard [--once] [--config PATH] [--session ID]
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from src.medboard.config.manager import initialize_config
from src.medboard.logging_config import configure_logging
from src.medboard.observability.dashboard import DashboardConfig, StatusDashboard

logger = structlog.get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="MedResearch project status dashboard")
    parser.add_argument("--config", type=Path, default=Path("config/default.toml"))
    parser.add_argument("--env-file", type=Path, default=Path(".env"))
    parser.add_argument("--session", default="dashboard-session")
    parser.add_argument("--once", action="store_true", help="Render a single report and exit")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    manager = initialize_config(args.config, args.env_file)
    configure_logging(
        level=manager.get("logging.level"),
        json_output=manager.get("logging.json"),
        file_path=manager.get("logging.file_path"),
    )

    def on_log_level(key: str, value) -> None:
        if key == "logging.level":
            configure_logging(
                level=value,
                json_output=manager.get("logging.json"),
                file_path=manager.get("logging.file_path"),
            )

    manager.subscribe(on_log_level)

    dashboard = StatusDashboard(DashboardConfig.from_config(manager))
    dashboard.watch_config(manager)
    await dashboard.initialize(args.session)

    try:
        if args.once:
            await dashboard.display()
            return 0
        await dashboard.start_auto_refresh()
        await asyncio.Event().wait()
    finally:
        await dashboard.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("dashboard_interrupted")
        return 0
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
