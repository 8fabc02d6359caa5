"""Unit tests for structlog configuration."""

import json

import pytest
import structlog

from src.medboard.logging_config import configure_logging


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


def test_json_output_to_file(tmp_path):
    log_file = tmp_path / "logs" / "medboard.log"
    configure_logging(level="INFO", json_output=True, file_path=str(log_file))

    structlog.get_logger("test").info("snapshot_collected", duration_ms=12.5)

    record = json.loads(log_file.read_text().strip().splitlines()[-1])
    assert record["event"] == "snapshot_collected"
    assert record["duration_ms"] == 12.5
    assert record["level"] == "info"
    assert "timestamp" in record


def test_level_filters_lower_records(tmp_path):
    log_file = tmp_path / "medboard.log"
    configure_logging(level="WARNING", json_output=True, file_path=str(log_file))

    log = structlog.get_logger("test")
    log.info("hidden_event")
    log.warning("visible_event")

    text = log_file.read_text()
    assert "hidden_event" not in text
    assert "visible_event" in text


def test_level_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("MEDBOARD_LOG_LEVEL", "ERROR")
    log_file = tmp_path / "medboard.log"
    configure_logging(json_output=True, file_path=str(log_file))

    log = structlog.get_logger("test")
    log.warning("hidden_event")
    log.error("visible_event")

    text = log_file.read_text()
    assert "hidden_event" not in text
    assert "visible_event" in text


def test_console_output_to_stderr(capsys):
    configure_logging(level="DEBUG")

    structlog.get_logger("test").debug("probe_spawn_failed", executable="pandoc")

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "probe_spawn_failed" in captured.err
