"""Unit tests for external executable probes and tool status derivation."""

import asyncio
import sys
import time
from datetime import datetime, timezone

import pytest

from src.medboard.observability.tool_probes import (
    TOOL_CATALOGUE,
    DependencySpec,
    ExecutableProbe,
    ProbeResult,
    ToolSpec,
    build_tool_status,
    catalogue_executables,
)

CHECKED_AT = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeProcess:
    """Stand-in for asyncio.subprocess.Process."""

    def __init__(self, returncode=0, stdout=b"", stderr=b"", delay=0.0):
        self.returncode = returncode
        self._stdout = stdout
        self._stderr = stderr
        self._delay = delay
        self.killed = False
        self.waited = False

    async def communicate(self):
        await asyncio.sleep(self._delay)
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True

    async def wait(self):
        self.waited = True
        return self.returncode


def make_spawner(processes):
    """Spawn function returning scripted processes (or raising) per executable."""
    calls = []

    async def spawn(executable, *args, **kwargs):
        calls.append((executable, args))
        outcome = processes[executable]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    spawn.calls = calls
    return spawn


# ---------------------------------------------------------------------------
# ExecutableProbe
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_probe_available_reports_version():
    spawn = make_spawner({"Rscript": FakeProcess(stdout=b"", stderr=b"Rscript (R) version 4.3.2\n")})
    probe = ExecutableProbe(spawn=spawn)

    result = await probe.probe("Rscript")

    assert result.available is True
    assert result.version == "Rscript (R) version 4.3.2"
    assert result.response_time_ms is not None
    assert spawn.calls == [("Rscript", ("--version",))]


@pytest.mark.asyncio
async def test_probe_nonzero_exit_is_unavailable():
    probe = ExecutableProbe(spawn=make_spawner({"pandoc": FakeProcess(returncode=2)}))

    result = await probe.probe("pandoc")

    assert result.available is False
    assert "status 2" in result.error


@pytest.mark.asyncio
async def test_probe_spawn_failure_is_unavailable():
    probe = ExecutableProbe(spawn=make_spawner({"pandoc": FileNotFoundError("no such file")}))

    result = await probe.probe("pandoc")

    assert result == ProbeResult(executable="pandoc", available=False, error="no such file")


@pytest.mark.asyncio
async def test_probe_timeout_kills_process():
    """A probe that hangs is killed and reaped once the timeout elapses."""
    process = FakeProcess(delay=10)
    probe = ExecutableProbe(timeout_seconds=0.05, spawn=make_spawner({"Rscript": process}))

    start = time.monotonic()
    result = await probe.probe("Rscript")

    assert time.monotonic() - start < 1.0
    assert result.available is False
    assert "no response" in result.error
    assert process.killed is True
    assert process.waited is True


@pytest.mark.asyncio
async def test_probe_many_runs_concurrently():
    """Independent slow probes overlap instead of adding up."""
    probe = ExecutableProbe(
        timeout_seconds=0.2,
        spawn=make_spawner({
            "a": FakeProcess(delay=10),
            "b": FakeProcess(delay=10),
            "c": FakeProcess(stdout=b"c 1.0\n"),
        }),
    )

    start = time.monotonic()
    results = await probe.probe_many(["a", "b", "c"])

    assert time.monotonic() - start < 0.39
    assert results["a"].available is False
    assert results["b"].available is False
    assert results["c"].available is True


@pytest.mark.asyncio
async def test_probe_many_converts_unexpected_errors():
    async def spawn(executable, *args, **kwargs):
        raise ValueError("bad spawn")

    probe = ExecutableProbe(spawn=spawn)
    results = await probe.probe_many(["x"])

    assert results["x"].available is False
    assert results["x"].error == "bad spawn"


@pytest.mark.asyncio
async def test_probe_missing_real_executable_returns_quickly():
    """A real nonexistent executable reports unavailable within the timeout."""
    probe = ExecutableProbe(timeout_seconds=1.0)

    start = time.monotonic()
    result = await probe.probe("medboard-no-such-executable-3f9a")

    assert time.monotonic() - start < 1.0
    assert result.available is False


@pytest.mark.asyncio
async def test_probe_real_executable():
    """The running interpreter answers --version with exit status 0."""
    probe = ExecutableProbe(timeout_seconds=5.0)

    result = await probe.probe(sys.executable)

    assert result.available is True
    assert result.version.startswith("Python")


# ---------------------------------------------------------------------------
# Catalogue and status derivation
# ---------------------------------------------------------------------------


def test_catalogue_executables_distinct():
    assert catalogue_executables(TOOL_CATALOGUE) == ["Rscript", "pandoc"]


def test_catalogue_covers_every_category():
    assert {spec.category for spec in TOOL_CATALOGUE} == {
        "database", "citation", "statistics", "document", "quality",
    }


def test_tool_without_external_dependency_always_available():
    spec = ToolSpec("PubMed Search", "database", (DependencySpec("PubMed E-utilities API"),))

    status = build_tool_status(spec, {}, CHECKED_AT)

    assert status.status == "available"
    assert status.error_message is None
    assert status.response_time_ms is None
    assert status.last_checked == CHECKED_AT


def test_missing_required_dependency_makes_tool_unavailable():
    meta = next(spec for spec in TOOL_CATALOGUE if spec.name == "Meta-Analysis")
    probes = {"Rscript": ProbeResult("Rscript", available=False, error="not found")}

    status = build_tool_status(meta, probes, CHECKED_AT)

    assert status.status == "unavailable"
    assert status.error_message == "R not installed or not in PATH"
    assert [dep.name for dep in status.missing_dependencies] == ["R", "meta package"]


def test_missing_optional_dependency_degrades_tool():
    pdf = next(spec for spec in TOOL_CATALOGUE if spec.name == "PDF Export")
    probes = {"pandoc": ProbeResult("pandoc", available=False)}

    status = build_tool_status(pdf, probes, CHECKED_AT)

    assert status.status == "degraded"
    assert status.error_message == "Pandoc not installed (optional)"


def test_available_dependency_reports_version_and_latency():
    meta = next(spec for spec in TOOL_CATALOGUE if spec.name == "Meta-Analysis")
    probes = {"Rscript": ProbeResult("Rscript", True, version="R 4.3.2", response_time_ms=42.0)}

    status = build_tool_status(meta, probes, CHECKED_AT)

    assert status.status == "available"
    assert status.response_time_ms == 42.0
    versions = {dep.name: dep.version for dep in status.dependencies}
    assert versions == {"R": "R 4.3.2", "meta package": None}


def test_unprobed_executable_counts_as_missing():
    spec = ToolSpec("Forest Plot Generator", "statistics", (DependencySpec("R", executable="Rscript"),))

    status = build_tool_status(spec, {}, CHECKED_AT)

    assert status.status == "unavailable"
