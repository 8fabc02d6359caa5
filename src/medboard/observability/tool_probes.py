"""Tool catalogue and timeout-guarded external executable probes.

A probe runs ``<executable> --version`` and treats a zero exit status
within the timeout as "available". Spawn failures, non-zero exits and
timeouts all mean "unavailable"; on timeout the child is killed and
reaped so repeated polls never leak processes.

The spawn function is injectable so tests can substitute fakes for real
executables.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import structlog

from .models import DependencyStatus, ToolCategory, ToolStatus

logger = structlog.get_logger(__name__)

DEFAULT_PROBE_TIMEOUT_SECONDS = 1.0

SpawnFn = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of probing one executable."""

    executable: str
    available: bool
    version: Optional[str] = None
    response_time_ms: Optional[float] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class DependencySpec:
    """A dependency of a catalogued tool.

    ``executable=None`` marks a dependency that needs no local binary
    (bundled code or a remote API) and is always reported available.
    """

    name: str
    executable: Optional[str] = None
    optional: bool = False
    report_version: bool = True


@dataclass(frozen=True)
class ToolSpec:
    name: str
    category: ToolCategory
    dependencies: tuple[DependencySpec, ...] = ()


_R = DependencySpec("R", executable="Rscript")
_PANDOC = DependencySpec("Pandoc", executable="pandoc", optional=True)

TOOL_CATALOGUE: tuple[ToolSpec, ...] = (
    # Medical databases
    ToolSpec("PubMed Search", "database", (DependencySpec("PubMed E-utilities API"),)),
    ToolSpec("Europe PMC Search", "database", (DependencySpec("Europe PMC REST API"),)),
    # Citation management
    ToolSpec("Unpaywall", "citation", (DependencySpec("Unpaywall API"),)),
    ToolSpec(
        "Citation Manager",
        "citation",
        (DependencySpec("CrossRef API"), DependencySpec("PubMed API")),
    ),
    # Statistical analysis
    ToolSpec(
        "Meta-Analysis",
        "statistics",
        (_R, DependencySpec("meta package", executable="Rscript", report_version=False)),
    ),
    ToolSpec("Forest Plot Generator", "statistics", (_R,)),
    # Document generation
    ToolSpec("Document Generator", "document", (DependencySpec("File System"),)),
    ToolSpec("PDF Export", "document", (_PANDOC,)),
    # Quality assessment
    ToolSpec("Risk of Bias Assessment", "quality", (DependencySpec("RoB 2 rules engine"),)),
    ToolSpec("GRADE Evidence Profile", "quality", (DependencySpec("GRADE rules engine"),)),
)


def catalogue_executables(catalogue: Iterable[ToolSpec]) -> list[str]:
    """Distinct executables referenced by the catalogue, in first-seen order."""
    seen: dict[str, None] = {}
    for spec in catalogue:
        for dep in spec.dependencies:
            if dep.executable is not None:
                seen.setdefault(dep.executable, None)
    return list(seen)


class ExecutableProbe:
    """Bounded-time liveness check for optional external executables."""

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        spawn: Optional[SpawnFn] = None,
        version_arg: str = "--version",
    ):
        self.timeout_seconds = timeout_seconds
        self.version_arg = version_arg
        self._spawn = spawn or asyncio.create_subprocess_exec

    async def probe(self, executable: str) -> ProbeResult:
        start = time.perf_counter()
        try:
            process = await self._spawn(
                executable,
                self.version_arg,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            # FileNotFoundError / PermissionError: never started
            logger.debug("probe_spawn_failed", executable=executable, error=str(exc))
            return ProbeResult(executable=executable, available=False, error=str(exc))

        try:
            stdout_b, stderr_b = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            await self._terminate(process)
            logger.warning(
                "probe_timed_out",
                executable=executable,
                timeout_seconds=self.timeout_seconds,
            )
            return ProbeResult(
                executable=executable,
                available=False,
                error=f"no response within {self.timeout_seconds:g}s",
            )

        elapsed_ms = round((time.perf_counter() - start) * 1000, 1)
        if process.returncode != 0:
            return ProbeResult(
                executable=executable,
                available=False,
                response_time_ms=elapsed_ms,
                error=f"exited with status {process.returncode}",
            )

        return ProbeResult(
            executable=executable,
            available=True,
            version=_first_line(stdout_b) or _first_line(stderr_b),
            response_time_ms=elapsed_ms,
        )

    async def probe_many(self, executables: Iterable[str]) -> dict[str, ProbeResult]:
        """Probe all executables concurrently; each keeps its own timeout."""
        names = list(executables)
        results = await asyncio.gather(
            *(self.probe(name) for name in names),
            return_exceptions=True,
        )
        probed: dict[str, ProbeResult] = {}
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error("probe_failed", executable=name, error=str(result))
                result = ProbeResult(executable=name, available=False, error=str(result))
            probed[name] = result
        return probed

    async def _terminate(self, process: Any) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()


def _first_line(output: Optional[bytes]) -> Optional[str]:
    if not output:
        return None
    for line in output.decode("utf-8", errors="replace").splitlines():
        if line.strip():
            return line.strip()
    return None


def build_tool_status(
    spec: ToolSpec,
    probes: dict[str, ProbeResult],
    checked_at: datetime,
) -> ToolStatus:
    """Derive a tool's status from its dependency probes.

    Any missing required dependency makes the tool ``unavailable``; only
    optional dependencies missing makes it ``degraded``.
    """
    dependencies: list[DependencyStatus] = []
    # executable -> first dependency name that needs it
    missing_required: dict[str, str] = {}
    missing_optional: dict[str, str] = {}
    response_times: list[float] = []

    for dep in spec.dependencies:
        if dep.executable is None:
            dependencies.append(DependencyStatus(name=dep.name, available=True))
            continue

        result = probes.get(dep.executable)
        available = result is not None and result.available
        version = result.version if available and dep.report_version else None
        dependencies.append(DependencyStatus(name=dep.name, available=available, version=version))
        if result is not None and result.response_time_ms is not None:
            response_times.append(result.response_time_ms)
        if not available:
            missing = missing_optional if dep.optional else missing_required
            missing.setdefault(dep.executable, dep.name)

    if missing_required:
        status = "unavailable"
        error_message = f"{', '.join(missing_required.values())} not installed or not in PATH"
    elif missing_optional:
        status = "degraded"
        error_message = f"{', '.join(missing_optional.values())} not installed (optional)"
    else:
        status = "available"
        error_message = None

    return ToolStatus(
        name=spec.name,
        category=spec.category,
        status=status,
        last_checked=checked_at,
        dependencies=tuple(dependencies),
        response_time_ms=max(response_times) if response_times else None,
        error_message=error_message,
    )
