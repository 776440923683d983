"""
sandbox-verifier — execution report pipeline

Purpose
- Orchestrate the verification phases for one request and build the terminal
  ``ExecutionReport``.

Normative behavior
- Phase order is authoritative: initialize, dependency vetting, static/security analysis,
  test execution, finalize. No phase is skipped or reordered; a phase without applicable
  artifacts still runs and logs that it found nothing.
- Status is a pure function of accumulated signals: any critical/high finding, failed/error
  test, or error-level lint violation yields ``failure``. A sandbox timeout yields ``timeout``.
- A checker that raises does not abort the run: its phase records the error, logs it, and
  contributes nothing.
- Every run owns its builder; the pipeline object holds configuration only and is safe to share
  across concurrent runs.
- Caller cancellation propagates ``asyncio.CancelledError`` and returns no report.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Final

import structlog

from sandbox_verifier.constants import (
    CPU_TIME_FRACTION,
    DEFAULT_BANNED_DEPENDENCIES,
    DEFAULT_MAX_LINE_LENGTH,
    PEAK_MEMORY_CAP_MB,
    PEAK_MEMORY_FRACTION,
)
from sandbox_verifier.domain.models import (
    ExecutionLog,
    ExecutionReport,
    ExecutionRequest,
    ExecutionStatus,
    LintViolation,
    LogStream,
    ResourceLimits,
    ResourceUsage,
    SecurityFinding,
    TestResult,
    derive_status,
    exit_code_for,
)
from sandbox_verifier.sandbox.executor import SandboxExecutor, SandboxRun, truncate_output
from sandbox_verifier.verification_plane.checkers.base import (
    BaseChecker,
    CheckerContext,
    CheckOutcome,
    LogLine,
)
from sandbox_verifier.verification_plane.checkers.dependency_checker import DependencyChecker
from sandbox_verifier.verification_plane.checkers.lint_checker import LintChecker
from sandbox_verifier.verification_plane.checkers.security_checker import SecurityChecker
from sandbox_verifier.verification_plane.checkers.test_checker import TestChecker

DEPENDENCY_VETTING_PHASE: Final[str] = "dependency_vetting"
STATIC_ANALYSIS_PHASE: Final[str] = "static_analysis"
TEST_EXECUTION_PHASE: Final[str] = "test_execution"

PHASES_IN_ORDER: Final[tuple[str, ...]] = (
    DEPENDENCY_VETTING_PHASE,
    STATIC_ANALYSIS_PHASE,
    TEST_EXECUTION_PHASE,
)

MonotonicClock = Callable[[], float]
WallClock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""

    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def estimate_resource_usage(limits: ResourceLimits, duration_ms: int) -> ResourceUsage:
    """Reporting estimates, not measurements: fixed fractions of the configured limits."""

    return ResourceUsage(
        peak_memory_mb=min(limits.memory_mb * PEAK_MEMORY_FRACTION, PEAK_MEMORY_CAP_MB),
        cpu_time_ms=math.floor(duration_ms * CPU_TIME_FRACTION),
    )


@dataclass(frozen=True, slots=True)
class PhaseRecord:
    """Outcome of one phase: the checker outcomes it merged and any checker errors."""

    phase: str
    outcomes: tuple[CheckOutcome, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def errored(self) -> bool:
        return bool(self.errors)

    def detail(self, key: str, default: object = None) -> object:
        for outcome in self.outcomes:
            if key in outcome.details:
                return outcome.details[key]
        return default


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Finalized report plus the per-phase records it was built from."""

    request: ExecutionRequest
    report: ExecutionReport
    phases: Mapping[str, PhaseRecord]
    sandbox_run: SandboxRun | None = None


@dataclass(slots=True)
class _ReportBuilder:
    """Run-local accumulator. Logs are append-only and stamped on emission."""

    now: WallClock
    start_time: str
    logs: list[ExecutionLog] = field(default_factory=list)
    findings: list[SecurityFinding] = field(default_factory=list)
    violations: list[LintViolation] = field(default_factory=list)
    test_results: list[TestResult] = field(default_factory=list)

    def log(self, stream: LogStream, content: str) -> None:
        self.logs.append(
            ExecutionLog(timestamp=format_timestamp(self.now()), stream=stream, content=content)
        )

    def log_line(self, line: LogLine) -> None:
        self.log(line.stream, line.content)

    def merge(self, outcome: CheckOutcome) -> None:
        for line in outcome.log_lines:
            self.log_line(line)
        self.findings.extend(outcome.findings)
        self.violations.extend(outcome.violations)
        self.test_results.extend(outcome.test_results)


class VerificationPipeline:
    """Deterministic phase runner producing ``ExecutionReport`` values."""

    def __init__(
        self,
        *,
        max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
        banned_dependencies: Sequence[str] = DEFAULT_BANNED_DEPENDENCIES,
        executor: SandboxExecutor | None = None,
        clock: MonotonicClock = time.monotonic,
        now: WallClock = utc_now,
        logger: Any | None = None,
    ) -> None:
        if executor is not None and not isinstance(executor, SandboxExecutor):
            raise TypeError("executor must implement SandboxExecutor")
        self._max_line_length = max_line_length
        self._banned_dependencies = tuple(banned_dependencies)
        self._executor = executor
        self._clock = clock
        self._now = now
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._phase_checkers: tuple[tuple[str, tuple[BaseChecker, ...]], ...] = (
            (DEPENDENCY_VETTING_PHASE, (DependencyChecker(),)),
            (STATIC_ANALYSIS_PHASE, (LintChecker(), SecurityChecker())),
            (TEST_EXECUTION_PHASE, (TestChecker(),)),
        )

    async def execute(self, request: ExecutionRequest) -> ExecutionReport:
        return (await self.run(request)).report

    async def run(self, request: ExecutionRequest) -> PipelineResult:
        started = self._clock()
        builder = _ReportBuilder(now=self._now, start_time=format_timestamp(self._now()))
        context = CheckerContext(
            request=request,
            max_line_length=self._max_line_length,
            banned_dependencies=self._banned_dependencies,
        )
        self._logger.info(
            "verification_run_started",
            task_id=request.task_id,
            subtask_id=request.subtask_id,
            runner=request.config.runner.value,
            artifact_count=len(request.artifacts),
        )

        self._initialize(builder, request)

        phases: dict[str, PhaseRecord] = {}
        sandbox_run: SandboxRun | None = None
        for phase, checkers in self._phase_checkers:
            phases[phase] = self._run_phase(builder, phase, checkers, context)
            if phase == TEST_EXECUTION_PHASE:
                sandbox_run = await self._run_sandbox(builder, request)

        report = self._finalize(builder, request, started=started, sandbox_run=sandbox_run)
        self._logger.info(
            "verification_run_completed",
            task_id=request.task_id,
            subtask_id=request.subtask_id,
            status=report.status.value,
            exit_code=report.exit_code,
            duration_ms=report.duration_ms,
            security_findings=len(report.security_findings),
            lint_violations=len(report.lint_violations),
            test_results=len(report.test_results),
            errored_phases=[name for name, record in phases.items() if record.errored],
        )
        return PipelineResult(
            request=request,
            report=report,
            phases=phases,
            sandbox_run=sandbox_run,
        )

    def _initialize(self, builder: _ReportBuilder, request: ExecutionRequest) -> None:
        config = request.config
        limits = config.resource_limits
        builder.log(LogStream.STDOUT, f"[sandbox] Initializing {config.runner.value} runner...")
        builder.log(
            LogStream.STDOUT,
            (
                f"[sandbox] Resource limits: {limits.memory_mb:g}MB RAM, "
                f"{limits.cpu_cores:g} CPU, {limits.timeout_seconds:g}s timeout"
            ),
        )
        policy = config.network_policy
        builder.log(
            LogStream.STDOUT,
            (
                f"[sandbox] Network policy: {policy.mode.value}"
                f"{' (exfiltration blocked)' if policy.block_exfiltration else ''}"
            ),
        )
        builder.log(LogStream.STDOUT, f"[sandbox] Loaded {len(request.artifacts)} artifact(s)")

    def _run_phase(
        self,
        builder: _ReportBuilder,
        phase: str,
        checkers: tuple[BaseChecker, ...],
        context: CheckerContext,
    ) -> PhaseRecord:
        outcomes: list[CheckOutcome] = []
        errors: list[str] = []
        for checker in checkers:
            try:
                outcome = checker.check(context)
            except Exception as exc:  # noqa: BLE001 - a failing checker must not abort the run.
                self._logger.exception(
                    "verification_phase_failed",
                    phase=phase,
                    checker_id=checker.checker_id,
                    task_id=context.request.task_id,
                )
                errors.append(f"{checker.checker_id}: {exc}")
                builder.log(
                    LogStream.STDERR,
                    f"[{phase}] {checker.checker_id} failed ({exc}); no results recorded",
                )
                continue
            builder.merge(outcome)
            outcomes.append(outcome)
        return PhaseRecord(phase=phase, outcomes=tuple(outcomes), errors=tuple(errors))

    async def _run_sandbox(
        self,
        builder: _ReportBuilder,
        request: ExecutionRequest,
    ) -> SandboxRun | None:
        if self._executor is None:
            return None

        limits = request.config.resource_limits
        builder.log(
            LogStream.STDOUT,
            f"[sandbox] Dispatching test command (timeout {limits.timeout_seconds:g}s)",
        )
        try:
            run = await asyncio.wait_for(
                self._executor.execute(request),
                timeout=float(limits.timeout_seconds),
            )
        except TimeoutError:
            run = SandboxRun(
                exit_code=None,
                stdout="",
                stderr="",
                duration_ms=int(limits.timeout_seconds * 1000),
                timed_out=True,
            )
        except Exception as exc:  # noqa: BLE001 - sandbox failures are reported, not raised.
            self._logger.exception(
                "sandbox_execution_failed",
                task_id=request.task_id,
                subtask_id=request.subtask_id,
            )
            run = SandboxRun(exit_code=None, stdout="", stderr="", duration_ms=0, error=str(exc))

        if run.stdout:
            builder.log(LogStream.STDOUT, truncate_output(run.stdout, limits.max_output_bytes))
        if run.stderr:
            builder.log(LogStream.STDERR, truncate_output(run.stderr, limits.max_output_bytes))
        if run.timed_out:
            builder.log(
                LogStream.STDERR,
                f"[sandbox] Timed out after {limits.timeout_seconds:g}s",
            )
        elif run.error is not None:
            builder.log(LogStream.STDERR, f"[sandbox] Sandbox error: {run.error}")
        else:
            builder.log(
                LogStream.STDOUT, f"[sandbox] Test command exited with code {run.exit_code}"
            )
        return run

    def _finalize(
        self,
        builder: _ReportBuilder,
        request: ExecutionRequest,
        *,
        started: float,
        sandbox_run: SandboxRun | None,
    ) -> ExecutionReport:
        findings = tuple(builder.findings)
        violations = tuple(builder.violations)
        test_results = tuple(builder.test_results)

        status = derive_status(findings, test_results, violations)
        if sandbox_run is not None:
            if sandbox_run.timed_out:
                status = ExecutionStatus.TIMEOUT
            elif sandbox_run.error is None and sandbox_run.exit_code not in (0, None):
                status = ExecutionStatus.FAILURE

        duration_ms = max(0, int((self._clock() - started) * 1000))
        builder.log(
            LogStream.STDOUT,
            f"[sandbox] Execution complete in {duration_ms}ms - {status.value.upper()}",
        )
        return ExecutionReport(
            task_id=request.task_id,
            subtask_id=request.subtask_id,
            status=status,
            exit_code=exit_code_for(status),
            start_time=builder.start_time,
            end_time=format_timestamp(self._now()),
            duration_ms=duration_ms,
            logs=tuple(builder.logs),
            test_results=test_results,
            security_findings=findings,
            lint_violations=violations,
            resource_usage=estimate_resource_usage(request.config.resource_limits, duration_ms),
        )


async def execute_in_sandbox(
    request: ExecutionRequest,
    *,
    pipeline: VerificationPipeline | None = None,
) -> ExecutionReport:
    """Run every phase for ``request`` and return the finalized report."""

    active = pipeline if pipeline is not None else VerificationPipeline()
    return await active.execute(request)


__all__ = [
    "DEPENDENCY_VETTING_PHASE",
    "PHASES_IN_ORDER",
    "STATIC_ANALYSIS_PHASE",
    "TEST_EXECUTION_PHASE",
    "PhaseRecord",
    "PipelineResult",
    "VerificationPipeline",
    "estimate_resource_usage",
    "execute_in_sandbox",
    "format_timestamp",
    "utc_now",
]
