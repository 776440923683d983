"""
sandbox-verifier — phase-keyed verification report

Purpose
- Project a finished pipeline run into the phase-keyed ``VerificationReport`` shape consumed by
  UI and routing callers.

Phase model
- Each phase is a tagged variant: ``NotStarted``, ``Running``, ``Done(result, passed)`` or
  ``Errored(message)``. A completed phase always carries ``passed``; an errored phase never
  does (it serializes as ``passed: false``).
- Wire form: ``{"status": PENDING|RUNNING|COMPLETED|FAILED, "passed": bool, "data": ...}``.

Functional requirements
- The projection is lossless: every finding, violation, test result and log line of the
  ``ExecutionReport`` is reachable from the projected report.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeAlias, TypeVar

from sandbox_verifier.constants import VERIFICATION_REPORT_SCHEMA_VERSION
from sandbox_verifier.domain.models import (
    ExecutionReport,
    ExecutionStatus,
    FailureCategory,
    LintSeverity,
    LintViolation,
    LogStream,
    Runner,
    SecurityFinding,
    TestResult,
    TestStatus,
    Verdict,
)
from sandbox_verifier.verification_plane.checkers.dependency_checker import DependencyVet
from sandbox_verifier.verification_plane.contract import (
    ContractValidationResult,
    SharedContract,
    validate_contract,
)
from sandbox_verifier.verification_plane.pipeline import (
    DEPENDENCY_VETTING_PHASE,
    STATIC_ANALYSIS_PHASE,
    TEST_EXECUTION_PHASE,
    PhaseRecord,
    PipelineResult,
)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class NotStarted:
    pass


@dataclass(frozen=True, slots=True)
class Running:
    pass


@dataclass(frozen=True, slots=True)
class Done(Generic[T]):
    result: T
    passed: bool


@dataclass(frozen=True, slots=True)
class Errored:
    message: str


Phase: TypeAlias = NotStarted | Running | Done[Any] | Errored


def phase_passed(phase: Phase) -> bool:
    return isinstance(phase, Done) and phase.passed


def phase_to_dict(phase: Phase, render: Callable[[Any], object]) -> dict[str, object]:
    match phase:
        case Done(result=result, passed=passed):
            return {"status": "COMPLETED", "passed": passed, "data": render(result)}
        case Errored(message=message):
            return {"status": "FAILED", "passed": False, "error": message, "data": None}
        case Running():
            return {"status": "RUNNING", "passed": False, "data": None}
        case _:
            return {"status": "PENDING", "passed": False, "data": None}


@dataclass(frozen=True, slots=True)
class DependencyVettingData:
    dependencies: tuple[DependencyVet, ...]
    findings: tuple[SecurityFinding, ...]
    banned_found: int
    unpinned_found: int

    def to_dict(self) -> dict[str, object]:
        return {
            "dependencies": [item.to_dict() for item in self.dependencies],
            "findings": [item.to_dict() for item in self.findings],
            "banned_found": self.banned_found,
            "unpinned_found": self.unpinned_found,
        }


@dataclass(frozen=True, slots=True)
class StaticAnalysisData:
    security_findings: tuple[SecurityFinding, ...]
    lint_violations: tuple[LintViolation, ...]

    @property
    def total_issues(self) -> int:
        return len(self.security_findings) + len(self.lint_violations)

    @property
    def critical_issues(self) -> int:
        return sum(1 for item in self.security_findings if item.is_blocking)

    @property
    def error_violations(self) -> int:
        return sum(1 for item in self.lint_violations if item.severity is LintSeverity.ERROR)

    def to_dict(self) -> dict[str, object]:
        return {
            "security_scans": [item.to_dict() for item in self.security_findings],
            "linting_results": [item.to_dict() for item in self.lint_violations],
            "total_issues": self.total_issues,
            "critical_issues": self.critical_issues,
        }


@dataclass(frozen=True, slots=True)
class TestSuiteSummary:
    __test__ = False

    framework: str
    results: tuple[TestResult, ...]
    timed_out: bool = False
    sandbox_exit_code: int | None = None

    def count(self, status: TestStatus) -> int:
        return sum(1 for item in self.results if item.status is status)

    @property
    def failed_count(self) -> int:
        return sum(1 for item in self.results if item.failed)

    @property
    def duration(self) -> int:
        return sum(item.duration for item in self.results)

    def to_dict(self) -> dict[str, object]:
        return {
            "framework": self.framework,
            "total": len(self.results),
            "passed": self.count(TestStatus.PASSED),
            "failed": self.count(TestStatus.FAILED),
            "skipped": self.count(TestStatus.SKIPPED),
            "errors": self.count(TestStatus.ERROR),
            "duration": self.duration,
            "timed_out": self.timed_out,
            "sandbox_exit_code": self.sandbox_exit_code,
            "results": [item.to_dict() for item in self.results],
        }


@dataclass(frozen=True, slots=True)
class ContractValidationData:
    result: ContractValidationResult | None

    def to_dict(self) -> dict[str, object]:
        return {"result": self.result.to_dict() if self.result is not None else None}


@dataclass(frozen=True, slots=True)
class VerificationPhases:
    dependency_vetting: Phase
    static_analysis: Phase
    test_execution: Phase
    contract_validation: Phase

    def to_dict(self) -> dict[str, object]:
        return {
            "dependency_vetting": phase_to_dict(self.dependency_vetting, _render),
            "static_analysis": phase_to_dict(self.static_analysis, _render),
            "test_execution": phase_to_dict(self.test_execution, _render),
            "contract_validation": phase_to_dict(self.contract_validation, _render),
        }


@dataclass(frozen=True, slots=True)
class ExecutionLogsSummary:
    stdout: str
    stderr: str
    exit_code: int
    execution_time_ms: int

    @classmethod
    def from_report(cls, report: ExecutionReport) -> ExecutionLogsSummary:
        return cls(
            stdout="\n".join(
                item.content for item in report.logs if item.stream is LogStream.STDOUT
            ),
            stderr="\n".join(
                item.content for item in report.logs if item.stream is LogStream.STDERR
            ),
            exit_code=report.exit_code,
            execution_time_ms=report.duration_ms,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "execution_time_ms": self.execution_time_ms,
        }


@dataclass(frozen=True, slots=True)
class VerifierOutput:
    verdict: Verdict
    failure_category: FailureCategory
    feedback_to_agent: str
    repair_suggestion: str
    retry_recommended: bool
    target_agent: str | None
    iteration_count: int
    budget_remaining: int
    logs: ExecutionLogsSummary

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "verdict": self.verdict.value,
            "failure_category": self.failure_category.value,
            "logs": self.logs.to_dict(),
            "feedback_to_agent": self.feedback_to_agent,
            "repair_suggestion": self.repair_suggestion,
            "retry_recommended": self.retry_recommended,
            "iteration_count": self.iteration_count,
            "budget_remaining": self.budget_remaining,
        }
        if self.target_agent is not None:
            payload["target_agent"] = self.target_agent
        return payload


@dataclass(frozen=True, slots=True)
class VerificationReport:
    """Phase-keyed decoration of an ``ExecutionReport`` with the routing verdict."""

    report_id: str
    task_id: str
    subtask_id: str
    started_at: str
    completed_at: str
    status: ExecutionStatus
    phases: VerificationPhases
    output: VerifierOutput
    execution: ExecutionReport

    def to_dict(self) -> dict[str, object]:
        return {
            "schema_version": VERIFICATION_REPORT_SCHEMA_VERSION,
            "report_id": self.report_id,
            "task_id": self.task_id,
            "subtask_id": self.subtask_id,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "status": self.status.value,
            **self.phases.to_dict(),
            "output": self.output.to_dict(),
            "execution": self.execution.to_dict(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def project_phases(
    result: PipelineResult,
    *,
    contract: SharedContract | None = None,
) -> VerificationPhases:
    """Derive every phase variant from the pipeline's own phase records."""

    return VerificationPhases(
        dependency_vetting=_dependency_phase(result.phases.get(DEPENDENCY_VETTING_PHASE)),
        static_analysis=_static_phase(result.phases.get(STATIC_ANALYSIS_PHASE)),
        test_execution=_test_phase(result),
        contract_validation=_contract_phase(result, contract),
    )


def report_id_for(report: ExecutionReport, iteration_count: int) -> str:
    digest = hashlib.sha256(f"{report.to_json()}|{iteration_count}".encode()).hexdigest()
    return f"vr-{digest[:16]}"


def _dependency_phase(record: PhaseRecord | None) -> Phase:
    if record is None:
        return NotStarted()
    if record.errored:
        return Errored(message="; ".join(record.errors))
    dependencies = record.detail("dependencies", ())
    banned_found = record.detail("banned_found", 0)
    unpinned_found = record.detail("unpinned_found", 0)
    data = DependencyVettingData(
        dependencies=tuple(dependencies) if isinstance(dependencies, tuple) else (),
        findings=tuple(item for outcome in record.outcomes for item in outcome.findings),
        banned_found=banned_found if isinstance(banned_found, int) else 0,
        unpinned_found=unpinned_found if isinstance(unpinned_found, int) else 0,
    )
    return Done(result=data, passed=data.banned_found == 0)


def _static_phase(record: PhaseRecord | None) -> Phase:
    if record is None:
        return NotStarted()
    if record.errored:
        return Errored(message="; ".join(record.errors))
    data = StaticAnalysisData(
        security_findings=tuple(item for outcome in record.outcomes for item in outcome.findings),
        lint_violations=tuple(item for outcome in record.outcomes for item in outcome.violations),
    )
    return Done(result=data, passed=data.critical_issues == 0 and data.error_violations == 0)


def _test_phase(result: PipelineResult) -> Phase:
    record = result.phases.get(TEST_EXECUTION_PHASE)
    if record is None:
        return NotStarted()
    if record.errored:
        return Errored(message="; ".join(record.errors))

    run = result.sandbox_run
    suite = TestSuiteSummary(
        framework="pytest" if result.request.config.runner is Runner.PYTHON else "jest",
        results=tuple(item for outcome in record.outcomes for item in outcome.test_results),
        timed_out=run is not None and run.timed_out,
        sandbox_exit_code=run.exit_code if run is not None else None,
    )
    sandbox_failed = (
        run is not None and run.error is None and run.exit_code not in (0, None)
    )
    passed = suite.failed_count == 0 and not suite.timed_out and not sandbox_failed
    return Done(result=suite, passed=passed)


def _contract_phase(result: PipelineResult, contract: SharedContract | None) -> Phase:
    if contract is None:
        return Done(result=ContractValidationData(result=None), passed=True)
    try:
        validation = validate_contract(contract, result.request.artifacts)
    except ValueError as exc:
        return Errored(message=str(exc))
    return Done(result=ContractValidationData(result=validation), passed=validation.passed)


def _render(value: object) -> object:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return value


__all__ = [
    "ContractValidationData",
    "DependencyVettingData",
    "Done",
    "Errored",
    "ExecutionLogsSummary",
    "NotStarted",
    "Phase",
    "Running",
    "StaticAnalysisData",
    "TestSuiteSummary",
    "VerificationPhases",
    "VerificationReport",
    "VerifierOutput",
    "phase_passed",
    "phase_to_dict",
    "project_phases",
    "report_id_for",
]
