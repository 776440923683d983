"""Control-plane verification controller: pipeline run plus verdict, routing and retry policy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from sandbox_verifier.config.loader import VerifierSettings
from sandbox_verifier.constants import DEFAULT_MAX_REPAIR_BUDGET
from sandbox_verifier.control_plane.budgets import RepairBudget
from sandbox_verifier.control_plane.feedback import synthesize_feedback
from sandbox_verifier.control_plane.routing import (
    PhaseSignals,
    classify_failure,
    target_agent_for,
)
from sandbox_verifier.domain.models import ExecutionRequest, FailureCategory, Verdict
from sandbox_verifier.sandbox.executor import LocalSubprocessSandbox
from sandbox_verifier.verification_plane.checkers.dependency_checker import DependencyStatus
from sandbox_verifier.verification_plane.contract import SharedContract
from sandbox_verifier.verification_plane.pipeline import PipelineResult, VerificationPipeline
from sandbox_verifier.verification_plane.report import (
    ContractValidationData,
    DependencyVettingData,
    Done,
    ExecutionLogsSummary,
    StaticAnalysisData,
    TestSuiteSummary,
    VerificationPhases,
    VerificationReport,
    VerifierOutput,
    phase_passed,
    project_phases,
    report_id_for,
)


@dataclass(frozen=True, slots=True)
class VerificationContext:
    """Caller-supplied iteration state for one verification attempt."""

    iteration_count: int = 1
    max_budget: int = DEFAULT_MAX_REPAIR_BUDGET
    contract: SharedContract | None = None

    def __post_init__(self) -> None:
        if isinstance(self.iteration_count, bool) or self.iteration_count < 0:
            raise ValueError("iteration_count must be >= 0")
        if isinstance(self.max_budget, bool) or self.max_budget < 0:
            raise ValueError("max_budget must be >= 0")


def phase_signals(phases: VerificationPhases) -> PhaseSignals:
    static = phases.static_analysis
    blocking = (
        static.result.critical_issues
        if isinstance(static, Done) and isinstance(static.result, StaticAnalysisData)
        else 0
    )
    return PhaseSignals(
        blocking_security_findings=blocking,
        static_analysis_passed=phase_passed(static),
        dependency_vetting_passed=phase_passed(phases.dependency_vetting),
        contract_validation_passed=phase_passed(phases.contract_validation),
        test_execution_passed=phase_passed(phases.test_execution),
    )


def build_verification_report(
    result: PipelineResult,
    *,
    context: VerificationContext | None = None,
    budget: RepairBudget | None = None,
) -> VerificationReport:
    """Project ``result`` into a ``VerificationReport`` and attach the routing verdict."""

    active_context = context if context is not None else VerificationContext()
    active_budget = (
        budget if budget is not None else RepairBudget(max_budget=active_context.max_budget)
    )
    request = result.request
    report = result.report

    phases = project_phases(result, contract=active_context.contract)
    category = classify_failure(phase_signals(phases))
    decision = active_budget.decide(
        category,
        iteration_count=active_context.iteration_count,
        task_id=request.task_id,
    )
    feedback = synthesize_feedback(category, **_feedback_inputs(phases))
    target = target_agent_for(category, agent_role=request.agent_role, runner=request.config.runner)

    output = VerifierOutput(
        verdict=Verdict.PASS if category is FailureCategory.NONE else Verdict.FAIL,
        failure_category=category,
        feedback_to_agent=feedback.feedback_to_agent,
        repair_suggestion=feedback.repair_suggestion,
        retry_recommended=decision.retry_recommended,
        target_agent=target.value if target is not None else None,
        iteration_count=active_context.iteration_count,
        budget_remaining=decision.budget_remaining,
        logs=ExecutionLogsSummary.from_report(report),
    )
    return VerificationReport(
        report_id=report_id_for(report, active_context.iteration_count),
        task_id=request.task_id,
        subtask_id=request.subtask_id,
        started_at=report.start_time,
        completed_at=report.end_time,
        status=report.status,
        phases=phases,
        output=output,
        execution=report,
    )


class VerificationService:
    """Run the verification pipeline and decide verdict, routing and retry for the result."""

    def __init__(
        self,
        *,
        pipeline: VerificationPipeline | None = None,
        max_budget: int = DEFAULT_MAX_REPAIR_BUDGET,
        logger: Any | None = None,
    ) -> None:
        self._pipeline = pipeline if pipeline is not None else VerificationPipeline(logger=logger)
        self._max_budget = max_budget
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def pipeline(self) -> VerificationPipeline:
        return self._pipeline

    async def verify(
        self,
        request: ExecutionRequest,
        *,
        iteration_count: int = 1,
        max_budget: int | None = None,
        contract: SharedContract | None = None,
    ) -> VerificationReport:
        context = VerificationContext(
            iteration_count=iteration_count,
            max_budget=max_budget if max_budget is not None else self._max_budget,
            contract=contract,
        )
        result = await self._pipeline.run(request)
        verification = build_verification_report(
            result,
            context=context,
            budget=RepairBudget(max_budget=context.max_budget, logger=self._logger),
        )
        self._logger.info(
            "verification_verdict",
            task_id=request.task_id,
            subtask_id=request.subtask_id,
            verdict=verification.output.verdict.value,
            failure_category=verification.output.failure_category.value,
            target_agent=verification.output.target_agent,
            retry_recommended=verification.output.retry_recommended,
            budget_remaining=verification.output.budget_remaining,
        )
        return verification


def build_verification_service(
    settings: VerifierSettings,
    *,
    logger: Any | None = None,
) -> VerificationService:
    """Wire a service from settings; the ``local`` backend dispatches the test command."""

    executor = (
        LocalSubprocessSandbox(logger=logger) if settings.sandbox_backend == "local" else None
    )
    pipeline = VerificationPipeline(
        max_line_length=settings.max_line_length,
        banned_dependencies=settings.banned_dependencies,
        executor=executor,
        logger=logger,
    )
    return VerificationService(
        pipeline=pipeline,
        max_budget=settings.max_repair_iterations,
        logger=logger,
    )


def _feedback_inputs(phases: VerificationPhases) -> dict[str, Any]:
    inputs: dict[str, Any] = {}

    static = phases.static_analysis
    if isinstance(static, Done) and isinstance(static.result, StaticAnalysisData):
        inputs["findings"] = static.result.security_findings
        inputs["violations"] = static.result.lint_violations

    deps = phases.dependency_vetting
    if isinstance(deps, Done) and isinstance(deps.result, DependencyVettingData):
        inputs["banned_dependencies"] = tuple(
            item.name
            for item in deps.result.dependencies
            if item.status is DependencyStatus.BANNED
        )

    tests = phases.test_execution
    if isinstance(tests, Done) and isinstance(tests.result, TestSuiteSummary):
        inputs["test_results"] = tests.result.results
        inputs["timed_out"] = tests.result.timed_out

    contract = phases.contract_validation
    if (
        isinstance(contract, Done)
        and isinstance(contract.result, ContractValidationData)
        and contract.result.result is not None
    ):
        validation = contract.result.result
        inputs["contract_violations"] = len(validation.violations)
        inputs["missing_endpoints"] = tuple(
            item.endpoint for item in validation.violations if item.endpoint
        )
    return inputs


__all__ = [
    "VerificationContext",
    "VerificationService",
    "build_verification_report",
    "build_verification_service",
    "phase_signals",
]
