"""
sandbox-verifier — unit tests for the verification controller

Purpose
- Validate verdict, category, routing and retry fields of ``VerificationReport`` end to end.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

import pytest

from sandbox_verifier.config.loader import VerifierSettings
from sandbox_verifier.control_plane.controller import (
    VerificationContext,
    VerificationService,
    build_verification_service,
)
from sandbox_verifier.domain.defaults import create_execution_request
from sandbox_verifier.domain.models import (
    ArtifactType,
    CodeArtifact,
    ExecutionRequest,
    FailureCategory,
    Verdict,
)
from sandbox_verifier.sandbox.executor import LocalSubprocessSandbox
from sandbox_verifier.verification_plane.contract import SharedContract
from sandbox_verifier.verification_plane.pipeline import VerificationPipeline

_FIXED_NOW = datetime(2026, 5, 6, 7, 8, 9, tzinfo=UTC)


@dataclass(slots=True)
class RecordingLogger:
    events: list[tuple[str, dict[str, object]]] = field(default_factory=list)

    def info(self, event: str, **kwargs: object) -> None:
        self.events.append((event, dict(kwargs)))

    def warning(self, event: str, **kwargs: object) -> None:
        self.events.append((event, dict(kwargs)))

    def exception(self, event: str, **kwargs: object) -> None:
        self.events.append((event, dict(kwargs)))


def _service(logger: RecordingLogger | None = None) -> VerificationService:
    active = logger if logger is not None else RecordingLogger()
    pipeline = VerificationPipeline(clock=lambda: 0.0, now=lambda: _FIXED_NOW, logger=active)
    return VerificationService(pipeline=pipeline, logger=active)


def _request(*artifacts: CodeArtifact, agent_role: str = "Python Agent") -> ExecutionRequest:
    return create_execution_request(
        task_id="task-7",
        subtask_id="sub-7",
        agent_role=agent_role,
        artifacts=artifacts,
    )


def _source(content: str) -> CodeArtifact:
    return CodeArtifact(filename="app.py", content=content, type=ArtifactType.SOURCE)


def _test(content: str) -> CodeArtifact:
    return CodeArtifact(filename="test_app.py", content=content, type=ArtifactType.TEST)


@pytest.mark.asyncio
async def test_clean_run_passes_without_target_agent() -> None:
    logger = RecordingLogger()

    report = await _service(logger).verify(
        _request(_source("x = 1\n"), _test("def test_ok():\n    pass\n"))
    )

    output = report.output
    assert output.verdict is Verdict.PASS
    assert output.failure_category is FailureCategory.NONE
    assert output.target_agent is None
    assert output.retry_recommended is False
    assert output.budget_remaining == 4
    assert "target_agent" not in report.to_dict()["output"]  # type: ignore[operator]
    assert [event for event, _ in logger.events][-1] == "verification_verdict"


@pytest.mark.asyncio
async def test_secret_routes_to_secops_with_half_budget() -> None:
    report = await _service().verify(
        _request(_source("api_key = 'abc123'\n"), _test("def test_error_path(): ...")),
        iteration_count=3,
    )

    output = report.output
    assert output.verdict is Verdict.FAIL
    assert output.failure_category is FailureCategory.SECURITY
    assert output.target_agent == "SecOps Agent"
    assert output.retry_recommended is False
    assert "abc123" not in output.feedback_to_agent


@pytest.mark.asyncio
async def test_failing_test_routes_back_to_language_agent() -> None:
    report = await _service().verify(
        _request(_test("def test_fail_case():\n    pass\n"), agent_role="TypeScript Agent"),
        iteration_count=1,
    )

    assert report.output.failure_category is FailureCategory.LOGIC
    assert report.output.target_agent == "TypeScript Agent"
    assert report.output.retry_recommended is True
    assert "fail_case" in report.output.repair_suggestion


@pytest.mark.asyncio
async def test_contract_beats_logic_in_precedence() -> None:
    contract = SharedContract.from_dict({"endpoints": [{"path": "/orders", "method": "GET"}]})

    report = await _service().verify(
        _request(_source("x = 1\n"), _test("def test_error():\n    pass\n")),
        contract=contract,
    )

    assert report.output.failure_category is FailureCategory.CONTRACT
    assert report.output.target_agent == "Contract Negotiator"
    assert "/orders" in report.output.repair_suggestion


@pytest.mark.asyncio
async def test_banned_dependency_is_syntax_routed_to_auto_linter() -> None:
    manifest = CodeArtifact("requirements.txt", "pickle==0.1\n", ArtifactType.REQUIREMENTS)

    report = await _service().verify(_request(_source("x = 1\n"), manifest))

    assert report.output.failure_category is FailureCategory.SYNTAX
    assert report.output.target_agent == "Auto-Linter Agent"
    assert "pickle" in report.output.repair_suggestion


@pytest.mark.asyncio
async def test_exhausted_budget_disables_retry() -> None:
    report = await _service().verify(
        _request(_test("def test_fail():\n    pass\n")), iteration_count=2, max_budget=2
    )

    assert report.output.retry_recommended is False
    assert report.output.budget_remaining == 0


@pytest.mark.asyncio
async def test_report_is_lossless_and_serializable() -> None:
    report = await _service().verify(_request(_source("eval(x)\n")))

    payload = json.loads(report.to_json())
    assert payload["execution"]["securityFindings"][0]["type"] == "DANGEROUS_FUNCTION"
    assert payload["static_analysis"]["data"]["critical_issues"] == 1
    assert payload["output"]["logs"]["exit_code"] == 1
    assert payload["started_at"] == "2026-05-06T07:08:09.000Z"
    assert set(payload) >= {
        "dependency_vetting",
        "static_analysis",
        "test_execution",
        "contract_validation",
    }


def test_context_rejects_negative_counters() -> None:
    with pytest.raises(ValueError, match="iteration_count"):
        VerificationContext(iteration_count=-1)
    with pytest.raises(ValueError, match="max_budget"):
        VerificationContext(max_budget=-2)


def test_service_builder_wires_local_backend_from_settings() -> None:
    settings = VerifierSettings.defaults()
    local = replace(settings, sandbox_backend="local")

    simulated_service = build_verification_service(settings, logger=RecordingLogger())
    local_service = build_verification_service(local, logger=RecordingLogger())

    assert simulated_service.pipeline._executor is None
    assert isinstance(local_service.pipeline._executor, LocalSubprocessSandbox)
