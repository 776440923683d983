"""
sandbox-verifier — unit tests for execution request validation

Purpose
- Validate that payloads become typed requests or a complete list of field-level errors.

What this test file should cover
- Every violation is collected in one pass.
- Exact messages for required fields, length bounds, enums and resource limits.
- Defaults for optional config blocks.
"""

from __future__ import annotations

import pytest

from sandbox_verifier.constants import MAX_ARTIFACTS
from sandbox_verifier.domain.models import (
    ArtifactType,
    NetworkMode,
    ResourceLimits,
    Runner,
    SeccompProfile,
)
from sandbox_verifier.validation import (
    RequestValidationError,
    ValidationError,
    assert_valid_request,
    validate_execution_request,
)


def _payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "taskId": "task-1",
        "subtaskId": "sub-1",
        "agentRole": "Python Agent",
        "artifacts": [
            {"filename": "app.py", "content": "print('hi')\n", "type": "source"},
            {"filename": "test_app.py", "content": "def test_ok():\n    pass\n", "type": "test"},
        ],
        "testCommand": "pytest -q",
        "config": {"runner": "python"},
    }
    payload.update(overrides)
    return payload


def _fields(errors: tuple[ValidationError, ...]) -> list[str]:
    return [item.field for item in errors]


def test_valid_payload_builds_typed_request_with_defaults() -> None:
    result = validate_execution_request(_payload())

    assert result.is_valid
    request = result.request
    assert request is not None
    assert request.task_id == "task-1"
    assert request.config.runner is Runner.PYTHON
    assert request.config.resource_limits == ResourceLimits()
    assert request.config.network_policy.mode is NetworkMode.NONE
    assert request.config.network_policy.block_exfiltration is True
    assert request.config.security.seccomp_profile is SeccompProfile.STRICT
    assert request.config.security.drop_capabilities == ("ALL",)
    assert [item.type for item in request.artifacts] == [ArtifactType.SOURCE, ArtifactType.TEST]
    assert request.lint_command is None


def test_empty_body_reports_every_required_field_at_once() -> None:
    result = validate_execution_request({})

    assert result.request is None
    assert _fields(result.errors) == [
        "taskId",
        "subtaskId",
        "agentRole",
        "artifacts",
        "testCommand",
        "config",
    ]
    assert result.errors[0].message == "taskId is required and must be a string"
    assert result.errors[3].message == "artifacts must be an array"
    assert result.errors[5].message == "config is required and must be an object"


def test_non_object_body_is_rejected() -> None:
    result = validate_execution_request(["not", "an", "object"])

    assert result.errors == (ValidationError("body", "Request body must be a JSON object"),)


def test_length_limits_use_exact_messages() -> None:
    result = validate_execution_request(
        _payload(taskId="t" * 101, agentRole="r" * 51, testCommand="x" * 501)
    )

    messages = {item.field: item.message for item in result.errors}
    assert messages == {
        "taskId": "taskId must be less than 100 characters",
        "agentRole": "agentRole must be less than 50 characters",
        "testCommand": "testCommand must be less than 500 characters",
    }


def test_artifact_errors_carry_indexed_paths() -> None:
    result = validate_execution_request(
        _payload(
            artifacts=[
                {"filename": "ok.py", "content": "x = 1", "type": "source"},
                {"filename": "", "content": "", "type": "binary"},
                "not-an-object",
            ]
        )
    )

    assert [(item.field, item.message) for item in result.errors] == [
        ("artifacts[1].filename", "filename is required"),
        ("artifacts[1].content", "content is required"),
        ("artifacts[1].type", "type must be one of: source, test, config, requirements"),
        ("artifacts[2]", "Artifact must be an object"),
    ]


def test_too_many_artifacts_is_one_error() -> None:
    artifacts = [
        {"filename": f"f{index}.py", "content": "x", "type": "source"}
        for index in range(MAX_ARTIFACTS + 1)
    ]

    result = validate_execution_request(_payload(artifacts=artifacts))

    assert result.errors == (
        ValidationError("artifacts", "Cannot process more than 50 artifacts"),
    )


def test_oversized_artifact_content_is_rejected() -> None:
    result = validate_execution_request(
        _payload(
            artifacts=[{"filename": "big.py", "content": "x" * 1_000_001, "type": "source"}]
        )
    )

    assert result.errors == (
        ValidationError("artifacts[0].content", "content exceeds 1MB limit"),
    )


@pytest.mark.parametrize(
    ("limits", "field", "message"),
    [
        (
            {"memoryMb": 32},
            "config.resourceLimits.memoryMb",
            "memoryMb must be between 64 and 4096",
        ),
        ({"cpuCores": 8}, "config.resourceLimits.cpuCores", "cpuCores must be between 0.1 and 4"),
        (
            {"timeoutSeconds": 1},
            "config.resourceLimits.timeoutSeconds",
            "timeoutSeconds must be between 5 and 300",
        ),
        ({"memoryMb": "lots"}, "config.resourceLimits.memoryMb", "memoryMb must be a number"),
        (
            {"memoryMb": 10**400},
            "config.resourceLimits.memoryMb",
            "memoryMb must be between 64 and 4096",
        ),
        ({"cpuCores": float("inf")}, "config.resourceLimits.cpuCores", "cpuCores must be a number"),
    ],
)
def test_resource_limit_bounds(limits: dict[str, object], field: str, message: str) -> None:
    result = validate_execution_request(
        _payload(config={"runner": "python", "resourceLimits": limits})
    )

    assert result.errors == (ValidationError(field, message),)


def test_partial_limits_are_filled_from_caller_defaults() -> None:
    defaults = ResourceLimits(memory_mb=1024, cpu_cores=1, timeout_seconds=60)

    result = validate_execution_request(
        _payload(config={"runner": "node", "resourceLimits": {"timeoutSeconds": 10}}),
        default_limits=defaults,
    )

    assert result.request is not None
    limits = result.request.config.resource_limits
    assert limits.memory_mb == 1024
    assert limits.cpu_cores == 1
    assert limits.timeout_seconds == 10


def test_unknown_runner_and_network_mode_are_reported_together() -> None:
    result = validate_execution_request(
        _payload(config={"runner": "ruby", "networkPolicy": {"mode": "open"}})
    )

    assert _fields(result.errors) == ["config.runner", "config.networkPolicy.mode"]
    assert result.errors[0].message == "runner must be one of: python, node, typescript"


def test_optional_commands_must_be_strings() -> None:
    result = validate_execution_request(_payload(lintCommand=42, securityScanCommand="bandit"))

    assert result.errors == (ValidationError("lintCommand", "lintCommand must be a string"),)


def test_assert_valid_request_raises_with_all_errors() -> None:
    with pytest.raises(RequestValidationError) as excinfo:
        assert_valid_request({"taskId": "t"})

    assert "subtaskId" in _fields(excinfo.value.errors)
    assert "taskId" not in _fields(excinfo.value.errors)
    assert str(excinfo.value).startswith("invalid execution request:")


def test_validation_error_serializes_to_wire_shape() -> None:
    error = ValidationError("config.runner", "runner must be one of: python")

    assert error.to_dict() == {"field": "config.runner", "message": "runner must be one of: python"}
