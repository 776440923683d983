"""
sandbox-verifier — execution request validation.

Purpose
- Turn an arbitrary JSON-like payload into a typed ``ExecutionRequest`` or a complete list of
  field-level ``ValidationError`` items.

Functional requirements
- Collect every violation in one pass; never short-circuit on the first problem.
- Never raise for expected shape violations. ``assert_valid_request`` is the raising variant
  used by callers that prefer exceptions.

Non-functional requirements
- Pure and re-entrant: no I/O, no logging, no shared state.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeVar

from sandbox_verifier.constants import (
    MAX_AGENT_ROLE_LENGTH,
    MAX_ARTIFACT_CONTENT_CHARS,
    MAX_ARTIFACTS,
    MAX_COMMAND_LENGTH,
    MAX_SUBTASK_ID_LENGTH,
    MAX_TASK_ID_LENGTH,
    RESOURCE_LIMIT_BOUNDS,
)
from sandbox_verifier.domain.models import (
    ArtifactType,
    CodeArtifact,
    ExecutionRequest,
    NetworkMode,
    NetworkPolicy,
    ResourceLimits,
    Runner,
    SandboxConfig,
    SeccompProfile,
    SecurityOptions,
)

TEnum = TypeVar("TEnum", bound=StrEnum)

_LIMIT_FIELDS: tuple[tuple[str, str], ...] = (
    ("memoryMb", "memory_mb"),
    ("cpuCores", "cpu_cores"),
    ("timeoutSeconds", "timeout_seconds"),
)


@dataclass(frozen=True, slots=True)
class ValidationError:
    """Single field-level validation failure."""

    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True, slots=True)
class RequestValidationResult:
    """Validation result carrying the typed request when no errors were found."""

    request: ExecutionRequest | None
    errors: tuple[ValidationError, ...]

    @property
    def is_valid(self) -> bool:
        return self.request is not None and not self.errors


class RequestValidationError(ValueError):
    """Raised by ``assert_valid_request`` when a payload fails validation."""

    def __init__(self, errors: Sequence[ValidationError]) -> None:
        self.errors = tuple(errors)
        if not self.errors:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.field}: {item.message}" for item in self.errors)
        super().__init__(f"invalid execution request:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ValidationError] = []

    def add(self, field: str, message: str) -> None:
        self._items.append(ValidationError(field=field, message=message))

    def items(self) -> tuple[ValidationError, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def validate_execution_request(
    payload: object,
    *,
    default_limits: ResourceLimits | None = None,
) -> RequestValidationResult:
    """Validate ``payload`` and build an ``ExecutionRequest`` when it is well formed.

    Missing ``resourceLimits`` fields take their values from ``default_limits``.
    """

    issues = _IssueCollector()
    if not isinstance(payload, Mapping):
        issues.add("body", "Request body must be a JSON object")
        return RequestValidationResult(request=None, errors=issues.items())

    task_id = _bounded_str(payload.get("taskId"), "taskId", MAX_TASK_ID_LENGTH, issues)
    subtask_id = _bounded_str(
        payload.get("subtaskId"), "subtaskId", MAX_SUBTASK_ID_LENGTH, issues
    )
    agent_role = _bounded_str(
        payload.get("agentRole"), "agentRole", MAX_AGENT_ROLE_LENGTH, issues
    )
    artifacts = _artifacts(payload.get("artifacts"), issues)
    test_command = _bounded_str(
        payload.get("testCommand"), "testCommand", MAX_COMMAND_LENGTH, issues
    )
    lint_command = _optional_command(payload.get("lintCommand"), "lintCommand", issues)
    security_scan_command = _optional_command(
        payload.get("securityScanCommand"), "securityScanCommand", issues
    )
    config = _sandbox_config(
        payload.get("config"),
        issues,
        default_limits=default_limits if default_limits is not None else ResourceLimits(),
    )

    if issues.has_issues:
        return RequestValidationResult(request=None, errors=issues.items())

    assert task_id is not None and subtask_id is not None and agent_role is not None
    assert test_command is not None and config is not None
    request = ExecutionRequest(
        task_id=task_id,
        subtask_id=subtask_id,
        agent_role=agent_role,
        artifacts=artifacts,
        test_command=test_command,
        config=config,
        lint_command=lint_command,
        security_scan_command=security_scan_command,
    )
    return RequestValidationResult(request=request, errors=())


def assert_valid_request(
    payload: object,
    *,
    default_limits: ResourceLimits | None = None,
) -> ExecutionRequest:
    """Validate ``payload`` and return the typed request or raise ``RequestValidationError``."""

    result = validate_execution_request(payload, default_limits=default_limits)
    if result.request is None:
        raise RequestValidationError(result.errors)
    return result.request


def _bounded_str(
    value: object,
    field: str,
    max_length: int,
    issues: _IssueCollector,
) -> str | None:
    if not isinstance(value, str) or not value.strip():
        issues.add(field, f"{field} is required and must be a string")
        return None
    if len(value) > max_length:
        issues.add(field, f"{field} must be less than {max_length} characters")
        return None
    return value


def _optional_command(value: object, field: str, issues: _IssueCollector) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        issues.add(field, f"{field} must be a string")
        return None
    if len(value) > MAX_COMMAND_LENGTH:
        issues.add(field, f"{field} must be less than {MAX_COMMAND_LENGTH} characters")
        return None
    return value


def _artifacts(value: object, issues: _IssueCollector) -> tuple[CodeArtifact, ...]:
    if not isinstance(value, list):
        issues.add("artifacts", "artifacts must be an array")
        return ()
    if len(value) > MAX_ARTIFACTS:
        issues.add("artifacts", f"Cannot process more than {MAX_ARTIFACTS} artifacts")
        return ()

    parsed: list[CodeArtifact] = []
    for index, item in enumerate(value):
        artifact = _artifact(item, f"artifacts[{index}]", issues)
        if artifact is not None:
            parsed.append(artifact)
    return tuple(parsed)


def _artifact(value: object, path: str, issues: _IssueCollector) -> CodeArtifact | None:
    if not isinstance(value, Mapping):
        issues.add(path, "Artifact must be an object")
        return None

    valid = True
    filename = value.get("filename")
    if not isinstance(filename, str) or not filename.strip():
        issues.add(f"{path}.filename", "filename is required")
        valid = False

    content = value.get("content")
    if not isinstance(content, str) or not content:
        issues.add(f"{path}.content", "content is required")
        valid = False
    elif len(content) > MAX_ARTIFACT_CONTENT_CHARS:
        issues.add(f"{path}.content", "content exceeds 1MB limit")
        valid = False

    artifact_type = _enum_member(value.get("type"), ArtifactType)
    if artifact_type is None:
        issues.add(f"{path}.type", f"type must be one of: {_choices(ArtifactType)}")
        valid = False

    if not valid:
        return None
    assert isinstance(filename, str) and isinstance(content, str) and artifact_type is not None
    return CodeArtifact(filename=filename, content=content, type=artifact_type)


def _sandbox_config(
    value: object,
    issues: _IssueCollector,
    *,
    default_limits: ResourceLimits,
) -> SandboxConfig | None:
    if not isinstance(value, Mapping):
        issues.add("config", "config is required and must be an object")
        return None

    runner = _enum_member(value.get("runner"), Runner)
    if runner is None:
        issues.add("config.runner", f"runner must be one of: {_choices(Runner)}")

    limits = _resource_limits(value.get("resourceLimits"), issues, defaults=default_limits)
    network_policy = _network_policy(value.get("networkPolicy"), issues)
    security = _security_options(value.get("security"), issues)

    if runner is None or limits is None or network_policy is None or security is None:
        return None
    return SandboxConfig(
        runner=runner,
        resource_limits=limits,
        network_policy=network_policy,
        security=security,
    )


def _resource_limits(
    value: object,
    issues: _IssueCollector,
    *,
    defaults: ResourceLimits,
) -> ResourceLimits | None:
    if value is None:
        return defaults
    path = "config.resourceLimits"
    if not isinstance(value, Mapping):
        issues.add(path, "resourceLimits must be an object")
        return None

    valid = True
    resolved: dict[str, float] = {}
    for wire_name, attr_name in _LIMIT_FIELDS:
        raw = value.get(wire_name)
        if raw is None:
            continue
        field = f"{path}.{wire_name}"
        if not _is_number(raw):
            issues.add(field, f"{wire_name} must be a number")
            valid = False
            continue
        minimum, maximum = RESOURCE_LIMIT_BOUNDS[wire_name]
        # int vs float comparison is exact, so huge integers never overflow here
        if not minimum <= raw <= maximum:
            issues.add(field, f"{wire_name} must be between {minimum:g} and {maximum:g}")
            valid = False
            continue
        resolved[attr_name] = raw

    max_output_bytes = defaults.max_output_bytes
    raw_output = value.get("maxOutputBytes")
    if raw_output is not None:
        if isinstance(raw_output, bool) or not isinstance(raw_output, int) or raw_output <= 0:
            issues.add(f"{path}.maxOutputBytes", "maxOutputBytes must be a positive integer")
            valid = False
        else:
            max_output_bytes = raw_output

    if not valid:
        return None
    return ResourceLimits(
        memory_mb=resolved.get("memory_mb", defaults.memory_mb),
        cpu_cores=resolved.get("cpu_cores", defaults.cpu_cores),
        timeout_seconds=resolved.get("timeout_seconds", defaults.timeout_seconds),
        max_output_bytes=max_output_bytes,
    )


def _network_policy(value: object, issues: _IssueCollector) -> NetworkPolicy | None:
    if value is None:
        return NetworkPolicy()
    path = "config.networkPolicy"
    if not isinstance(value, Mapping):
        issues.add(path, "networkPolicy must be an object")
        return None

    valid = True
    mode = NetworkMode.NONE
    if value.get("mode") is not None:
        parsed_mode = _enum_member(value.get("mode"), NetworkMode)
        if parsed_mode is None:
            issues.add(f"{path}.mode", f"mode must be one of: {_choices(NetworkMode)}")
            valid = False
        else:
            mode = parsed_mode

    hosts = _string_list(value.get("allowedHosts"), f"{path}.allowedHosts", issues)
    block = _optional_bool(
        value.get("blockExfiltration"), f"{path}.blockExfiltration", True, issues
    )
    if not valid or hosts is None or block is None:
        return None
    return NetworkPolicy(mode=mode, allowed_hosts=hosts, block_exfiltration=block)


def _security_options(value: object, issues: _IssueCollector) -> SecurityOptions | None:
    if value is None:
        return SecurityOptions()
    path = "config.security"
    if not isinstance(value, Mapping):
        issues.add(path, "security must be an object")
        return None

    valid = True
    seccomp = SeccompProfile.STRICT
    if value.get("seccompProfile") is not None:
        parsed = _enum_member(value.get("seccompProfile"), SeccompProfile)
        if parsed is None:
            issues.add(
                f"{path}.seccompProfile",
                f"seccompProfile must be one of: {_choices(SeccompProfile)}",
            )
            valid = False
        else:
            seccomp = parsed

    read_only = _optional_bool(
        value.get("readOnlyFilesystem"), f"{path}.readOnlyFilesystem", True, issues
    )
    no_new_privileges = _optional_bool(
        value.get("noNewPrivileges"), f"{path}.noNewPrivileges", True, issues
    )
    capabilities: tuple[str, ...] | None = ("ALL",)
    if value.get("dropCapabilities") is not None:
        capabilities = _string_list(
            value.get("dropCapabilities"), f"{path}.dropCapabilities", issues
        )

    if not valid or read_only is None or no_new_privileges is None or capabilities is None:
        return None
    return SecurityOptions(
        read_only_filesystem=read_only,
        no_new_privileges=no_new_privileges,
        drop_capabilities=capabilities,
        seccomp_profile=seccomp,
    )


def _string_list(value: object, path: str, issues: _IssueCollector) -> tuple[str, ...] | None:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        issues.add(path, "must be an array of strings")
        return None
    return tuple(value)


def _optional_bool(
    value: object,
    path: str,
    default: bool,
    issues: _IssueCollector,
) -> bool | None:
    if value is None:
        return default
    if not isinstance(value, bool):
        issues.add(path, "must be a boolean")
        return None
    return value


def _enum_member(value: object, enum_type: type[TEnum]) -> TEnum | None:
    if not isinstance(value, str):
        return None
    try:
        return enum_type(value)
    except ValueError:
        return None


def _choices(enum_type: type[StrEnum]) -> str:
    return ", ".join(member.value for member in enum_type)


def _is_number(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, int)


__all__ = [
    "RequestValidationError",
    "RequestValidationResult",
    "ValidationError",
    "assert_valid_request",
    "validate_execution_request",
]
