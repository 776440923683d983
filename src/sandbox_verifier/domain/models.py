"""Dataclass domain models for execution requests, findings, and reports.

All models are immutable once constructed. ``to_dict`` produces the camelCase wire shape used
by HTTP callers; ``to_json`` is the canonical (sorted, compact) JSON form.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum

from sandbox_verifier.constants import (
    DEFAULT_CPU_CORES,
    DEFAULT_MAX_OUTPUT_BYTES,
    DEFAULT_MEMORY_MB,
    DEFAULT_TIMEOUT_SECONDS,
    EXIT_FAILURE,
    EXIT_INTERNAL_ERROR,
    EXIT_SUCCESS,
    EXIT_TIMEOUT,
)

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


class Runner(StrEnum):
    PYTHON = "python"
    NODE = "node"
    TYPESCRIPT = "typescript"


class ArtifactType(StrEnum):
    SOURCE = "source"
    TEST = "test"
    CONFIG = "config"
    REQUIREMENTS = "requirements"


class FindingSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class LintSeverity(StrEnum):
    WARNING = "warning"
    ERROR = "error"


class TestStatus(StrEnum):
    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"


class LogStream(StrEnum):
    STDOUT = "stdout"
    STDERR = "stderr"


class ExecutionStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"
    ERROR = "error"


class NetworkMode(StrEnum):
    NONE = "none"
    RESTRICTED = "restricted"
    BUILD_ONLY = "build-only"


class SeccompProfile(StrEnum):
    DEFAULT = "default"
    STRICT = "strict"
    CUSTOM = "custom"


class FindingType(StrEnum):
    UNPINNED_DEPENDENCY = "UNPINNED_DEPENDENCY"
    DANGEROUS_FUNCTION = "DANGEROUS_FUNCTION"
    SHELL_INJECTION = "SHELL_INJECTION"
    HARDCODED_SECRET = "HARDCODED_SECRET"


class TaskStatus(StrEnum):
    PLANNING = "PLANNING"
    CONTRACT_NEGOTIATION = "CONTRACT_NEGOTIATION"
    IMPLEMENTING = "IMPLEMENTING"
    VERIFYING = "VERIFYING"
    REPAIRING = "REPAIRING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class FailureCategory(StrEnum):
    SYNTAX = "SYNTAX"
    LOGIC = "LOGIC"
    SECURITY = "SECURITY"
    CONTRACT = "CONTRACT"
    NONE = "NONE"


class Verdict(StrEnum):
    PASS = "PASS"
    FAIL = "FAIL"


class AgentRole(StrEnum):
    PYTHON = "Python Agent"
    JAVASCRIPT = "JavaScript Agent"
    TYPESCRIPT = "TypeScript Agent"
    DEVOPS = "DevOps Agent"
    SECOPS = "SecOps Agent"
    VERIFIER = "Verifier Agent"
    PLANNER = "Planner Agent"
    MEMORY = "Memory Agent"
    CONTRACT_NEGOTIATOR = "Contract Negotiator"
    INTEGRATOR = "Integrator Agent"
    ORCHESTRATOR = "Orchestrator Agent"
    SCHEMA_REGISTRY = "Schema Registry"
    SANDBOX = "Sandbox Agent"
    AUTO_LINTER = "Auto-Linter Agent"


_BLOCKING_SEVERITIES = frozenset({FindingSeverity.CRITICAL, FindingSeverity.HIGH})
_FAILED_TEST_STATUSES = frozenset({TestStatus.FAILED, TestStatus.ERROR})


@dataclass(frozen=True, slots=True)
class CodeArtifact:
    filename: str
    content: str
    type: ArtifactType

    def to_dict(self) -> dict[str, JSONValue]:
        return {"filename": self.filename, "content": self.content, "type": self.type.value}


@dataclass(frozen=True, slots=True)
class ResourceLimits:
    memory_mb: float = DEFAULT_MEMORY_MB
    cpu_cores: float = DEFAULT_CPU_CORES
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "memoryMb": self.memory_mb,
            "cpuCores": self.cpu_cores,
            "timeoutSeconds": self.timeout_seconds,
            "maxOutputBytes": self.max_output_bytes,
        }


@dataclass(frozen=True, slots=True)
class NetworkPolicy:
    mode: NetworkMode = NetworkMode.NONE
    allowed_hosts: tuple[str, ...] = ()
    block_exfiltration: bool = True

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "mode": self.mode.value,
            "allowedHosts": list(self.allowed_hosts),
            "blockExfiltration": self.block_exfiltration,
        }


@dataclass(frozen=True, slots=True)
class SecurityOptions:
    read_only_filesystem: bool = True
    no_new_privileges: bool = True
    drop_capabilities: tuple[str, ...] = ("ALL",)
    seccomp_profile: SeccompProfile = SeccompProfile.STRICT

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "readOnlyFilesystem": self.read_only_filesystem,
            "noNewPrivileges": self.no_new_privileges,
            "dropCapabilities": list(self.drop_capabilities),
            "seccompProfile": self.seccomp_profile.value,
        }


@dataclass(frozen=True, slots=True)
class SandboxConfig:
    runner: Runner
    resource_limits: ResourceLimits = field(default_factory=ResourceLimits)
    network_policy: NetworkPolicy = field(default_factory=NetworkPolicy)
    security: SecurityOptions = field(default_factory=SecurityOptions)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "runner": self.runner.value,
            "resourceLimits": self.resource_limits.to_dict(),
            "networkPolicy": self.network_policy.to_dict(),
            "security": self.security.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class ExecutionRequest:
    """One verification job. Constructed by the validator, immutable for the run."""

    task_id: str
    subtask_id: str
    agent_role: str
    artifacts: tuple[CodeArtifact, ...]
    test_command: str
    config: SandboxConfig
    lint_command: str | None = None
    security_scan_command: str | None = None

    def artifacts_of_type(self, artifact_type: ArtifactType) -> tuple[CodeArtifact, ...]:
        return tuple(item for item in self.artifacts if item.type is artifact_type)

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "taskId": self.task_id,
            "subtaskId": self.subtask_id,
            "agentRole": self.agent_role,
            "artifacts": [item.to_dict() for item in self.artifacts],
            "testCommand": self.test_command,
            "config": self.config.to_dict(),
        }
        if self.lint_command is not None:
            payload["lintCommand"] = self.lint_command
        if self.security_scan_command is not None:
            payload["securityScanCommand"] = self.security_scan_command
        return payload


@dataclass(frozen=True, slots=True)
class SecurityFinding:
    severity: FindingSeverity
    type: str
    file: str
    message: str
    line: int | None = None

    @property
    def is_blocking(self) -> bool:
        return self.severity in _BLOCKING_SEVERITIES

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "severity": self.severity.value,
            "type": self.type,
            "file": self.file,
        }
        if self.line is not None:
            payload["line"] = self.line
        payload["message"] = self.message
        return payload


@dataclass(frozen=True, slots=True)
class LintViolation:
    rule: str
    severity: LintSeverity
    file: str
    line: int
    column: int
    message: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "rule": self.rule,
            "severity": self.severity.value,
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "message": self.message,
        }


@dataclass(frozen=True, slots=True)
class TestResult:
    __test__ = False

    name: str
    status: TestStatus
    duration: int
    error_message: str | None = None

    @property
    def failed(self) -> bool:
        return self.status in _FAILED_TEST_STATUSES

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "name": self.name,
            "status": self.status.value,
            "duration": self.duration,
        }
        if self.error_message is not None:
            payload["errorMessage"] = self.error_message
        return payload


@dataclass(frozen=True, slots=True)
class ExecutionLog:
    timestamp: str
    stream: LogStream
    content: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"timestamp": self.timestamp, "stream": self.stream.value, "content": self.content}


@dataclass(frozen=True, slots=True)
class ResourceUsage:
    peak_memory_mb: float = 0
    cpu_time_ms: int = 0

    def to_dict(self) -> dict[str, JSONValue]:
        return {"peakMemoryMb": self.peak_memory_mb, "cpuTimeMs": self.cpu_time_ms}


@dataclass(frozen=True, slots=True)
class ExecutionReport:
    """Terminal artifact of a verification run."""

    task_id: str
    subtask_id: str
    status: ExecutionStatus
    exit_code: int
    start_time: str
    end_time: str
    duration_ms: int
    logs: tuple[ExecutionLog, ...]
    test_results: tuple[TestResult, ...]
    security_findings: tuple[SecurityFinding, ...]
    lint_violations: tuple[LintViolation, ...]
    resource_usage: ResourceUsage

    @property
    def succeeded(self) -> bool:
        return self.status is ExecutionStatus.SUCCESS

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "taskId": self.task_id,
            "subtaskId": self.subtask_id,
            "status": self.status.value,
            "exitCode": self.exit_code,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "durationMs": self.duration_ms,
            "logs": [item.to_dict() for item in self.logs],
            "testResults": [item.to_dict() for item in self.test_results],
            "securityFindings": [item.to_dict() for item in self.security_findings],
            "lintViolations": [item.to_dict() for item in self.lint_violations],
            "resourceUsage": self.resource_usage.to_dict(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def derive_status(
    findings: tuple[SecurityFinding, ...],
    test_results: tuple[TestResult, ...],
    violations: tuple[LintViolation, ...],
) -> ExecutionStatus:
    """Aggregate status: any blocking finding, failed test, or error lint fails the run."""

    if any(item.is_blocking for item in findings):
        return ExecutionStatus.FAILURE
    if any(item.failed for item in test_results):
        return ExecutionStatus.FAILURE
    if any(item.severity is LintSeverity.ERROR for item in violations):
        return ExecutionStatus.FAILURE
    return ExecutionStatus.SUCCESS


def exit_code_for(status: ExecutionStatus) -> int:
    if status is ExecutionStatus.SUCCESS:
        return EXIT_SUCCESS
    if status is ExecutionStatus.TIMEOUT:
        return EXIT_TIMEOUT
    if status is ExecutionStatus.ERROR:
        return EXIT_INTERNAL_ERROR
    return EXIT_FAILURE


__all__ = [
    "AgentRole",
    "ArtifactType",
    "CodeArtifact",
    "ExecutionLog",
    "ExecutionReport",
    "ExecutionRequest",
    "ExecutionStatus",
    "FailureCategory",
    "FindingSeverity",
    "FindingType",
    "JSONValue",
    "LintSeverity",
    "LintViolation",
    "LogStream",
    "NetworkMode",
    "NetworkPolicy",
    "ResourceLimits",
    "ResourceUsage",
    "Runner",
    "SandboxConfig",
    "SeccompProfile",
    "SecurityFinding",
    "SecurityOptions",
    "TaskStatus",
    "TestResult",
    "TestStatus",
    "Verdict",
    "derive_status",
    "exit_code_for",
]
