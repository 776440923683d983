"""Domain models and request factories."""

from __future__ import annotations

from sandbox_verifier.domain.defaults import (
    DEFAULT_RESOURCE_LIMITS,
    RUNNER_COMMANDS,
    create_default_sandbox_config,
    create_execution_request,
    runner_for_language,
)
from sandbox_verifier.domain.models import (
    AgentRole,
    ArtifactType,
    CodeArtifact,
    ExecutionLog,
    ExecutionReport,
    ExecutionRequest,
    ExecutionStatus,
    FailureCategory,
    FindingSeverity,
    FindingType,
    LintSeverity,
    LintViolation,
    LogStream,
    NetworkMode,
    NetworkPolicy,
    ResourceLimits,
    ResourceUsage,
    Runner,
    SandboxConfig,
    SeccompProfile,
    SecurityFinding,
    SecurityOptions,
    TaskStatus,
    TestResult,
    TestStatus,
    Verdict,
)

__all__ = [
    "DEFAULT_RESOURCE_LIMITS",
    "RUNNER_COMMANDS",
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
    "create_default_sandbox_config",
    "create_execution_request",
    "runner_for_language",
]
