"""Default sandbox configuration and request factories per runner."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from sandbox_verifier.domain.models import (
    CodeArtifact,
    ExecutionRequest,
    NetworkPolicy,
    ResourceLimits,
    Runner,
    SandboxConfig,
    SecurityOptions,
)


@dataclass(frozen=True, slots=True)
class RunnerCommands:
    test: str
    lint: str
    security_scan: str


DEFAULT_RESOURCE_LIMITS: Final[ResourceLimits] = ResourceLimits()

RUNNER_COMMANDS: Final[dict[Runner, RunnerCommands]] = {
    Runner.PYTHON: RunnerCommands(
        test="pytest --tb=short -v",
        lint="flake8 . && pylint *.py",
        security_scan="bandit -r . -f json",
    ),
    Runner.NODE: RunnerCommands(
        test="npm test",
        lint="eslint . --ext .ts,.tsx,.js,.jsx",
        security_scan="npm audit --json",
    ),
    Runner.TYPESCRIPT: RunnerCommands(
        test="npm test",
        lint="eslint . --ext .ts,.tsx,.js,.jsx",
        security_scan="npm audit --json",
    ),
}

_LANGUAGE_RUNNERS: Final[dict[str, Runner]] = {
    "py": Runner.PYTHON,
    "python": Runner.PYTHON,
    "ts": Runner.TYPESCRIPT,
    "tsx": Runner.TYPESCRIPT,
    "typescript": Runner.TYPESCRIPT,
    "js": Runner.NODE,
    "jsx": Runner.NODE,
    "javascript": Runner.NODE,
}


def create_default_sandbox_config(
    runner: Runner,
    *,
    resource_limits: ResourceLimits | None = None,
) -> SandboxConfig:
    """Locked-down defaults: no network, read-only filesystem, all capabilities dropped."""

    return SandboxConfig(
        runner=runner,
        resource_limits=resource_limits if resource_limits is not None else DEFAULT_RESOURCE_LIMITS,
        network_policy=NetworkPolicy(),
        security=SecurityOptions(),
    )


def create_execution_request(
    *,
    task_id: str,
    subtask_id: str,
    agent_role: str,
    artifacts: Sequence[CodeArtifact],
    runner: Runner = Runner.PYTHON,
) -> ExecutionRequest:
    commands = RUNNER_COMMANDS[runner]
    return ExecutionRequest(
        task_id=task_id,
        subtask_id=subtask_id,
        agent_role=agent_role,
        artifacts=tuple(artifacts),
        test_command=commands.test,
        config=create_default_sandbox_config(runner),
        lint_command=commands.lint,
        security_scan_command=commands.security_scan,
    )


def runner_for_language(language: str) -> Runner:
    """Map a language name or file extension to a runner; unknown languages use node."""

    return _LANGUAGE_RUNNERS.get(language.strip().lower().lstrip("."), Runner.NODE)


__all__ = [
    "DEFAULT_RESOURCE_LIMITS",
    "RUNNER_COMMANDS",
    "RunnerCommands",
    "create_default_sandbox_config",
    "create_execution_request",
    "runner_for_language",
]
