"""Failure-category precedence and remediation-agent routing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from sandbox_verifier.domain.models import AgentRole, FailureCategory, Runner

LANGUAGE_AGENTS: Final[frozenset[AgentRole]] = frozenset(
    {AgentRole.PYTHON, AgentRole.JAVASCRIPT, AgentRole.TYPESCRIPT}
)


@dataclass(frozen=True, slots=True)
class PhaseSignals:
    """Pass/fail signals of every phase, as consumed by the category precedence."""

    blocking_security_findings: int
    static_analysis_passed: bool
    dependency_vetting_passed: bool
    contract_validation_passed: bool
    test_execution_passed: bool

    @property
    def all_passed(self) -> bool:
        return (
            self.static_analysis_passed
            and self.dependency_vetting_passed
            and self.contract_validation_passed
            and self.test_execution_passed
        )


def classify_failure(signals: PhaseSignals) -> FailureCategory:
    """First match wins: SECURITY, CONTRACT, LOGIC, SYNTAX, then NONE."""

    if signals.blocking_security_findings > 0:
        return FailureCategory.SECURITY
    if not signals.contract_validation_passed:
        return FailureCategory.CONTRACT
    if not signals.test_execution_passed:
        return FailureCategory.LOGIC
    if not signals.static_analysis_passed or not signals.dependency_vetting_passed:
        return FailureCategory.SYNTAX
    return FailureCategory.NONE


def originating_agent(agent_role: str, runner: Runner) -> AgentRole:
    """The language agent that produced the artifacts.

    A request submitted by a language agent routes back to it; otherwise the runner decides.
    """

    try:
        role = AgentRole(agent_role)
    except ValueError:
        role = None
    if role is not None and role in LANGUAGE_AGENTS:
        return role

    match runner:
        case Runner.TYPESCRIPT:
            return AgentRole.TYPESCRIPT
        case Runner.NODE:
            return AgentRole.JAVASCRIPT
        case _:
            return AgentRole.PYTHON


def target_agent_for(
    category: FailureCategory,
    *,
    agent_role: str,
    runner: Runner,
) -> AgentRole | None:
    match category:
        case FailureCategory.SECURITY:
            return AgentRole.SECOPS
        case FailureCategory.CONTRACT:
            return AgentRole.CONTRACT_NEGOTIATOR
        case FailureCategory.LOGIC:
            return originating_agent(agent_role, runner)
        case FailureCategory.SYNTAX:
            return AgentRole.AUTO_LINTER
        case _:
            return None


__all__ = [
    "LANGUAGE_AGENTS",
    "PhaseSignals",
    "classify_failure",
    "originating_agent",
    "target_agent_for",
]
