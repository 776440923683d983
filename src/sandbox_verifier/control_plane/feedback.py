"""
Control-plane feedback synthesizer.

Builds the remediation message for the target agent from one verification outcome:
- ``feedback_to_agent``: what failed, with counts
- ``repair_suggestion``: what to change, derived from finding types and failing tests

Secret values never reach feedback text; only finding types and file names do.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sandbox_verifier.domain.models import (
    FailureCategory,
    FindingType,
    LintViolation,
    SecurityFinding,
    TestResult,
)

_FINDING_HINTS: dict[str, str] = {
    FindingType.DANGEROUS_FUNCTION.value: (
        "Remove eval() and parse input explicitly (for example with ast.literal_eval or json)."
    ),
    FindingType.SHELL_INJECTION.value: (
        "Avoid shell execution; pass argument lists to subprocess and validate every input."
    ),
    FindingType.HARDCODED_SECRET.value: (
        "Move credentials out of source into environment variables or a secrets manager."
    ),
    FindingType.UNPINNED_DEPENDENCY.value: "Pin every dependency to an exact version.",
}

_MAX_LISTED_TESTS = 5


@dataclass(frozen=True, slots=True)
class FeedbackPackage:
    """Machine-readable remediation feedback for the target agent."""

    category: FailureCategory
    feedback_to_agent: str
    repair_suggestion: str

    def to_dict(self) -> dict[str, object]:
        return {
            "category": self.category.value,
            "feedback_to_agent": self.feedback_to_agent,
            "repair_suggestion": self.repair_suggestion,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def synthesize_feedback(
    category: FailureCategory,
    *,
    findings: Sequence[SecurityFinding] = (),
    violations: Sequence[LintViolation] = (),
    test_results: Sequence[TestResult] = (),
    contract_violations: int = 0,
    missing_endpoints: Sequence[str] = (),
    banned_dependencies: Sequence[str] = (),
    timed_out: bool = False,
) -> FeedbackPackage:
    match category:
        case FailureCategory.SECURITY:
            blocking = [item for item in findings if item.is_blocking]
            types = _unique(item.type for item in blocking)
            files = _unique(item.file for item in blocking)
            feedback = (
                f"Security scan found {len(blocking)} critical/high severity issue(s) "
                f"({', '.join(types)}) in {', '.join(files)}."
            )
            suggestion = " ".join(_FINDING_HINTS.get(kind, f"Resolve {kind}.") for kind in types)
        case FailureCategory.CONTRACT:
            feedback = f"Contract validation failed: {contract_violations} violation(s) found."
            if missing_endpoints:
                suggestion = (
                    "Implement the missing contract endpoints: "
                    f"{', '.join(missing_endpoints)}."
                )
            else:
                suggestion = "Align the implementation with the shared contract."
        case FailureCategory.LOGIC:
            failed = [item.name for item in test_results if item.failed]
            if timed_out and not failed:
                feedback = "Test execution timed out before completing."
                suggestion = "Look for infinite loops or blocking I/O in the code under test."
            else:
                feedback = f"Test execution failed: {len(failed)} test(s) failed."
                listed = ", ".join(failed[:_MAX_LISTED_TESTS])
                if len(failed) > _MAX_LISTED_TESTS:
                    listed += f" and {len(failed) - _MAX_LISTED_TESTS} more"
                suggestion = f"Fix the logic exercised by the failing tests: {listed}."
        case FailureCategory.SYNTAX:
            issue_count = len(findings) + len(violations) + len(banned_dependencies)
            feedback = f"Static analysis found {issue_count} issue(s)."
            if banned_dependencies:
                suggestion = (
                    f"Remove banned dependencies ({', '.join(banned_dependencies)}) and run "
                    "auto-fix for linting issues."
                )
            else:
                suggestion = "Run auto-fix for linting issues."
        case _:
            feedback = "All verification phases passed."
            suggestion = ""

    return FeedbackPackage(
        category=category,
        feedback_to_agent=feedback,
        repair_suggestion=suggestion,
    )


def _unique(values: Iterable[str]) -> list[str]:
    ordered: list[str] = []
    for value in values:
        if value not in ordered:
            ordered.append(value)
    return ordered


__all__ = ["FeedbackPackage", "synthesize_feedback"]
