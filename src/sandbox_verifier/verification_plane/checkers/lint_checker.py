"""
Lint Checker — static analysis stage.

Functional requirements:
- Reports one ``max-line-length`` warning per source line longer than the configured limit.

Non-functional requirements:
- Must be deterministic; violations follow artifact order, then line order.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from sandbox_verifier.constants import DEFAULT_MAX_LINE_LENGTH
from sandbox_verifier.domain.models import (
    ArtifactType,
    CodeArtifact,
    LintSeverity,
    LintViolation,
)
from sandbox_verifier.verification_plane.checkers.base import (
    CheckerContext,
    CheckOutcome,
    LogLine,
    numbered_lines,
)

MAX_LINE_LENGTH_RULE: Final[str] = "max-line-length"


class LintChecker:
    """Line-length linter over source artifacts."""

    checker_id = "lint_checker"
    stage = "static_analysis"

    def check(self, context: CheckerContext) -> CheckOutcome:
        request = context.request
        log_lines = [LogLine.out("[lint] Running static analysis...")]
        if request.lint_command:
            log_lines.append(LogLine.out(f"[lint] Command: {request.lint_command}"))

        violations = lint_source(request.artifacts, max_length=context.max_line_length)

        log_lines.append(LogLine.out(f"[lint] {len(violations)} violation(s) reported"))
        return CheckOutcome(
            checker_id=self.checker_id,
            violations=violations,
            log_lines=tuple(log_lines),
        )


def lint_source(
    artifacts: Sequence[CodeArtifact], *, max_length: int = DEFAULT_MAX_LINE_LENGTH
) -> tuple[LintViolation, ...]:
    return tuple(
        violation
        for artifact in artifacts
        if artifact.type is ArtifactType.SOURCE
        for violation in lint_line_length(artifact, max_length=max_length)
    )


def lint_line_length(artifact: CodeArtifact, *, max_length: int) -> tuple[LintViolation, ...]:
    return tuple(
        LintViolation(
            rule=MAX_LINE_LENGTH_RULE,
            severity=LintSeverity.WARNING,
            file=artifact.filename,
            line=number,
            column=max_length + 1,
            message=f"Line exceeds maximum length of {max_length} characters",
        )
        for number, line in numbered_lines(artifact.content)
        if len(line) > max_length
    )


__all__ = ["MAX_LINE_LENGTH_RULE", "LintChecker", "lint_line_length", "lint_source"]
