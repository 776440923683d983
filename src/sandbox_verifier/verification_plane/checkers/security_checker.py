"""
Security Checker — static analysis stage.

Functional requirements:
- Flags dangerous function use, shell command execution, and hard-coded secrets in source files.
- Secret patterns are evaluated as an ordered list; the first pattern that matches yields the
  file's only secret finding.

Non-functional requirements:
- Must be deterministic: findings follow artifact order, then rule order within a file.
- Matched secret values are never echoed into messages or logs.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from sandbox_verifier.domain.models import (
    ArtifactType,
    CodeArtifact,
    FindingSeverity,
    FindingType,
    Runner,
    SecurityFinding,
)
from sandbox_verifier.verification_plane.checkers.base import (
    CheckerContext,
    CheckOutcome,
    LogLine,
    numbered_lines,
)

DANGEROUS_FUNCTION_MESSAGE: Final[str] = (
    "Use of eval() detected - potential code injection vulnerability"
)
SHELL_INJECTION_MESSAGE: Final[str] = (
    "Shell command execution detected - validate inputs carefully"
)
HARDCODED_SECRET_MESSAGE: Final[str] = "Potential hardcoded secret detected"

_EVAL_TOKEN: Final[str] = "eval("
_SHELL_TOKENS: Final[tuple[str, ...]] = ("os.system(", "subprocess.call(")


@dataclass(frozen=True, slots=True)
class SecretPattern:
    code: str
    regex: re.Pattern[str]
    finding_type: FindingType


SECRET_PATTERNS: Final[tuple[SecretPattern, ...]] = (
    SecretPattern(
        code="security.secret.api_key",
        regex=re.compile(r"(?i)api_key\s*=\s*['\"][^'\"]+['\"]"),
        finding_type=FindingType.HARDCODED_SECRET,
    ),
    SecretPattern(
        code="security.secret.password",
        regex=re.compile(r"(?i)password\s*=\s*['\"][^'\"]+['\"]"),
        finding_type=FindingType.HARDCODED_SECRET,
    ),
    SecretPattern(
        code="security.secret.secret",
        regex=re.compile(r"(?i)secret\s*=\s*['\"][^'\"]+['\"]"),
        finding_type=FindingType.HARDCODED_SECRET,
    ),
)


class SecurityChecker:
    """Pattern-based security scanner over source artifacts."""

    checker_id = "security_checker"
    stage = "static_analysis"

    def __init__(self, *, secret_patterns: tuple[SecretPattern, ...] = SECRET_PATTERNS) -> None:
        self._secret_patterns = secret_patterns

    def check(self, context: CheckerContext) -> CheckOutcome:
        request = context.request
        scanner = "bandit" if request.config.runner is Runner.PYTHON else "snyk"
        log_lines = [LogLine.out(f"[security] Running {scanner} scan...")]
        if request.security_scan_command:
            log_lines.append(LogLine.out(f"[security] Command: {request.security_scan_command}"))

        findings = scan_source(request.artifacts, secret_patterns=self._secret_patterns)

        if findings:
            log_lines.append(LogLine.out(f"[security] {len(findings)} finding(s) reported"))
        else:
            log_lines.append(LogLine.out("[security] No issues found"))
        return CheckOutcome(
            checker_id=self.checker_id,
            findings=findings,
            log_lines=tuple(log_lines),
        )

    def scan(self, artifact: CodeArtifact) -> tuple[SecurityFinding, ...]:
        """Apply dangerous-function, shell-injection, and secret rules to one file, in order."""

        findings: list[SecurityFinding] = []
        content = artifact.content

        if _EVAL_TOKEN in content:
            findings.append(
                SecurityFinding(
                    severity=FindingSeverity.HIGH,
                    type=FindingType.DANGEROUS_FUNCTION.value,
                    file=artifact.filename,
                    line=_first_line_containing(content, _EVAL_TOKEN),
                    message=DANGEROUS_FUNCTION_MESSAGE,
                )
            )

        if any(token in content for token in _SHELL_TOKENS):
            findings.append(
                SecurityFinding(
                    severity=FindingSeverity.MEDIUM,
                    type=FindingType.SHELL_INJECTION.value,
                    file=artifact.filename,
                    message=SHELL_INJECTION_MESSAGE,
                )
            )

        for pattern in self._secret_patterns:
            match = pattern.regex.search(content)
            if match is None:
                continue
            findings.append(
                SecurityFinding(
                    severity=FindingSeverity.CRITICAL,
                    type=pattern.finding_type.value,
                    file=artifact.filename,
                    line=content.count("\n", 0, match.start()) + 1,
                    message=HARDCODED_SECRET_MESSAGE,
                )
            )
            break

        return tuple(findings)


def scan_source(
    artifacts: Sequence[CodeArtifact],
    *,
    secret_patterns: tuple[SecretPattern, ...] = SECRET_PATTERNS,
) -> tuple[SecurityFinding, ...]:
    """Security findings for every source artifact, in artifact order."""

    scanner = SecurityChecker(secret_patterns=secret_patterns)
    return tuple(
        finding
        for artifact in artifacts
        if artifact.type is ArtifactType.SOURCE
        for finding in scanner.scan(artifact)
    )


def _first_line_containing(content: str, token: str) -> int | None:
    for number, line in numbered_lines(content):
        if token in line:
            return number
    return None


__all__ = [
    "DANGEROUS_FUNCTION_MESSAGE",
    "HARDCODED_SECRET_MESSAGE",
    "SECRET_PATTERNS",
    "SHELL_INJECTION_MESSAGE",
    "SecretPattern",
    "SecurityChecker",
    "scan_source",
]
