"""Built-in analysis checkers, one per verification phase."""

from __future__ import annotations

from sandbox_verifier.verification_plane.checkers.base import (
    BaseChecker,
    CheckerContext,
    CheckOutcome,
    LogLine,
)
from sandbox_verifier.verification_plane.checkers.dependency_checker import (
    DependencyChecker,
    DependencyStatus,
    DependencyVet,
    scan_dependencies,
)
from sandbox_verifier.verification_plane.checkers.lint_checker import LintChecker, lint_source
from sandbox_verifier.verification_plane.checkers.security_checker import (
    SECRET_PATTERNS,
    SecretPattern,
    SecurityChecker,
    scan_source,
)
from sandbox_verifier.verification_plane.checkers.test_checker import TestChecker, run_tests

__all__ = [
    "SECRET_PATTERNS",
    "BaseChecker",
    "CheckOutcome",
    "CheckerContext",
    "DependencyChecker",
    "DependencyStatus",
    "DependencyVet",
    "LintChecker",
    "LogLine",
    "SecretPattern",
    "SecurityChecker",
    "TestChecker",
    "lint_source",
    "run_tests",
    "scan_dependencies",
    "scan_source",
]
