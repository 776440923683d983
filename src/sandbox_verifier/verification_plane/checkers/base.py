"""
sandbox-verifier — checker interface

Purpose
- Defines the checker contract: inputs (validated request plus analysis settings) and outputs
  (findings, lint violations, test results, and the log lines a phase emits).

Functional requirements
- Checkers are pure text/pattern analysis: no network access, no code execution.
- Same input must always yield the same outcome, in the same order.

Non-functional requirements
- Artifact content must never be copied into log lines.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import NoReturn, Protocol, runtime_checkable

from sandbox_verifier.constants import DEFAULT_BANNED_DEPENDENCIES, DEFAULT_MAX_LINE_LENGTH
from sandbox_verifier.domain.models import (
    ExecutionRequest,
    LintViolation,
    LogStream,
    SecurityFinding,
    TestResult,
)


@dataclass(frozen=True, slots=True)
class LogLine:
    """Un-timestamped log entry; the report builder stamps it on emission."""

    stream: LogStream
    content: str

    @classmethod
    def out(cls, content: str) -> LogLine:
        return cls(stream=LogStream.STDOUT, content=content)

    @classmethod
    def err(cls, content: str) -> LogLine:
        return cls(stream=LogStream.STDERR, content=content)


@dataclass(frozen=True, slots=True)
class CheckerContext:
    """Normalized checker invocation context."""

    request: ExecutionRequest
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH
    banned_dependencies: tuple[str, ...] = DEFAULT_BANNED_DEPENDENCIES

    def __post_init__(self) -> None:
        if isinstance(self.max_line_length, bool) or self.max_line_length < 1:
            _fail("CheckerContext.max_line_length", "must be a positive integer")


@dataclass(frozen=True, slots=True)
class CheckOutcome:
    """Everything one checker produced, in emission order."""

    checker_id: str
    findings: tuple[SecurityFinding, ...] = ()
    violations: tuple[LintViolation, ...] = ()
    test_results: tuple[TestResult, ...] = ()
    log_lines: tuple[LogLine, ...] = ()
    details: Mapping[str, object] = field(default_factory=dict)


@runtime_checkable
class BaseChecker(Protocol):
    """Checker protocol implemented by every analysis phase."""

    checker_id: str
    stage: str

    def check(self, context: CheckerContext) -> CheckOutcome: ...


def numbered_lines(content: str) -> Iterator[tuple[int, str]]:
    """Yield ``(line_number, text)`` pairs with 1-based numbering over ``\\n``-split content."""

    for index, line in enumerate(content.split("\n"), start=1):
        yield index, line


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "BaseChecker",
    "CheckOutcome",
    "CheckerContext",
    "LogLine",
    "numbered_lines",
]
