"""Plain-text rendering of execution and verification reports for the CLI.

Output is deterministic: no colors, no terminal probing, fixed ordering.
"""

from __future__ import annotations

import sys
from typing import IO, TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sandbox_verifier.domain.models import ExecutionReport
    from sandbox_verifier.verification_plane.report import VerificationReport

_MAX_MESSAGE_WIDTH = 72


class CLIRenderer:
    """Thin CLI output renderer writing to ``stream`` (stdout by default)."""

    def __init__(self, *, verbose: bool = False, stream: IO[str] | None = None) -> None:
        self.verbose = verbose
        self._stream = stream

    def heading(self, text: str) -> None:
        self._print(text)

    def kv(self, key: str, value: object) -> None:
        self._print(f"{key}: {value}")

    def text(self, line: str) -> None:
        self._print(line)

    def section(self, title: str) -> None:
        self._print(f"\n{title}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self._print(f"  {prefix}{entry}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a formatted ASCII table; nothing at all for zero rows."""

        if not rows:
            return

        col_count = len(headers)
        widths = [len(h) for h in headers]
        for row in rows:
            for i in range(min(len(row), col_count)):
                widths[i] = max(widths[i], len(str(row[i])))

        def _pad(cells: Sequence[str]) -> str:
            parts: list[str] = []
            for i in range(col_count):
                cell = str(cells[i]) if i < len(cells) else ""
                parts.append(cell.ljust(widths[i]))
            return "  ".join(parts).rstrip()

        if title:
            self.section(title)
        self._print(f"  {_pad(list(headers))}")
        self._print(f"  {'  '.join('-' * w for w in widths)}")
        for row in rows:
            self._print(f"  {_pad(list(row))}")

    def _print(self, line: str) -> None:
        print(line, file=self._stream if self._stream is not None else sys.stdout)


def render_execution_report(renderer: CLIRenderer, report: ExecutionReport) -> None:
    renderer.heading(f"Task {report.task_id} / {report.subtask_id}")
    renderer.kv("Status", report.status.value.upper())
    renderer.kv("Exit code", report.exit_code)
    renderer.kv("Duration", f"{report.duration_ms}ms")

    renderer.table(
        ("SEVERITY", "TYPE", "FILE", "LINE", "MESSAGE"),
        [
            (
                item.severity.value,
                item.type,
                item.file,
                "" if item.line is None else str(item.line),
                _truncate(item.message),
            )
            for item in report.security_findings
        ],
        title="Security findings:",
    )
    renderer.table(
        ("SEVERITY", "RULE", "LOCATION", "MESSAGE"),
        [
            (
                item.severity.value,
                item.rule,
                f"{item.file}:{item.line}:{item.column}",
                _truncate(item.message),
            )
            for item in report.lint_violations
        ],
        title="Lint violations:",
    )
    renderer.table(
        ("STATUS", "TEST", "DURATION"),
        [(item.status.value, item.name, f"{item.duration}ms") for item in report.test_results],
        title="Tests:",
    )

    if renderer.verbose:
        renderer.section("Logs:")
        renderer.items(
            [f"[{item.stream.value}] {item.content}" for item in report.logs], prefix=""
        )


def render_verification_report(renderer: CLIRenderer, report: VerificationReport) -> None:
    output = report.output
    render_execution_report(renderer, report.execution)
    renderer.section("Verdict:")
    renderer.kv("  Verdict", output.verdict.value)
    renderer.kv("  Failure category", output.failure_category.value)
    if output.target_agent is not None:
        renderer.kv("  Target agent", output.target_agent)
    renderer.kv("  Retry recommended", "yes" if output.retry_recommended else "no")
    renderer.kv("  Budget remaining", output.budget_remaining)
    renderer.kv("  Feedback", output.feedback_to_agent)
    if output.repair_suggestion:
        renderer.kv("  Suggestion", output.repair_suggestion)


def _truncate(text: str, max_len: int = _MAX_MESSAGE_WIDTH) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


__all__ = ["CLIRenderer", "render_execution_report", "render_verification_report"]
