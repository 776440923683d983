"""Command-line surface: argument routing and plain-text report rendering."""

from sandbox_verifier.ui.cli import CLIError, build_parser, run_cli
from sandbox_verifier.ui.render import (
    CLIRenderer,
    render_execution_report,
    render_verification_report,
)

__all__ = [
    "CLIError",
    "CLIRenderer",
    "build_parser",
    "render_execution_report",
    "render_verification_report",
    "run_cli",
]
