"""
sandbox-verifier — process entrypoint.

Purpose
- Run the CLI router and turn whatever escapes it into one of the ``ExitCode`` values.

Normative behavior
- Exceptions are matched against the error table through their whole ``__cause__`` /
  ``__context__`` chain, so a wrapped config or input error keeps its exit code.
- Known error kinds print a one-line message; anything else prints its traceback and exits
  with ``INTERNAL_ERROR``.
"""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    SUCCESS = 0
    VERIFICATION_REJECTED = 1
    CONFIG_ERROR = 2
    INPUT_ERROR = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Console-script and ``python -m sandbox_verifier`` entrypoint."""

    try:
        from sandbox_verifier.ui.cli import run_cli

        return _as_exit_code(run_cli(argv))
    except SystemExit as exc:
        # argparse exits 0 for --help and 2 for usage errors
        return _as_exit_code(exc.code)
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return ExitCode.INTERNAL_ERROR
    except Exception as exc:  # noqa: BLE001 - process boundary.
        code = classify_exception(exc)
        if code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(exc, file=sys.stderr)
        else:
            print(str(exc).strip() or type(exc).__name__, file=sys.stderr)
        return code


def classify_exception(exc: BaseException) -> ExitCode:
    from sandbox_verifier.config import ConfigLoadError, ConfigValidationError
    from sandbox_verifier.validation import RequestValidationError

    table: tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...] = (
        ((ConfigLoadError, ConfigValidationError), ExitCode.CONFIG_ERROR),
        ((RequestValidationError,), ExitCode.INPUT_ERROR),
    )
    for link in _causes(exc):
        for error_types, code in table:
            if isinstance(link, error_types):
                return code
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    link: BaseException | None = exc
    while link is not None and id(link) not in seen:
        seen.add(id(link))
        yield link
        link = link.__cause__ or (None if link.__suppress_context__ else link.__context__)


def _as_exit_code(raw: object) -> int:
    if raw is None:
        return ExitCode.SUCCESS
    if isinstance(raw, int):
        try:
            return ExitCode(raw)
        except ValueError:
            return ExitCode.INTERNAL_ERROR
    if isinstance(raw, str) and raw.strip():
        print(raw.strip(), file=sys.stderr)
    return ExitCode.INTERNAL_ERROR


__all__ = ["ExitCode", "cli_entrypoint", "classify_exception"]
