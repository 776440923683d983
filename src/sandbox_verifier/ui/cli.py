"""Command-line interface router for sandbox-verifier."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from sandbox_verifier.config import (
    ConfigLoadError,
    ConfigValidationError,
    VerifierSettings,
    effective_config,
    load_config,
)
from sandbox_verifier.control_plane.controller import build_verification_service
from sandbox_verifier.domain.models import ExecutionRequest, ExecutionStatus, Verdict
from sandbox_verifier.main import ExitCode
from sandbox_verifier.observability.logging import setup_logging
from sandbox_verifier.ui.render import (
    CLIRenderer,
    render_execution_report,
    render_verification_report,
)
from sandbox_verifier.validation.request_validator import validate_execution_request
from sandbox_verifier.verification_plane.contract import SharedContract

@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = ExitCode.VERIFICATION_REJECTED

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="sandbox-verifier",
        description=(
            "sandbox-verifier — deterministic verification of generated code artifacts.\n\n"
            "Common workflows:\n"
            "  sandbox-verifier execute request.json     Print the execution report\n"
            "  sandbox-verifier verify request.yaml      Print verdict and routing\n"
            "  sandbox-verifier serve --port 8080        Run the HTTP boundary\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to verifier TOML config (default: ./verifier.toml if present).",
    )
    common.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default=None,
        help="Override observability.log_level.",
    )

    report_options = argparse.ArgumentParser(add_help=False)
    report_options.add_argument(
        "request_path",
        metavar="REQUEST",
        help="Execution request file (JSON or YAML); '-' reads stdin.",
    )
    report_options.add_argument(
        "--format",
        dest="output_format",
        choices=("json", "text"),
        default="json",
        help="Output format (default: json).",
    )
    report_options.add_argument(
        "--backend",
        choices=("simulated", "local"),
        default=None,
        help="Override sandbox.backend.",
    )
    report_options.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Include run logs in text output.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    execute_parser = subparsers.add_parser(
        "execute",
        parents=[common, report_options],
        help="Run the verification phases and print the execution report",
    )
    execute_parser.set_defaults(handler=_cmd_execute)

    verify_parser = subparsers.add_parser(
        "verify",
        parents=[common, report_options],
        help="Run verification and print the phase-keyed verdict with routing",
    )
    verify_parser.add_argument(
        "--iteration",
        type=_non_negative_int,
        default=1,
        help="Repair iteration this attempt belongs to (default: 1).",
    )
    verify_parser.add_argument(
        "--max-budget",
        type=_non_negative_int,
        default=None,
        help="Override budgets.max_repair_iterations for this attempt.",
    )
    verify_parser.add_argument(
        "--contract",
        dest="contract_path",
        default=None,
        help="Shared contract file (JSON or YAML) checked against source artifacts.",
    )
    verify_parser.set_defaults(handler=_cmd_verify)

    serve_parser = subparsers.add_parser(
        "serve",
        parents=[common],
        help="Serve the HTTP boundary with uvicorn",
    )
    serve_parser.add_argument("--host", default=None, help="Override server.host.")
    serve_parser.add_argument(
        "--port", type=_non_negative_int, default=None, help="Override server.port."
    )
    serve_parser.set_defaults(handler=_cmd_serve)

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Print the effective (redacted) configuration as JSON",
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return ExitCode.CONFIG_ERROR

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_execute(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    request = _load_request(args.request_path, settings)
    service = build_verification_service(settings)

    report = asyncio.run(service.pipeline.execute(request))

    if args.output_format == "json":
        _emit_json(report.to_dict())
    else:
        render_execution_report(CLIRenderer(verbose=args.verbose), report)

    if report.status is ExecutionStatus.SUCCESS:
        return ExitCode.SUCCESS
    if report.status is ExecutionStatus.ERROR:
        return ExitCode.INTERNAL_ERROR
    return ExitCode.VERIFICATION_REJECTED


def _cmd_verify(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    request = _load_request(args.request_path, settings)
    contract = _load_contract(args.contract_path)
    service = build_verification_service(settings)

    verification = asyncio.run(
        service.verify(
            request,
            iteration_count=args.iteration,
            max_budget=args.max_budget,
            contract=contract,
        )
    )

    if args.output_format == "json":
        _emit_json(verification.to_dict())
    else:
        render_verification_report(CLIRenderer(verbose=args.verbose), verification)
    if verification.output.verdict is Verdict.PASS:
        return ExitCode.SUCCESS
    return ExitCode.VERIFICATION_REJECTED


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from sandbox_verifier.api.app import create_app

    settings = _load_settings(
        args,
        overrides={"server.host": args.host, "server.port": args.port},
    )
    app = create_app(settings=settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    return ExitCode.SUCCESS


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    _emit_json({"command": "config", "config": effective_config(config)})
    return ExitCode.SUCCESS


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _load_effective_config(
    args: argparse.Namespace,
    *,
    overrides: Mapping[str, object] | None = None,
) -> dict[str, Any]:
    cli_overrides: dict[str, object] = dict(overrides or {})
    cli_overrides["observability.log_level"] = getattr(args, "log_level", None)
    cli_overrides["sandbox.backend"] = getattr(args, "backend", None)
    try:
        return load_config(getattr(args, "config_path", None), cli_overrides=cli_overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=ExitCode.CONFIG_ERROR) from exc


def _load_settings(
    args: argparse.Namespace,
    *,
    overrides: Mapping[str, object] | None = None,
) -> VerifierSettings:
    settings = VerifierSettings.from_config(_load_effective_config(args, overrides=overrides))
    setup_logging(settings.log_level, settings.log_format)
    return settings


def _load_request(path_arg: str, settings: VerifierSettings) -> ExecutionRequest:
    payload = _read_document(path_arg, label="request")
    result = validate_execution_request(payload, default_limits=settings.resource_limits)
    if result.request is None:
        details = "\n".join(f"- {item.field}: {item.message}" for item in result.errors)
        raise CLIError(f"Validation failed:\n{details}", exit_code=ExitCode.INPUT_ERROR)
    return result.request


def _load_contract(path_arg: str | None) -> SharedContract | None:
    if path_arg is None:
        return None
    payload = _read_document(path_arg, label="contract")
    if not isinstance(payload, Mapping):
        raise CLIError("contract must be an object", exit_code=ExitCode.INPUT_ERROR)
    try:
        return SharedContract.from_dict(payload)
    except ValueError as exc:
        raise CLIError(f"invalid contract: {exc}", exit_code=ExitCode.INPUT_ERROR) from exc


def _read_document(path_arg: str, *, label: str) -> object:
    """Read a JSON or YAML document; ``.json`` files parse strictly as JSON."""

    if path_arg == "-":
        text = sys.stdin.read()
        source = "<stdin>"
        strict_json = False
    else:
        path = Path(path_arg).expanduser()
        if not path.is_file():
            raise CLIError(
                f"{label} file not found: {path}", exit_code=ExitCode.INPUT_ERROR
            )
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise CLIError(
                f"unable to read {label} file {path}: {exc}", exit_code=ExitCode.INPUT_ERROR
            ) from exc
        source = str(path)
        strict_json = path.suffix.lower() == ".json"

    try:
        if strict_json:
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise CLIError(
            f"invalid {label} document in {source}: {exc}", exit_code=ExitCode.INPUT_ERROR
        ) from exc


def _non_negative_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return parsed


__all__ = ["CLIError", "build_parser", "run_cli"]
