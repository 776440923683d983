"""
sandbox-verifier — CLI command tests

Purpose
- Validate command routing, output formats and the exit-code contract of the CLI.

What this test file should cover
- ``execute`` / ``verify`` JSON and text output for passing and failing requests.
- Config, input and parse errors map to their exit codes.
- ``cli_entrypoint`` normalizes exceptions raised below the router.
"""

from __future__ import annotations

import io
import json
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
import structlog

from sandbox_verifier.main import ExitCode, cli_entrypoint
from sandbox_verifier.ui import CLIRenderer, run_cli
from sandbox_verifier.validation import RequestValidationError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def _isolate(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.chdir(tmp_path)
    for name in [key for key in os.environ if key.startswith("VERIFIER_")]:
        monkeypatch.delenv(name)
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers = []


def _request_payload(*, test_body: str = "def test_ok():\n    pass\n") -> dict[str, object]:
    return {
        "taskId": "task-1",
        "subtaskId": "sub-1",
        "agentRole": "Python Agent",
        "artifacts": [
            {"filename": "app.py", "content": "x = 1\n", "type": "source"},
            {"filename": "test_app.py", "content": test_body, "type": "test"},
        ],
        "testCommand": "pytest -q",
        "config": {"runner": "python"},
    }


def _write_json(path: Path, payload: object) -> str:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_execute_json_success(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    request_path = _write_json(tmp_path / "request.json", _request_payload())

    exit_code = run_cli(["execute", request_path])

    assert exit_code == ExitCode.SUCCESS
    report = json.loads(capsys.readouterr().out)
    assert report["status"] == "success"
    assert report["testResults"][0]["name"] == "ok"


def test_execute_failure_is_rejected_exit_code(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    request_path = _write_json(
        tmp_path / "request.json", _request_payload(test_body="def test_will_fail(): ...")
    )

    exit_code = run_cli(["execute", request_path])

    assert exit_code == ExitCode.VERIFICATION_REJECTED
    assert json.loads(capsys.readouterr().out)["status"] == "failure"


def test_verify_text_output_reads_yaml(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    request_path = tmp_path / "request.yaml"
    request_path.write_text(
        "\n".join(
            [
                "taskId: task-1",
                "subtaskId: sub-1",
                "agentRole: Python Agent",
                "testCommand: pytest -q",
                "config: {runner: python}",
                "artifacts:",
                "  - filename: app.py",
                "    type: source",
                "    content: \"result = eval(data)\\n\"",
            ]
        ),
        encoding="utf-8",
    )

    exit_code = run_cli(["verify", str(request_path), "--format", "text", "--iteration", "1"])

    assert exit_code == ExitCode.VERIFICATION_REJECTED
    output = capsys.readouterr().out
    assert "Status: FAILURE" in output
    assert "DANGEROUS_FUNCTION" in output
    assert "Failure category: SECURITY" in output
    assert "Target agent: SecOps Agent" in output


def test_verify_json_with_contract(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    request_path = _write_json(tmp_path / "request.json", _request_payload())
    contract_path = _write_json(
        tmp_path / "contract.json", {"endpoints": [{"path": "/users", "method": "GET"}]}
    )

    exit_code = run_cli(["verify", request_path, "--contract", contract_path])

    assert exit_code == ExitCode.VERIFICATION_REJECTED
    payload = json.loads(capsys.readouterr().out)
    assert payload["output"]["failure_category"] == "CONTRACT"


def test_invalid_request_is_input_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    request_path = _write_json(tmp_path / "request.json", {"taskId": "t"})

    exit_code = run_cli(["execute", request_path])

    assert exit_code == ExitCode.INPUT_ERROR
    assert "- subtaskId: subtaskId is required and must be a string" in capsys.readouterr().err


def test_unparseable_or_missing_request_is_input_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    broken = tmp_path / "request.json"
    broken.write_text("{oops", encoding="utf-8")

    assert run_cli(["execute", str(broken)]) == ExitCode.INPUT_ERROR
    assert run_cli(["execute", str(tmp_path / "missing.json")]) == ExitCode.INPUT_ERROR
    assert "request file not found" in capsys.readouterr().err


def test_bad_config_is_config_error(tmp_path: Path) -> None:
    request_path = _write_json(tmp_path / "request.json", _request_payload())
    config_path = tmp_path / "custom.toml"
    config_path.write_text("[sandbox]\nmemory_mb = 1\n", encoding="utf-8")

    exit_code = run_cli(["execute", request_path, "--config", str(config_path)])

    assert exit_code == ExitCode.CONFIG_ERROR


def test_config_command_prints_redacted_effective_config(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    (tmp_path / "verifier.toml").write_text("[server]\nport = 9090\n", encoding="utf-8")

    exit_code = run_cli(["config", "--log-level", "DEBUG"])

    assert exit_code == ExitCode.SUCCESS
    payload = json.loads(capsys.readouterr().out)
    assert payload["command"] == "config"
    assert payload["config"]["server"]["port"] == 9090
    assert payload["config"]["observability"]["log_level"] == "DEBUG"


def test_entrypoint_maps_argparse_errors_and_exceptions(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli_entrypoint(["--help"]) == ExitCode.SUCCESS
    assert cli_entrypoint(["no-such-command"]) == ExitCode.CONFIG_ERROR

    def _raise_validation(argv: object) -> int:
        raise RuntimeError("wrapped") from RequestValidationError([ValidationError("x", "bad")])

    monkeypatch.setattr("sandbox_verifier.ui.cli.run_cli", _raise_validation)
    assert cli_entrypoint(["execute", "-"]) == ExitCode.INPUT_ERROR

    def _raise_internal(argv: object) -> int:
        raise KeyError("boom")

    monkeypatch.setattr("sandbox_verifier.ui.cli.run_cli", _raise_internal)
    assert cli_entrypoint(["execute", "-"]) == ExitCode.INTERNAL_ERROR
    assert "Traceback" in capsys.readouterr().err


def test_renderer_table_layout_skips_empty_tables() -> None:
    stream = io.StringIO()
    renderer = CLIRenderer(stream=stream)

    renderer.table(("A",), [], title="Nothing:")
    renderer.table(("NAME", "VALUE"), [("alpha", "1"), ("b", "22")], title="Rows:")

    lines = stream.getvalue().splitlines()
    assert "Nothing:" not in lines
    assert lines[1] == "Rows:"
    assert lines[2] == "  NAME   VALUE"
    assert lines[3] == "  -----  -----"
    assert lines[4] == "  alpha  1"
