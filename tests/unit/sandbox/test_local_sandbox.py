"""
sandbox-verifier — unit tests for the local sandbox backend

Purpose
- Validate artifact materialization, output capture/truncation and timeout handling of
  ``LocalSubprocessSandbox``.

Functional requirements
- Uses only the running interpreter as the test command; no network.
"""

from __future__ import annotations

import shlex
import sys
from dataclasses import replace
from pathlib import Path

import pytest

from sandbox_verifier.domain.defaults import create_execution_request
from sandbox_verifier.domain.models import (
    ArtifactType,
    CodeArtifact,
    ExecutionRequest,
    ResourceLimits,
)
from sandbox_verifier.sandbox.executor import (
    LocalSubprocessSandbox,
    SandboxExecutor,
    SandboxWorkspaceError,
    materialize_artifacts,
    truncate_output,
)


class _SilentLogger:
    def warning(self, event: str, **kwargs: object) -> None:
        return None


def _request(
    test_command: str,
    *artifacts: CodeArtifact,
    limits: ResourceLimits | None = None,
) -> ExecutionRequest:
    base = create_execution_request(
        task_id="task-1",
        subtask_id="sub-1",
        agent_role="Python Agent",
        artifacts=artifacts,
    )
    config = base.config if limits is None else replace(base.config, resource_limits=limits)
    return replace(base, test_command=test_command, config=config)


def _python(code: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


def test_local_backend_implements_executor_protocol() -> None:
    assert isinstance(LocalSubprocessSandbox(logger=_SilentLogger()), SandboxExecutor)


def test_materialize_writes_nested_paths(tmp_path: Path) -> None:
    request = _request(
        "true",
        CodeArtifact("pkg/mod.py", "x = 1\n", ArtifactType.SOURCE),
        CodeArtifact("tests\\test_mod.py", "def test_x(): ...\n", ArtifactType.TEST),
    )

    materialize_artifacts(request, tmp_path)

    assert (tmp_path / "pkg" / "mod.py").read_text(encoding="utf-8") == "x = 1\n"
    assert (tmp_path / "tests" / "test_mod.py").exists()


@pytest.mark.parametrize("filename", ["../escape.py", "/etc/passwd"])
def test_materialize_rejects_escaping_paths(tmp_path: Path, filename: str) -> None:
    request = _request("true", CodeArtifact(filename, "x", ArtifactType.SOURCE))

    with pytest.raises(SandboxWorkspaceError, match="escapes workspace"):
        materialize_artifacts(request, tmp_path)


def test_truncate_output_marks_omitted_bytes() -> None:
    assert truncate_output("short", 100) == "short"
    assert truncate_output("abcdef", 4) == "abcd\n...[truncated 2 bytes]"


@pytest.mark.asyncio
async def test_runs_command_in_workspace_and_captures_streams() -> None:
    code = (
        "import pathlib, sys\n"
        "print(pathlib.Path('app.py').read_text().strip())\n"
        "print('warn', file=sys.stderr)\n"
        "sys.exit(3)\n"
    )
    request = _request(_python(code), CodeArtifact("app.py", "hello\n", ArtifactType.SOURCE))

    run = await LocalSubprocessSandbox(logger=_SilentLogger()).execute(request)

    assert run.exit_code == 3
    assert run.stdout.strip() == "hello"
    assert run.stderr.strip() == "warn"
    assert not run.timed_out
    assert not run.succeeded


@pytest.mark.asyncio
async def test_timeout_kills_process() -> None:
    request = _request(
        _python("import time\ntime.sleep(30)\n"),
        limits=ResourceLimits(timeout_seconds=0.2),
    )

    run = await LocalSubprocessSandbox(logger=_SilentLogger()).execute(request)

    assert run.timed_out
    assert run.exit_code is None


@pytest.mark.asyncio
async def test_empty_or_missing_command_reports_error() -> None:
    sandbox = LocalSubprocessSandbox(logger=_SilentLogger())

    empty = await sandbox.execute(_request("   "))
    missing = await sandbox.execute(_request("definitely-not-a-real-binary-4242"))

    assert empty.error == "test command is empty"
    assert missing.error is not None
    assert missing.exit_code is None
