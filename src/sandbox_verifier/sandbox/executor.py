"""Execute-and-capture interface to an external sandbox, plus an unisolated local backend.

Isolation mechanics (namespaces, cgroups, seccomp) live behind ``SandboxExecutor``. The local
backend exists for development: it materializes artifacts into a temporary directory and runs the
request's test command directly, without a shell and without isolation.
"""

from __future__ import annotations

import asyncio
import os
import shlex
import tempfile
import time
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Protocol, runtime_checkable

import structlog

from sandbox_verifier.domain.models import ExecutionRequest


class SandboxError(RuntimeError):
    """Base error for sandbox backend failures."""


class SandboxWorkspaceError(SandboxError):
    """Raised when artifacts cannot be materialized safely."""


@dataclass(frozen=True, slots=True)
class SandboxRun:
    """Normalized result of one sandbox invocation."""

    exit_code: int | None
    stdout: str
    stderr: str
    duration_ms: int
    timed_out: bool = False
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.error is None and self.exit_code == 0


@runtime_checkable
class SandboxExecutor(Protocol):
    """Narrow execute-and-capture contract consumed by the report builder."""

    async def execute(self, request: ExecutionRequest) -> SandboxRun: ...


class LocalSubprocessSandbox:
    """Unisolated local backend with deterministic capture/timeout behavior."""

    def __init__(self, *, logger: Any | None = None) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def execute(self, request: ExecutionRequest) -> SandboxRun:
        started = time.perf_counter()
        argv = shlex.split(request.test_command)
        if not argv:
            return SandboxRun(None, "", "", 0, error="test command is empty")

        limits = request.config.resource_limits
        self._logger.warning(
            "sandbox_unisolated_execution",
            task_id=request.task_id,
            argv=argv,
            timeout_seconds=limits.timeout_seconds,
        )

        with tempfile.TemporaryDirectory(prefix="sandbox-verifier-") as workdir:
            root = Path(workdir)
            materialize_artifacts(request, root)
            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    cwd=root,
                    env=_minimal_env(root),
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                return SandboxRun(None, "", "", _millis_since(started), error=str(exc))
            out, err, timed_out = await _collect(process, float(limits.timeout_seconds))

        cap = limits.max_output_bytes
        return SandboxRun(
            exit_code=None if timed_out else process.returncode,
            stdout=truncate_output(_decode(out), cap),
            stderr=truncate_output(_decode(err), cap),
            duration_ms=_millis_since(started),
            timed_out=timed_out,
        )


def materialize_artifacts(request: ExecutionRequest, root: Path) -> None:
    """Write every artifact below ``root``; paths escaping ``root`` are rejected."""

    for artifact in request.artifacts:
        relative = PurePosixPath(artifact.filename.replace("\\", "/"))
        if relative.is_absolute() or ".." in relative.parts:
            raise SandboxWorkspaceError(f"artifact path escapes workspace: {artifact.filename}")
        target = root.joinpath(*relative.parts)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(artifact.content, encoding="utf-8")


def truncate_output(text: str, max_bytes: int) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    omitted = len(encoded) - max_bytes
    kept = encoded[:max_bytes].decode("utf-8", errors="ignore")
    return f"{kept}\n...[truncated {omitted} bytes]"


async def _collect(
    process: asyncio.subprocess.Process, timeout_seconds: float
) -> tuple[bytes, bytes, bool]:
    """Wait for the process; kill it on timeout or cancellation and drain its pipes."""

    try:
        out, err = await asyncio.wait_for(process.communicate(), timeout=timeout_seconds)
        return out, err, False
    except TimeoutError:
        _kill(process)
        out, err = await process.communicate()
        return out, err, True
    except asyncio.CancelledError:
        _kill(process)
        await process.communicate()
        raise


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        # may exit between the check and the signal
        with suppress(ProcessLookupError):
            process.kill()


def _minimal_env(root: Path) -> dict[str, str]:
    return {
        "PATH": os.environ.get("PATH", ""),
        "HOME": str(root),
        "PYTHONDONTWRITEBYTECODE": "1",
        "NO_COLOR": "1",
    }


def _millis_since(started: float) -> int:
    return max(0, round((time.perf_counter() - started) * 1000))


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").replace("\r\n", "\n").replace("\r", "\n")


__all__ = [
    "LocalSubprocessSandbox",
    "SandboxError",
    "SandboxExecutor",
    "SandboxRun",
    "SandboxWorkspaceError",
    "materialize_artifacts",
    "truncate_output",
]
