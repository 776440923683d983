"""Sandbox execution boundary."""

from __future__ import annotations

from sandbox_verifier.sandbox.executor import (
    LocalSubprocessSandbox,
    SandboxError,
    SandboxExecutor,
    SandboxRun,
    SandboxWorkspaceError,
)

__all__ = [
    "LocalSubprocessSandbox",
    "SandboxError",
    "SandboxExecutor",
    "SandboxRun",
    "SandboxWorkspaceError",
]
