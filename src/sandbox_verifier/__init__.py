"""
sandbox-verifier — package root.

Purpose
- Deterministic verification engine for generated code artifacts: request validation,
  dependency/static/security analysis, simulated test execution, report construction, and
  verdict/routing policy under a bounded repair budget.

Import boundary
- Importing the package has no side effects (no config loading, no logging init).
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
