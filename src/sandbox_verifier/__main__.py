"""Module entrypoint for ``python -m sandbox_verifier``."""

from __future__ import annotations

from sandbox_verifier.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
