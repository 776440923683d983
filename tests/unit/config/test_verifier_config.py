"""
sandbox-verifier — unit tests for config schema and loader

Purpose
- Validate deterministic config loading from defaults, TOML, env overrides, and CLI overrides.

What this test file should cover
- Precedence: CLI > env > file > defaults.
- Env var mapping (``VERIFIER_`` prefix) and type coercion.
- Structured validation issues and redacted dumps.

Functional requirements
- Works offline; never reads the process environment when ``environ`` is given.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from sandbox_verifier.config import (
    ConfigLoadError,
    ConfigValidationError,
    VerifierSettings,
    dump_effective_config,
    env_bindings,
    load_config,
    load_settings,
)
from sandbox_verifier.config.schema import (
    default_config,
    merge_config,
    migration_guidance,
    redact_config,
    validate_config,
)


def _write_config(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_validate_and_map_to_settings() -> None:
    settings = VerifierSettings.defaults()

    assert settings.host == "127.0.0.1"
    assert settings.port == 8080
    assert settings.sandbox_backend == "simulated"
    assert settings.resource_limits.memory_mb == 512
    assert settings.resource_limits.timeout_seconds == 30
    assert settings.max_line_length == 120
    assert settings.banned_dependencies == ("pickle",)
    assert settings.max_repair_iterations == 5
    assert (settings.log_level, settings.log_format) == ("INFO", "json")


def test_loader_precedence_default_file_env_cli(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "verifier.toml",
        """
[budgets]
max_repair_iterations = 4
""".strip(),
    )
    env = {"VERIFIER_BUDGETS_MAX_REPAIR_ITERATIONS": "6"}

    file_loaded = load_config(config_path, environ={})
    env_loaded = load_config(config_path, environ=env)
    cli_loaded = load_config(
        config_path,
        environ=env,
        cli_overrides={"budgets.max_repair_iterations": 7, "server.port": None},
    )

    assert file_loaded["budgets"]["max_repair_iterations"] == 4
    assert env_loaded["budgets"]["max_repair_iterations"] == 6
    assert cli_loaded["budgets"]["max_repair_iterations"] == 7
    assert cli_loaded["server"]["port"] == 8080


def test_env_coercion_for_every_value_kind(tmp_path: Path) -> None:
    settings = load_settings(
        _write_config(tmp_path / "verifier.toml", ""),
        environ={
            "VERIFIER_SERVER_HOST": " 0.0.0.0 ",
            "VERIFIER_SANDBOX_CPU_CORES": "1.5",
            "VERIFIER_SANDBOX_MEMORY_MB": "1024",
            "VERIFIER_ANALYSIS_BANNED_DEPENDENCIES": "pickle, Marshal",
            "UNRELATED_SERVER_PORT": "1",
        },
    )

    assert settings.host == "0.0.0.0"
    assert settings.resource_limits.cpu_cores == 1.5
    assert settings.resource_limits.memory_mb == 1024
    assert settings.banned_dependencies == ("pickle", "marshal")
    assert settings.port == 8080


def test_env_bindings_cover_every_overridable_field() -> None:
    bindings = env_bindings()

    assert bindings["VERIFIER_SANDBOX_TIMEOUT_SECONDS"][:2] == ("sandbox", "timeout_seconds")
    assert bindings["VERIFIER_OBSERVABILITY_LOG_FORMAT"][2].choices == ("json", "console")
    assert "VERIFIER_META_SCHEMA_VERSION" not in bindings
    assert len(bindings) == 12


def test_malformed_cli_override_key_raises_load_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="section.field"):
        load_config(
            _write_config(tmp_path / "verifier.toml", ""),
            environ={},
            cli_overrides={"port": 9000},
        )


def test_bad_env_integer_raises_load_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="VERIFIER_SERVER_PORT"):
        load_config(
            _write_config(tmp_path / "verifier.toml", ""),
            environ={"VERIFIER_SERVER_PORT": "eighty"},
        )


def test_explicit_missing_file_and_invalid_toml_raise(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="not found"):
        load_config(tmp_path / "absent.toml", environ={})

    broken = _write_config(tmp_path / "broken.toml", "[server\nport = 1")
    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(broken, environ={})


def test_out_of_range_sandbox_limit_is_a_validation_error(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "verifier.toml", "[sandbox]\ntimeout_seconds = 900\n")

    with pytest.raises(ConfigValidationError) as excinfo:
        load_config(config_path, environ={})

    assert [(item.path, item.message) for item in excinfo.value.issues] == [
        ("sandbox.timeout_seconds", "must be between 5 and 300")
    ]


def test_validation_collects_issues_with_paths() -> None:
    config = merge_config(
        default_config(),
        {
            "server": {"port": 70000, "api_token": "abc"},
            "sandbox": {"backend": "docker"},
            "observability": {"log_format": "xml"},
            "extra": {},
        },
    )

    result = validate_config(config)

    assert not result.is_valid
    paths = {item.path: item.message for item in result.issues}
    assert paths["server.port"] == "must be between 1 and 65535"
    assert paths["server.api_token"] == "embedded secret values are forbidden in verifier config"
    assert "sandbox.backend" in paths
    assert "observability.log_format" in paths
    assert paths["extra"] == "unknown field"


def test_schema_version_mismatch_guidance() -> None:
    assert "older" in migration_guidance(0)
    assert "newer" in migration_guidance(99)
    assert migration_guidance(1) == "schema version is current"


def test_redacted_dump_is_deterministic() -> None:
    config = default_config()

    first = dump_effective_config(config)
    second = dump_effective_config(json.loads(first))

    assert first == second
    assert json.loads(first)["server"]["port"] == 8080
    assert redact_config({"nested": {"password": "x", "keep": 1}}) == {
        "nested": {"keep": 1, "password": "<redacted>"}
    }
