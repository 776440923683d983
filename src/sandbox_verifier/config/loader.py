"""
sandbox-verifier — runtime config loader.

Purpose
- Resolve the effective config from defaults, ``verifier.toml``, ``VERIFIER_*`` environment
  variables and CLI overrides, in that order of increasing priority.

Functional requirements
- Environment variables are named ``VERIFIER_<SECTION>_<FIELD>`` and are typed by the field's
  rule in ``CONFIG_FIELDS``. List fields take comma-separated values.
- The file layer is validated on its own before overrides apply, so file errors are reported
  against the file.
- ``VerifierSettings`` is the typed view consumed by the pipeline, API and CLI wiring.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from sandbox_verifier.config.schema import (
    CONFIG_FIELDS,
    FieldRule,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)
from sandbox_verifier.domain.models import ResourceLimits

DEFAULT_CONFIG_FILE: Final[str] = "verifier.toml"
ENV_PREFIX: Final[str] = "VERIFIER_"

# the schema version is owned by the file, never overridden
_NON_OVERRIDABLE_SECTIONS: Final[frozenset[str]] = frozenset({"meta"})


class ConfigLoadError(ValueError):
    """Config file unreadable, or an override value that cannot be coerced."""


@dataclass(frozen=True, slots=True)
class VerifierSettings:
    host: str
    port: int
    sandbox_backend: str
    resource_limits: ResourceLimits
    max_line_length: int
    banned_dependencies: tuple[str, ...]
    max_repair_iterations: int
    log_level: str
    log_format: str

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> VerifierSettings:
        sandbox = config["sandbox"]
        return cls(
            host=config["server"]["host"],
            port=config["server"]["port"],
            sandbox_backend=sandbox["backend"],
            resource_limits=ResourceLimits(
                memory_mb=sandbox["memory_mb"],
                cpu_cores=sandbox["cpu_cores"],
                timeout_seconds=sandbox["timeout_seconds"],
                max_output_bytes=sandbox["max_output_bytes"],
            ),
            max_line_length=config["analysis"]["max_line_length"],
            banned_dependencies=tuple(config["analysis"]["banned_dependencies"]),
            max_repair_iterations=config["budgets"]["max_repair_iterations"],
            log_level=config["observability"]["log_level"],
            log_format=config["observability"]["log_format"],
        )

    @classmethod
    def defaults(cls) -> VerifierSettings:
        return cls.from_config(assert_valid_config(default_config()))


def env_bindings() -> dict[str, tuple[str, str, FieldRule]]:
    """Map each ``VERIFIER_*`` variable name to its ``(section, field, rule)``."""

    return {
        f"{ENV_PREFIX}{section.upper()}_{name.upper()}": (section, name, rule)
        for section, fields in CONFIG_FIELDS.items()
        if section not in _NON_OVERRIDABLE_SECTIONS
        for name, rule in fields.items()
    }


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated effective config.

    ``config_path`` defaults to ``./verifier.toml``, which may be absent; an explicit path must
    exist. ``cli_overrides`` maps dotted paths (``"server.port"``) to values, and ``None`` values
    are ignored so unset argparse options fall through.
    """

    if config_path is None:
        file_layer = _read_toml(Path.cwd() / DEFAULT_CONFIG_FILE, required=False)
    else:
        file_layer = _read_toml(Path(config_path).expanduser(), required=True)

    config = assert_valid_config(merge_config(default_config(), file_layer))
    config = merge_config(config, _env_layer(os.environ if environ is None else environ))
    config = merge_config(config, _cli_layer(cli_overrides or {}))
    return assert_valid_config(config)


def load_settings(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> VerifierSettings:
    return VerifierSettings.from_config(
        load_config(config_path, cli_overrides=cli_overrides, environ=environ)
    )


def effective_config(config: Mapping[str, object]) -> dict[str, Any]:
    return redact_config(config)


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Compact, key-sorted JSON of the redacted config; identical input gives identical text."""

    return json.dumps(
        effective_config(config), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    try:
        raw = path.read_bytes()
    except FileNotFoundError as exc:
        if required:
            raise ConfigLoadError(f"config file not found: {path}") from exc
        return {}
    except OSError as exc:
        raise ConfigLoadError(f"cannot read config file {path}: {exc}") from exc

    try:
        return tomllib.loads(raw.decode("utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc


def _env_layer(environ: Mapping[str, str]) -> dict[str, dict[str, object]]:
    layer: dict[str, dict[str, object]] = {}
    for env_name, (section, name, rule) in sorted(env_bindings().items()):
        raw = environ.get(env_name)
        if raw is not None:
            layer.setdefault(section, {})[name] = _coerce(raw, rule, env_name)
    return layer


def _coerce(raw: str, rule: FieldRule, env_name: str) -> object:
    text = raw.strip()
    match rule.kind:
        case "int":
            try:
                return int(text)
            except ValueError as exc:
                raise ConfigLoadError(f"{env_name} must be an integer, got {raw!r}") from exc
        case "float":
            try:
                return float(text)
            except ValueError as exc:
                raise ConfigLoadError(f"{env_name} must be a number, got {raw!r}") from exc
        case "names":
            # an empty value clears the list
            return [item.strip() for item in text.split(",") if item.strip()]
        case _:
            return text


def _cli_layer(overrides: Mapping[str, object]) -> dict[str, dict[str, object]]:
    layer: dict[str, dict[str, object]] = {}
    for dotted, value in overrides.items():
        if value is None:
            continue
        section, _, name = dotted.partition(".")
        if not section or not name or "." in name:
            raise ConfigLoadError(f"CLI override key must be 'section.field', got {dotted!r}")
        layer.setdefault(section, {})[name] = value
    return layer


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "VerifierSettings",
    "dump_effective_config",
    "effective_config",
    "env_bindings",
    "load_config",
    "load_settings",
]
