"""
sandbox-verifier — configuration schema and validation.

Purpose
- Define the configuration sections, their defaults, and the rule each field obeys.

Functional requirements
- Every field is described once in ``CONFIG_FIELDS``; validation, defaults and the
  ``VERIFIER_`` env bindings all derive from that table.
- Validation collects every issue (field path + message) before failing.
- Sandbox resource limits obey the same bounds as inbound request limits.
- Secret-looking keys are rejected on input and masked on output.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal

from sandbox_verifier.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_BANNED_DEPENDENCIES,
    DEFAULT_CPU_CORES,
    DEFAULT_MAX_LINE_LENGTH,
    DEFAULT_MAX_OUTPUT_BYTES,
    DEFAULT_MAX_REPAIR_BUDGET,
    DEFAULT_MEMORY_MB,
    DEFAULT_TIMEOUT_SECONDS,
    RESOURCE_LIMIT_BOUNDS,
)

SANDBOX_BACKENDS: Final[tuple[str, ...]] = ("simulated", "local")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS: Final[tuple[str, ...]] = ("json", "console")

FieldKind = Literal["str", "int", "float", "choice", "names"]

_PACKAGE_NAME = re.compile(r"^[A-Za-z0-9@][A-Za-z0-9._/@-]*$")
_WORD_SPLIT = re.compile(r"[^a-z0-9]+")
_SECRET_WORDS: Final[frozenset[str]] = frozenset(
    {"secret", "token", "password", "passwd", "apikey", "credential", "credentials", "key"}
)
_REDACTED: Final[str] = "<redacted>"


@dataclass(frozen=True, slots=True)
class FieldRule:
    """Type and range of one scalar config field."""

    kind: FieldKind
    default: Any
    minimum: float | None = None
    maximum: float | None = None
    choices: tuple[str, ...] = ()


def _limit_rule(kind: FieldKind, bounds_key: str, default: float) -> FieldRule:
    low, high = RESOURCE_LIMIT_BOUNDS[bounds_key]
    return FieldRule(kind, default, minimum=low, maximum=high)


CONFIG_FIELDS: Final[dict[str, dict[str, FieldRule]]] = {
    "meta": {
        "schema_version": FieldRule("int", CONFIG_SCHEMA_VERSION, minimum=1),
    },
    "server": {
        "host": FieldRule("str", "127.0.0.1"),
        "port": FieldRule("int", 8080, minimum=1, maximum=65535),
    },
    "sandbox": {
        "backend": FieldRule("choice", "simulated", choices=SANDBOX_BACKENDS),
        "memory_mb": _limit_rule("int", "memoryMb", DEFAULT_MEMORY_MB),
        "cpu_cores": _limit_rule("float", "cpuCores", DEFAULT_CPU_CORES),
        "timeout_seconds": _limit_rule("int", "timeoutSeconds", DEFAULT_TIMEOUT_SECONDS),
        "max_output_bytes": FieldRule("int", DEFAULT_MAX_OUTPUT_BYTES, minimum=1),
    },
    "analysis": {
        "max_line_length": FieldRule("int", DEFAULT_MAX_LINE_LENGTH, minimum=1),
        "banned_dependencies": FieldRule("names", list(DEFAULT_BANNED_DEPENDENCIES)),
    },
    "budgets": {
        "max_repair_iterations": FieldRule("int", DEFAULT_MAX_REPAIR_BUDGET, minimum=0),
    },
    "observability": {
        "log_level": FieldRule("choice", "INFO", choices=LOG_LEVELS),
        "log_format": FieldRule("choice", "json", choices=LOG_FORMATS),
    },
}

DEFAULT_CONFIG: Final[dict[str, dict[str, Any]]] = {
    section: {name: rule.default for name, rule in fields.items()}
    for section, fields in CONFIG_FIELDS.items()
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Normalized config when valid, otherwise the collected issues."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        lines = [f"- {item.path}: {item.message}" for item in self.issues]
        super().__init__("invalid config:\n" + ("\n".join(lines) or "- <root>: unknown failure"))


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)


def default_config() -> dict[str, dict[str, Any]]:
    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version == CONFIG_SCHEMA_VERSION:
        return "schema version is current"
    if found_version < CONFIG_SCHEMA_VERSION:
        return (
            f"schema version {found_version} is older than supported {CONFIG_SCHEMA_VERSION}; "
            "rewrite verifier.toml for the current schema"
        )
    return (
        f"schema version {found_version} is newer than supported {CONFIG_SCHEMA_VERSION}; "
        "install a newer sandbox-verifier"
    )


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base``; nested tables merge, scalars replace."""

    merged: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    issues = _IssueCollector()
    if not isinstance(config, Mapping):
        issues.add("<root>", f"expected table, got {type(config).__name__}")
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized: dict[str, Any] = {}
    _flag_unknown(config, CONFIG_FIELDS, "", issues)
    for section, fields in CONFIG_FIELDS.items():
        table = config.get(section)
        if table is None:
            issues.add(section, "missing required section")
            continue
        if not isinstance(table, Mapping):
            issues.add(section, f"expected table, got {type(table).__name__}")
            continue
        _flag_unknown(table, fields, section, issues)
        normalized[section] = {}
        for name, rule in fields.items():
            path = f"{section}.{name}"
            if name not in table:
                issues.add(path, "missing required field")
                continue
            value = _check_field(table[name], rule, path, issues)
            if value is not None:
                normalized[section][name] = value

    version = normalized.get("meta", {}).get("schema_version")
    if version is not None and version != CONFIG_SCHEMA_VERSION:
        issues.add("meta.schema_version", migration_guidance(version))

    if issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Key-sorted copy with secret-looking keys masked, for logs and the ``config`` command."""

    if not isinstance(config, Mapping):
        return {}
    return {
        key: _REDACTED if looks_secret(key) else _redact_nested(config[key])
        for key in sorted(config)
    }


def looks_secret(key: str) -> bool:
    words = [word for word in _WORD_SPLIT.split(key.lower()) if word]
    joined = "".join(words)
    return any(word in _SECRET_WORDS for word in words) or "apikey" in joined


def _redact_nested(value: object) -> object:
    if isinstance(value, Mapping):
        return redact_config(value)
    if isinstance(value, (list, tuple)):
        return [_redact_nested(item) for item in value]
    return value


def _flag_unknown(
    table: Mapping[str, object],
    known: Mapping[str, object],
    prefix: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(str(item) for item in table):
        if key in known:
            continue
        path = f"{prefix}.{key}" if prefix else key
        if looks_secret(key):
            issues.add(path, "embedded secret values are forbidden in verifier config")
        else:
            issues.add(path, "unknown field")


def _check_field(value: object, rule: FieldRule, path: str, issues: _IssueCollector) -> Any:
    match rule.kind:
        case "str" | "choice":
            if not isinstance(value, str) or not value.strip():
                issues.add(path, "expected non-empty string")
                return None
            text = value.strip()
            if rule.choices and text not in rule.choices:
                expected = ", ".join(rule.choices)
                issues.add(path, f"invalid value {text!r}; expected one of: {expected}")
                return None
            return text
        case "int" | "float":
            return _check_number(value, rule, path, issues)
        case "names":
            return _check_names(value, path, issues)
        case _:
            issues.add(path, f"unsupported field kind {rule.kind!r}")
            return None


def _check_number(
    value: object, rule: FieldRule, path: str, issues: _IssueCollector
) -> int | float | None:
    accepted: tuple[type, ...] = (int,) if rule.kind == "int" else (int, float)
    if isinstance(value, bool) or not isinstance(value, accepted):
        expected = "integer" if rule.kind == "int" else "number"
        issues.add(path, f"expected {expected}, got {type(value).__name__}")
        return None
    number = value if rule.kind == "int" else float(value)
    if not math.isfinite(number):
        issues.add(path, "must be finite")
        return None
    low, high = rule.minimum, rule.maximum
    if low is not None and high is not None:
        if not low <= number <= high:
            issues.add(path, f"must be between {low:g} and {high:g}")
            return None
    elif low is not None and number < low:
        issues.add(path, f"must be >= {low:g}")
        return None
    return number


def _check_names(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if not isinstance(value, (list, tuple)):
        issues.add(path, f"expected array, got {type(value).__name__}")
        return None
    names: list[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str) or not _PACKAGE_NAME.fullmatch(item.strip()):
            issues.add(f"{path}[{index}]", "must be a package name")
            continue
        name = item.strip().lower()
        if name not in names:
            names.append(name)
    return names


__all__ = [
    "CONFIG_FIELDS",
    "DEFAULT_CONFIG",
    "LOG_FORMATS",
    "LOG_LEVELS",
    "SANDBOX_BACKENDS",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "FieldRule",
    "assert_valid_config",
    "default_config",
    "looks_secret",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
