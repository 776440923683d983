"""
sandbox-verifier config package public API.

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``verifier.toml`` + ``VERIFIER_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from sandbox_verifier.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    VerifierSettings,
    dump_effective_config,
    effective_config,
    env_bindings,
    load_config,
    load_settings,
)
from sandbox_verifier.config.schema import (
    CONFIG_FIELDS,
    DEFAULT_CONFIG,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    assert_valid_config,
    default_config,
    looks_secret,
    merge_config,
    redact_config,
    validate_config,
)

__all__ = [
    "CONFIG_FIELDS",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "VerifierSettings",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "effective_config",
    "env_bindings",
    "load_config",
    "load_settings",
    "looks_secret",
    "merge_config",
    "redact_config",
    "validate_config",
]
