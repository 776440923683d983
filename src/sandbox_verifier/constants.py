"""Stable constants shared across verifier planes."""

from __future__ import annotations

from typing import Final

# Schema versions.
CONFIG_SCHEMA_VERSION: Final[int] = 1
VERIFICATION_REPORT_SCHEMA_VERSION: Final[int] = 1

# Request limits.
MAX_ARTIFACTS: Final[int] = 50
MAX_ARTIFACT_CONTENT_CHARS: Final[int] = 1_000_000
MAX_TASK_ID_LENGTH: Final[int] = 100
MAX_SUBTASK_ID_LENGTH: Final[int] = 100
MAX_AGENT_ROLE_LENGTH: Final[int] = 50
MAX_COMMAND_LENGTH: Final[int] = 500

# Inclusive (minimum, maximum) bounds for numeric resource limits.
RESOURCE_LIMIT_BOUNDS: Final[dict[str, tuple[float, float]]] = {
    "memoryMb": (64, 4096),
    "cpuCores": (0.1, 4),
    "timeoutSeconds": (5, 300),
}

DEFAULT_MEMORY_MB: Final[int] = 512
DEFAULT_CPU_CORES: Final[float] = 0.5
DEFAULT_TIMEOUT_SECONDS: Final[int] = 30
DEFAULT_MAX_OUTPUT_BYTES: Final[int] = 1024 * 1024

# Analysis.
DEFAULT_MAX_LINE_LENGTH: Final[int] = 120
DEFAULT_BANNED_DEPENDENCIES: Final[tuple[str, ...]] = ("pickle",)
DEPENDENCY_MANIFEST_NAMES: Final[frozenset[str]] = frozenset({"requirements.txt", "package.json"})
UNPINNED_VERSION_MARKERS: Final[tuple[str, ...]] = (">=", "^", "*")

# Simulated test execution.
TEST_BASE_DURATION_MS: Final[int] = 50
TEST_DURATION_PER_CHAR_MS: Final[int] = 5
PLACEHOLDER_TEST_NAME: Final[str] = "placeholder_test"
PLACEHOLDER_TEST_DURATION_MS: Final[int] = 10
FAILED_ASSERTION_MESSAGE: Final[str] = "Assertion failed: expected values do not match"

# Resource usage estimates.
PEAK_MEMORY_FRACTION: Final[float] = 0.4
PEAK_MEMORY_CAP_MB: Final[float] = 200.0
CPU_TIME_FRACTION: Final[float] = 0.7

# Exit codes reported inside an ExecutionReport.
EXIT_SUCCESS: Final[int] = 0
EXIT_FAILURE: Final[int] = 1
EXIT_TIMEOUT: Final[int] = 124
EXIT_INTERNAL_ERROR: Final[int] = -1

# Repair loop.
DEFAULT_MAX_REPAIR_BUDGET: Final[int] = 5

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "CPU_TIME_FRACTION",
    "DEFAULT_BANNED_DEPENDENCIES",
    "DEFAULT_CPU_CORES",
    "DEFAULT_MAX_LINE_LENGTH",
    "DEFAULT_MAX_OUTPUT_BYTES",
    "DEFAULT_MAX_REPAIR_BUDGET",
    "DEFAULT_MEMORY_MB",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEPENDENCY_MANIFEST_NAMES",
    "EXIT_FAILURE",
    "EXIT_INTERNAL_ERROR",
    "EXIT_SUCCESS",
    "EXIT_TIMEOUT",
    "FAILED_ASSERTION_MESSAGE",
    "MAX_AGENT_ROLE_LENGTH",
    "MAX_ARTIFACTS",
    "MAX_ARTIFACT_CONTENT_CHARS",
    "MAX_COMMAND_LENGTH",
    "MAX_SUBTASK_ID_LENGTH",
    "MAX_TASK_ID_LENGTH",
    "PEAK_MEMORY_CAP_MB",
    "PEAK_MEMORY_FRACTION",
    "PLACEHOLDER_TEST_DURATION_MS",
    "PLACEHOLDER_TEST_NAME",
    "RESOURCE_LIMIT_BOUNDS",
    "TEST_BASE_DURATION_MS",
    "TEST_DURATION_PER_CHAR_MS",
    "UNPINNED_VERSION_MARKERS",
    "VERIFICATION_REPORT_SCHEMA_VERSION",
]
