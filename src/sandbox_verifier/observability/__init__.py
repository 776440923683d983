"""Observability: structlog configuration and log redaction."""

from sandbox_verifier.observability.logging import (
    clear_log_context,
    get_logger,
    log_context,
    redact_event_dict,
    redact_string,
    redact_value,
    setup_logging,
)

__all__ = [
    "clear_log_context",
    "get_logger",
    "log_context",
    "redact_event_dict",
    "redact_string",
    "redact_value",
    "setup_logging",
]
