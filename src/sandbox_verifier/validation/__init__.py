"""Inbound execution request validation."""

from __future__ import annotations

from sandbox_verifier.validation.request_validator import (
    RequestValidationError,
    RequestValidationResult,
    ValidationError,
    assert_valid_request,
    validate_execution_request,
)

__all__ = [
    "RequestValidationError",
    "RequestValidationResult",
    "ValidationError",
    "assert_valid_request",
    "validate_execution_request",
]
