"""HTTP boundary for the verification engine."""

from sandbox_verifier.api.app import CORS_HEADERS, create_app, internal_error_body

__all__ = ["CORS_HEADERS", "create_app", "internal_error_body"]
