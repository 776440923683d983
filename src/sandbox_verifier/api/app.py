"""
sandbox-verifier — HTTP boundary.

Routes
- ``OPTIONS /{path}``: CORS preflight, 200 with an empty body.
- ``POST /sandbox-execute``: run the pipeline for one ``ExecutionRequest`` and return the
  ``ExecutionReport``.
- ``POST /verify``: same input plus an optional ``contract`` key; returns the phase-keyed
  ``VerificationReport`` with verdict and routing.
- ``GET /health``: liveness.

Error contract
- 400: body is not JSON, or field-level validation failed (all errors at once).
- 200: any completed run, including ``failure`` verdicts.
- 500: unexpected internal error, with a best-effort empty report body.
Every response carries the CORS headers.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Final

import structlog
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError as QueryValidationError
from fastapi.responses import JSONResponse, Response

from sandbox_verifier import __version__
from sandbox_verifier.config.loader import VerifierSettings
from sandbox_verifier.constants import EXIT_INTERNAL_ERROR
from sandbox_verifier.control_plane.controller import (
    VerificationService,
    build_verification_service,
)
from sandbox_verifier.domain.models import ExecutionRequest
from sandbox_verifier.validation.request_validator import (
    ValidationError,
    validate_execution_request,
)
from sandbox_verifier.verification_plane.contract import SharedContract
from sandbox_verifier.verification_plane.pipeline import format_timestamp, utc_now

CORS_HEADERS: Final[dict[str, str]] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

INVALID_JSON_MESSAGE: Final[str] = "Invalid JSON in request body"
VALIDATION_FAILED_MESSAGE: Final[str] = "Validation failed"
INTERNAL_ERROR_MESSAGE: Final[str] = "Internal server error"


class _InputRejected(Exception):
    def __init__(self, response: JSONResponse) -> None:
        super().__init__("request rejected")
        self.response = response


def create_app(
    *,
    settings: VerifierSettings | None = None,
    service: VerificationService | None = None,
    logger: Any | None = None,
) -> FastAPI:
    """Build the FastAPI application around one shared, stateless ``VerificationService``."""

    active_settings = settings if settings is not None else VerifierSettings.defaults()
    active_logger = logger if logger is not None else structlog.get_logger(__name__)
    active_service = (
        service
        if service is not None
        else build_verification_service(active_settings, logger=logger)
    )

    app = FastAPI(
        title="sandbox-verifier",
        version=__version__,
        description="Deterministic verification of generated code artifacts.",
    )
    app.state.settings = active_settings
    app.state.service = active_service

    @app.exception_handler(QueryValidationError)
    async def _query_validation_handler(
        request: Request, exc: QueryValidationError
    ) -> JSONResponse:
        errors = [
            ValidationError(
                field=".".join(str(part) for part in item.get("loc", ())[1:]) or "query",
                message=str(item.get("msg", "invalid value")),
            )
            for item in exc.errors()
        ]
        return _validation_failed(errors)

    @app.options("/{path:path}")
    async def preflight(path: str) -> Response:
        return Response(status_code=200, headers=CORS_HEADERS)

    @app.get("/health")
    async def health() -> JSONResponse:
        return _json_response(200, {"status": "ok", "version": __version__})

    @app.post("/sandbox-execute")
    async def sandbox_execute(request: Request) -> JSONResponse:
        execution_request: ExecutionRequest | None = None
        try:
            payload = await _read_json(request)
            execution_request = _validated_request(payload, active_settings)
            report = await active_service.pipeline.execute(execution_request)
            return _json_response(200, report.to_dict())
        except _InputRejected as rejected:
            return rejected.response
        except Exception as exc:  # noqa: BLE001 - boundary maps internal failures to 500.
            active_logger.exception("sandbox_execute_failed", **_request_ids(execution_request))
            return _json_response(500, internal_error_body(exc))

    @app.post("/verify")
    async def verify(
        request: Request,
        iteration: int = Query(1, ge=0),
        max_budget: int | None = Query(None, ge=0),
    ) -> JSONResponse:
        execution_request: ExecutionRequest | None = None
        try:
            payload = await _read_json(request)
            execution_request = _validated_request(payload, active_settings)
            verification = await active_service.verify(
                execution_request,
                iteration_count=iteration,
                max_budget=max_budget,
                contract=_contract_from_payload(payload),
            )
            return _json_response(200, verification.to_dict())
        except _InputRejected as rejected:
            return rejected.response
        except Exception as exc:  # noqa: BLE001 - boundary maps internal failures to 500.
            active_logger.exception("verify_failed", **_request_ids(execution_request))
            return _json_response(500, internal_error_body(exc))

    return app


def internal_error_body(exc: BaseException, *, now: datetime | None = None) -> dict[str, object]:
    """Best-effort report shape for unexpected failures; callers' schemas still hold.

    The exception text only appears in the stderr log entry.
    """

    detail = str(exc) or exc.__class__.__name__
    return {
        "status": "error",
        "exitCode": EXIT_INTERNAL_ERROR,
        "message": INTERNAL_ERROR_MESSAGE,
        "logs": [
            {
                "timestamp": format_timestamp(now if now is not None else utc_now()),
                "stream": "stderr",
                "content": f"Sandbox execution error: {detail}",
            }
        ],
        "testResults": [],
        "securityFindings": [],
        "lintViolations": [],
        "durationMs": 0,
        "resourceUsage": {"peakMemoryMb": 0, "cpuTimeMs": 0},
    }


async def _read_json(request: Request) -> object:
    raw = await request.body()
    # ValueError covers decode errors and integers past the int digit limit
    try:
        return json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise _InputRejected(
            _json_response(400, {"status": "error", "message": INVALID_JSON_MESSAGE})
        ) from exc


def _validated_request(payload: object, settings: VerifierSettings) -> ExecutionRequest:
    result = validate_execution_request(payload, default_limits=settings.resource_limits)
    if result.request is None:
        raise _InputRejected(_validation_failed(result.errors))
    return result.request


def _request_ids(execution_request: ExecutionRequest | None) -> dict[str, str]:
    if execution_request is None:
        return {}
    return {
        "task_id": execution_request.task_id,
        "subtask_id": execution_request.subtask_id,
    }


def _contract_from_payload(payload: object) -> SharedContract | None:
    if not isinstance(payload, Mapping):
        return None
    raw = payload.get("contract")
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise _InputRejected(
            _validation_failed([ValidationError("contract", "contract must be an object")])
        )
    try:
        return SharedContract.from_dict(raw)
    except ValueError as exc:
        raise _InputRejected(
            _validation_failed([ValidationError("contract", str(exc))])
        ) from exc


def _validation_failed(errors: Any) -> JSONResponse:
    return _json_response(
        400,
        {
            "status": "error",
            "message": VALIDATION_FAILED_MESSAGE,
            "errors": [item.to_dict() for item in errors],
        },
    )


def _json_response(status_code: int, body: Mapping[str, object]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=dict(body), headers=CORS_HEADERS)


__all__ = [
    "CORS_HEADERS",
    "INTERNAL_ERROR_MESSAGE",
    "INVALID_JSON_MESSAGE",
    "VALIDATION_FAILED_MESSAGE",
    "create_app",
    "internal_error_body",
]
