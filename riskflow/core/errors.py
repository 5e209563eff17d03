"""
Error taxonomy for the workflow core.

Services raise these; the FastAPI handler registered in ``riskflow.main``
renders them as ``{"detail": ..., "errors": [...]}`` with the fixed status.

  ValidationError → 400   malformed / out-of-range input, incomplete config
  Forbidden       → 403   role, ownership or illegal-state violations
  NotFound        → 404   absent entity or parent/child scope mismatch
  Conflict        → 409   uniqueness violations, stale concurrent writes
"""
from __future__ import annotations

from typing import Optional

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

logger = structlog.get_logger()


class RiskflowError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[list[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class ValidationError(RiskflowError):
    status_code = 400


class Forbidden(RiskflowError):
    status_code = 403


class NotFound(RiskflowError):
    status_code = 404


class Conflict(RiskflowError):
    status_code = 409


async def riskflow_error_handler(request: Request, exc: RiskflowError) -> JSONResponse:
    logger.warning(
        "request_rejected",
        path=request.url.path,
        status=exc.status_code,
        error=type(exc).__name__,
        detail=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "errors": exc.details},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    logger.warning("request_invalid", path=request.url.path, errors=errors)
    return JSONResponse(
        status_code=400,
        content={"detail": "Request validation failed.", "errors": errors},
    )


async def stale_data_handler(request: Request, exc: StaleDataError) -> JSONResponse:
    logger.warning("stale_write_rejected", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=409,
        content={"detail": "Record was modified by another request. Reload and retry.", "errors": []},
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("integrity_violation", path=request.url.path, error=str(exc.orig))
    return JSONResponse(
        status_code=409,
        content={"detail": "Uniqueness or reference constraint violated.", "errors": []},
    )
