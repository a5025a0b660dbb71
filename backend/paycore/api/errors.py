# backend/paycore/api/errors.py
"""Map payroll exceptions to HTTP responses: {"detail": message, "code": code}."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from paycore.exceptions import (
    ConfigurationMissingError,
    InvalidPeriodError,
    InvalidTransitionError,
    PayrollError,
    PayrollRunNotFoundError,
    PayslipImmutableError,
    PayslipNotFoundError,
    TransactionConflictError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    ConfigurationMissingError: 409,
    InvalidPeriodError: 422,
    PayrollRunNotFoundError: 404,
    PayslipNotFoundError: 404,
    InvalidTransitionError: 409,
    PayslipImmutableError: 409,
    TransactionConflictError: 503,
}

RETRY_AFTER_SECONDS = "2"


def status_for(exc: PayrollError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return 400


async def payroll_error_handler(request: Request, exc: PayrollError) -> JSONResponse:
    code = status_for(exc)
    headers = {"Retry-After": RETRY_AFTER_SECONDS} if isinstance(exc, TransactionConflictError) else None
    logger.info("api.payroll_error path=%s status=%d code=%s", request.url.path, code, exc.code)
    return JSONResponse(status_code=code, content={"detail": str(exc), "code": exc.code}, headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PayrollError, payroll_error_handler)
