from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .schemas.common import ErrorBody, ErrorResponse
from ..exceptions import (
    ConcurrencyConflictError,
    GenerationExhaustedError,
    InactiveBalanceError,
    InsufficientFundsError,
    LedgerError,
    LedgerValidationError,
    NotFoundError,
    PersistenceFailureError,
    UnauthorizedError,
)


logger = logging.getLogger(__name__)


STATUS_BY_ERROR: dict[type[LedgerError], int] = {
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InactiveBalanceError: status.HTTP_409_CONFLICT,
    InsufficientFundsError: status.HTTP_402_PAYMENT_REQUIRED,
    LedgerValidationError: 422,
    GenerationExhaustedError: status.HTTP_503_SERVICE_UNAVAILABLE,
    PersistenceFailureError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ConcurrencyConflictError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(exc: LedgerError) -> int:
    for error_type in type(exc).__mro__:
        code = STATUS_BY_ERROR.get(error_type)  # type: ignore[arg-type]
        if code is not None:
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def ledger_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, LedgerError)
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("ledger error %s: %s", exc.code, exc.message)
    else:
        logger.info("ledger error %s: %s", exc.code, exc.message)

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            detail=ErrorBody(
                code=exc.code, message=exc.message, retryable=exc.retryable
            )
        ).model_dump(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
