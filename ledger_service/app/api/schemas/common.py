"""공통 스키마 정의."""

from __future__ import annotations

from pydantic import BaseModel


class ErrorBody(BaseModel):
    """LedgerError 응답 본문."""

    code: str
    message: str
    retryable: bool = False


class ErrorResponse(BaseModel):
    detail: ErrorBody
