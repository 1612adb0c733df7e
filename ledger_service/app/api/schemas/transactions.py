from __future__ import annotations

from pydantic import BaseModel

from common.types.datetime import UtcDateTime

from ...models.balance import BalanceKind
from ...models.transaction import Transaction


class TransactionCreateRequest(BaseModel):
    """트랜잭션(작업 시간/크레딧 차감) 기록 요청."""

    title: str
    amount: float
    service_date: UtcDateTime
    notes: str | None = None
    related_work_item_id: str | None = None


class TransactionLoggedResponse(BaseModel):
    balance_id: str
    current_amount: float


class TransactionCorrectRequest(BaseModel):
    amount: float


class TransactionResponse(BaseModel):
    id: str | None
    balance_id: str
    customer_id: str
    kind: BalanceKind
    title: str
    amount: float
    service_date: UtcDateTime
    notes: str | None = None
    related_work_item_id: str | None = None
    created_by: str
    created_at: UtcDateTime
    updated_at: UtcDateTime
    corrected: bool

    @classmethod
    def from_domain(cls, tx: Transaction) -> "TransactionResponse":
        return cls(**tx.model_dump())


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse]
    total: int
