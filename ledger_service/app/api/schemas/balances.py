from __future__ import annotations

from pydantic import BaseModel

from common.types.datetime import UtcDateTime

from ...models.balance import (
    Balance,
    BalanceDrift,
    BalanceKind,
    BalanceStatus,
    Severity,
)
from ...services.status import (
    classify_balance,
    format_balance,
    format_balance_number,
)


class BalanceCreateRequest(BaseModel):
    """잔액 생성 요청."""

    customer_id: str
    kind: BalanceKind
    initial_amount: float
    expiry_date: UtcDateTime | None = None
    notes: str | None = None


class BalanceUpdateRequest(BaseModel):
    """잔액 부분 수정 요청. 상태 변경은 deactivate / reactivate 엔드포인트를 사용한다."""

    expiry_date: UtcDateTime | None = None
    notes: str | None = None


class BalanceHealthResponse(BaseModel):
    label: str
    severity: Severity


class BalanceResponse(BaseModel):
    id: str
    balance_number: str
    customer_id: str
    kind: BalanceKind
    initial_amount: float
    current_amount: float
    display_amount: str
    status: BalanceStatus
    expiry_date: UtcDateTime | None = None
    notes: str | None = None
    created_by: str
    created_at: UtcDateTime
    updated_at: UtcDateTime
    version: int
    health: BalanceHealthResponse

    @classmethod
    def from_domain(cls, balance: Balance) -> "BalanceResponse":
        health = classify_balance(balance)
        return cls(
            id=balance.id,
            balance_number=format_balance_number(balance.id),
            customer_id=balance.customer_id,
            kind=balance.kind,
            initial_amount=balance.initial_amount,
            current_amount=balance.current_amount,
            display_amount=format_balance(balance.current_amount, balance.kind),
            status=balance.status,
            expiry_date=balance.expiry_date,
            notes=balance.notes,
            created_by=balance.created_by,
            created_at=balance.created_at,
            updated_at=balance.updated_at,
            version=balance.version,
            health=BalanceHealthResponse(label=health.label, severity=health.severity),
        )


class BalanceListResponse(BaseModel):
    items: list[BalanceResponse]
    total: int


class BalanceDriftResponse(BaseModel):
    """잔액과 트랜잭션 이력 합계의 차이. 0 이 아니면 정정으로 인한 불일치가 있다."""

    balance_id: str
    initial_amount: float
    current_amount: float
    transaction_total: float
    transaction_count: int
    drift: float

    @classmethod
    def from_domain(cls, report: BalanceDrift) -> "BalanceDriftResponse":
        return cls(**report.model_dump())
