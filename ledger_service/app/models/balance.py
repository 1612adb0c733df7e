"""잔액(Balance) 도메인 모델.

고객 한 명이 보유한 선불 시간/크레딧 계정이다.
current_amount 는 트랜잭션 기록으로만 줄어들고, initial_amount 와 kind 는 생성 후 바뀌지 않는다.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class BalanceKind(StrEnum):
    HOURS = "hours"
    CREDITS = "credits"


class BalanceStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Severity(StrEnum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    GRAY = "gray"


class Balance(BaseModel):
    """잔액 도메인 모델."""

    id: str  # 잔액 번호 (예: BAL00421337)
    customer_id: str
    kind: BalanceKind
    initial_amount: float
    current_amount: float
    status: BalanceStatus = BalanceStatus.ACTIVE
    expiry_date: datetime | None = None
    notes: str | None = None
    created_by: str
    created_at: datetime
    updated_at: datetime
    version: int = 0  # 낙관적 동시성 제어용, 쓰기마다 1 증가

    @property
    def is_active(self) -> bool:
        return self.status == BalanceStatus.ACTIVE


class BalanceCreateInput(BaseModel):
    """잔액 생성 입력."""

    customer_id: str
    kind: BalanceKind
    initial_amount: float
    expiry_date: datetime | None = None
    notes: str | None = None


class BalanceUpdate(BaseModel):
    """잔액 부분 수정 입력.

    kind / initial_amount / current_amount 는 의도적으로 포함하지 않는다.
    명시적으로 전달된 필드만 병합된다(model_dump(exclude_unset=True)).
    """

    status: BalanceStatus | None = None
    expiry_date: datetime | None = None
    notes: str | None = None


class BalanceHealth(BaseModel):
    """잔액 상태 분류 결과."""

    label: str
    severity: Severity


class BalanceDrift(BaseModel):
    """잔액과 트랜잭션 이력 사이의 차이.

    drift = initial_amount - 트랜잭션 금액 합계 - current_amount.
    정정(correct)은 잔액을 다시 계산하지 않으므로 정정 이후에는 0 이 아닐 수 있다.
    """

    balance_id: str
    initial_amount: float
    current_amount: float
    transaction_total: float
    transaction_count: int
    drift: float
