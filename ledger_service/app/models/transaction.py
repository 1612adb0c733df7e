"""트랜잭션(작업 기록) 도메인 모델."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from .balance import BalanceKind


class Transaction(BaseModel):
    """잔액 하나에 대한 차감 기록.

    balance_id 와 created_by 는 생성 후 바뀌지 않는다. 정정(correct)은 amount 만 바꾸고
    corrected 플래그를 세운다.
    """

    id: str | None = None
    balance_id: str
    customer_id: str  # 조회용 비정규화 필드
    kind: BalanceKind
    title: str
    amount: float
    service_date: datetime
    notes: str | None = None
    related_work_item_id: str | None = None
    created_by: str
    created_at: datetime
    updated_at: datetime
    corrected: bool = False


class TransactionEntry(BaseModel):
    """트랜잭션 기록 입력."""

    title: str
    amount: float
    service_date: datetime
    notes: str | None = None
    related_work_item_id: str | None = None
