"""쓰기 전에 수행하는 입력/비즈니스 규칙 검증.

검증은 모두 쓰기 이전에 끝나며, 실패하면 어떤 상태도 바뀌지 않는다.
"""

from __future__ import annotations

from datetime import datetime

from common.mongo.types import ensure_utc_datetime

from .granularity import MAX_ENTRY_AMOUNT, MIN_ENTRY_AMOUNT
from ..exceptions import (
    InactiveBalanceError,
    InsufficientFundsError,
    LedgerValidationError,
    NotFoundError,
)
from ..models.balance import Balance, BalanceCreateInput, BalanceKind, BalanceUpdate
from ..models.transaction import TransactionEntry


MIN_INITIAL_AMOUNT = 0.5
MAX_INITIAL_AMOUNT = 1000.0
MAX_NOTES_LENGTH = 500
MIN_TITLE_LENGTH = 2

AMOUNT_PRECISION = 6


def round_amount(value: float) -> float:
    return round(value, AMOUNT_PRECISION)


def _validate_notes(notes: str | None) -> None:
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise LedgerValidationError(
            "notes", f"must be at most {MAX_NOTES_LENGTH} characters"
        )


def validate_create_input(data: BalanceCreateInput, now: datetime) -> None:
    if not data.customer_id or not data.customer_id.strip():
        raise LedgerValidationError("customer_id", "is required")
    if not (MIN_INITIAL_AMOUNT <= data.initial_amount <= MAX_INITIAL_AMOUNT):
        raise LedgerValidationError(
            "initial_amount",
            f"must be between {MIN_INITIAL_AMOUNT:g} and {MAX_INITIAL_AMOUNT:g}",
        )
    if data.expiry_date is not None and ensure_utc_datetime(data.expiry_date) < now:
        raise LedgerValidationError("expiry_date", "must not be in the past")
    _validate_notes(data.notes)


def validate_update(update: BalanceUpdate) -> None:
    _validate_notes(update.notes)


def validate_entry_amount(amount: float) -> None:
    if not (MIN_ENTRY_AMOUNT <= amount <= MAX_ENTRY_AMOUNT):
        raise LedgerValidationError(
            "amount",
            f"must be between {MIN_ENTRY_AMOUNT:g} and {MAX_ENTRY_AMOUNT:g}",
        )


def validate_entry(entry: TransactionEntry) -> None:
    """잔액과 무관한 입력 검사. 금액 범위는 잔액 상태 확인 후 validate_transaction 에서 본다."""

    if len(entry.title.strip()) < MIN_TITLE_LENGTH:
        raise LedgerValidationError(
            "title", f"must be at least {MIN_TITLE_LENGTH} characters"
        )
    _validate_notes(entry.notes)


def validate_transaction(
    balance: Balance | None, balance_id: str, amount: float
) -> float:
    """차감 가능 여부를 검사하고 차감 후 금액을 반환한다.

    credits 잔액은 음수가 되어도 허용한다. hours 잔액만 잔량 부족을 거부한다.
    """

    if balance is None:
        raise NotFoundError("balance", balance_id)
    if not balance.is_active:
        raise InactiveBalanceError(balance.id)
    validate_entry_amount(amount)

    new_amount = round_amount(balance.current_amount - amount)
    if balance.kind == BalanceKind.HOURS and new_amount < 0:
        raise InsufficientFundsError(balance.id, balance.current_amount, amount)
    return new_amount
