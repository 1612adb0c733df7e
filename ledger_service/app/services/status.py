"""잔액 상태 분류와 표시용 포맷 함수. 모두 I/O 가 없는 순수 함수다."""

from __future__ import annotations

from ..models.balance import Balance, BalanceHealth, BalanceKind, Severity


LOW_THRESHOLD_PCT = 20.0
MEDIUM_THRESHOLD_PCT = 50.0

LABEL_INACTIVE = "Inactive"
LABEL_LOW = "Low Balance"
LABEL_MEDIUM = "Medium Balance"
LABEL_GOOD = "Good Balance"


def remaining_percentage(balance: Balance) -> float | None:
    """initial_amount 대비 current_amount 비율(%). initial_amount 가 0 이하이면 None."""

    if balance.initial_amount <= 0:
        return None
    return balance.current_amount / balance.initial_amount * 100


def classify_balance(balance: Balance) -> BalanceHealth:
    """잔액을 Inactive / Low / Medium / Good 으로 분류한다.

    경계값은 아래쪽에 포함된다(정확히 20% 는 Low, 정확히 50% 는 Medium).
    """

    if not balance.is_active:
        return BalanceHealth(label=LABEL_INACTIVE, severity=Severity.GRAY)

    pct = remaining_percentage(balance)
    # initial_amount 가 0 이하인 비정상 잔액은 0 으로 나누지 않고 Low 로 본다.
    if pct is None or pct <= LOW_THRESHOLD_PCT:
        return BalanceHealth(label=LABEL_LOW, severity=Severity.RED)
    if pct <= MEDIUM_THRESHOLD_PCT:
        return BalanceHealth(label=LABEL_MEDIUM, severity=Severity.YELLOW)
    return BalanceHealth(label=LABEL_GOOD, severity=Severity.GREEN)


def is_low_balance(balance: Balance) -> bool:
    pct = remaining_percentage(balance)
    return pct is None or pct <= LOW_THRESHOLD_PCT


def format_balance(amount: float, kind: BalanceKind) -> str:
    """hours 는 절대값 기준 HH:MM, credits 는 소수 둘째 자리까지 표시한다."""

    if kind == BalanceKind.HOURS:
        total_minutes = round(abs(amount) * 60)
        hours, minutes = divmod(total_minutes, 60)
        return f"{hours:02d}:{minutes:02d}"
    return f"{amount:.2f} credits"


def format_balance_number(balance_id: str) -> str:
    """BAL12345678 -> BAL-12345678. 형식이 다르면 그대로 반환한다."""

    prefix = balance_id.rstrip("0123456789")
    digits = balance_id[len(prefix):]
    if not prefix or not digits:
        return balance_id
    return f"{prefix}-{digits}"
