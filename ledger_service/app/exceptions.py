"""원장 서비스 예외 계층.

모든 예외는 LedgerError 를 상속하며, API 레이어가 메시지 파싱 없이 응답을 만들 수 있도록
기계가 읽을 수 있는 code 와 재시도 가능 여부(retryable)를 갖는다.
재시도 가능한 것은 PersistenceFailureError 뿐이다. 나머지는 입력이 바뀌지 않는 한 같은 결과가 나온다.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base exception for all ledger-service errors."""

    code: str = "LEDGER_ERROR"
    retryable: bool = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnauthorizedError(LedgerError):
    """Actor lacks the capability required for the operation."""

    code = "UNAUTHORIZED"

    def __init__(self, actor_id: str, capability: str) -> None:
        self.actor_id = actor_id
        self.capability = capability
        super().__init__(f"actor {actor_id} is not allowed to {capability}")


class NotFoundError(LedgerError):
    """Referenced balance, transaction or timer session does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class InactiveBalanceError(LedgerError):
    """Operation attempted on a balance that is not active."""

    code = "BALANCE_INACTIVE"

    def __init__(self, balance_id: str) -> None:
        self.balance_id = balance_id
        super().__init__(f"balance {balance_id} is inactive")


class InsufficientFundsError(LedgerError):
    """Hours-kind debit would take the balance below zero."""

    code = "INSUFFICIENT_FUNDS"

    def __init__(self, balance_id: str, current_amount: float, amount: float) -> None:
        self.balance_id = balance_id
        self.current_amount = current_amount
        self.amount = amount
        super().__init__(
            f"balance {balance_id} has {current_amount:g} remaining, cannot debit {amount:g}"
        )


class LedgerValidationError(LedgerError):
    """Malformed input: amount out of bounds, missing required field, ..."""

    code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")


class GenerationExhaustedError(LedgerError):
    """Balance number allocation kept colliding past its attempt ceiling."""

    code = "GENERATION_EXHAUSTED"

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"no free balance number after {attempts} attempts")


class PersistenceFailureError(LedgerError):
    """Backing store I/O error, including a failed atomic commit."""

    code = "PERSISTENCE_FAILURE"
    retryable = True


class ConcurrencyConflictError(LedgerError):
    """Conditional write rejected because the balance version moved on.

    Ledger 내부에서 재조회 후 재시도하며, 한도를 넘으면 PersistenceFailureError 로 바뀐다.
    """

    code = "CONCURRENCY_CONFLICT"
    retryable = True

    def __init__(self, balance_id: str, expected_version: int) -> None:
        self.balance_id = balance_id
        self.expected_version = expected_version
        super().__init__(
            f"balance {balance_id} was modified concurrently (expected version {expected_version})"
        )
