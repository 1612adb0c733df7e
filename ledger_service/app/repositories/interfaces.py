from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from pymongo.client_session import ClientSession

from ..models.balance import Balance
from ..models.timer_session import TimerSession
from ..models.transaction import Transaction


class BalanceRepositoryInterface(Protocol):
    """BalanceRepository가 따라야 할 최소한의 계약.

    - session 인자는 UnitOfWork 가 연 트랜잭션 세션이다. None 이면 단건 쓰기로 동작한다.
    - current_amount 는 update_amount_if_version 으로만 바뀐다.
    """

    def find_by_id(
        self, balance_id: str, *, session: ClientSession | None = None
    ) -> Balance | None:  # pragma: no cover - Protocol
        ...

    def exists(self, balance_id: str) -> bool:  # pragma: no cover - Protocol
        ...

    def try_insert(self, balance: Balance) -> bool:  # pragma: no cover - Protocol
        """_id 충돌이면 False 를 반환한다."""
        ...

    def list_all(self) -> list[Balance]:  # pragma: no cover - Protocol
        ...

    def list_by_customer(
        self, customer_id: str
    ) -> list[Balance]:  # pragma: no cover - Protocol
        ...

    def update_fields(
        self, balance_id: str, fields: dict[str, Any], now: datetime
    ) -> Balance | None:  # pragma: no cover - Protocol
        ...

    def update_amount_if_version(
        self,
        balance_id: str,
        expected_version: int,
        new_amount: float,
        now: datetime,
        *,
        session: ClientSession | None = None,
    ) -> bool:  # pragma: no cover - Protocol
        """version 이 expected_version 일 때만 금액을 바꾸고 version 을 1 올린다."""
        ...

    def delete(self, balance_id: str) -> Balance | None:  # pragma: no cover - Protocol
        """삭제된 문서를 돌려준다. 없으면 None."""
        ...


class TransactionRepositoryInterface(Protocol):
    """TransactionRepository가 따라야 할 최소한의 계약.

    목록 조회는 항상 service_date 내림차순, 동률이면 _id 내림차순이다.
    """

    def insert(
        self, tx: Transaction, *, session: ClientSession | None = None
    ) -> Transaction:  # pragma: no cover - Protocol
        ...

    def find_by_id(
        self, transaction_id: str
    ) -> Transaction | None:  # pragma: no cover - Protocol
        ...

    def list_by_balance(
        self, balance_id: str
    ) -> list[Transaction]:  # pragma: no cover - Protocol
        ...

    def list_by_customer(
        self, customer_id: str
    ) -> list[Transaction]:  # pragma: no cover - Protocol
        ...

    def update_amount(
        self, transaction_id: str, amount: float, now: datetime
    ) -> Transaction | None:  # pragma: no cover - Protocol
        """금액을 바꾸고 corrected 를 True 로 세운다."""
        ...


class TimerSessionRepositoryInterface(Protocol):
    """TimerSessionRepository가 따라야 할 최소한의 계약."""

    def insert(
        self, timer_session: TimerSession
    ) -> TimerSession:  # pragma: no cover - Protocol
        ...

    def find_by_id(
        self, session_id: str
    ) -> TimerSession | None:  # pragma: no cover - Protocol
        ...

    def complete(
        self,
        session_id: str,
        end_time: datetime,
        duration: int,
        notes: str | None,
        now: datetime,
    ) -> TimerSession | None:  # pragma: no cover - Protocol
        """running 상태인 세션만 completed 로 바꾼다. 조건이 맞지 않으면 None."""
        ...

    def update_duration(
        self, session_id: str, duration: int, now: datetime
    ) -> TimerSession | None:  # pragma: no cover - Protocol
        """completed 상태인 세션의 duration 을 바꾸고 corrected 를 세운다."""
        ...

    def list_by_user(
        self, user_id: str, limit: int
    ) -> list[TimerSession]:  # pragma: no cover - Protocol
        ...

    def find_running_by_user(
        self, user_id: str
    ) -> TimerSession | None:  # pragma: no cover - Protocol
        ...
