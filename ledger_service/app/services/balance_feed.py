"""잔액 변경 피드(프로세스 내 publish/subscribe).

LedgerStore 는 커밋이 끝날 때마다 BalanceChange 를 발행하고, 구독자는 Subscription
핸들로 구독을 취소한다. Kafka 컨슈머도 다른 인스턴스의 변경을 같은 피드로 흘려보낸다.

같은 변경이 여러 경로(자기 쓰기의 반환값, 로컬 피드, Kafka 에코)로 순서 없이 도착할 수 있으므로
BalanceView 는 잔액 id 기준으로 version 을 비교해 병합한다.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable

from fastapi import Request

from ..models.balance import Balance


logger = logging.getLogger(__name__)


class ChangeKind(StrEnum):
    UPSERTED = "upserted"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class BalanceChange:
    """커밋된 잔액 변경 하나. origin 은 변경을 만든 인스턴스(BalanceFeed.source_id)다."""

    kind: ChangeKind
    balance_id: str
    customer_id: str
    version: int
    balance: Balance | None = None
    origin: str | None = None

    @classmethod
    def upserted(cls, balance: Balance, *, origin: str | None = None) -> "BalanceChange":
        return cls(
            kind=ChangeKind.UPSERTED,
            balance_id=balance.id,
            customer_id=balance.customer_id,
            version=balance.version,
            balance=balance,
            origin=origin,
        )

    @classmethod
    def deleted(cls, balance: Balance, *, origin: str | None = None) -> "BalanceChange":
        return cls(
            kind=ChangeKind.DELETED,
            balance_id=balance.id,
            customer_id=balance.customer_id,
            version=balance.version,
            origin=origin,
        )


Listener = Callable[[BalanceChange], None]


class Subscription:
    """BalanceFeed.subscribe 가 돌려주는 취소 가능한 핸들."""

    def __init__(self, feed: "BalanceFeed", token: str) -> None:
        self._feed = feed
        self._token = token
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if self._active:
            self._feed._remove(self._token)
            self._active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()


class BalanceFeed:
    def __init__(self, source_id: str | None = None) -> None:
        # Kafka 로 나간 자기 이벤트를 다시 받았을 때 구분하기 위한 인스턴스 식별자
        self.source_id = source_id or f"ledger-{uuid.uuid4().hex[:12]}"
        self._listeners: dict[str, Listener] = {}
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Subscription:
        token = uuid.uuid4().hex
        with self._lock:
            self._listeners[token] = listener
        return Subscription(self, token)

    def publish(self, change: BalanceChange) -> None:
        with self._lock:
            listeners = list(self._listeners.values())

        for listener in listeners:
            try:
                listener(change)
            except Exception:  # noqa: BLE001
                # 커밋은 이미 끝났으므로 구독자 오류가 발행자에게 전파되면 안 된다.
                logger.exception(
                    "balance feed listener failed: balance_id=%s", change.balance_id
                )

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def _remove(self, token: str) -> None:
        with self._lock:
            self._listeners.pop(token, None)


class BalanceView:
    """구독자 쪽에서 유지하는 잔액 목록.

    - 같은 id 의 변경은 version 이 더 클 때만 반영한다.
    - 삭제된 id 는 tombstone(삭제 시점 version)을 남겨, 늦게 도착한 이전 upsert 가
      삭제된 잔액을 되살리지 않도록 한다.
    - visible 이 False 인 잔액은 담지 않는다(역할별 조회 범위).
    """

    def __init__(self, visible: Callable[[Balance], bool] | None = None) -> None:
        self._visible = visible or (lambda _balance: True)
        self._balances: dict[str, Balance] = {}
        self._tombstones: dict[str, int] = {}
        self._lock = threading.Lock()

    def reset(self, balances: list[Balance]) -> None:
        with self._lock:
            self._balances = {b.id: b for b in balances if self._visible(b)}

    def apply(self, change: BalanceChange) -> bool:
        """변경을 병합한다. 뷰가 바뀌었으면 True."""

        with self._lock:
            tombstone = self._tombstones.get(change.balance_id)
            if tombstone is not None and change.version <= tombstone:
                return False

            current = self._balances.get(change.balance_id)

            if change.kind == ChangeKind.DELETED:
                self._tombstones[change.balance_id] = change.version
                return self._balances.pop(change.balance_id, None) is not None

            balance = change.balance
            if balance is None:
                return False
            if current is not None and balance.version <= current.version:
                return False
            if not self._visible(balance):
                return self._balances.pop(change.balance_id, None) is not None
            self._balances[balance.id] = balance
            return True

    def get(self, balance_id: str) -> Balance | None:
        with self._lock:
            return self._balances.get(balance_id)

    def list(self) -> list[Balance]:
        with self._lock:
            items = list(self._balances.values())
        return sorted(items, key=lambda b: (b.created_at, b.id), reverse=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._balances)


def get_balance_feed(request: Request) -> BalanceFeed:
    """FastAPI DI용. lifespan 에서 만든 프로세스 공용 피드를 반환한다."""

    return request.app.state.balance_feed
