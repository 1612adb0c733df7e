"""원장(잔액) 관련 이벤트 정의."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Self


class LedgerEventType:
    """원장 이벤트 타입 상수."""

    BALANCE_UPSERTED = "ledger.balance.upserted"
    BALANCE_DELETED = "ledger.balance.deleted"


@dataclass(slots=True)
class BalanceUpsertedEvent:
    """잔액 생성/변경 이벤트.

    커밋이 끝난 잔액의 전체 스냅샷을 담는다. 다른 인스턴스는 version 을 비교해
    로컬 뷰에 병합하므로 중복/역순 수신에 안전하다.
    """

    id: str
    type: str
    timestamp: str
    source: str
    version: str
    balance_id: str
    customer_id: str
    balance_version: int
    balance: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            timestamp=str(data["timestamp"]),
            source=str(data["source"]),
            version=str(data.get("version", "1.0")),
            balance_id=str(data["balance_id"]),
            customer_id=str(data["customer_id"]),
            balance_version=int(data["balance_version"]),
            balance=dict(data.get("balance") or {}),
        )


@dataclass(slots=True)
class BalanceDeletedEvent:
    """잔액 삭제 이벤트.

    트랜잭션 기록은 삭제되지 않으므로 balance_id 와 삭제 시점의 version 만 전달한다.
    """

    id: str
    type: str
    timestamp: str
    source: str
    version: str
    balance_id: str
    customer_id: str
    balance_version: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            timestamp=str(data["timestamp"]),
            source=str(data["source"]),
            version=str(data.get("version", "1.0")),
            balance_id=str(data["balance_id"]),
            customer_id=str(data["customer_id"]),
            balance_version=int(data.get("balance_version", 0)),
        )
