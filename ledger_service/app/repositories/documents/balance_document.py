"""잔액 MongoDB 도큐먼트.

_id 는 잔액 번호 자체이며, version 은 조건부 업데이트(낙관적 동시성 제어)에 쓰인다.
"""

from __future__ import annotations

from common.mongo.types import (
    OptionalMongoDateTime,
    VersionedDocument,
    build_document_data_from_domain,
)

from ...models.balance import Balance, BalanceKind, BalanceStatus


class BalanceDocument(VersionedDocument):
    """MongoDB balances 컬렉션 도큐먼트 모델."""

    customer_id: str
    kind: BalanceKind
    initial_amount: float
    current_amount: float
    status: BalanceStatus
    expiry_date: OptionalMongoDateTime = None
    notes: str | None = None
    created_by: str

    @classmethod
    def from_domain(cls, balance: Balance) -> "BalanceDocument":
        data = build_document_data_from_domain(balance)
        # 도메인의 id 를 Mongo _id 로 옮긴다.
        data["_id"] = data.pop("id")
        return cls.model_validate(data)

    def to_domain(self) -> Balance:
        return Balance(
            id=self.id,
            customer_id=self.customer_id,
            kind=self.kind,
            initial_amount=self.initial_amount,
            current_amount=self.current_amount,
            status=self.status,
            expiry_date=self.expiry_date,
            notes=self.notes,
            created_by=self.created_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
        )
