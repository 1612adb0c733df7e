"""트랜잭션 MongoDB 도큐먼트."""

from __future__ import annotations

from common.mongo.types import (
    MongoDateTime,
    ObjectIdDocument,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.balance import BalanceKind
from ...models.transaction import Transaction


class TransactionDocument(ObjectIdDocument):
    """MongoDB transactions 컬렉션 도큐먼트 모델."""

    balance_id: str
    customer_id: str
    kind: BalanceKind
    title: str
    amount: float
    service_date: MongoDateTime
    notes: str | None = None
    related_work_item_id: str | None = None
    created_by: str
    corrected: bool = False

    @classmethod
    def from_domain(cls, tx: Transaction) -> "TransactionDocument":
        # 신규 트랜잭션은 id 가 없으므로 Mongo 가 ObjectId 를 생성하도록 비워 둔다.
        data = build_document_data_from_domain(tx, exclude={"id"})
        if tx.id is not None:
            data["_id"] = tx.id
        return cls.model_validate(data)

    def to_domain(self) -> Transaction:
        return Transaction(
            id=from_object_id(self.id),
            balance_id=self.balance_id,
            customer_id=self.customer_id,
            kind=self.kind,
            title=self.title,
            amount=self.amount,
            service_date=self.service_date,
            notes=self.notes,
            related_work_item_id=self.related_work_item_id,
            created_by=self.created_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
            corrected=self.corrected,
        )
