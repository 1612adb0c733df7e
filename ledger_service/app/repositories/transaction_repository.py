from __future__ import annotations

from datetime import datetime

from pymongo import ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.database import Database

from common.mongo.types import try_object_id

from .documents.transaction_document import TransactionDocument
from .interfaces import TransactionRepositoryInterface
from ..models.transaction import Transaction


_HISTORY_SORT = [("service_date", -1), ("_id", -1)]


class TransactionRepository(TransactionRepositoryInterface):
    """transactions 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["transactions"]

    def insert(
        self, tx: Transaction, *, session: ClientSession | None = None
    ) -> Transaction:
        payload = TransactionDocument.from_domain(tx).to_mongo_record()
        result = self._col.insert_one(payload, session=session)
        return tx.model_copy(update={"id": str(result.inserted_id)})

    def find_by_id(self, transaction_id: str) -> Transaction | None:
        oid = try_object_id(transaction_id)
        if oid is None:
            return None
        doc = self._col.find_one({"_id": oid})
        if not doc:
            return None
        return TransactionDocument.model_validate(doc).to_domain()

    def list_by_balance(self, balance_id: str) -> list[Transaction]:
        cursor = self._col.find({"balance_id": balance_id}, sort=_HISTORY_SORT)
        return [TransactionDocument.model_validate(doc).to_domain() for doc in cursor]

    def list_by_customer(self, customer_id: str) -> list[Transaction]:
        cursor = self._col.find({"customer_id": customer_id}, sort=_HISTORY_SORT)
        return [TransactionDocument.model_validate(doc).to_domain() for doc in cursor]

    def update_amount(
        self, transaction_id: str, amount: float, now: datetime
    ) -> Transaction | None:
        oid = try_object_id(transaction_id)
        if oid is None:
            return None
        doc = self._col.find_one_and_update(
            {"_id": oid},
            {"$set": {"amount": amount, "corrected": True, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return TransactionDocument.model_validate(doc).to_domain()
