"""잔액 레포지토리 구현체.

_id 가 잔액 번호이므로 번호 유일성은 기본 _id 인덱스가 보장한다.
금액 변경은 version 조건부 업데이트로만 수행한다.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pymongo import ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from .documents.balance_document import BalanceDocument
from .interfaces import BalanceRepositoryInterface
from ..models.balance import Balance


# update_fields 로 바꿀 수 있는 필드. kind / initial_amount / current_amount 는 제외한다.
UPDATABLE_FIELDS = frozenset({"status", "expiry_date", "notes"})


class BalanceRepository(BalanceRepositoryInterface):
    """balances 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["balances"]

    def find_by_id(
        self, balance_id: str, *, session: ClientSession | None = None
    ) -> Balance | None:
        doc = self._col.find_one({"_id": balance_id}, session=session)
        if not doc:
            return None
        return BalanceDocument.model_validate(doc).to_domain()

    def exists(self, balance_id: str) -> bool:
        return self._col.count_documents({"_id": balance_id}, limit=1) > 0

    def try_insert(self, balance: Balance) -> bool:
        payload = BalanceDocument.from_domain(balance).to_mongo_record()
        try:
            self._col.insert_one(payload)
        except DuplicateKeyError:
            return False
        return True

    def list_all(self) -> list[Balance]:
        cursor = self._col.find({}, sort=[("created_at", -1), ("_id", -1)])
        return [BalanceDocument.model_validate(doc).to_domain() for doc in cursor]

    def list_by_customer(self, customer_id: str) -> list[Balance]:
        cursor = self._col.find(
            {"customer_id": customer_id},
            sort=[("created_at", -1), ("_id", -1)],
        )
        return [BalanceDocument.model_validate(doc).to_domain() for doc in cursor]

    def update_fields(
        self, balance_id: str, fields: dict[str, Any], now: datetime
    ) -> Balance | None:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"fields not updatable: {sorted(unknown)}")

        doc = self._col.find_one_and_update(
            {"_id": balance_id},
            {
                "$set": {**fields, "updated_at": now},
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return BalanceDocument.model_validate(doc).to_domain()

    def update_amount_if_version(
        self,
        balance_id: str,
        expected_version: int,
        new_amount: float,
        now: datetime,
        *,
        session: ClientSession | None = None,
    ) -> bool:
        result = self._col.update_one(
            {"_id": balance_id, "version": expected_version},
            {
                "$set": {"current_amount": new_amount, "updated_at": now},
                "$inc": {"version": 1},
            },
            session=session,
        )
        return result.matched_count == 1

    def delete(self, balance_id: str) -> Balance | None:
        doc = self._col.find_one_and_delete({"_id": balance_id})
        if not doc:
            return None
        return BalanceDocument.model_validate(doc).to_domain()
