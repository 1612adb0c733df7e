from __future__ import annotations

from datetime import datetime

from pymongo import ReturnDocument
from pymongo.database import Database

from common.mongo.types import try_object_id

from .documents.timer_session_document import TimerSessionDocument
from .interfaces import TimerSessionRepositoryInterface
from ..models.timer_session import TimerSession, TimerStatus


class TimerSessionRepository(TimerSessionRepositoryInterface):
    """timer_sessions 컬렉션에 대한 MongoDB 접근 레이어.

    상태 전이(running -> completed)는 status 조건부 업데이트로 처리해
    이미 종료된 세션을 다시 종료하지 않도록 한다.
    """

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["timer_sessions"]

    def insert(self, timer_session: TimerSession) -> TimerSession:
        payload = TimerSessionDocument.from_domain(timer_session).to_mongo_record()
        result = self._col.insert_one(payload)
        return timer_session.model_copy(update={"id": str(result.inserted_id)})

    def find_by_id(self, session_id: str) -> TimerSession | None:
        oid = try_object_id(session_id)
        if oid is None:
            return None
        doc = self._col.find_one({"_id": oid})
        if not doc:
            return None
        return TimerSessionDocument.model_validate(doc).to_domain()

    def complete(
        self,
        session_id: str,
        end_time: datetime,
        duration: int,
        notes: str | None,
        now: datetime,
    ) -> TimerSession | None:
        oid = try_object_id(session_id)
        if oid is None:
            return None
        doc = self._col.find_one_and_update(
            {"_id": oid, "status": TimerStatus.RUNNING.value},
            {
                "$set": {
                    "end_time": end_time,
                    "duration": duration,
                    "notes": notes,
                    "status": TimerStatus.COMPLETED.value,
                    "updated_at": now,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return TimerSessionDocument.model_validate(doc).to_domain()

    def update_duration(
        self, session_id: str, duration: int, now: datetime
    ) -> TimerSession | None:
        oid = try_object_id(session_id)
        if oid is None:
            return None
        doc = self._col.find_one_and_update(
            {"_id": oid, "status": TimerStatus.COMPLETED.value},
            {"$set": {"duration": duration, "corrected": True, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return TimerSessionDocument.model_validate(doc).to_domain()

    def list_by_user(self, user_id: str, limit: int) -> list[TimerSession]:
        cursor = self._col.find(
            {"user_id": user_id},
            sort=[("start_time", -1), ("_id", -1)],
            limit=limit,
        )
        return [TimerSessionDocument.model_validate(doc).to_domain() for doc in cursor]

    def find_running_by_user(self, user_id: str) -> TimerSession | None:
        doc = self._col.find_one(
            {"user_id": user_id, "status": TimerStatus.RUNNING.value},
            sort=[("start_time", -1)],
        )
        if not doc:
            return None
        return TimerSessionDocument.model_validate(doc).to_domain()
