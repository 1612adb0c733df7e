from __future__ import annotations

from common.mongo.types import (
    MongoDateTime,
    ObjectIdDocument,
    OptionalMongoDateTime,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.timer_session import TimerSession, TimerStatus


class TimerSessionDocument(ObjectIdDocument):
    """MongoDB timer_sessions 컬렉션 도큐먼트 모델."""

    subject_id: str
    user_id: str
    start_time: MongoDateTime
    end_time: OptionalMongoDateTime = None
    duration: int | None = None
    status: TimerStatus
    notes: str | None = None
    corrected: bool = False

    @classmethod
    def from_domain(cls, session: TimerSession) -> "TimerSessionDocument":
        data = build_document_data_from_domain(session, exclude={"id"})
        if session.id is not None:
            data["_id"] = session.id
        return cls.model_validate(data)

    def to_domain(self) -> TimerSession:
        return TimerSession(
            id=from_object_id(self.id),
            subject_id=self.subject_id,
            user_id=self.user_id,
            start_time=self.start_time,
            end_time=self.end_time,
            duration=self.duration,
            status=self.status,
            notes=self.notes,
            corrected=self.corrected,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
