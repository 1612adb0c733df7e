from __future__ import annotations

from pydantic import BaseModel

from common.types.datetime import UtcDateTime

from ...models.timer_session import TimerSession, TimerStatus
from ...services.granularity import format_duration


class TimerStartRequest(BaseModel):
    subject_id: str
    notes: str | None = None


class TimerStopRequest(BaseModel):
    notes: str | None = None


class TimerCorrectRequest(BaseModel):
    duration: int


class TimerSessionResponse(BaseModel):
    id: str | None
    subject_id: str
    user_id: str
    start_time: UtcDateTime
    end_time: UtcDateTime | None = None
    duration: int | None = None
    formatted_duration: str | None = None
    status: TimerStatus
    notes: str | None = None
    corrected: bool

    @classmethod
    def from_domain(cls, session: TimerSession) -> "TimerSessionResponse":
        return cls(
            id=session.id,
            subject_id=session.subject_id,
            user_id=session.user_id,
            start_time=session.start_time,
            end_time=session.end_time,
            duration=session.duration,
            formatted_duration=(
                format_duration(session.duration) if session.duration is not None else None
            ),
            status=session.status,
            notes=session.notes,
            corrected=session.corrected,
        )


class TimerListResponse(BaseModel):
    items: list[TimerSessionResponse]


class TimerElapsedResponse(BaseModel):
    session_id: str
    status: TimerStatus
    elapsed: int
    formatted: str


class TimerStopResponse(BaseModel):
    """타이머 종료 결과. proposed_amount 는 허용 간격으로 맞춘 트랜잭션 금액 제안값이다."""

    session: TimerSessionResponse
    duration: int
    formatted_duration: str
    proposed_amount: float
