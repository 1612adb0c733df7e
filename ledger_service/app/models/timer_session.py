from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, model_validator


class TimerStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"


class TimerSession(BaseModel):
    """유저별 작업 시간 측정 세션 도메인 모델.

    - 어떤 잔액에도 묶이지 않는다. 측정된 duration 은 트랜잭션 금액 제안값으로만 쓰인다.
    - duration(초)은 completed 상태에서만 정의된다.
    """

    id: str | None = None
    subject_id: str  # 작업 대상(feature 등) 참조
    user_id: str
    start_time: datetime
    end_time: datetime | None = None
    duration: int | None = None
    status: TimerStatus = TimerStatus.RUNNING
    notes: str | None = None
    corrected: bool = False
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _validate_completion(self) -> "TimerSession":
        if self.status == TimerStatus.COMPLETED and self.duration is None:
            raise ValueError("completed session must have a duration")
        return self

    @property
    def is_running(self) -> bool:
        return self.status == TimerStatus.RUNNING
