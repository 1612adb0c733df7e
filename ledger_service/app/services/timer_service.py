"""작업 시간 타이머.

잔액과 독립된 유저별 start/stop 기록기다. 측정된 duration(초)은 트랜잭션 금액 제안값으로만
넘겨지며, 잔액의 current_amount 를 직접 바꾸지 않는다.

- TimerService: 서버 측 세션 저장/상태 전이
- TimerTracker: 클라이언트 측 상태(idle/running). 활성 세션 참조를 로컬에 기억하고
  재시작 시 저장된 세션과 대조해 복구한다.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from pathlib import Path

from fastapi import Depends
from pymongo.database import Database

from common.models.actor import Actor
from common.mongo.client import get_database

from .authorization import Capability, require
from .clock import Clock, utc_now
from .granularity import seconds_to_proposed_amount
from ..exceptions import LedgerValidationError, NotFoundError
from ..models.timer_session import TimerSession, TimerStatus
from ..repositories.errors import persistence_errors
from ..repositories.interfaces import TimerSessionRepositoryInterface
from ..repositories.timer_session_repository import TimerSessionRepository


logger = logging.getLogger(__name__)


DEFAULT_RECENT_LIMIT = 20
MAX_RECENT_LIMIT = 100


def elapsed_seconds(session: TimerSession, now: datetime) -> int:
    """running 이면 현재까지 경과 초, completed 이면 기록된 duration."""

    if session.status == TimerStatus.COMPLETED:
        return session.duration or 0
    return max(0, math.floor((now - session.start_time).total_seconds()))


@dataclass(frozen=True, slots=True)
class StopResult:
    session: TimerSession
    duration: int
    proposed_amount: float


class TimerService:
    def __init__(
        self,
        timer_session_repository: TimerSessionRepositoryInterface,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._repo = timer_session_repository
        self._clock = clock

    def start(
        self, subject_id: str, actor: Actor, *, notes: str | None = None
    ) -> TimerSession:
        require(actor, Capability.TRACK_TIME)
        if not subject_id or not subject_id.strip():
            raise LedgerValidationError("subject_id", "is required")

        now = self._clock()
        session = TimerSession(
            subject_id=subject_id.strip(),
            user_id=actor.actor_id,
            start_time=now,
            status=TimerStatus.RUNNING,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        with persistence_errors("start timer"):
            saved = self._repo.insert(session)

        logger.info(
            "timer started subject_id=%s",
            saved.subject_id,
            extra={"actor_id": actor.actor_id, "session_id": saved.id},
        )
        return saved

    def get(self, session_id: str, actor: Actor) -> TimerSession:
        with persistence_errors("get timer"):
            session = self._repo.find_by_id(session_id)
        if session is None:
            raise NotFoundError("timer_session", session_id)
        if session.user_id != actor.actor_id:
            # 다른 유저의 세션은 존재 여부도 드러내지 않는다.
            raise NotFoundError("timer_session", session_id)
        return session

    def elapsed(self, session_id: str, actor: Actor) -> int:
        """tick: 저장 상태를 바꾸지 않고 경과 시간(초)만 계산한다."""

        return elapsed_seconds(self.get(session_id, actor), self._clock())

    def stop(
        self, session_id: str, actor: Actor, *, notes: str | None = None
    ) -> StopResult:
        require(actor, Capability.TRACK_TIME)
        session = self.get(session_id, actor)
        if not session.is_running:
            raise LedgerValidationError("status", "timer session is not running")

        now = self._clock()
        duration = elapsed_seconds(session, now)
        with persistence_errors("stop timer"):
            completed = self._repo.complete(
                session_id, now, duration, notes if notes is not None else session.notes, now
            )
        if completed is None:
            # 조회와 종료 사이에 다른 요청이 먼저 종료했다.
            raise LedgerValidationError("status", "timer session is not running")

        logger.info(
            "timer stopped duration=%ds",
            duration,
            extra={"actor_id": actor.actor_id, "session_id": session_id},
        )
        return StopResult(
            session=completed,
            duration=duration,
            proposed_amount=seconds_to_proposed_amount(duration),
        )

    def correct(self, session_id: str, duration: int, actor: Actor) -> TimerSession:
        """종료된 세션의 duration 을 정정한다. 잔액/트랜잭션에는 영향이 없다."""

        require(actor, Capability.TRACK_TIME)
        if isinstance(duration, bool) or not isinstance(duration, int) or duration < 0:
            raise LedgerValidationError("duration", "must be a non-negative integer")

        session = self.get(session_id, actor)
        if session.status != TimerStatus.COMPLETED:
            raise LedgerValidationError("status", "only completed sessions can be corrected")

        with persistence_errors("correct timer"):
            corrected = self._repo.update_duration(session_id, duration, self._clock())
        if corrected is None:
            raise NotFoundError("timer_session", session_id)

        logger.info(
            "timer duration corrected %s -> %s",
            session.duration,
            duration,
            extra={"actor_id": actor.actor_id, "session_id": session_id},
        )
        return corrected

    def list_recent(
        self, actor: Actor, *, limit: int = DEFAULT_RECENT_LIMIT
    ) -> list[TimerSession]:
        require(actor, Capability.TRACK_TIME)
        if limit <= 0 or limit > MAX_RECENT_LIMIT:
            limit = DEFAULT_RECENT_LIMIT
        with persistence_errors("list timers"):
            return self._repo.list_by_user(actor.actor_id, limit)

    def find_active(self, actor: Actor) -> TimerSession | None:
        require(actor, Capability.TRACK_TIME)
        with persistence_errors("find active timer"):
            return self._repo.find_running_by_user(actor.actor_id)


class ActiveTimerCache:
    """활성 세션 id 를 유저별로 JSON 파일에 기억한다(프로세스 재시작 후 복구용)."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self, user_id: str) -> str | None:
        data = self._read()
        value = data.get(user_id)
        return str(value) if value else None

    def save(self, user_id: str, session_id: str) -> None:
        data = self._read()
        data[user_id] = session_id
        self._write(data)

    def clear(self, user_id: str) -> None:
        data = self._read()
        if data.pop(user_id, None) is not None:
            self._write(data)

    def _read(self) -> dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("ignoring unreadable timer cache %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        tmp_path.replace(self._path)


class TrackerState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"


class TimerTracker:
    """한 유저의 클라이언트 측 타이머 상태.

    tick() 은 주기적으로(예: 1초마다) 호출되어 경과 시간만 다시 계산한다.
    호출을 멈추면 그것으로 취소되며 서버 측 정리는 필요 없다.
    """

    def __init__(
        self,
        service: TimerService,
        cache: ActiveTimerCache,
        actor: Actor,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._service = service
        self._cache = cache
        self._actor = actor
        self._clock = clock
        self._active: TimerSession | None = None
        self.elapsed = 0

    @property
    def state(self) -> TrackerState:
        return TrackerState.RUNNING if self._active is not None else TrackerState.IDLE

    @property
    def active_session(self) -> TimerSession | None:
        return self._active

    def recover(self) -> TimerSession | None:
        """로컬에 기억된 활성 세션을 저장소와 대조한다.

        저장된 세션이 없거나 더 이상 running 이 아니면 로컬 참조를 버리고 idle 로 돌아간다.
        """

        session_id = self._cache.load(self._actor.actor_id)
        if session_id is None:
            self._reset()
            return None

        try:
            session = self._service.get(session_id, self._actor)
        except NotFoundError:
            session = None

        if session is None or not session.is_running:
            logger.info(
                "discarding stale active timer reference",
                extra={"actor_id": self._actor.actor_id, "session_id": session_id},
            )
            self._cache.clear(self._actor.actor_id)
            self._reset()
            return None

        self._active = session
        self.tick()
        return session

    def start(self, subject_id: str) -> TimerSession:
        if self._active is not None:
            raise LedgerValidationError("status", "a timer is already running")
        session = self._service.start(subject_id, self._actor)
        assert session.id is not None
        self._cache.save(self._actor.actor_id, session.id)
        self._active = session
        self.elapsed = 0
        return session

    def tick(self) -> int:
        if self._active is None:
            return 0
        self.elapsed = elapsed_seconds(self._active, self._clock())
        return self.elapsed

    def stop(self, notes: str | None = None) -> StopResult:
        if self._active is None or self._active.id is None:
            raise LedgerValidationError("status", "no running timer")
        try:
            result = self._service.stop(self._active.id, self._actor, notes=notes)
        except (NotFoundError, LedgerValidationError):
            # 저장소에서 이미 사라졌거나 다른 곳에서 종료된 세션. 로컬 참조를 버린다.
            logger.info(
                "discarding active timer reference after failed stop",
                extra={"actor_id": self._actor.actor_id, "session_id": self._active.id},
            )
            self._cache.clear(self._actor.actor_id)
            self._reset()
            raise
        self._cache.clear(self._actor.actor_id)
        self._reset()
        return result

    def _reset(self) -> None:
        self._active = None
        self.elapsed = 0


def get_timer_session_repository(
    db: Database = Depends(get_database),
) -> TimerSessionRepositoryInterface:
    """FastAPI DI용 TimerSessionRepository 팩토리."""

    return TimerSessionRepository(db)


def get_timer_service(
    repo: TimerSessionRepositoryInterface = Depends(get_timer_session_repository),
) -> TimerService:
    return TimerService(repo)
