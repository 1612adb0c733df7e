from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from common.models.actor import Actor

from ..dependencies import get_actor
from ..schemas.timers import (
    TimerCorrectRequest,
    TimerElapsedResponse,
    TimerListResponse,
    TimerSessionResponse,
    TimerStartRequest,
    TimerStopRequest,
    TimerStopResponse,
)
from ...services.granularity import format_duration
from ...services.timer_service import TimerService, get_timer_service


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def start_timer(
    req: TimerStartRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[TimerService, Depends(get_timer_service)],
) -> TimerSessionResponse:
    session = service.start(req.subject_id, actor, notes=req.notes)
    return TimerSessionResponse.from_domain(session)


@router.get("")
def list_recent_timers(
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[TimerService, Depends(get_timer_service)],
    limit: int = 20,
) -> TimerListResponse:
    sessions = service.list_recent(actor, limit=limit)
    return TimerListResponse(
        items=[TimerSessionResponse.from_domain(s) for s in sessions]
    )


@router.get("/{session_id}/elapsed")
def get_elapsed(
    session_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[TimerService, Depends(get_timer_service)],
) -> TimerElapsedResponse:
    session = service.get(session_id, actor)
    elapsed = service.elapsed(session_id, actor)
    return TimerElapsedResponse(
        session_id=session_id,
        status=session.status,
        elapsed=elapsed,
        formatted=format_duration(elapsed),
    )


@router.post("/{session_id}/stop")
def stop_timer(
    session_id: str,
    req: TimerStopRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[TimerService, Depends(get_timer_service)],
) -> TimerStopResponse:
    result = service.stop(session_id, actor, notes=req.notes)
    return TimerStopResponse(
        session=TimerSessionResponse.from_domain(result.session),
        duration=result.duration,
        formatted_duration=format_duration(result.duration),
        proposed_amount=result.proposed_amount,
    )


@router.patch("/{session_id}")
def correct_timer(
    session_id: str,
    req: TimerCorrectRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[TimerService, Depends(get_timer_service)],
) -> TimerSessionResponse:
    return TimerSessionResponse.from_domain(
        service.correct(session_id, req.duration, actor)
    )
