"""요청 주체(actor) 해석.

인증은 Gateway 가 끝낸 뒤 X-Actor-Id / X-Actor-Role 헤더로 전달한다.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Header, HTTPException, status
from pydantic import ValidationError

from common.models.actor import Actor

from .schemas.common import ErrorBody


ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"


def get_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
) -> Actor:
    if not x_actor_id or not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=ErrorBody(
                code="UNAUTHENTICATED",
                message=f"{ACTOR_ID_HEADER} and {ACTOR_ROLE_HEADER} headers are required",
            ).model_dump(),
        )

    try:
        return Actor(actor_id=x_actor_id, role=x_actor_role.strip().lower())
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=ErrorBody(
                code="UNAUTHENTICATED",
                message=f"invalid actor: {exc.errors()[0]['msg']}",
            ).model_dump(),
        ) from exc
