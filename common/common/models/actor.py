from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, field_validator


class Role(StrEnum):
    """인증 제공자가 부여하는 역할.

    - staff: 고객 대신 잔액을 만들고 작업 시간을 차감하는 내부 직원
    - consultant / customer: 자신의 잔액만 조회할 수 있는 외부 사용자
    """

    STAFF = "staff"
    CONSULTANT = "consultant"
    CUSTOMER = "customer"


class Actor(BaseModel):
    """요청을 수행하는 주체.

    Gateway 가 인증을 끝낸 뒤 (actor_id, role) 을 전달하며, 서비스는 이를 그대로 신뢰한다.
    """

    actor_id: str
    role: Role

    @field_validator("actor_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value.strip()
