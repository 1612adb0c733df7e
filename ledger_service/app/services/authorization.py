"""역할 -> 권한(capability) 매핑과 권한 검사.

역할 문자열을 호출부마다 비교하지 않고, 각 진입점에서 require() 한 번으로 검사한다.
"""

from __future__ import annotations

from enum import StrEnum

from common.models.actor import Actor, Role

from ..exceptions import UnauthorizedError


class Capability(StrEnum):
    CREATE_BALANCE = "create_balance"
    UPDATE_BALANCE = "update_balance"
    DELETE_BALANCE = "delete_balance"
    LOG_TRANSACTION = "log_transaction"
    CORRECT_TRANSACTION = "correct_transaction"
    VIEW_ALL_BALANCES = "view_all_balances"
    VIEW_OWN_BALANCES = "view_own_balances"
    TRACK_TIME = "track_time"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.STAFF: frozenset(Capability),
    Role.CONSULTANT: frozenset({Capability.VIEW_OWN_BALANCES}),
    Role.CUSTOMER: frozenset({Capability.VIEW_OWN_BALANCES}),
}


def has_capability(actor: Actor, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(actor.role, frozenset())


def require(actor: Actor, capability: Capability) -> None:
    """actor 가 capability 를 갖지 않으면 UnauthorizedError 를 발생시킨다."""

    if not has_capability(actor, capability):
        raise UnauthorizedError(actor.actor_id, capability.value)
