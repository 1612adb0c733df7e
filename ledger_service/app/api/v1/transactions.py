from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from common.models.actor import Actor

from ..dependencies import get_actor
from ..schemas.transactions import (
    TransactionCorrectRequest,
    TransactionListResponse,
    TransactionResponse,
)
from ...services.transaction_history import (
    TransactionHistory,
    get_transaction_history,
)


router = APIRouter()


@router.get("")
def list_customer_transactions(
    customer_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    history: Annotated[TransactionHistory, Depends(get_transaction_history)],
) -> TransactionListResponse:
    """고객의 모든 트랜잭션(삭제된 잔액의 기록 포함)을 service_date 내림차순으로 반환한다."""

    items = history.list_for_customer(customer_id, actor)
    return TransactionListResponse(
        items=[TransactionResponse.from_domain(tx) for tx in items],
        total=len(items),
    )


@router.patch("/{transaction_id}")
def correct_transaction(
    transaction_id: str,
    req: TransactionCorrectRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    history: Annotated[TransactionHistory, Depends(get_transaction_history)],
) -> TransactionResponse:
    """금액을 정정하고 corrected 로 표시한다. 잔액은 다시 계산하지 않는다."""

    return TransactionResponse.from_domain(
        history.correct(transaction_id, req.amount, actor)
    )
