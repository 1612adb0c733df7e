"""잔액 / 잔액별 트랜잭션 API 라우터."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from common.models.actor import Actor

from ..dependencies import get_actor
from ..schemas.balances import (
    BalanceCreateRequest,
    BalanceDriftResponse,
    BalanceListResponse,
    BalanceResponse,
    BalanceUpdateRequest,
)
from ..schemas.transactions import (
    TransactionCreateRequest,
    TransactionListResponse,
    TransactionLoggedResponse,
    TransactionResponse,
)
from ...models.balance import BalanceCreateInput, BalanceUpdate
from ...models.transaction import TransactionEntry
from ...services.ledger_store import LedgerStore, get_ledger_store
from ...services.transaction_history import (
    TransactionHistory,
    get_transaction_history,
)


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_balance(
    req: BalanceCreateRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    store: Annotated[LedgerStore, Depends(get_ledger_store)],
) -> BalanceResponse:
    balance = store.create(BalanceCreateInput(**req.model_dump()), actor)
    return BalanceResponse.from_domain(balance)


@router.get("")
def list_balances(
    actor: Annotated[Actor, Depends(get_actor)],
    store: Annotated[LedgerStore, Depends(get_ledger_store)],
) -> BalanceListResponse:
    """staff 는 전체 잔액, 그 외 역할은 자신의 잔액만 반환한다."""

    balances = store.get_balances_for_actor(actor)
    return BalanceListResponse(
        items=[BalanceResponse.from_domain(b) for b in balances],
        total=len(balances),
    )


@router.get("/{balance_id}")
def get_balance(
    balance_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    store: Annotated[LedgerStore, Depends(get_ledger_store)],
) -> BalanceResponse:
    return BalanceResponse.from_domain(store.get_balance(balance_id, actor))


@router.patch("/{balance_id}")
def update_balance(
    balance_id: str,
    req: BalanceUpdateRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    store: Annotated[LedgerStore, Depends(get_ledger_store)],
) -> BalanceResponse:
    # 요청에 명시된 필드만 병합되도록 exclude_unset 결과로 BalanceUpdate 를 만든다.
    update = BalanceUpdate(**req.model_dump(exclude_unset=True))
    return BalanceResponse.from_domain(store.update(balance_id, update, actor))


@router.delete("/{balance_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_balance(
    balance_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    store: Annotated[LedgerStore, Depends(get_ledger_store)],
) -> None:
    store.delete(balance_id, actor)


@router.post("/{balance_id}/deactivate")
def deactivate_balance(
    balance_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    store: Annotated[LedgerStore, Depends(get_ledger_store)],
) -> BalanceResponse:
    return BalanceResponse.from_domain(store.deactivate(balance_id, actor))


@router.post("/{balance_id}/reactivate")
def reactivate_balance(
    balance_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    store: Annotated[LedgerStore, Depends(get_ledger_store)],
) -> BalanceResponse:
    return BalanceResponse.from_domain(store.reactivate(balance_id, actor))


@router.post("/{balance_id}/transactions", status_code=status.HTTP_201_CREATED)
def log_transaction(
    balance_id: str,
    req: TransactionCreateRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    store: Annotated[LedgerStore, Depends(get_ledger_store)],
) -> TransactionLoggedResponse:
    """트랜잭션을 기록하고 차감 후 잔액을 반환한다. hours 잔액 부족 시 402."""

    entry = TransactionEntry(**req.model_dump())
    current_amount = store.log_transaction(balance_id, entry, actor)
    return TransactionLoggedResponse(balance_id=balance_id, current_amount=current_amount)


@router.get("/{balance_id}/transactions")
def list_transactions(
    balance_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    history: Annotated[TransactionHistory, Depends(get_transaction_history)],
) -> TransactionListResponse:
    items = history.list(balance_id, actor)
    return TransactionListResponse(
        items=[TransactionResponse.from_domain(tx) for tx in items],
        total=len(items),
    )


@router.get("/{balance_id}/drift")
def get_balance_drift(
    balance_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    history: Annotated[TransactionHistory, Depends(get_transaction_history)],
) -> BalanceDriftResponse:
    return BalanceDriftResponse.from_domain(history.drift(balance_id, actor))
