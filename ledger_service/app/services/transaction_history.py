"""트랜잭션 이력 조회와 정정.

정정(correct)은 트랜잭션 금액만 바꾸고 잔액의 current_amount 는 다시 계산하지 않는다.
그 결과 생기는 차이는 drift() 로 조회할 수 있다.
"""

from __future__ import annotations

import logging

from fastapi import Depends

from common.models.actor import Actor

from .authorization import Capability, has_capability, require
from .clock import Clock, utc_now
from .ledger_store import get_balance_repository, get_transaction_repository
from .validation import round_amount, validate_entry_amount
from ..exceptions import NotFoundError, UnauthorizedError
from ..models.balance import Balance, BalanceDrift
from ..models.transaction import Transaction
from ..repositories.errors import persistence_errors
from ..repositories.interfaces import (
    BalanceRepositoryInterface,
    TransactionRepositoryInterface,
)


logger = logging.getLogger(__name__)


class TransactionHistory:
    def __init__(
        self,
        balance_repository: BalanceRepositoryInterface,
        transaction_repository: TransactionRepositoryInterface,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._balance_repo = balance_repository
        self._tx_repo = transaction_repository
        self._clock = clock

    def list(self, balance_id: str, actor: Actor) -> list[Transaction]:
        """잔액의 트랜잭션을 service_date 내림차순으로 반환한다.

        잔액이 삭제되어도 트랜잭션은 남아 있으므로, 잔액이 없으면 비정규화된
        customer_id 로 조회 범위를 판단한다.
        """

        if has_capability(actor, Capability.VIEW_ALL_BALANCES):
            with persistence_errors("list transactions"):
                return self._tx_repo.list_by_balance(balance_id)

        require(actor, Capability.VIEW_OWN_BALANCES)
        with persistence_errors("list transactions"):
            balance = self._balance_repo.find_by_id(balance_id)
            if balance is not None and balance.customer_id != actor.actor_id:
                raise NotFoundError("balance", balance_id)
            items = self._tx_repo.list_by_balance(balance_id)
        return [tx for tx in items if tx.customer_id == actor.actor_id]

    def list_for_customer(self, customer_id: str, actor: Actor) -> list[Transaction]:
        if not has_capability(actor, Capability.VIEW_ALL_BALANCES):
            require(actor, Capability.VIEW_OWN_BALANCES)
            if customer_id != actor.actor_id:
                raise UnauthorizedError(actor.actor_id, Capability.VIEW_ALL_BALANCES.value)

        with persistence_errors("list customer transactions"):
            return self._tx_repo.list_by_customer(customer_id)

    def correct(self, transaction_id: str, new_amount: float, actor: Actor) -> Transaction:
        """트랜잭션 금액을 바꾸고 corrected 플래그를 세운다. 잔액은 건드리지 않는다."""

        require(actor, Capability.CORRECT_TRANSACTION)
        validate_entry_amount(new_amount)

        with persistence_errors("correct transaction"):
            before = self._tx_repo.find_by_id(transaction_id)
            if before is None:
                raise NotFoundError("transaction", transaction_id)
            corrected = self._tx_repo.update_amount(
                transaction_id, round_amount(new_amount), self._clock()
            )
        if corrected is None:
            raise NotFoundError("transaction", transaction_id)

        logger.warning(
            "transaction corrected %s -> %s; balance %s is not recomputed (drift %+g)",
            before.amount,
            corrected.amount,
            corrected.balance_id,
            round_amount(before.amount - corrected.amount),
            extra={
                "actor_id": actor.actor_id,
                "balance_id": corrected.balance_id,
                "transaction_id": transaction_id,
            },
        )
        return corrected

    def drift(self, balance_id: str, actor: Actor) -> BalanceDrift:
        if not has_capability(actor, Capability.VIEW_ALL_BALANCES):
            require(actor, Capability.VIEW_OWN_BALANCES)

        with persistence_errors("compute drift"):
            balance = self._balance_repo.find_by_id(balance_id)
            if balance is None or not self._can_view(actor, balance):
                raise NotFoundError("balance", balance_id)
            items = self._tx_repo.list_by_balance(balance_id)

        return build_drift(balance, items)

    @staticmethod
    def _can_view(actor: Actor, balance: Balance) -> bool:
        return (
            has_capability(actor, Capability.VIEW_ALL_BALANCES)
            or balance.customer_id == actor.actor_id
        )


def build_drift(balance: Balance, items: list[Transaction]) -> BalanceDrift:
    total = round_amount(sum(tx.amount for tx in items))
    return BalanceDrift(
        balance_id=balance.id,
        initial_amount=balance.initial_amount,
        current_amount=balance.current_amount,
        transaction_total=total,
        transaction_count=len(items),
        drift=round_amount(balance.initial_amount - total - balance.current_amount),
    )


def get_transaction_history(
    balance_repo: BalanceRepositoryInterface = Depends(get_balance_repository),
    transaction_repo: TransactionRepositoryInterface = Depends(
        get_transaction_repository
    ),
) -> TransactionHistory:
    return TransactionHistory(balance_repo, transaction_repo)
