"""잔액 원장 저장소(Ledger Store).

- 잔액 생성/수정/삭제/비활성화/재활성화와 트랜잭션 기록(차감)을 담당한다.
- 차감은 UnitOfWork 안에서 "version 조건부 잔액 업데이트 + 트랜잭션 insert" 를 함께 커밋한다.
  다른 요청이 먼저 커밋해 version 이 바뀌었으면 다시 읽고 다시 검증한 뒤 재시도한다.
- 커밋된 변경은 BalanceFeed 로 발행된다. open()/close() 로 구독 기반의 잔액 목록 뷰를 관리한다.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends
from pymongo.client_session import ClientSession
from pymongo.database import Database

from common.models.actor import Actor
from common.mongo.client import get_client, get_database
from common.mongo.unit_of_work import MongoUnitOfWork, UnitOfWork

from .authorization import Capability, has_capability, require
from .balance_feed import (
    BalanceChange,
    BalanceFeed,
    BalanceView,
    Subscription,
    get_balance_feed,
)
from .clock import Clock, utc_now
from .identifier import BalanceNumberGenerator
from .notification_service import LedgerNotifier, get_ledger_notifier
from .validation import (
    round_amount,
    validate_create_input,
    validate_entry,
    validate_transaction,
    validate_update,
)
from ..config import LedgerConfig, get_ledger_config
from ..exceptions import (
    ConcurrencyConflictError,
    NotFoundError,
    PersistenceFailureError,
)
from ..models.balance import (
    Balance,
    BalanceCreateInput,
    BalanceStatus,
    BalanceUpdate,
)
from ..models.transaction import Transaction, TransactionEntry
from ..repositories.balance_repository import BalanceRepository
from ..repositories.errors import persistence_errors
from ..repositories.interfaces import (
    BalanceRepositoryInterface,
    TransactionRepositoryInterface,
)
from ..repositories.transaction_repository import TransactionRepository


logger = logging.getLogger(__name__)


class LedgerStore:
    def __init__(
        self,
        balance_repository: BalanceRepositoryInterface,
        transaction_repository: TransactionRepositoryInterface,
        unit_of_work: UnitOfWork,
        *,
        feed: BalanceFeed,
        notifier: LedgerNotifier,
        config: LedgerConfig,
        generator: BalanceNumberGenerator | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._balance_repo = balance_repository
        self._tx_repo = transaction_repository
        self._uow = unit_of_work
        self._feed = feed
        self._notifier = notifier
        self._config = config
        self._generator = generator or BalanceNumberGenerator.from_config(
            balance_repository.exists, config
        )
        self._clock = clock

        self._view: BalanceView | None = None
        self._subscription: Subscription | None = None

    # 생명주기 ---------------------------------------------------------------
    def open(self, actor: Actor) -> "LedgerStore":
        """actor 의 조회 범위로 잔액 목록을 읽고 피드를 구독한다.

        목록을 읽기 전에 구독을 먼저 걸어, 그 사이에 커밋된 변경도 놓치지 않는다.
        """

        if self._subscription is not None:
            raise RuntimeError("ledger store is already open")

        view = BalanceView(visible=lambda balance: self._can_view(actor, balance))
        subscription = self._feed.subscribe(view.apply)
        try:
            balances = self.get_balances_for_actor(actor)
        except Exception:
            subscription.cancel()
            raise

        # 구독 이후 이미 반영된 최신 변경을 덮어쓰지 않도록 목록은 병합으로 넣는다.
        for balance in balances:
            view.apply(BalanceChange.upserted(balance))

        self._view = view
        self._subscription = subscription
        logger.info(
            "ledger store opened with %d balances",
            len(view),
            extra={"actor_id": actor.actor_id},
        )
        return self

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
        self._subscription = None
        self._view = None

    @property
    def is_open(self) -> bool:
        return self._subscription is not None

    @property
    def balances(self) -> list[Balance]:
        """open() 으로 유지 중인 잔액 목록. 열려 있지 않으면 빈 목록."""

        if self._view is None:
            return []
        return self._view.list()

    def __enter__(self) -> "LedgerStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # 조회 -------------------------------------------------------------------
    def get_balances_for_actor(self, actor: Actor) -> list[Balance]:
        """staff 는 전체, 그 외 역할은 자신이 customer 인 잔액만 조회한다."""

        with persistence_errors("list balances"):
            if has_capability(actor, Capability.VIEW_ALL_BALANCES):
                return self._balance_repo.list_all()
            require(actor, Capability.VIEW_OWN_BALANCES)
            return self._balance_repo.list_by_customer(actor.actor_id)

    def get_balance(self, balance_id: str, actor: Actor) -> Balance:
        """조회 범위 밖의 잔액은 존재 여부를 드러내지 않도록 NotFound 로 응답한다."""

        if not has_capability(actor, Capability.VIEW_ALL_BALANCES):
            require(actor, Capability.VIEW_OWN_BALANCES)

        with persistence_errors("get balance"):
            balance = self._balance_repo.find_by_id(balance_id)
        if balance is None or not self._can_view(actor, balance):
            raise NotFoundError("balance", balance_id)
        return balance

    # 변경 -------------------------------------------------------------------
    def create(self, data: BalanceCreateInput, actor: Actor) -> Balance:
        require(actor, Capability.CREATE_BALANCE)
        now = self._clock()
        validate_create_input(data, now)

        amount = round_amount(data.initial_amount)
        created: list[Balance] = []

        def _claim(balance_id: str) -> bool:
            balance = Balance(
                id=balance_id,
                customer_id=data.customer_id.strip(),
                kind=data.kind,
                initial_amount=amount,
                current_amount=amount,
                status=BalanceStatus.ACTIVE,
                expiry_date=data.expiry_date,
                notes=data.notes,
                created_by=actor.actor_id,
                created_at=now,
                updated_at=now,
                version=0,
            )
            if not self._balance_repo.try_insert(balance):
                return False
            created.append(balance)
            return True

        with persistence_errors("create balance"):
            balance_id = self._generator.allocate(_claim)

        balance = created[0]
        logger.info(
            "balance created kind=%s amount=%s",
            balance.kind.value,
            balance.initial_amount,
            extra={"actor_id": actor.actor_id, "balance_id": balance_id},
        )
        self._publish(BalanceChange.upserted(balance, origin=self._feed.source_id))
        self._notifier.balance_created(balance)
        return balance

    def update(
        self, balance_id: str, update: BalanceUpdate, actor: Actor
    ) -> Balance:
        """명시적으로 전달된 필드(status, expiry_date, notes)만 병합한다."""

        require(actor, Capability.UPDATE_BALANCE)
        validate_update(update)

        fields: dict[str, Any] = update.model_dump(exclude_unset=True)
        if "status" in fields:
            if fields["status"] is None:
                fields.pop("status")
            else:
                fields["status"] = BalanceStatus(fields["status"]).value

        with persistence_errors("update balance"):
            if not fields:
                balance = self._balance_repo.find_by_id(balance_id)
                if balance is None:
                    raise NotFoundError("balance", balance_id)
                return balance
            updated = self._balance_repo.update_fields(
                balance_id, fields, self._clock()
            )

        if updated is None:
            raise NotFoundError("balance", balance_id)

        logger.info(
            "balance updated fields=%s",
            sorted(fields),
            extra={"actor_id": actor.actor_id, "balance_id": balance_id},
        )
        self._publish(BalanceChange.upserted(updated, origin=self._feed.source_id))
        return updated

    def deactivate(self, balance_id: str, actor: Actor) -> Balance:
        return self.set_active(balance_id, False, actor)

    def reactivate(self, balance_id: str, actor: Actor) -> Balance:
        return self.set_active(balance_id, True, actor)

    def set_active(self, balance_id: str, active: bool, actor: Actor) -> Balance:
        status = BalanceStatus.ACTIVE if active else BalanceStatus.INACTIVE
        return self.update(balance_id, BalanceUpdate(status=status), actor)

    def delete(self, balance_id: str, actor: Actor) -> None:
        """잔액만 하드 삭제한다. 트랜잭션 기록은 이력으로 남는다."""

        require(actor, Capability.DELETE_BALANCE)

        # tombstone 은 실제로 지워진 문서의 version 을 가져야 늦게 도착한 upsert 를 막는다.
        with persistence_errors("delete balance"):
            removed = self._balance_repo.delete(balance_id)

        if removed is None:
            raise NotFoundError("balance", balance_id)

        logger.info(
            "balance deleted version=%s",
            removed.version,
            extra={"actor_id": actor.actor_id, "balance_id": balance_id},
        )
        self._publish(BalanceChange.deleted(removed, origin=self._feed.source_id))

    def log_transaction(
        self, balance_id: str, entry: TransactionEntry, actor: Actor
    ) -> float:
        """트랜잭션을 기록하고 차감 후 잔액을 반환한다.

        트랜잭션 insert 와 잔액 차감은 하나의 UnitOfWork 로 함께 커밋되거나 함께 취소된다.
        검증 실패 시 아무 쓰기도 일어나지 않는다.
        """

        require(actor, Capability.LOG_TRANSACTION)
        validate_entry(entry)

        max_attempts = self._config.max_commit_attempts
        for attempt in range(1, max_attempts + 1):
            with persistence_errors("read balance"):
                balance = self._balance_repo.find_by_id(balance_id)
            new_amount = validate_transaction(balance, balance_id, entry.amount)
            assert balance is not None

            now = self._clock()
            tx = Transaction(
                balance_id=balance.id,
                customer_id=balance.customer_id,
                kind=balance.kind,
                title=entry.title.strip(),
                amount=round_amount(entry.amount),
                service_date=entry.service_date,
                notes=entry.notes,
                related_work_item_id=entry.related_work_item_id,
                created_by=actor.actor_id,
                created_at=now,
                updated_at=now,
            )

            def _commit(session: ClientSession | None) -> Transaction:
                applied = self._balance_repo.update_amount_if_version(
                    balance.id, balance.version, new_amount, now, session=session
                )
                if not applied:
                    raise ConcurrencyConflictError(balance.id, balance.version)
                return self._tx_repo.insert(tx, session=session)

            try:
                with persistence_errors("log transaction"):
                    saved = self._uow.run(_commit)
            except ConcurrencyConflictError:
                logger.warning(
                    "balance version conflict, retrying (attempt %d/%d)",
                    attempt,
                    max_attempts,
                    extra={"actor_id": actor.actor_id, "balance_id": balance_id},
                )
                continue

            updated = balance.model_copy(
                update={
                    "current_amount": new_amount,
                    "updated_at": now,
                    "version": balance.version + 1,
                }
            )
            logger.info(
                "transaction logged amount=%s new_amount=%s",
                saved.amount,
                new_amount,
                extra={
                    "actor_id": actor.actor_id,
                    "balance_id": balance_id,
                    "transaction_id": saved.id,
                },
            )
            self._publish(BalanceChange.upserted(updated, origin=self._feed.source_id))
            self._notifier.time_logged(updated, saved)
            return new_amount

        raise PersistenceFailureError(
            f"balance {balance_id} kept changing concurrently; "
            f"gave up after {max_attempts} attempts"
        )

    # 내부 util -------------------------------------------------------------
    @staticmethod
    def _can_view(actor: Actor, balance: Balance) -> bool:
        if has_capability(actor, Capability.VIEW_ALL_BALANCES):
            return True
        return (
            has_capability(actor, Capability.VIEW_OWN_BALANCES)
            and balance.customer_id == actor.actor_id
        )

    def _publish(self, change: BalanceChange) -> None:
        self._feed.publish(change)


def get_balance_repository(
    db: Database = Depends(get_database),
) -> BalanceRepositoryInterface:
    """FastAPI DI용 BalanceRepository 팩토리."""

    return BalanceRepository(db)


def get_transaction_repository(
    db: Database = Depends(get_database),
) -> TransactionRepositoryInterface:
    """FastAPI DI용 TransactionRepository 팩토리."""

    return TransactionRepository(db)


def get_unit_of_work() -> UnitOfWork:
    return MongoUnitOfWork(get_client())


def get_ledger_store(
    balance_repo: BalanceRepositoryInterface = Depends(get_balance_repository),
    transaction_repo: TransactionRepositoryInterface = Depends(
        get_transaction_repository
    ),
    unit_of_work: UnitOfWork = Depends(get_unit_of_work),
    feed: BalanceFeed = Depends(get_balance_feed),
    notifier: LedgerNotifier = Depends(get_ledger_notifier),
    config: LedgerConfig = Depends(get_ledger_config),
) -> LedgerStore:
    return LedgerStore(
        balance_repo,
        transaction_repo,
        unit_of_work,
        feed=feed,
        notifier=notifier,
        config=config,
    )
