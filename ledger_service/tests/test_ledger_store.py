from __future__ import annotations

import threading
from datetime import timedelta

import pytest
from pymongo.errors import OperationFailure

from common.models.actor import Actor
from ledger_service.app.config import LedgerConfig
from ledger_service.app.exceptions import (
    GenerationExhaustedError,
    InactiveBalanceError,
    InsufficientFundsError,
    LedgerValidationError,
    NotFoundError,
    PersistenceFailureError,
    UnauthorizedError,
)
from ledger_service.app.models.balance import (
    Balance,
    BalanceCreateInput,
    BalanceKind,
    BalanceStatus,
    BalanceUpdate,
)
from ledger_service.app.models.transaction import TransactionEntry
from ledger_service.app.services.balance_feed import (
    BalanceChange,
    BalanceView,
    ChangeKind,
)
from ledger_service.app.services.ledger_store import LedgerStore
from ledger_service.app.services.notification_service import LedgerNotifier
from ledger_service.tests.fakes import (
    BASE_TIME,
    CONSULTANT,
    CUSTOMER,
    OTHER_CUSTOMER,
    STAFF,
    LedgerFixture,
    build_balance,
    build_ledger_fixture,
)


def _entry(amount: float, title: str = "API 연동 작업") -> TransactionEntry:
    return TransactionEntry(title=title, amount=amount, service_date=BASE_TIME)


def _create_input(
    initial_amount: float = 10.0, kind: BalanceKind = BalanceKind.HOURS
) -> BalanceCreateInput:
    return BalanceCreateInput(
        customer_id=CUSTOMER.actor_id, kind=kind, initial_amount=initial_amount
    )


def _record_changes(ledger: LedgerFixture) -> list[BalanceChange]:
    changes: list[BalanceChange] = []
    ledger.feed.subscribe(changes.append)
    return changes


# -------- create --------


def test_create_sets_current_amount_to_initial_and_active(ledger: LedgerFixture) -> None:
    changes = _record_changes(ledger)

    balance = ledger.store.create(_create_input(12.5), STAFF)

    assert balance.current_amount == balance.initial_amount == 12.5
    assert balance.status == BalanceStatus.ACTIVE
    assert balance.created_by == STAFF.actor_id
    assert balance.created_at == BASE_TIME
    assert balance.version == 0
    assert balance.id.startswith("BAL") and len(balance.id) == 11
    assert ledger.balance_repo.find_by_id(balance.id) == balance
    assert [c.kind for c in changes] == [ChangeKind.UPSERTED]
    assert changes[0].origin == ledger.feed.source_id
    assert ledger.dispatcher.templates() == ["balance-created"]


def test_create_rejects_amount_below_minimum(ledger: LedgerFixture) -> None:
    with pytest.raises(LedgerValidationError):
        ledger.store.create(_create_input(0.4), STAFF)

    assert ledger.balance_repo.list_all() == []
    assert ledger.dispatcher.sent == []


@pytest.mark.parametrize("actor", [CUSTOMER, CONSULTANT])
def test_create_requires_staff(ledger: LedgerFixture, actor: Actor) -> None:
    with pytest.raises(UnauthorizedError):
        ledger.store.create(_create_input(), actor)

    assert ledger.balance_repo.list_all() == []


def test_create_draws_new_number_when_insert_collides() -> None:
    ledger = build_ledger_fixture(random_values=[1, 2])
    ledger.balance_repo.taken_on_insert.add("BAL00000001")

    balance = ledger.store.create(_create_input(), STAFF)

    assert balance.id == "BAL00000002"


def test_create_raises_generation_exhausted_after_ceiling() -> None:
    ledger = build_ledger_fixture(
        random_values=[1, 1],
        config=LedgerConfig(max_generation_attempts=2),
    )
    ledger.balance_repo.add(build_balance(balance_id="BAL00000001"))

    with pytest.raises(GenerationExhaustedError):
        ledger.store.create(_create_input(), STAFF)

    assert len(ledger.balance_repo.list_all()) == 1


def test_create_requests_expiry_warning_when_expiring_soon(ledger: LedgerFixture) -> None:
    data = _create_input()
    data.expiry_date = BASE_TIME + timedelta(days=3)

    ledger.store.create(data, STAFF)

    assert ledger.dispatcher.templates() == ["balance-created", "balance-expiring"]
    _, _, template_data = ledger.dispatcher.sent[1]
    assert template_data["days_until_expiry"] == 3


def test_create_succeeds_even_when_notification_fails(ledger: LedgerFixture) -> None:
    ledger.dispatcher.fail = True

    balance = ledger.store.create(_create_input(), STAFF)

    assert ledger.balance_repo.find_by_id(balance.id) is not None


# -------- log_transaction --------


def test_sequential_debits_accumulate(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance(initial_amount=5.0))

    first = ledger.store.log_transaction("BAL00000001", _entry(2.0), STAFF)
    second = ledger.store.log_transaction("BAL00000001", _entry(2.0), STAFF)

    assert (first, second) == (3.0, 1.0)
    balance = ledger.balance_repo.find_by_id("BAL00000001")
    assert balance is not None
    assert balance.current_amount == 1.0
    assert balance.version == 2
    transactions = ledger.transaction_repo.list_by_balance("BAL00000001")
    assert len(transactions) == 2
    assert all(tx.created_by == STAFF.actor_id for tx in transactions)
    assert all(tx.customer_id == CUSTOMER.actor_id for tx in transactions)
    assert all(tx.corrected is False for tx in transactions)


def test_insufficient_hours_leaves_balance_and_history_untouched(
    ledger: LedgerFixture,
) -> None:
    ledger.balance_repo.add(build_balance(initial_amount=10.0, current_amount=1.0))

    with pytest.raises(InsufficientFundsError):
        ledger.store.log_transaction("BAL00000001", _entry(2.0), STAFF)

    balance = ledger.balance_repo.find_by_id("BAL00000001")
    assert balance is not None and balance.current_amount == 1.0
    assert ledger.transaction_repo.all() == []
    assert ledger.unit_of_work.runs == 0


def test_credits_balance_may_go_negative(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(
        build_balance(kind=BalanceKind.CREDITS, initial_amount=10.0, current_amount=1.0)
    )

    assert ledger.store.log_transaction("BAL00000001", _entry(2.0), STAFF) == -1.0


@pytest.mark.parametrize("amount", [0.5, 2.0, 30.0])
def test_inactive_balance_rejects_any_amount(ledger: LedgerFixture, amount: float) -> None:
    ledger.balance_repo.add(build_balance(status=BalanceStatus.INACTIVE))

    with pytest.raises(InactiveBalanceError):
        ledger.store.log_transaction("BAL00000001", _entry(amount), STAFF)

    assert ledger.transaction_repo.all() == []


def test_log_transaction_on_missing_balance(ledger: LedgerFixture) -> None:
    with pytest.raises(NotFoundError):
        ledger.store.log_transaction("BAL00000404", _entry(1.0), STAFF)


def test_log_transaction_requires_staff(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance())

    with pytest.raises(UnauthorizedError):
        ledger.store.log_transaction("BAL00000001", _entry(1.0), CUSTOMER)


def test_failed_insert_rolls_back_balance_decrement(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance(initial_amount=10.0))
    ledger.transaction_repo.fail_on_insert = OperationFailure("write conflict")

    with pytest.raises(PersistenceFailureError) as exc_info:
        ledger.store.log_transaction("BAL00000001", _entry(2.0), STAFF)

    assert exc_info.value.retryable is True
    balance = ledger.balance_repo.find_by_id("BAL00000001")
    assert balance is not None
    assert balance.current_amount == 10.0
    assert balance.version == 0
    assert ledger.transaction_repo.all() == []
    assert ledger.unit_of_work.rollbacks == 1


def test_concurrent_debits_do_not_lose_updates(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance(initial_amount=10.0))
    # 두 요청이 모두 version 0 / 10 시간을 읽은 뒤 커밋하도록 맞춘다.
    ledger.balance_repo.read_barrier = threading.Barrier(2)

    results: list[float] = []
    errors: list[Exception] = []

    def _debit() -> None:
        try:
            results.append(
                ledger.store.log_transaction("BAL00000001", _entry(4.0), STAFF)
            )
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=_debit) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert errors == []
    assert sorted(results) == [2.0, 6.0]
    balance = ledger.balance_repo.find_by_id("BAL00000001")
    assert balance is not None
    assert balance.current_amount == 2.0
    assert balance.version == 2
    assert len(ledger.transaction_repo.all()) == 2
    # 한 번은 version 충돌로 다시 시도했다.
    assert ledger.unit_of_work.runs == 3


def test_conflicts_past_ceiling_surface_as_persistence_failure() -> None:
    ledger = build_ledger_fixture(config=LedgerConfig(max_commit_attempts=3))
    ledger.balance_repo.add(build_balance())
    ledger.balance_repo.update_amount_if_version = (  # type: ignore[method-assign]
        lambda *args, **kwargs: False
    )

    with pytest.raises(PersistenceFailureError):
        ledger.store.log_transaction("BAL00000001", _entry(1.0), STAFF)

    assert ledger.unit_of_work.runs == 3
    assert ledger.transaction_repo.all() == []


def test_log_transaction_notifies_time_logged_and_low_balance(
    ledger: LedgerFixture,
) -> None:
    ledger.balance_repo.add(build_balance(initial_amount=10.0, current_amount=4.0))

    ledger.store.log_transaction("BAL00000001", _entry(2.0), STAFF)

    assert ledger.dispatcher.templates() == ["time-logged", "low-balance"]
    recipient, _, data = ledger.dispatcher.sent[0]
    assert recipient == CUSTOMER.actor_id
    assert data["balance_number"] == "BAL-00000001"
    assert data["current_amount"] == 2.0


def test_log_transaction_publishes_updated_balance(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance(initial_amount=10.0))
    changes = _record_changes(ledger)

    ledger.store.log_transaction("BAL00000001", _entry(2.5), STAFF)

    assert len(changes) == 1
    assert changes[0].balance is not None
    assert changes[0].balance.current_amount == 7.5
    assert changes[0].version == 1


# -------- update / delete / toggle --------


def test_update_merges_only_given_fields(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance(initial_amount=10.0, current_amount=7.0))

    updated = ledger.store.update(
        "BAL00000001", BalanceUpdate(notes="연장 계약"), STAFF
    )

    assert updated.notes == "연장 계약"
    assert updated.status == BalanceStatus.ACTIVE
    assert updated.kind == BalanceKind.HOURS
    assert updated.initial_amount == 10.0
    assert updated.current_amount == 7.0
    assert updated.version == 1


def test_update_missing_balance(ledger: LedgerFixture) -> None:
    with pytest.raises(NotFoundError):
        ledger.store.update("BAL00000404", BalanceUpdate(notes="x"), STAFF)


def test_deactivate_and_reactivate(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance())

    inactive = ledger.store.deactivate("BAL00000001", STAFF)
    assert inactive.status == BalanceStatus.INACTIVE
    with pytest.raises(InactiveBalanceError):
        ledger.store.log_transaction("BAL00000001", _entry(1.0), STAFF)

    active = ledger.store.reactivate("BAL00000001", STAFF)
    assert active.status == BalanceStatus.ACTIVE
    assert ledger.store.log_transaction("BAL00000001", _entry(1.0), STAFF) == 9.0


def test_delete_keeps_transactions(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance())
    ledger.store.log_transaction("BAL00000001", _entry(1.0), STAFF)
    changes = _record_changes(ledger)

    ledger.store.delete("BAL00000001", STAFF)

    assert ledger.balance_repo.find_by_id("BAL00000001") is None
    assert len(ledger.transaction_repo.list_by_balance("BAL00000001")) == 1
    assert [c.kind for c in changes] == [ChangeKind.DELETED]
    with pytest.raises(NotFoundError):
        ledger.store.delete("BAL00000001", STAFF)


def test_delete_tombstone_carries_removed_version(
    ledger: LedgerFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    ledger.balance_repo.add(build_balance())
    view = BalanceView()
    view.reset(ledger.balance_repo.list_all())
    ledger.feed.subscribe(view.apply)

    # 다른 인스턴스의 update 가 delete 직전에 커밋된다.
    late_updates: list[Balance] = []
    original_delete = ledger.balance_repo.delete

    def delete_after_concurrent_update(balance_id: str) -> Balance | None:
        updated = ledger.balance_repo.update_fields(
            balance_id, {"notes": "동시 수정"}, BASE_TIME + timedelta(seconds=30)
        )
        assert updated is not None
        late_updates.append(updated)
        return original_delete(balance_id)

    monkeypatch.setattr(ledger.balance_repo, "delete", delete_after_concurrent_update)

    ledger.store.delete("BAL00000001", STAFF)

    assert view.get("BAL00000001") is None
    assert late_updates[0].version == 1
    assert not view.apply(BalanceChange.upserted(late_updates[0], origin="ledger-b"))
    assert view.get("BAL00000001") is None


def test_delete_requires_staff(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance())

    with pytest.raises(UnauthorizedError):
        ledger.store.delete("BAL00000001", CUSTOMER)

    assert ledger.balance_repo.find_by_id("BAL00000001") is not None


# -------- 조회 범위 --------


def test_balances_are_scoped_by_role(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance(balance_id="BAL00000001"))
    ledger.balance_repo.add(
        build_balance(balance_id="BAL00000002", customer_id=OTHER_CUSTOMER.actor_id)
    )

    staff_ids = {b.id for b in ledger.store.get_balances_for_actor(STAFF)}
    customer_ids = {b.id for b in ledger.store.get_balances_for_actor(CUSTOMER)}

    assert staff_ids == {"BAL00000001", "BAL00000002"}
    assert customer_ids == {"BAL00000001"}
    assert ledger.store.get_balances_for_actor(CONSULTANT) == []


def test_get_balance_hides_other_customers_balance(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance())

    assert ledger.store.get_balance("BAL00000001", CUSTOMER).id == "BAL00000001"
    with pytest.raises(NotFoundError):
        ledger.store.get_balance("BAL00000001", OTHER_CUSTOMER)


# -------- open / close --------


def test_open_tracks_committed_changes_until_closed(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance(balance_id="BAL00000001"))
    ledger.balance_repo.add(
        build_balance(balance_id="BAL00000002", customer_id=OTHER_CUSTOMER.actor_id)
    )
    customer_view = LedgerStore(
        ledger.balance_repo,
        ledger.transaction_repo,
        ledger.unit_of_work,
        feed=ledger.feed,
        notifier=LedgerNotifier(
            ledger.dispatcher, expiry_warning_days=14, clock=ledger.clock
        ),
        config=ledger.config,
        clock=ledger.clock,
    )

    with customer_view.open(CUSTOMER) as store:
        assert [b.id for b in store.balances] == ["BAL00000001"]

        ledger.store.log_transaction("BAL00000001", _entry(3.0), STAFF)
        ledger.store.log_transaction("BAL00000002", _entry(1.0), STAFF)

        assert [b.current_amount for b in store.balances] == [7.0]
        assert ledger.feed.subscriber_count == 1

    assert ledger.feed.subscriber_count == 0
    assert customer_view.balances == []
    assert customer_view.is_open is False


def test_open_twice_is_rejected(ledger: LedgerFixture) -> None:
    ledger.store.open(STAFF)
    try:
        with pytest.raises(RuntimeError):
            ledger.store.open(STAFF)
    finally:
        ledger.store.close()


def test_list_failure_surfaces_as_persistence_failure(ledger: LedgerFixture) -> None:
    def _boom() -> list:  # type: ignore[type-arg]
        raise OperationFailure("node is recovering")

    ledger.balance_repo.list_all = _boom  # type: ignore[method-assign]

    with pytest.raises(PersistenceFailureError):
        ledger.store.get_balances_for_actor(STAFF)
    with pytest.raises(PersistenceFailureError):
        ledger.store.open(STAFF)
    assert ledger.feed.subscriber_count == 0
