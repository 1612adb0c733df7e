from __future__ import annotations

from datetime import timedelta

import pytest

from ledger_service.app.exceptions import (
    LedgerValidationError,
    NotFoundError,
    UnauthorizedError,
)
from ledger_service.app.models.transaction import TransactionEntry
from ledger_service.tests.fakes import (
    BASE_TIME,
    CONSULTANT,
    CUSTOMER,
    OTHER_CUSTOMER,
    STAFF,
    LedgerFixture,
    build_balance,
)


def _log(ledger: LedgerFixture, amount: float, *, days_ago: int = 0, title: str = "작업") -> None:
    ledger.store.log_transaction(
        "BAL00000001",
        TransactionEntry(
            title=title,
            amount=amount,
            service_date=BASE_TIME - timedelta(days=days_ago),
        ),
        STAFF,
    )


def _tx_id(counter: int) -> str:
    return f"{counter:024x}"


def test_list_orders_by_service_date_then_newest_id(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance(initial_amount=20.0))
    _log(ledger, 1.0, days_ago=2, title="first")
    _log(ledger, 1.0, days_ago=0, title="second")
    _log(ledger, 1.0, days_ago=1, title="third")
    _log(ledger, 1.0, days_ago=0, title="fourth")

    items = ledger.history.list("BAL00000001", STAFF)

    assert [tx.title for tx in items] == ["fourth", "second", "third", "first"]


def test_customer_sees_own_history_only(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance())
    _log(ledger, 1.0)

    assert len(ledger.history.list("BAL00000001", CUSTOMER)) == 1
    with pytest.raises(NotFoundError):
        ledger.history.list("BAL00000001", OTHER_CUSTOMER)
    with pytest.raises(NotFoundError):
        ledger.history.list("BAL00000001", CONSULTANT)


def test_history_survives_balance_delete(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance())
    _log(ledger, 1.0)
    _log(ledger, 2.0)
    ledger.store.delete("BAL00000001", STAFF)

    assert len(ledger.history.list("BAL00000001", STAFF)) == 2
    assert len(ledger.history.list("BAL00000001", CUSTOMER)) == 2
    assert ledger.history.list("BAL00000001", OTHER_CUSTOMER) == []


def test_list_for_customer_is_scoped(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance())
    _log(ledger, 1.0)

    assert len(ledger.history.list_for_customer(CUSTOMER.actor_id, STAFF)) == 1
    assert len(ledger.history.list_for_customer(CUSTOMER.actor_id, CUSTOMER)) == 1
    with pytest.raises(UnauthorizedError):
        ledger.history.list_for_customer(CUSTOMER.actor_id, OTHER_CUSTOMER)


def test_correct_changes_amount_without_touching_balance(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance(initial_amount=10.0))
    _log(ledger, 2.0)
    ledger.clock.advance(60)

    corrected = ledger.history.correct(_tx_id(1), 3.0, STAFF)

    assert corrected.amount == 3.0
    assert corrected.corrected is True
    assert corrected.updated_at == BASE_TIME + timedelta(seconds=60)
    assert corrected.created_by == STAFF.actor_id
    balance = ledger.balance_repo.find_by_id("BAL00000001")
    assert balance is not None and balance.current_amount == 8.0


def test_drift_reports_difference_after_correction(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance(initial_amount=10.0))
    _log(ledger, 2.0)
    _log(ledger, 1.5)

    before = ledger.history.drift("BAL00000001", STAFF)
    assert before.transaction_count == 2
    assert before.transaction_total == 3.5
    assert before.drift == 0.0

    ledger.history.correct(_tx_id(1), 3.0, STAFF)
    after = ledger.history.drift("BAL00000001", CUSTOMER)

    assert after.current_amount == 6.5
    assert after.transaction_total == 4.5
    assert after.drift == -1.0


def test_drift_hides_other_customers_balance(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance())

    with pytest.raises(NotFoundError):
        ledger.history.drift("BAL00000001", OTHER_CUSTOMER)


@pytest.mark.parametrize("amount", [0.05, 24.5])
def test_correct_rejects_amount_out_of_bounds(ledger: LedgerFixture, amount: float) -> None:
    ledger.balance_repo.add(build_balance())
    _log(ledger, 1.0)

    with pytest.raises(LedgerValidationError):
        ledger.history.correct(_tx_id(1), amount, STAFF)

    assert ledger.transaction_repo.find_by_id(_tx_id(1)).amount == 1.0  # type: ignore[union-attr]


def test_correct_requires_staff(ledger: LedgerFixture) -> None:
    ledger.balance_repo.add(build_balance())
    _log(ledger, 1.0)

    with pytest.raises(UnauthorizedError):
        ledger.history.correct(_tx_id(1), 2.0, CUSTOMER)


def test_correct_missing_transaction(ledger: LedgerFixture) -> None:
    with pytest.raises(NotFoundError):
        ledger.history.correct(_tx_id(99), 2.0, STAFF)
