from __future__ import annotations

from ledger_service.app.services.balance_feed import (
    BalanceChange,
    BalanceFeed,
    BalanceView,
)
from ledger_service.tests.fakes import CUSTOMER, OTHER_CUSTOMER, build_balance


def test_cancelled_subscription_stops_receiving() -> None:
    feed = BalanceFeed(source_id="ledger-a")
    received: list[BalanceChange] = []
    subscription = feed.subscribe(received.append)

    feed.publish(BalanceChange.upserted(build_balance()))
    subscription.cancel()
    subscription.cancel()
    feed.publish(BalanceChange.upserted(build_balance(version=1)))

    assert len(received) == 1
    assert subscription.active is False
    assert feed.subscriber_count == 0


def test_subscription_as_context_manager() -> None:
    feed = BalanceFeed()
    with feed.subscribe(lambda _change: None):
        assert feed.subscriber_count == 1
    assert feed.subscriber_count == 0


def test_failing_listener_does_not_block_others() -> None:
    feed = BalanceFeed()
    received: list[BalanceChange] = []

    def _broken(_change: BalanceChange) -> None:
        raise RuntimeError("listener bug")

    feed.subscribe(_broken)
    feed.subscribe(received.append)

    feed.publish(BalanceChange.upserted(build_balance()))

    assert len(received) == 1


def test_feed_generates_source_id_when_missing() -> None:
    assert BalanceFeed().source_id != BalanceFeed().source_id


def test_view_keeps_newest_version() -> None:
    view = BalanceView()

    assert view.apply(BalanceChange.upserted(build_balance(current_amount=8.0, version=2)))
    # 늦게 도착한 이전 버전과 같은 버전 재수신은 무시된다.
    assert not view.apply(BalanceChange.upserted(build_balance(current_amount=9.0, version=1)))
    assert not view.apply(BalanceChange.upserted(build_balance(current_amount=8.0, version=2)))

    current = view.get("BAL00000001")
    assert current is not None and current.current_amount == 8.0


def test_view_tombstone_blocks_stale_upsert() -> None:
    view = BalanceView()
    balance = build_balance(version=3)
    view.apply(BalanceChange.upserted(balance))

    assert view.apply(BalanceChange.deleted(balance))
    assert not view.apply(BalanceChange.upserted(build_balance(version=2)))
    assert view.get("BAL00000001") is None
    assert len(view) == 0


def test_view_filters_invisible_balances() -> None:
    view = BalanceView(visible=lambda b: b.customer_id == CUSTOMER.actor_id)

    view.apply(BalanceChange.upserted(build_balance(balance_id="BAL00000001")))
    view.apply(
        BalanceChange.upserted(
            build_balance(balance_id="BAL00000002", customer_id=OTHER_CUSTOMER.actor_id)
        )
    )

    assert [b.id for b in view.list()] == ["BAL00000001"]


def test_view_reset_replaces_contents() -> None:
    view = BalanceView()
    view.apply(BalanceChange.upserted(build_balance(balance_id="BAL00000001")))

    view.reset([build_balance(balance_id="BAL00000002")])

    assert [b.id for b in view.list()] == ["BAL00000002"]
