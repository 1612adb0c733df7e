from __future__ import annotations

import pytest

from common.eventbus.core import Event
from common.eventbus.topics import TOPIC_LEDGER
from common.events.ledger import LedgerEventType
from ledger_service.app.event_handlers import balance_events_consumer
from ledger_service.app.services.balance_events import (
    BalanceChangeForwarder,
    change_from_payload,
)
from ledger_service.app.services.balance_feed import (
    BalanceChange,
    BalanceFeed,
    ChangeKind,
)
from ledger_service.tests.fakes import build_balance


class FakeKafkaEventBus:
    instances: list["FakeKafkaEventBus"] = []
    next_event: Event | None = None

    def __init__(self, brokers: str = "kafka:9092") -> None:
        self.brokers = brokers
        self.published: list[tuple[str, Event]] = []
        self.subscribe_calls: list[dict] = []
        self.closed = False
        self.raise_on_publish: Exception | None = None
        self.__class__.instances.append(self)

    def subscribe(self, *, group_id, topic, handler, stop_flag) -> None:
        self.subscribe_calls.append(
            {
                "group_id": group_id,
                "topic": topic,
                "handler": handler,
                "stop_flag": stop_flag,
            }
        )
        if self.__class__.next_event is not None:
            handler(self.__class__.next_event)

    def publish(self, topic: str, event: Event) -> None:
        if self.raise_on_publish is not None:
            raise self.raise_on_publish
        self.published.append((topic, event))

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def reset_fake_kafka_event_bus_state() -> None:
    FakeKafkaEventBus.instances = []
    FakeKafkaEventBus.next_event = None


def _run_consumer_once(
    monkeypatch: pytest.MonkeyPatch, *, event: Event, feed: BalanceFeed
) -> tuple[FakeKafkaEventBus, list[bool]]:
    FakeKafkaEventBus.next_event = event
    monkeypatch.setattr(balance_events_consumer, "get_brokers", lambda: "kafka:9092")
    monkeypatch.setattr(balance_events_consumer, "get_group_id", lambda: "ledger-group")
    monkeypatch.setattr(balance_events_consumer, "KafkaEventBus", FakeKafkaEventBus)

    stop_flag = [False]
    balance_events_consumer.run_balance_events_consumer(stop_flag, feed)

    assert len(FakeKafkaEventBus.instances) == 1
    return FakeKafkaEventBus.instances[0], stop_flag


def _forwarded_payload(change: BalanceChange, *, source: str) -> dict:
    bus = FakeKafkaEventBus()
    feed = BalanceFeed(source_id=source)
    BalanceChangeForwarder(bus, feed)(change)
    assert len(bus.published) == 1
    return bus.published[0][1].payload


# -------- forwarder --------


def test_forwarder_publishes_local_changes_only() -> None:
    bus = FakeKafkaEventBus()
    feed = BalanceFeed(source_id="ledger-a")
    BalanceChangeForwarder(bus, feed).attach()

    feed.publish(BalanceChange.upserted(build_balance(), origin="ledger-a"))
    feed.publish(BalanceChange.upserted(build_balance(version=1), origin="ledger-b"))
    feed.publish(BalanceChange.upserted(build_balance(version=2)))

    assert len(bus.published) == 1
    topic, event = bus.published[0]
    assert topic == TOPIC_LEDGER.base
    assert event.id == event.payload["id"]
    assert event.payload["type"] == LedgerEventType.BALANCE_UPSERTED
    assert event.payload["source"] == "ledger-a"
    assert event.payload["balance_id"] == "BAL00000001"
    assert event.payload["balance_version"] == 0


def test_forwarder_swallows_publish_failure() -> None:
    bus = FakeKafkaEventBus()
    bus.raise_on_publish = RuntimeError("broker down")
    feed = BalanceFeed(source_id="ledger-a")
    BalanceChangeForwarder(bus, feed).attach()

    feed.publish(BalanceChange.upserted(build_balance(), origin="ledger-a"))

    assert bus.published == []


def test_change_from_payload_restores_upsert() -> None:
    balance = build_balance(current_amount=6.5, version=4)
    payload = _forwarded_payload(
        BalanceChange.upserted(balance, origin="ledger-a"), source="ledger-a"
    )

    change = change_from_payload(payload)

    assert change is not None
    assert change.kind == ChangeKind.UPSERTED
    assert change.origin == "ledger-a"
    assert change.version == 4
    assert change.balance == balance


def test_change_from_payload_restores_delete_version() -> None:
    balance = build_balance(version=7)
    payload = _forwarded_payload(
        BalanceChange.deleted(balance, origin="ledger-a"), source="ledger-a"
    )

    change = change_from_payload(payload)

    assert change is not None
    assert change.kind == ChangeKind.DELETED
    assert change.version == 7
    assert change.balance is None


def test_change_from_payload_ignores_other_types() -> None:
    assert change_from_payload({"type": "notification.requested"}) is None


# -------- consumer --------


def test_consumer_publishes_remote_change_to_local_feed(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    payload = _forwarded_payload(
        BalanceChange.upserted(build_balance(version=2), origin="ledger-b"),
        source="ledger-b",
    )
    FakeKafkaEventBus.instances = []
    feed = BalanceFeed(source_id="ledger-a")
    received: list[BalanceChange] = []
    feed.subscribe(received.append)

    bus, stop_flag = _run_consumer_once(
        monkeypatch, event=Event(id="evt-1", payload=payload), feed=feed
    )

    assert len(received) == 1
    assert received[0].origin == "ledger-b"
    assert received[0].version == 2

    subscribe_call = bus.subscribe_calls[0]
    assert subscribe_call["group_id"] == "ledger-group.ledger-a"
    assert subscribe_call["topic"].base == TOPIC_LEDGER.base
    assert subscribe_call["stop_flag"] is stop_flag
    assert bus.closed is True


def test_consumer_skips_own_events(monkeypatch: pytest.MonkeyPatch) -> None:
    payload = _forwarded_payload(
        BalanceChange.upserted(build_balance(), origin="ledger-a"), source="ledger-a"
    )
    FakeKafkaEventBus.instances = []
    feed = BalanceFeed(source_id="ledger-a")
    received: list[BalanceChange] = []
    feed.subscribe(received.append)

    _run_consumer_once(monkeypatch, event=Event(id="evt-2", payload=payload), feed=feed)

    assert received == []


def test_consumer_ignores_payload_that_is_not_dict(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    feed = BalanceFeed(source_id="ledger-a")
    received: list[BalanceChange] = []
    feed.subscribe(received.append)

    _run_consumer_once(monkeypatch, event=Event(id="evt-3", payload="not-a-dict"), feed=feed)

    assert received == []


def test_consumer_raises_when_payload_schema_is_invalid(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    event = Event(
        id="evt-4",
        payload={"type": LedgerEventType.BALANCE_UPSERTED, "source": "ledger-b"},
    )

    with pytest.raises(KeyError):
        _run_consumer_once(monkeypatch, event=event, feed=BalanceFeed(source_id="ledger-a"))

    assert FakeKafkaEventBus.instances[0].closed is True
