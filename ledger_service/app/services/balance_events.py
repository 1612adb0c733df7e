"""BalanceFeed 와 Kafka(ticktalk.ledger) 사이의 변환/중계."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Mapping

from common.eventbus.core import EventPublisher
from common.eventbus.helpers import new_event_id, new_json_event, utc_timestamp
from common.eventbus.topics import TOPIC_LEDGER
from common.events.ledger import (
    BalanceDeletedEvent,
    BalanceUpsertedEvent,
    LedgerEventType,
)

from .balance_feed import BalanceChange, BalanceFeed, ChangeKind, Subscription
from ..models.balance import Balance


logger = logging.getLogger(__name__)


def change_to_event(change: BalanceChange, *, source: str) -> Any:
    """BalanceChange 를 Kafka 로 보낼 이벤트 dataclass 로 바꾼다."""

    if change.kind == ChangeKind.DELETED:
        return BalanceDeletedEvent(
            id=new_event_id(),
            type=LedgerEventType.BALANCE_DELETED,
            timestamp=utc_timestamp(),
            source=source,
            version="1.0",
            balance_id=change.balance_id,
            customer_id=change.customer_id,
            balance_version=change.version,
        )

    assert change.balance is not None
    return BalanceUpsertedEvent(
        id=new_event_id(),
        type=LedgerEventType.BALANCE_UPSERTED,
        timestamp=utc_timestamp(),
        source=source,
        version="1.0",
        balance_id=change.balance_id,
        customer_id=change.customer_id,
        balance_version=change.version,
        balance=change.balance.model_dump(mode="json"),
    )


def change_from_payload(payload: Mapping[str, Any]) -> BalanceChange | None:
    """Kafka 이벤트 payload 를 BalanceChange 로 복원한다. 원장 이벤트가 아니면 None."""

    event_type = str(payload.get("type", ""))
    if event_type == LedgerEventType.BALANCE_UPSERTED:
        upserted = BalanceUpsertedEvent.from_dict(payload)
        balance = Balance.model_validate(upserted.balance)
        return BalanceChange.upserted(balance, origin=upserted.source)
    if event_type == LedgerEventType.BALANCE_DELETED:
        deleted = BalanceDeletedEvent.from_dict(payload)
        return BalanceChange(
            kind=ChangeKind.DELETED,
            balance_id=deleted.balance_id,
            customer_id=deleted.customer_id,
            version=deleted.balance_version,
            origin=deleted.source,
        )
    return None


class BalanceChangeForwarder:
    """이 인스턴스에서 커밋된 변경만 Kafka 로 내보낸다.

    다른 인스턴스에서 받은 변경(origin 이 다름)은 다시 내보내지 않는다.
    """

    def __init__(self, event_bus: EventPublisher, feed: BalanceFeed) -> None:
        self._event_bus = event_bus
        self._feed = feed

    def attach(self) -> Subscription:
        return self._feed.subscribe(self)

    def __call__(self, change: BalanceChange) -> None:
        if change.origin != self._feed.source_id:
            return

        evt = change_to_event(change, source=self._feed.source_id)
        wrapped = new_json_event(payload=asdict(evt), event_id=evt.id)
        try:
            self._event_bus.publish(TOPIC_LEDGER.base, wrapped)
        except Exception:  # noqa: BLE001
            # 로컬 커밋과 피드는 이미 반영되었다. 다른 인스턴스는 다음 변경이나 재조회로 따라잡는다.
            logger.exception(
                "failed to publish balance change",
                extra={"balance_id": change.balance_id},
            )
            return
        logger.info(
            "published %s event id=%s", evt.type, evt.id, extra={"balance_id": change.balance_id}
        )
