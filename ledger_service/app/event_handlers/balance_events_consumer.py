from __future__ import annotations

import logging
from typing import List

from common.eventbus.config import get_brokers, get_group_id
from common.eventbus.core import Event
from common.eventbus.kafka import KafkaEventBus
from common.eventbus.topics import TOPIC_LEDGER

from ..services.balance_events import change_from_payload
from ..services.balance_feed import BalanceFeed


logger = logging.getLogger(__name__)


def _handle_event(evt: Event, *, feed: BalanceFeed) -> None:
    payload = evt.payload
    if not isinstance(payload, dict):
        logger.error("unexpected payload type for event %s: %r", evt.id, type(payload))
        return

    if payload.get("source") == feed.source_id:
        # 이 인스턴스가 발행한 이벤트는 이미 로컬 피드에 반영되어 있다.
        return

    try:
        change = change_from_payload(payload)
    except Exception:  # noqa: BLE001
        logger.exception(
            "failed to decode ledger event id=%s payload=%r", payload.get("id"), payload
        )
        raise

    if change is None:
        logger.debug(
            "ignoring non-ledger event: type=%s id=%s", payload.get("type"), evt.id
        )
        return

    logger.info(
        "received remote balance change kind=%s",
        change.kind.value,
        extra={"balance_id": change.balance_id},
    )
    feed.publish(change)


def run_balance_events_consumer(stop_flag: List[bool], feed: BalanceFeed) -> None:
    """다른 인스턴스가 커밋한 잔액 변경을 로컬 BalanceFeed 로 흘려보낸다.

    - 모든 인스턴스가 모든 변경을 받아야 하므로 인스턴스마다 별도 consumer group 을 쓴다.
    - stop_flag[0] 이 True 가 되면 안전하게 루프를 종료한다.
    """
    logger.info("balance-events-consumer starting up")

    brokers = get_brokers()
    group_id = f"{get_group_id()}.{feed.source_id}"

    bus = KafkaEventBus(brokers)

    try:
        logger.info("subscribing to topic=%s group_id=%s", TOPIC_LEDGER.base, group_id)
        bus.subscribe(
            group_id=group_id,
            topic=TOPIC_LEDGER,
            handler=lambda evt: _handle_event(evt, feed=feed),
            stop_flag=stop_flag,
        )
    finally:
        bus.close()
        logger.info("balance-events-consumer stopped")
