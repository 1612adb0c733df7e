from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict
from typing import Any, Callable

from confluent_kafka import Consumer, KafkaError, Message, Producer

from .config import get_brokers, get_message_max_bytes
from .core import Event, MaxRetryExceededError, RetryDelays, Topic

logger = logging.getLogger(__name__)


class KafkaEventBus:
    """Kafka 기반 EventBus 구현.

    - publish: JSON 으로 직렬화해 비동기로 전송하고, 전송 실패는 delivery callback 에서 로그만 남긴다.
    - subscribe: 핸들러 실패 시 retry.N 토픽으로, 재시도 한도를 넘으면 DLQ 로 보낸다.
    """

    def __init__(self, brokers: str) -> None:
        producer_config: dict[str, Any] = {"bootstrap.servers": brokers}
        max_bytes = get_message_max_bytes()
        if max_bytes is not None:
            producer_config["message.max.bytes"] = max_bytes
        self._producer = Producer(producer_config)
        self._brokers = brokers

    def close(self) -> None:
        self._producer.flush()

    # 발행 -----------------------------------------------------------------
    def publish(self, topic: str, event: Event) -> None:
        payload = json.dumps(asdict(event), ensure_ascii=False, default=str).encode(
            "utf-8"
        )

        def _delivery_callback(err, msg) -> None:  # type: ignore[no-untyped-def]
            if err is not None:
                logger.error("failed to deliver message to %s: %s", msg.topic(), err)

        self._producer.produce(
            topic=topic,
            value=payload,
            key=event.id.encode("utf-8"),
            callback=_delivery_callback,
        )
        self._producer.poll(0)

    # 구독 -----------------------------------------------------------------
    def subscribe(
        self,
        group_id: str,
        topic: Topic,
        handler: Callable[[Event], None],
        *,
        poll_timeout: float = 0.1,
        stop_flag: list[bool] | None = None,
    ) -> None:
        consumer = Consumer(
            {
                "bootstrap.servers": self._brokers,
                "group.id": group_id,
                "auto.offset.reset": "latest",
                "enable.auto.commit": False,
            }
        )
        consumer.subscribe([topic.base])

        try:
            logger.info(
                "Kafka consumer started. group_id=%s topic=%s", group_id, topic.base
            )
            while not (stop_flag and stop_flag[0]):
                msg = consumer.poll(poll_timeout)
                if msg is None:
                    continue
                if msg.error():
                    if msg.error().code() != KafkaError._PARTITION_EOF:
                        logger.error("consumer error: %s", msg.error())
                    continue

                if self._dispatch(msg, topic, handler):
                    self._commit(consumer, msg)
        finally:
            consumer.close()

    # 내부 util -------------------------------------------------------------
    def _dispatch(
        self, msg: Message, topic: Topic, handler: Callable[[Event], None]
    ) -> bool:
        """메시지 하나를 처리한다. 오프셋을 커밋해도 되면 True 를 반환한다."""

        try:
            raw = json.loads(msg.value())
        except Exception as exc:  # noqa: BLE001
            logger.error("invalid event payload on topic %s: %s", msg.topic(), exc)
            return True

        evt = self._decode_event(raw)

        try:
            handler(evt)
        except Exception as exc:  # noqa: BLE001
            evt.last_error = str(exc)
            return self._route_failure(evt, topic, exc)
        return True

    def _route_failure(self, evt: Event, topic: Topic, exc: Exception) -> bool:
        next_retry = evt.retry + 1
        try:
            next_topic = topic.get_retry_topic(next_retry)
        except MaxRetryExceededError:
            next_topic = topic.dlq()
            logger.error(
                "event %s exceeded max retry, sending to DLQ %s: %s",
                evt.id,
                next_topic,
                exc,
            )
        else:
            evt.retry = next_retry
            logger.warning(
                "event %s failed, scheduling retry %d/%d to %s",
                evt.id,
                evt.retry,
                evt.max_retry,
                next_topic,
            )

        try:
            self.publish(next_topic, evt)
        except Exception as pub_exc:  # noqa: BLE001
            logger.error(
                "failed to publish event %s to %s: %s", evt.id, next_topic, pub_exc
            )
            return False  # 커밋하지 않음 -> 다시 처리 시도
        return True

    @staticmethod
    def _commit(consumer: Consumer, msg: Message) -> None:
        try:
            consumer.commit(message=msg, asynchronous=False)
        except Exception as exc:  # noqa: BLE001
            logger.error("offset commit error: %s", exc)

    @staticmethod
    def _decode_event(raw: dict) -> Event:
        return Event(
            id=str(raw.get("id", "")),
            payload=raw.get("payload"),
            retry=int(raw.get("retry", 0)),
            max_retry=int(raw.get("max_retry", 0)),
            last_error=raw.get("last_error"),
        )


_bus: KafkaEventBus | None = None
_bus_lock = threading.Lock()


def get_kafka_event_bus() -> KafkaEventBus:
    """프로세스 전역 발행용 KafkaEventBus 를 반환한다."""

    global _bus

    if _bus is not None:
        return _bus

    with _bus_lock:
        if _bus is None:
            _bus = KafkaEventBus(get_brokers())
        return _bus
