"""원장 알림 요청.

알림 발송 자체는 외부 워커의 책임이다. 원장은 (수신자, 템플릿 이름, 템플릿 데이터)만
ticktalk.notification 토픽으로 발행하며, 발행 실패는 로그만 남기고 호출자에게 올리지 않는다.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Any, Callable, Protocol

from fastapi import Depends

from common.eventbus.config import is_kafka_configured
from common.eventbus.core import EventPublisher
from common.eventbus.helpers import new_event_id, new_json_event, utc_timestamp
from common.eventbus.kafka import get_kafka_event_bus
from common.eventbus.topics import TOPIC_NOTIFICATION
from common.events.notification import (
    NotificationEventType,
    NotificationRequestedEvent,
)
from common.mongo.types import ensure_utc_datetime

from .clock import utc_now
from .status import format_balance, format_balance_number, is_low_balance
from ..config import LedgerConfig, get_ledger_config
from ..models.balance import Balance
from ..models.transaction import Transaction


logger = logging.getLogger(__name__)


TEMPLATE_BALANCE_CREATED = "balance-created"
TEMPLATE_TIME_LOGGED = "time-logged"
TEMPLATE_LOW_BALANCE = "low-balance"
TEMPLATE_BALANCE_EXPIRING = "balance-expiring"


class NotificationDispatcher(Protocol):
    def dispatch(
        self, recipient: str, template: str, template_data: dict[str, Any]
    ) -> None:  # pragma: no cover - Protocol
        ...


class EventBusNotificationDispatcher:
    """NotificationRequested 이벤트를 Kafka 로 발행하는 dispatcher."""

    def __init__(self, event_bus: EventPublisher, *, source: str) -> None:
        self._event_bus = event_bus
        self._source = source

    def dispatch(
        self, recipient: str, template: str, template_data: dict[str, Any]
    ) -> None:
        event_id = new_event_id()
        evt = NotificationRequestedEvent(
            id=event_id,
            type=NotificationEventType.NOTIFICATION_REQUESTED,
            timestamp=utc_timestamp(),
            source=self._source,
            version="1.0",
            recipient=recipient,
            template=template,
            template_data=template_data,
        )
        wrapped = new_json_event(payload=asdict(evt), event_id=event_id)
        self._event_bus.publish(TOPIC_NOTIFICATION.base, wrapped)
        logger.info(
            "published NotificationRequested event id=%s template=%s", event_id, template
        )


class NullNotificationDispatcher:
    """Kafka 가 설정되지 않은 로컬 실행용. 요청을 로그로만 남긴다."""

    def dispatch(
        self, recipient: str, template: str, template_data: dict[str, Any]
    ) -> None:
        logger.debug("notification skipped: template=%s", template)


class LedgerNotifier:
    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        *,
        expiry_warning_days: int,
        clock: Callable[[], datetime],
    ) -> None:
        self._dispatcher = dispatcher
        self._expiry_warning = timedelta(days=expiry_warning_days)
        self._clock = clock

    def balance_created(self, balance: Balance) -> None:
        self._send(
            balance.customer_id,
            TEMPLATE_BALANCE_CREATED,
            self._balance_data(balance),
            balance_id=balance.id,
        )
        self._check_expiry(balance)

    def time_logged(self, balance: Balance, tx: Transaction) -> None:
        data = self._balance_data(balance)
        data.update(
            {
                "title": tx.title,
                "amount": tx.amount,
                "service_date": tx.service_date.isoformat(),
            }
        )
        self._send(balance.customer_id, TEMPLATE_TIME_LOGGED, data, balance_id=balance.id)

        if is_low_balance(balance):
            self._send(
                balance.customer_id,
                TEMPLATE_LOW_BALANCE,
                self._balance_data(balance),
                balance_id=balance.id,
            )
        self._check_expiry(balance)

    def expires_soon(self, balance: Balance) -> bool:
        if balance.expiry_date is None or not balance.is_active:
            return False
        now = self._clock()
        expiry = ensure_utc_datetime(balance.expiry_date)
        return now <= expiry <= now + self._expiry_warning

    def _check_expiry(self, balance: Balance) -> None:
        if not self.expires_soon(balance):
            return
        expiry = ensure_utc_datetime(balance.expiry_date)  # type: ignore[arg-type]
        data = self._balance_data(balance)
        data["expiry_date"] = expiry.isoformat()
        data["days_until_expiry"] = (expiry - self._clock()).days
        self._send(
            balance.customer_id, TEMPLATE_BALANCE_EXPIRING, data, balance_id=balance.id
        )

    @staticmethod
    def _balance_data(balance: Balance) -> dict[str, Any]:
        return {
            "balance_number": format_balance_number(balance.id),
            "kind": balance.kind.value,
            "initial_amount": balance.initial_amount,
            "current_amount": balance.current_amount,
            "display_amount": format_balance(balance.current_amount, balance.kind),
        }

    def _send(
        self,
        recipient: str,
        template: str,
        template_data: dict[str, Any],
        *,
        balance_id: str,
    ) -> None:
        try:
            self._dispatcher.dispatch(recipient, template, template_data)
        except Exception:  # noqa: BLE001
            # fire-and-forget: 알림 실패가 이미 커밋된 원장 작업을 실패시키면 안 된다.
            logger.exception(
                "failed to dispatch notification template=%s",
                template,
                extra={"balance_id": balance_id},
            )


def get_notification_dispatcher() -> NotificationDispatcher:
    if not is_kafka_configured():
        return NullNotificationDispatcher()
    return EventBusNotificationDispatcher(
        get_kafka_event_bus(), source=os.getenv("SERVICE_NAME", "ledger-service")
    )


def get_ledger_notifier(
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    config: LedgerConfig = Depends(get_ledger_config),
) -> LedgerNotifier:
    return LedgerNotifier(
        dispatcher,
        expiry_warning_days=config.expiry_warning_days,
        clock=utc_now,
    )
