"""알림 발송 요청 이벤트 정의."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Self


class NotificationEventType:
    """알림 이벤트 타입 상수."""

    NOTIFICATION_REQUESTED = "notification.requested"


@dataclass(slots=True)
class NotificationRequestedEvent:
    """알림 발송 요청 이벤트.

    실제 이메일 발송은 알림 워커가 담당하며, 원장은 (수신자, 템플릿, 데이터)만 전달한다.
    """

    id: str
    type: str
    timestamp: str
    source: str
    version: str
    recipient: str
    template: str
    template_data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            timestamp=str(data["timestamp"]),
            source=str(data["source"]),
            version=str(data.get("version", "1.0")),
            recipient=str(data["recipient"]),
            template=str(data["template"]),
            template_data=dict(data.get("template_data") or {}),
        )
