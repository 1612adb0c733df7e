"""API 스키마용 UTC datetime 타입.

- 요청: 타임존이 없는 값은 UTC 로 간주해 aware datetime 으로 받는다.
- 응답: 항상 UTC ISO8601(+00:00) 문자열로 내보낸다.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic.functional_serializers import PlainSerializer
from pydantic.functional_validators import AfterValidator


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def serialize_utc_iso8601(value: datetime) -> str:
    return as_utc(value).isoformat()


UtcDateTime = Annotated[
    datetime,
    AfterValidator(as_utc),
    PlainSerializer(serialize_utc_iso8601, return_type=str, when_used="json"),
]
