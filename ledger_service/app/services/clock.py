from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """서비스 레이어 기본 clock. 테스트에서는 고정 시각을 돌려주는 callable 로 교체한다."""

    return datetime.now(timezone.utc)
