"""트랜잭션 금액 단위(granularity) 규칙과 시간 표시 함수.

- 허용 간격은 0.25 단위이며 한 건당 최대 24 단위까지다.
- 최소 단위는 5분(0.083 시간)이다.
"""

from __future__ import annotations

import math


MIN_ENTRY_AMOUNT = 0.083
MAX_ENTRY_AMOUNT = 24.0
INTERVAL_STEP = 0.25

TIME_INTERVALS: tuple[float, ...] = tuple(
    round(INTERVAL_STEP * i, 2)
    for i in range(1, int(MAX_ENTRY_AMOUNT / INTERVAL_STEP) + 1)
)


def find_nearest_time_interval(hours: float) -> float:
    """가장 가까운 허용 간격을 반환한다. 거리가 같으면 작은 쪽을 고른다."""

    if hours < MIN_ENTRY_AMOUNT:
        return MIN_ENTRY_AMOUNT

    nearest = TIME_INTERVALS[0]
    for value in TIME_INTERVALS[1:]:
        if abs(value - hours) < abs(nearest - hours):
            nearest = value
    return nearest


def seconds_to_proposed_amount(seconds: int) -> float:
    """타이머 측정값(초)을 트랜잭션 금액 제안값으로 바꾼다."""

    return find_nearest_time_interval(max(seconds, 0) / 3600)


def format_duration(seconds: int) -> str:
    """초 단위 경과 시간을 HH:MM:SS 로 표시한다."""

    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_hours_to_time(hours: float) -> str:
    """1.5 -> "1h 30m", 0.25 -> "15m", 2 -> "2h"."""

    total_minutes = math.floor(hours * 60 + 0.5)
    whole_hours, minutes = divmod(total_minutes, 60)
    if whole_hours == 0:
        return f"{minutes}m"
    return f"{whole_hours}h {minutes}m" if minutes > 0 else f"{whole_hours}h"
