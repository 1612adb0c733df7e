from __future__ import annotations

from .core import Topic


TOPIC_LEDGER = Topic("ticktalk.ledger")
TOPIC_NOTIFICATION = Topic("ticktalk.notification")
