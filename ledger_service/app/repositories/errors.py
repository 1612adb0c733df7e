from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from pymongo.errors import PyMongoError

from ..exceptions import PersistenceFailureError


logger = logging.getLogger(__name__)


@contextmanager
def persistence_errors(operation: str) -> Iterator[None]:
    """pymongo 예외를 PersistenceFailureError 로 바꿔 서비스 레이어로 올린다."""

    try:
        yield
    except PyMongoError as exc:
        logger.error("mongo operation failed: %s (%s)", operation, exc)
        raise PersistenceFailureError(f"{operation} failed: {exc}") from exc
