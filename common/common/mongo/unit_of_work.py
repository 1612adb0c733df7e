"""MongoDB 멀티 도큐먼트 트랜잭션을 감싸는 Unit of Work.

콜백 안에서 수행한 쓰기는 모두 커밋되거나 모두 롤백된다. 콜백에서 예외가 나면
트랜잭션을 abort 하고 예외를 그대로 호출자에게 전달한다.
일시적 오류(TransientTransactionError)는 pymongo 의 with_transaction 이 재시도한다.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol, TypeVar

from pymongo import MongoClient, ReadPreference
from pymongo.client_session import ClientSession
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern


logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnitOfWork(Protocol):
    """원자적 작업 단위 계약.

    callback 은 세션을 받아 같은 트랜잭션 안에서 리포지토리 쓰기를 수행한다.
    테스트용 구현은 세션 대신 None 을 넘길 수 있다.
    """

    def run(
        self, callback: Callable[[ClientSession | None], T]
    ) -> T:  # pragma: no cover - Protocol
        ...


class MongoUnitOfWork:
    """client session 트랜잭션 기반 UnitOfWork 구현체."""

    def __init__(self, client: MongoClient) -> None:
        self._client = client

    def run(self, callback: Callable[[ClientSession | None], T]) -> T:
        with self._client.start_session() as session:
            return session.with_transaction(
                callback,
                read_concern=ReadConcern("snapshot"),
                write_concern=WriteConcern("majority"),
                read_preference=ReadPreference.PRIMARY,
            )
