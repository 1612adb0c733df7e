from __future__ import annotations

import logging
import os
import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI

from common.eventbus.config import is_kafka_configured
from common.eventbus.kafka import get_kafka_event_bus
from common.logger import setup_logger
from common.middleware.request_trace import RequestTraceMiddleware
from common.mongo.client import close_client

from .api.errors import register_exception_handlers
from .api.health import router as health_router
from .api.v1 import api_router
from .event_handlers.balance_events_consumer import run_balance_events_consumer
from .services.balance_events import BalanceChangeForwarder
from .services.balance_feed import BalanceFeed


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - framework hook
    """애플리케이션 생명주기 동안 잔액 피드와 Kafka 중계를 관리한다.

    - 로컬 커밋 -> ticktalk.ledger 발행 (BalanceChangeForwarder)
    - ticktalk.ledger 구독 -> 로컬 피드 (balance-events-consumer 스레드)
    Kafka 가 설정되지 않았으면 프로세스 내 피드만 동작한다.
    """

    feed: BalanceFeed = app.state.balance_feed

    if not is_kafka_configured():
        logger.warning("KAFKA_BOOTSTRAP_SERVERS not set; balance changes stay in-process")
        try:
            yield
        finally:
            close_client()
        return

    forwarder = BalanceChangeForwarder(get_kafka_event_bus(), feed).attach()

    stop_flag = [False]
    consumer_thread = threading.Thread(
        target=run_balance_events_consumer,
        args=(stop_flag, feed),
        name="balance-events-consumer",
        daemon=True,
    )
    consumer_thread.start()

    try:
        yield
    finally:
        stop_flag[0] = True
        consumer_thread.join(timeout=10.0)
        forwarder.cancel()
        get_kafka_event_bus().close()
        close_client()


def create_app() -> FastAPI:
    setup_logger(name="ledger-service")
    app = FastAPI(
        title="TickTalk Ledger Service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.balance_feed = BalanceFeed()

    # 공통 Request/Span ID 로그 미들웨어
    app.add_middleware(RequestTraceMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def main() -> None:
    import uvicorn

    port = int(os.getenv("LEDGER_SERVICE_PORT", "8003"))
    uvicorn.run(
        "ledger_service.app.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        access_log=False,
    )


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
