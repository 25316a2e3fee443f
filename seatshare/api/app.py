# seatshare/api/app.py
"""
FastAPI приложение seatshare.

REST endpoints под /api/v1, WebSocket endpoints живых представлений,
GET /health: проверка PostgreSQL, Redis и RabbitMQ.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from seatshare.api.container import ServiceContainer, build_container
from seatshare.api.errors import OperationFailed, operation_failed_handler
from seatshare.api.realtime import router as realtime_router
from seatshare.api.routes import router
from seatshare.api.schemas import HealthStatus
from seatshare.common.logger import log_info
from seatshare.config import settings
from seatshare.infra.database import close_db, get_db, init_db
from seatshare.infra.event_bus import close_event_bus, get_event_bus, init_event_bus
from seatshare.infra.redis_client import close_redis, get_redis, init_redis


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """
    Создаёт приложение.

    Args:
        container: Готовый контейнер зависимостей. Если передан,
            подключения к инфраструктуре не открываются.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if container is not None:
            app.state.container = container
            yield
            return

        await init_db()
        await init_redis()
        await init_event_bus()
        app.state.container = build_container()
        await log_info(f"{settings.system.PROJECT_NAME} API запущен")
        try:
            yield
        finally:
            await close_event_bus()
            await close_redis()
            await close_db()
            await log_info(f"{settings.system.PROJECT_NAME} API остановлен")

    app = FastAPI(
        title="seatshare",
        description="Места в совместных поездках: бронирования и живые обновления.",
        version=settings.system.VERSION,
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    app.add_exception_handler(OperationFailed, operation_failed_handler)
    app.include_router(router, prefix=settings.api.API_PREFIX)
    app.include_router(realtime_router)

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        """Проверка здоровья сервиса."""
        if container is not None:
            checks: dict[str, bool] = {}
        else:
            checks = {
                "postgres": await get_db().health_check(),
                "redis": await get_redis().health_check(),
                "rabbitmq": await get_event_bus().health_check(),
            }
        return HealthStatus(
            status="healthy" if all(checks.values()) else "degraded",
            service=settings.system.PROJECT_NAME,
            version=settings.system.VERSION,
            checks=checks,
        )

    return app
