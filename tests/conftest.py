# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("RABBITMQ_PASSWORD", "guest")

from seatshare.common.constants import PaymentMethod
from seatshare.core.bookings.fares import FareCalculator
from seatshare.core.bookings.orchestrator import BookingOrchestrator
from seatshare.core.directory.service import RouteDirectory
from seatshare.core.locations.tracker import LocationTracker
from seatshare.core.routes.ledger import SeatLedger
from seatshare.core.users.identity import StaticIdentityProvider
from seatshare.infra.change_feed import ChangeFeed

from tests.fakes import (
    FakeBookingRepository,
    FakeLocationRepository,
    FakeRedis,
    FakeRouteRepository,
    FakeUserRepository,
    make_feed,
    make_route,
)


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "PROJECT_NAME": "seatshare_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_FORMAT": "colored",
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "seatshare_test",
        "DB_USER": "postgres",
        "DB_MIN_POOL_SIZE": 2,
        "DB_MAX_POOL_SIZE": 5,
        "DB_COMMAND_TIMEOUT": 30,
        "REDIS_HOST": "localhost",
        "REDIS_PORT": 6379,
        "REDIS_DB": 1,
        "REDIS_NAMESPACE": "seatshare_test",
        "REDIS_MAX_CONNECTIONS": 10,
        "RABBITMQ_HOST": "localhost",
        "RABBITMQ_PORT": 5672,
        "RABBITMQ_USER": "guest",
        "RABBITMQ_VHOST": "/",
        "RABBITMQ_EXCHANGE": "seatshare.test",
        "RABBITMQ_PREFETCH_COUNT": 5,
        "SERVICE_FEE_PERCENT": 10.0,
        "BOOKING_REF_PREFIX": "TS",
        "BOOKING_REF_LENGTH": 8,
        "CURRENCY": "EUR",
        "USER_ID_HEADER": "X-Test-User",
        "USER_RECORD_RETRY_ATTEMPTS": 2,
        "USER_RECORD_RETRY_DELAY": 0.01,
        "RESUBSCRIBE_ATTEMPTS": 3,
        "RESUBSCRIBE_DELAY": 0.1,
        "POLL_TIMEOUT": 0.5,
        "STREAM_BUFFER_SIZE": 10,
        "API_HOST": "127.0.0.1",
        "API_PORT": 9000,
        "API_PREFIX": "/api/v1",
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.publish = AsyncMock(return_value=1)
    redis.make_key = lambda key: f"test:{key}"
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=True)
    event_bus.is_connected = True
    return event_bus


# =============================================================================
# ХРАНИЛИЩА В ПАМЯТИ
# =============================================================================

@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def feed(fake_redis: FakeRedis) -> ChangeFeed:
    """Поток изменений поверх брокера в памяти."""
    return make_feed(fake_redis)


@pytest.fixture
def users() -> FakeUserRepository:
    repo = FakeUserRepository()
    repo.add_user("driver-1", "Ravi", phone="+919800000001", avg_rating=4.8, total_trips=42)
    repo.add_user("driver-2", "Meera")
    repo.add_user("passenger-1", "Asha", phone="+919800000002")
    repo.add_user("passenger-2", "Vikram", phone="+919800000003")
    repo.add_user("passenger-3", "Kiran", phone="+919800000004")
    repo.add_vehicle("vehicle-1", "driver-1")
    return repo


@pytest.fixture
def routes(feed: ChangeFeed) -> FakeRouteRepository:
    return FakeRouteRepository(feed)


@pytest.fixture
def bookings(feed: ChangeFeed) -> FakeBookingRepository:
    return FakeBookingRepository(feed)


@pytest.fixture
def locations(feed: ChangeFeed) -> FakeLocationRepository:
    return FakeLocationRepository(feed)


@pytest.fixture
def fares() -> FareCalculator:
    """Сбор 5%, как в конфигурации по умолчанию."""
    return FareCalculator(service_fee_percent=5.0, currency="INR")


@pytest.fixture
def ledger(routes: FakeRouteRepository) -> SeatLedger:
    return SeatLedger(routes)


@pytest.fixture
def route(routes: FakeRouteRepository):
    """Маршрут driver-1: 4 места по 500, все свободны."""
    return routes.add(make_route(vehicle_id="vehicle-1"))


@pytest.fixture
def directory(routes: FakeRouteRepository, bookings: FakeBookingRepository, users: FakeUserRepository) -> RouteDirectory:
    return RouteDirectory(routes, bookings, users)


@pytest.fixture
def tracker(locations: FakeLocationRepository) -> LocationTracker:
    return LocationTracker(locations)


@pytest.fixture
def orchestrator_for(
    bookings: FakeBookingRepository,
    routes: FakeRouteRepository,
    fares: FareCalculator,
    mock_event_bus: AsyncMock,
):
    """Фабрика сценариев от имени заданного пользователя."""

    def factory(user_id: str | None) -> BookingOrchestrator:
        return BookingOrchestrator(
            bookings,
            routes,
            StaticIdentityProvider(user_id),
            fares=fares,
            event_bus=mock_event_bus,
        )

    return factory


@pytest.fixture
def book(orchestrator_for):
    """Бронирует места от имени пассажира и возвращает бронирование."""

    async def _book(route_id: str, seats: int, passenger_id: str = "passenger-1"):
        result = await orchestrator_for(passenger_id).confirm_booking(route_id, seats, PaymentMethod.CASH)
        assert result.ok, result.error
        return result.value

    return _book
