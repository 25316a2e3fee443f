# seatshare/api/container.py
"""
Контейнер зависимостей API: репозитории и транспорт, общие для всех запросов.
Сервисы с текущим пользователем собираются на каждый запрос.
"""

from __future__ import annotations

from dataclasses import dataclass

from seatshare.core.bookings.fares import FareCalculator
from seatshare.core.bookings.repository import BookingRepository
from seatshare.core.locations.repository import LocationRepository
from seatshare.core.routes.repository import RouteRepository
from seatshare.core.users.repository import UserRepository
from seatshare.infra.change_feed import ChangeFeed
from seatshare.infra.database import get_db
from seatshare.infra.event_bus import EventBus, get_event_bus
from seatshare.infra.redis_client import get_redis


@dataclass
class ServiceContainer:
    users: UserRepository
    routes: RouteRepository
    bookings: BookingRepository
    locations: LocationRepository
    feed: ChangeFeed
    fares: FareCalculator
    event_bus: EventBus | None = None


def build_container() -> ServiceContainer:
    """Собирает контейнер поверх подключённых PostgreSQL, Redis и RabbitMQ."""
    db = get_db()
    feed = ChangeFeed(get_redis())
    return ServiceContainer(
        users=UserRepository(db),
        routes=RouteRepository(db, feed),
        bookings=BookingRepository(db, feed),
        locations=LocationRepository(db, feed),
        feed=feed,
        fares=FareCalculator(),
        event_bus=get_event_bus(),
    )
