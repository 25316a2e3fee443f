# seatshare/infra/__init__.py
"""
Инфраструктурный слой.
Работа с внешними сервисами: PostgreSQL, Redis, RabbitMQ.
"""

from seatshare.infra.database import DatabaseManager, get_db
from seatshare.infra.redis_client import RedisClient, get_redis
from seatshare.infra.event_bus import DomainEvent, EventBus, EventTypes, get_event_bus
from seatshare.infra.change_feed import (
    ChangeAction,
    ChangeEvent,
    ChangeFeed,
    ChangeFeedError,
    ChangeFeedUnavailable,
    ChangeFilter,
    ChangeStream,
)

__all__ = [
    "DatabaseManager",
    "get_db",
    "RedisClient",
    "get_redis",
    "DomainEvent",
    "EventBus",
    "EventTypes",
    "get_event_bus",
    "ChangeAction",
    "ChangeEvent",
    "ChangeFeed",
    "ChangeFeedError",
    "ChangeFeedUnavailable",
    "ChangeFilter",
    "ChangeStream",
]
