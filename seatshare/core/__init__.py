# seatshare/core/__init__.py
"""
Доменный слой.
Бизнес-логика мест, бронирований и маршрутов поверх репозиториев.
"""

from seatshare.core.routes import RouteService, SeatLedger
from seatshare.core.bookings import BookingOrchestrator, BookingService
from seatshare.core.locations import LocationTracker
from seatshare.core.directory import RouteDirectory
from seatshare.core.realtime import ChangeFeedSubscriber, LiveFeeds

__all__ = [
    "RouteService",
    "SeatLedger",
    "BookingOrchestrator",
    "BookingService",
    "LocationTracker",
    "RouteDirectory",
    "ChangeFeedSubscriber",
    "LiveFeeds",
]
