# seatshare/core/routes/__init__.py
"""
Домен маршрутов.
Маршруты водителей, учёт свободных мест и жизненный цикл маршрута.
"""

from seatshare.core.routes.models import Route, RouteBooking, RouteCreateDTO
from seatshare.core.routes.repository import RouteRepository
from seatshare.core.routes.ledger import SeatLedger
from seatshare.core.routes.state_machine import RouteStateMachine
from seatshare.core.routes.service import RouteService

__all__ = [
    "Route",
    "RouteBooking",
    "RouteCreateDTO",
    "RouteRepository",
    "SeatLedger",
    "RouteStateMachine",
    "RouteService",
]
