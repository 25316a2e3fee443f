# seatshare/core/bookings/__init__.py
"""
Домен бронирований.
Модели, расчёт стоимости, жизненный цикл и сценарии бронирования.
"""

from seatshare.core.bookings.models import Booking, DriverBookings, FareBreakdown
from seatshare.core.bookings.fares import FareCalculator
from seatshare.core.bookings.state_machine import BookingStateMachine
from seatshare.core.bookings.repository import BookingRepository
from seatshare.core.bookings.service import BookingService
from seatshare.core.bookings.orchestrator import BookingOrchestrator

__all__ = [
    "Booking",
    "DriverBookings",
    "FareBreakdown",
    "FareCalculator",
    "BookingStateMachine",
    "BookingRepository",
    "BookingService",
    "BookingOrchestrator",
]
