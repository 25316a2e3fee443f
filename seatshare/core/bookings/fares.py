# seatshare/core/bookings/fares.py
"""
Расчёт стоимости бронирования.
"""

from __future__ import annotations

from seatshare.core.bookings.models import FareBreakdown


class FareCalculator:
    """
    Стоимость = цена за место × места, плюс сервисный сбор.
    Сбор считается в процентах от стоимости мест и отбрасывает дробную часть.
    """

    def __init__(self, service_fee_percent: float | None = None, currency: str | None = None) -> None:
        if service_fee_percent is None or currency is None:
            from seatshare.config import settings
            if service_fee_percent is None:
                service_fee_percent = settings.booking.SERVICE_FEE_PERCENT
            if currency is None:
                currency = settings.booking.CURRENCY
        if service_fee_percent < 0:
            raise ValueError("Service fee percent cannot be negative")
        self.service_fee_percent = service_fee_percent
        self.currency = currency

    def service_fee(self, total_fare: int) -> int:
        return int(total_fare * self.service_fee_percent / 100)

    def breakdown(self, fare_per_seat: int, seats: int) -> FareBreakdown:
        """
        Args:
            fare_per_seat: Цена за место
            seats: Количество мест

        Returns:
            Расчёт стоимости
        """
        total_fare = fare_per_seat * seats
        service_fee = self.service_fee(total_fare)
        return FareBreakdown(
            fare_per_seat=fare_per_seat,
            seats=seats,
            total_fare=total_fare,
            service_fee=service_fee,
            grand_total=total_fare + service_fee,
            currency=self.currency,
        )
