# tests/core/test_fares.py
"""
Тесты для расчёта стоимости бронирования.
"""

import pytest

from seatshare.core.bookings.fares import FareCalculator


class TestFareCalculator:
    """Тесты для FareCalculator."""

    def test_breakdown_with_five_percent_fee(self) -> None:
        """2 места по 500 при сборе 5%: 1000 + 50 = 1050."""
        fare = FareCalculator(service_fee_percent=5.0, currency="INR").breakdown(500, 2)

        assert fare.fare_per_seat == 500
        assert fare.seats == 2
        assert fare.total_fare == 1000
        assert fare.service_fee == 50
        assert fare.grand_total == 1050
        assert fare.currency == "INR"

    def test_fee_is_truncated(self) -> None:
        """Дробная часть сбора отбрасывается."""
        calculator = FareCalculator(service_fee_percent=5.0, currency="INR")

        assert calculator.service_fee(333) == 16
        assert calculator.breakdown(333, 1).grand_total == 349

    def test_zero_fee(self) -> None:
        fare = FareCalculator(service_fee_percent=0, currency="INR").breakdown(250, 3)

        assert fare.service_fee == 0
        assert fare.grand_total == 750

    def test_free_ride(self) -> None:
        fare = FareCalculator(service_fee_percent=5.0, currency="INR").breakdown(0, 1)

        assert fare.total_fare == 0
        assert fare.grand_total == 0

    def test_negative_fee_rejected(self) -> None:
        with pytest.raises(ValueError):
            FareCalculator(service_fee_percent=-1.0, currency="INR")

    def test_defaults_from_settings(self) -> None:
        """Без аргументов процент сбора и валюта берутся из конфигурации."""
        from seatshare.config import settings

        calculator = FareCalculator()

        assert calculator.service_fee_percent == settings.booking.SERVICE_FEE_PERCENT
        assert calculator.currency == settings.booking.CURRENCY
