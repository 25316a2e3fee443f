# tests/common/test_constants.py
"""
Тесты для модуля констант.
"""

from seatshare.common.constants import (
    ACTIVE_BOOKING_STATUSES,
    ActorRole,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    RouteStatus,
    TypeMsg,
)


class TestTypeMsg:
    """Тесты для enum TypeMsg."""

    def test_type_msg_values(self) -> None:
        """Проверяет значения типов сообщений."""
        assert TypeMsg.DEBUG.value == "debug"
        assert TypeMsg.INFO.value == "info"
        assert TypeMsg.WARNING.value == "warning"
        assert TypeMsg.ERROR.value == "error"
        assert TypeMsg.CRITICAL.value == "critical"

    def test_type_msg_is_str_enum(self) -> None:
        assert isinstance(TypeMsg.DEBUG, str)
        assert TypeMsg.INFO == "info"


class TestRoles:
    """Тесты для ролей пользователей."""

    def test_actor_roles(self) -> None:
        assert ActorRole("driver") is ActorRole.DRIVER
        assert ActorRole("passenger") is ActorRole.PASSENGER


class TestStatuses:
    """Тесты для статусов маршрута, бронирования и оплаты."""

    def test_route_status_values(self) -> None:
        assert [s.value for s in RouteStatus] == ["upcoming", "ongoing", "completed", "cancelled"]

    def test_booking_status_values(self) -> None:
        assert [s.value for s in BookingStatus] == ["pending", "accepted", "completed", "cancelled"]

    def test_active_statuses_hold_seats(self) -> None:
        """Места удерживают только ожидающие и принятые бронирования."""
        assert ACTIVE_BOOKING_STATUSES == (BookingStatus.PENDING, BookingStatus.ACCEPTED)
        assert BookingStatus.CANCELLED not in ACTIVE_BOOKING_STATUSES

    def test_payment_values(self) -> None:
        assert PaymentStatus.PAID == "paid"
        assert PaymentMethod("cash") is PaymentMethod.CASH
