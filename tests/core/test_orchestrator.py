# tests/core/test_orchestrator.py
"""
Тесты для сценариев бронирования от имени пользователя.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from seatshare.common.constants import BookingStatus, PaymentMethod, PaymentStatus, RouteStatus
from seatshare.common.results import ErrorKind
from seatshare.core.routes.ledger import CAPACITY_MESSAGE
from seatshare.infra.event_bus import EventTypes

from tests.fakes import FakeBookingRepository, FakeRouteRepository, make_route


def published_types(event_bus: AsyncMock) -> list[str]:
    return [call.args[0].event_type for call in event_bus.publish.await_args_list]


class TestConfirmBooking:
    """Тесты для бронирования мест."""

    @pytest.mark.asyncio
    async def test_happy_path(self, orchestrator_for, routes: FakeRouteRepository, route, mock_event_bus) -> None:
        """2 места по 500 со сбором 5%: остаток 2, итого 1050, статус pending."""
        result = await orchestrator_for("passenger-1").confirm_booking(route.id, 2, PaymentMethod.CASH)

        booking = result.value
        assert booking.passenger_id == "passenger-1"
        assert booking.seats == 2
        assert (booking.total_fare, booking.service_fee, booking.grand_total) == (1000, 50, 1050)
        assert booking.status == BookingStatus.PENDING
        assert booking.payment_status == PaymentStatus.PENDING
        assert routes.routes[route.id].seats_left == 2
        assert published_types(mock_event_bus) == [EventTypes.BOOKING_CREATED]

    @pytest.mark.asyncio
    async def test_last_seat_race(self, orchestrator_for, bookings, routes: FakeRouteRepository) -> None:
        """Два пассажира на последнее место: успешен ровно один."""
        last = routes.add(make_route(seats_left=1))

        first, second = await asyncio.gather(
            orchestrator_for("passenger-1").confirm_booking(last.id, 1),
            orchestrator_for("passenger-2").confirm_booking(last.id, 1),
        )

        outcomes = sorted([first, second], key=lambda r: r.ok)
        assert outcomes[1].ok
        assert outcomes[0].error.kind == ErrorKind.CAPACITY_CONFLICT
        assert outcomes[0].error.message == CAPACITY_MESSAGE
        assert routes.routes[last.id].seats_left == 0
        assert len(bookings.bookings) == 1

    @pytest.mark.asyncio
    async def test_not_enough_seats(self, orchestrator_for, routes, route) -> None:
        result = await orchestrator_for("passenger-1").confirm_booking(route.id, 5)

        assert result.error.kind == ErrorKind.CAPACITY_CONFLICT
        assert routes.routes[route.id].seats_left == 4

    @pytest.mark.asyncio
    async def test_duplicate_booking(self, orchestrator_for, routes, route, book) -> None:
        await book(route.id, 2)

        result = await orchestrator_for("passenger-1").confirm_booking(route.id, 1)

        assert result.error.kind == ErrorKind.DUPLICATE
        assert routes.routes[route.id].seats_left == 2

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_is_compensated(self, orchestrator_for, bookings, routes, route) -> None:
        """Параллельные заявки одного пассажира: одна проходит, места второй возвращаются."""
        orchestrator = orchestrator_for("passenger-1")

        results = await asyncio.gather(
            orchestrator.confirm_booking(route.id, 2),
            orchestrator.confirm_booking(route.id, 2),
        )

        assert sum(1 for r in results if r.ok) == 1
        assert [r.error.kind for r in results if not r.ok] == [ErrorKind.DUPLICATE]
        assert routes.routes[route.id].seats_left == 2
        assert len(bookings.bookings) == 1

    @pytest.mark.asyncio
    async def test_own_route_forbidden(self, orchestrator_for, routes, route) -> None:
        result = await orchestrator_for("driver-1").confirm_booking(route.id, 1)

        assert result.error.kind == ErrorKind.FORBIDDEN
        assert routes.routes[route.id].seats_left == 4

    @pytest.mark.asyncio
    async def test_not_authenticated(self, orchestrator_for, route) -> None:
        result = await orchestrator_for(None).confirm_booking(route.id, 1)

        assert result.error.kind == ErrorKind.NOT_AUTHENTICATED
        assert result.error.message == "Not logged in"

    @pytest.mark.asyncio
    async def test_route_not_found(self, orchestrator_for) -> None:
        result = await orchestrator_for("passenger-1").confirm_booking("missing", 1)

        assert result.error.kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_route_not_upcoming(self, orchestrator_for, routes: FakeRouteRepository) -> None:
        started = routes.add(make_route(status=RouteStatus.ONGOING))

        result = await orchestrator_for("passenger-1").confirm_booking(started.id, 1)

        assert result.error.kind == ErrorKind.INVALID_TRANSITION

    @pytest.mark.asyncio
    async def test_invalid_seat_count(self, orchestrator_for, route) -> None:
        result = await orchestrator_for("passenger-1").confirm_booking(route.id, 0)

        assert result.error.kind == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_failed_create_returns_seats(
        self,
        orchestrator_for,
        bookings: FakeBookingRepository,
        routes: FakeRouteRepository,
        route,
        mock_event_bus,
    ) -> None:
        """Бронирование не записалось: места возвращаются, ошибка с шагом create_booking."""
        bookings.fail("create")

        result = await orchestrator_for("passenger-1").confirm_booking(route.id, 2)

        assert result.error.kind == ErrorKind.TRANSPORT
        assert result.error.step == "create_booking"
        assert routes.routes[route.id].seats_left == 4
        mock_event_bus.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_compensation_is_partial(self, orchestrator_for, bookings, routes, route) -> None:
        bookings.fail("create")
        routes.fail("restore_seats")

        result = await orchestrator_for("passenger-1").confirm_booking(route.id, 2)

        assert result.error.kind == ErrorKind.PARTIAL_FAILURE
        assert result.error.step == "restore_seats"
        assert routes.routes[route.id].seats_left == 2

    @pytest.mark.asyncio
    async def test_quote(self, orchestrator_for, route) -> None:
        result = await orchestrator_for(None).quote(route.id, 3)

        assert result.value.total_fare == 1500
        assert result.value.service_fee == 75
        assert result.value.grand_total == 1575


class TestPassengerActions:
    """Тесты для действий пассажира над своим бронированием."""

    @pytest.mark.asyncio
    async def test_double_cancel_is_idempotent(self, orchestrator_for, routes, route, book, mock_event_bus) -> None:
        booking = await book(route.id, 1)
        await book(route.id, 2, passenger_id="passenger-2")
        orchestrator = orchestrator_for("passenger-1")

        first = await orchestrator.cancel_booking(booking.id)
        second = await orchestrator.cancel_booking(booking.id)

        assert first.value.status == BookingStatus.CANCELLED
        assert second.value.status == BookingStatus.CANCELLED
        assert routes.routes[route.id].seats_left == 2
        assert published_types(mock_event_bus).count(EventTypes.BOOKING_STATUS_CHANGED) == 1

    @pytest.mark.asyncio
    async def test_other_passenger_cannot_cancel(self, orchestrator_for, route, book) -> None:
        booking = await book(route.id, 1)

        result = await orchestrator_for("passenger-2").cancel_booking(booking.id)

        assert result.error.kind == ErrorKind.FORBIDDEN

    @pytest.mark.asyncio
    async def test_seat_edit_beyond_capacity(self, orchestrator_for, routes, route, book) -> None:
        """2 → 5 при двух свободных местах отклоняется."""
        booking = await book(route.id, 2)

        result = await orchestrator_for("passenger-1").update_seats(booking.id, 5)

        assert result.error.kind == ErrorKind.CAPACITY_CONFLICT
        assert routes.routes[route.id].seats_left == 2

    @pytest.mark.asyncio
    async def test_seat_edit_notifies(self, orchestrator_for, routes, route, book, mock_event_bus) -> None:
        booking = await book(route.id, 2)

        result = await orchestrator_for("passenger-1").update_seats(booking.id, 4)

        assert result.value.seats == 4
        assert routes.routes[route.id].seats_left == 0
        assert published_types(mock_event_bus)[-1] == EventTypes.BOOKING_SEATS_CHANGED

    @pytest.mark.asyncio
    async def test_driver_cannot_edit_seats(self, orchestrator_for, route, book) -> None:
        booking = await book(route.id, 2)

        result = await orchestrator_for("driver-1").update_seats(booking.id, 1)

        assert result.error.kind == ErrorKind.FORBIDDEN


class TestDriverActions:
    """Тесты для решений водителя."""

    @pytest.mark.asyncio
    async def test_decline_restores_capacity(self, orchestrator_for, routes, route, book) -> None:
        """Отклонение заявки на 3 места возвращает остаток к 4."""
        booking = await book(route.id, 3)
        assert routes.routes[route.id].seats_left == 1

        result = await orchestrator_for("driver-1").decline_booking(booking.id)

        assert result.value.status == BookingStatus.CANCELLED
        assert routes.routes[route.id].seats_left == 4

    @pytest.mark.asyncio
    async def test_accept_then_complete(self, orchestrator_for, route, book, mock_event_bus) -> None:
        booking = await book(route.id, 1)
        driver = orchestrator_for("driver-1")

        accepted = await driver.accept_booking(booking.id)
        completed = await driver.complete_booking(booking.id)

        assert accepted.value.status == BookingStatus.ACCEPTED
        assert completed.value.status == BookingStatus.COMPLETED
        payload = mock_event_bus.publish.await_args.args[0].payload
        assert payload["old_status"] == "accepted"
        assert payload["new_status"] == "completed"
        assert payload["actor"] == "driver"

    @pytest.mark.asyncio
    async def test_decline_after_accept(self, orchestrator_for, routes, route, book) -> None:
        booking = await book(route.id, 2)
        driver = orchestrator_for("driver-1")
        await driver.accept_booking(booking.id)

        result = await driver.decline_booking(booking.id)

        assert result.value.status == BookingStatus.CANCELLED
        assert routes.routes[route.id].seats_left == 4

    @pytest.mark.asyncio
    async def test_other_driver_forbidden(self, orchestrator_for, route, book) -> None:
        booking = await book(route.id, 1)

        result = await orchestrator_for("driver-2").accept_booking(booking.id)

        assert result.error.kind == ErrorKind.FORBIDDEN

    @pytest.mark.asyncio
    async def test_passenger_cannot_accept_own_booking(self, orchestrator_for, route, book) -> None:
        booking = await book(route.id, 1)

        result = await orchestrator_for("passenger-1").accept_booking(booking.id)

        assert result.error.kind == ErrorKind.FORBIDDEN

    @pytest.mark.asyncio
    async def test_mark_paid_notifies_once(self, orchestrator_for, route, book, mock_event_bus) -> None:
        booking = await book(route.id, 1)
        driver = orchestrator_for("driver-1")

        first = await driver.mark_paid(booking.id)
        second = await driver.mark_paid(booking.id)

        assert first.value.payment_status == PaymentStatus.PAID
        assert second.ok
        assert published_types(mock_event_bus).count(EventTypes.BOOKING_PAID) == 1

    @pytest.mark.asyncio
    async def test_partial_failure_still_notifies(self, orchestrator_for, routes, route, book, mock_event_bus) -> None:
        """Отмена прошла, места не вернулись: водитель всё равно получает уведомление."""
        booking = await book(route.id, 2)
        routes.fail("restore_seats")

        result = await orchestrator_for("driver-1").decline_booking(booking.id)

        assert result.error.kind == ErrorKind.PARTIAL_FAILURE
        assert published_types(mock_event_bus)[-1] == EventTypes.BOOKING_STATUS_CHANGED
