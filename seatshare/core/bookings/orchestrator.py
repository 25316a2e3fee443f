# seatshare/core/bookings/orchestrator.py
"""
Сценарии бронирования от имени текущего пользователя.

Бронирование: проверки → списание мест → запись бронирования → уведомление.
Если запись не создалась, списанные места возвращаются. Решения водителя и
отмена пассажиром идут через сервис бронирования, который сам возвращает
места при отмене. Ни один сценарий не бросает исключений: результат всегда
Result с категорией ошибки и, для многошаговых сбоев, именем шага.
"""

from __future__ import annotations

from seatshare.common.constants import ActorRole, BookingStatus, PaymentMethod, RouteStatus
from seatshare.common.logger import log_debug, log_error, log_warning
from seatshare.common.results import ErrorKind, Result
from seatshare.core.bookings.fares import FareCalculator
from seatshare.core.bookings.models import Booking, FareBreakdown
from seatshare.core.bookings.repository import BookingRepository
from seatshare.core.bookings.service import DUPLICATE_BOOKING_MESSAGE, BookingService
from seatshare.core.routes.ledger import CLOSED_ROUTE_MESSAGE, SeatLedger
from seatshare.core.routes.models import Route
from seatshare.core.routes.repository import RouteRepository
from seatshare.core.users.identity import IdentityProvider, require_user
from seatshare.infra.event_bus import DomainEvent, EventBus, EventTypes


class BookingOrchestrator:
    """Сценарии бронирования для пассажира и водителя."""

    def __init__(
        self,
        bookings: BookingRepository,
        routes: RouteRepository,
        identity: IdentityProvider,
        fares: FareCalculator | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._bookings = bookings
        self._routes = routes
        self._identity = identity
        self._fares = fares or FareCalculator()
        self._ledger = SeatLedger(routes)
        self._service = BookingService(bookings, routes, self._ledger, self._fares)
        self._event_bus = event_bus

    # =========================================================================
    # ПАССАЖИР
    # =========================================================================

    async def quote(self, route_id: str, seats: int) -> Result[FareBreakdown]:
        """Расчёт стоимости перед подтверждением."""
        if seats < 1:
            return Result.failure(ErrorKind.VALIDATION, "Seat count must be at least 1.")
        try:
            route = await self._routes.get_by_id(route_id)
        except Exception as e:
            await log_error(f"Ошибка чтения маршрута {route_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load route: {e}")
        if route is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Route not found.")
        return Result.success(self._fares.breakdown(route.fare_per_seat, seats))

    async def confirm_booking(
        self,
        route_id: str,
        seats: int,
        payment_method: PaymentMethod = PaymentMethod.CASH,
    ) -> Result[Booking]:
        """
        Бронирует места на маршруте для текущего пользователя.

        Returns:
            Result с ожидающим бронированием
        """
        auth = require_user(self._identity)
        if not auth.ok:
            return Result.from_error(auth.error)
        passenger_id = auth.value

        if seats < 1:
            return Result.failure(ErrorKind.VALIDATION, "Seat count must be at least 1.")

        try:
            route = await self._routes.get_by_id(route_id)
            if route is None:
                return Result.failure(ErrorKind.NOT_FOUND, "Route not found.")
            existing = await self._bookings.find_active(route_id, passenger_id)
        except Exception as e:
            await log_error(f"Ошибка проверки маршрута {route_id} перед бронированием: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load route: {e}")

        if route.driver_id == passenger_id:
            return Result.failure(ErrorKind.FORBIDDEN, "You cannot book seats on your own route.")
        if route.status != RouteStatus.UPCOMING:
            return Result.failure(ErrorKind.INVALID_TRANSITION, CLOSED_ROUTE_MESSAGE)
        if existing is not None:
            return Result.failure(ErrorKind.DUPLICATE, DUPLICATE_BOOKING_MESSAGE)

        fare = self._fares.breakdown(route.fare_per_seat, seats)

        reserved = await self._ledger.reserve_seats(route_id, seats)
        if not reserved.ok:
            return Result.from_error(reserved.error)

        created = await self._service.create(route_id, passenger_id, seats, fare, payment_method)
        if not created.ok:
            return await self._compensate_reservation(route_id, seats, created)

        booking = created.value
        await self._notify(
            EventTypes.BOOKING_CREATED,
            booking,
            route,
            {"seats": booking.seats, "grand_total": booking.grand_total},
        )
        return Result.success(booking)

    async def _compensate_reservation(self, route_id: str, seats: int, failed: Result[Booking]) -> Result[Booking]:
        """Возвращает места, списанные под бронирование, которое не создалось."""
        restored = await self._ledger.restore_seats(route_id, seats)
        if restored.ok:
            await log_warning(f"Бронирование на маршрут {route_id} не создано, {seats} мест возвращены")
            return failed

        await log_error(
            f"Бронирование на маршрут {route_id} не создано и {seats} мест не возвращены: {restored.error}"
        )
        return Result.failure(
            ErrorKind.PARTIAL_FAILURE,
            f"Booking was not created ({failed.error.message}) and {seats} reserved seat(s) "
            f"could not be returned to the route: {restored.error.message}",
            step="restore_seats",
        )

    async def cancel_booking(self, booking_id: str) -> Result[Booking]:
        """Отмена бронирования пассажиром."""
        return await self._change_status(booking_id, BookingStatus.CANCELLED, ActorRole.PASSENGER)

    async def update_seats(self, booking_id: str, new_seats: int) -> Result[Booking]:
        """Изменение количества мест ожидающего бронирования пассажиром."""
        context = await self._authorize(booking_id, ActorRole.PASSENGER)
        if not context.ok:
            return Result.from_error(context.error)
        booking, route = context.value
        old_seats = booking.seats

        result = await self._service.update_seats(booking_id, new_seats)
        if result.ok and result.value.seats != old_seats:
            await self._notify(
                EventTypes.BOOKING_SEATS_CHANGED,
                result.value,
                route,
                {"old_seats": old_seats, "new_seats": result.value.seats},
            )
        return result

    # =========================================================================
    # ВОДИТЕЛЬ
    # =========================================================================

    async def accept_booking(self, booking_id: str) -> Result[Booking]:
        return await self._change_status(booking_id, BookingStatus.ACCEPTED, ActorRole.DRIVER)

    async def decline_booking(self, booking_id: str) -> Result[Booking]:
        """Отклонение заявки водителем: места возвращаются на маршрут."""
        return await self._change_status(booking_id, BookingStatus.CANCELLED, ActorRole.DRIVER)

    async def complete_booking(self, booking_id: str) -> Result[Booking]:
        return await self._change_status(booking_id, BookingStatus.COMPLETED, ActorRole.DRIVER)

    async def mark_paid(self, booking_id: str) -> Result[Booking]:
        """Отметка оплаты водителем."""
        context = await self._authorize(booking_id, ActorRole.DRIVER)
        if not context.ok:
            return Result.from_error(context.error)
        booking, route = context.value

        result = await self._service.mark_paid(booking_id)
        if result.ok and not booking.is_paid:
            await self._notify(EventTypes.BOOKING_PAID, result.value, route, {})
        return result

    # =========================================================================
    # ВСПОМОГАТЕЛЬНЫЕ
    # =========================================================================

    async def _change_status(
        self,
        booking_id: str,
        new_status: BookingStatus,
        actor: ActorRole,
    ) -> Result[Booking]:
        context = await self._authorize(booking_id, actor)
        if not context.ok:
            return Result.from_error(context.error)
        booking, route = context.value

        result = await self._service.transition(booking_id, new_status, actor)
        # Ошибка возврата мест после отмены: статус уже сменился, уведомляем всё равно
        changed = result.ok or (result.error.kind == ErrorKind.PARTIAL_FAILURE)
        if changed and booking.status != new_status:
            current = result.value if result.ok else booking.model_copy(update={"status": new_status})
            await self._notify(
                EventTypes.BOOKING_STATUS_CHANGED,
                current,
                route,
                {"old_status": booking.status.value, "new_status": new_status.value, "actor": actor.value},
            )
        return result

    async def _authorize(self, booking_id: str, actor: ActorRole) -> Result[tuple[Booking, Route]]:
        """Проверяет, что текущий пользователь выступает в роли actor для бронирования."""
        auth = require_user(self._identity)
        if not auth.ok:
            return Result.from_error(auth.error)
        user_id = auth.value

        try:
            booking = await self._bookings.get_by_id(booking_id)
            if booking is None:
                return Result.failure(ErrorKind.NOT_FOUND, "Booking not found.")
            route = await self._routes.get_by_id(booking.route_id)
        except Exception as e:
            await log_error(f"Ошибка чтения бронирования {booking_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load booking: {e}")

        if route is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Route not found.")

        if actor == ActorRole.DRIVER and route.driver_id != user_id:
            return Result.failure(ErrorKind.FORBIDDEN, "Only the driver of this route can do that.")
        if actor == ActorRole.PASSENGER and booking.passenger_id != user_id:
            return Result.failure(ErrorKind.FORBIDDEN, "Only the passenger who made this booking can do that.")

        return Result.success((booking, route))

    async def _notify(self, event_type: str, booking: Booking, route: Route, extra: dict) -> None:
        if self._event_bus is None:
            return
        payload = {
            "booking_id": booking.id,
            "booking_ref": booking.booking_ref,
            "route_id": route.id,
            "passenger_id": booking.passenger_id,
            "driver_id": route.driver_id,
            "status": booking.status.value,
            **extra,
        }
        await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
        await log_debug(f"Уведомление {event_type} для бронирования {booking.booking_ref}")
