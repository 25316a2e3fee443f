# seatshare/core/bookings/service.py
"""
Сервис жизненного цикла бронирования.

Создание записи, переходы статуса с проверкой роли, оплата и изменение
количества мест. Переход в cancelled возвращает места на маршрут ровно
один раз: возврат делает только тот вызов, чей условный UPDATE статуса
прошёл.
"""

from __future__ import annotations

import asyncpg

from seatshare.common.constants import ActorRole, BookingStatus, PaymentMethod
from seatshare.common.logger import log_debug, log_error, log_info, log_warning
from seatshare.common.results import ErrorKind, Result
from seatshare.core.bookings.fares import FareCalculator
from seatshare.core.bookings.models import Booking, FareBreakdown, generate_booking_ref
from seatshare.core.bookings.repository import ACTIVE_BOOKING_INDEX, BookingRepository
from seatshare.core.bookings.state_machine import BookingStateMachine
from seatshare.core.routes.ledger import SeatLedger
from seatshare.core.routes.repository import RouteRepository

DUPLICATE_BOOKING_MESSAGE = "You already have an active booking on this route."

# Попытки подобрать свободный код бронирования
_REF_ATTEMPTS = 3


class BookingService:
    """Операции над бронированием."""

    def __init__(
        self,
        bookings: BookingRepository,
        routes: RouteRepository,
        ledger: SeatLedger,
        fares: FareCalculator,
        ref_prefix: str | None = None,
        ref_length: int | None = None,
    ) -> None:
        if ref_prefix is None or ref_length is None:
            from seatshare.config import settings
            ref_prefix = settings.booking.BOOKING_REF_PREFIX if ref_prefix is None else ref_prefix
            ref_length = settings.booking.BOOKING_REF_LENGTH if ref_length is None else ref_length

        self._bookings = bookings
        self._routes = routes
        self._ledger = ledger
        self._fares = fares
        self._ref_prefix = ref_prefix
        self._ref_length = ref_length

    async def create(
        self,
        route_id: str,
        passenger_id: str,
        seats: int,
        fare: FareBreakdown,
        payment_method: PaymentMethod = PaymentMethod.CASH,
    ) -> Result[Booking]:
        """
        Создаёт ожидающее бронирование.
        Вызывается только после успешного списания мест.
        """
        if seats < 1:
            return Result.failure(ErrorKind.VALIDATION, "Seat count must be at least 1.")

        for attempt in range(1, _REF_ATTEMPTS + 1):
            booking = Booking(
                booking_ref=generate_booking_ref(self._ref_prefix, self._ref_length),
                route_id=route_id,
                passenger_id=passenger_id,
                seats=seats,
                total_fare=fare.total_fare,
                service_fee=fare.service_fee,
                grand_total=fare.grand_total,
                payment_method=payment_method,
            )
            try:
                created = await self._bookings.create(booking)
            except asyncpg.UniqueViolationError as e:
                if e.constraint_name == ACTIVE_BOOKING_INDEX:
                    return Result.failure(ErrorKind.DUPLICATE, DUPLICATE_BOOKING_MESSAGE, step="create_booking")
                await log_debug(f"Код {booking.booking_ref} занят (попытка {attempt}/{_REF_ATTEMPTS})")
                continue
            except Exception as e:
                await log_error(f"Ошибка создания бронирования на маршрут {route_id}: {e}", exc_info=True)
                return Result.failure(ErrorKind.TRANSPORT, f"Could not create booking: {e}", step="create_booking")

            await log_info(f"Бронирование {created.booking_ref} создано: маршрут {route_id}, мест {seats}")
            return Result.success(created)

        return Result.failure(
            ErrorKind.TRANSPORT,
            "Could not allocate a booking reference.",
            step="create_booking",
        )

    async def transition(
        self,
        booking_id: str,
        new_status: BookingStatus,
        actor: ActorRole,
    ) -> Result[Booking]:
        """
        Переводит бронирование в новый статус.

        Повторная отмена отменённого бронирования ничего не делает.
        При переходе в cancelled места возвращаются на маршрут.
        """
        try:
            booking = await self._bookings.get_by_id(booking_id)
        except Exception as e:
            await log_error(f"Ошибка чтения бронирования {booking_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load booking: {e}")

        if booking is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Booking not found.")

        if not BookingStateMachine.actor_allowed(actor, new_status):
            return Result.failure(
                ErrorKind.FORBIDDEN,
                f"A {actor.value} cannot move a booking to {new_status.value}.",
            )

        if booking.status == new_status and BookingStateMachine.is_terminal(new_status):
            return Result.success(booking)

        if not BookingStateMachine.can_transition(booking.status, new_status):
            await log_warning(
                f"Недопустимый переход бронирования {booking_id}: "
                f"{booking.status.value} → {new_status.value}"
            )
            return Result.failure(
                ErrorKind.INVALID_TRANSITION,
                f"Cannot change booking from {booking.status.value} to {new_status.value}.",
            )

        try:
            updated = await self._bookings.update_status(booking_id, new_status, expected_status=booking.status)
        except Exception as e:
            await log_error(f"Ошибка смены статуса бронирования {booking_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not update booking: {e}", step="update_status")

        if updated is None:
            return await self._lost_race(booking_id, new_status)

        await log_info(f"Бронирование {booking.booking_ref}: {booking.status.value} → {new_status.value}")

        if new_status == BookingStatus.CANCELLED:
            restored = await self._ledger.restore_seats(updated.route_id, updated.seats)
            if not restored.ok:
                await log_error(
                    f"Бронирование {booking.booking_ref} отменено, но {updated.seats} мест не возвращены: "
                    f"{restored.error}"
                )
                return Result.failure(
                    ErrorKind.PARTIAL_FAILURE,
                    f"Booking cancelled but {updated.seats} seat(s) could not be returned to the route: "
                    f"{restored.error.message}",
                    step="restore_seats",
                )

        return Result.success(updated)

    async def _lost_race(self, booking_id: str, new_status: BookingStatus) -> Result[Booking]:
        """Условный UPDATE не прошёл: статус изменил кто-то другой."""
        try:
            current = await self._bookings.get_by_id(booking_id)
        except Exception as e:
            await log_error(f"Ошибка чтения бронирования {booking_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load booking: {e}")

        # Параллельный вызов уже выполнил тот же терминальный переход
        if current is not None and current.status == new_status and BookingStateMachine.is_terminal(new_status):
            return Result.success(current)

        return Result.failure(ErrorKind.INVALID_TRANSITION, "Booking was modified concurrently.")

    async def mark_paid(self, booking_id: str) -> Result[Booking]:
        """Отмечает оплату. Повторная отметка ничего не делает."""
        try:
            booking = await self._bookings.get_by_id(booking_id)
            if booking is None:
                return Result.failure(ErrorKind.NOT_FOUND, "Booking not found.")
            if booking.is_paid:
                return Result.success(booking)
            if not booking.is_active:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"A {booking.status.value} booking cannot be marked as paid.",
                )

            updated = await self._bookings.mark_paid(booking_id)
            if updated is None:
                current = await self._bookings.get_by_id(booking_id)
                if current is not None and current.is_paid:
                    return Result.success(current)
                return Result.failure(ErrorKind.INVALID_TRANSITION, "Booking was modified concurrently.")
        except Exception as e:
            await log_error(f"Ошибка отметки оплаты бронирования {booking_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not mark booking as paid: {e}")

        await log_info(f"Бронирование {updated.booking_ref} оплачено")
        return Result.success(updated)

    async def update_seats(self, booking_id: str, new_seats: int) -> Result[Booking]:
        """
        Меняет количество мест ожидающего бронирования.

        Увеличение сначала списывает разницу с маршрута, уменьшение
        сначала меняет бронирование и затем возвращает разницу.
        """
        if new_seats < 1:
            return Result.failure(ErrorKind.VALIDATION, "Seat count must be at least 1.")

        try:
            booking = await self._bookings.get_by_id(booking_id)
            if booking is None:
                return Result.failure(ErrorKind.NOT_FOUND, "Booking not found.")
            if booking.status != BookingStatus.PENDING:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    "Seats can only be changed while the booking is pending.",
                )
            route = await self._routes.get_by_id(booking.route_id)
        except Exception as e:
            await log_error(f"Ошибка чтения бронирования {booking_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load booking: {e}")

        if route is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Route not found.")

        delta = new_seats - booking.seats
        if delta == 0:
            return Result.success(booking)

        available = route.seats_left + booking.seats
        if delta > route.seats_left:
            return Result.failure(
                ErrorKind.CAPACITY_CONFLICT,
                f"Only {available} seat(s) available for this booking.",
            )

        fare = self._fares.breakdown(route.fare_per_seat, new_seats)

        if delta > 0:
            return await self._grow_booking(booking, delta, fare, available)
        return await self._shrink_booking(booking, -delta, fare)

    async def _grow_booking(
        self,
        booking: Booking,
        delta: int,
        fare: FareBreakdown,
        available: int,
    ) -> Result[Booking]:
        reserved = await self._ledger.reserve_seats(booking.route_id, delta)
        if not reserved.ok:
            if reserved.error.kind == ErrorKind.CAPACITY_CONFLICT:
                return Result.failure(
                    ErrorKind.CAPACITY_CONFLICT,
                    f"Only {available} seat(s) available for this booking.",
                )
            return Result.from_error(reserved.error)

        failure: Result[Booking]
        try:
            updated = await self._bookings.update_seats(booking.id, booking.seats, fare)
        except Exception as e:
            await log_error(f"Ошибка изменения мест бронирования {booking.id}: {e}", exc_info=True)
            updated = None
            failure = Result.failure(ErrorKind.TRANSPORT, f"Could not update booking: {e}", step="update_booking")
        else:
            failure = Result.failure(ErrorKind.INVALID_TRANSITION, "Booking was modified concurrently.")

        if updated is not None:
            await log_info(f"Бронирование {booking.booking_ref}: мест {booking.seats} → {updated.seats}")
            return Result.success(updated)

        # Компенсация: возвращаем списанную разницу
        restored = await self._ledger.restore_seats(booking.route_id, delta)
        if not restored.ok:
            await log_error(
                f"Изменение мест {booking.booking_ref} отклонено, {delta} мест не возвращены: {restored.error}"
            )
            return Result.failure(
                ErrorKind.PARTIAL_FAILURE,
                f"Seat change failed and {delta} reserved seat(s) could not be returned to the route: "
                f"{restored.error.message}",
                step="restore_seats",
            )
        return failure

    async def _shrink_booking(self, booking: Booking, delta: int, fare: FareBreakdown) -> Result[Booking]:
        try:
            updated = await self._bookings.update_seats(booking.id, booking.seats, fare)
        except Exception as e:
            await log_error(f"Ошибка изменения мест бронирования {booking.id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not update booking: {e}", step="update_booking")

        if updated is None:
            return Result.failure(ErrorKind.INVALID_TRANSITION, "Booking was modified concurrently.")

        await log_info(f"Бронирование {booking.booking_ref}: мест {booking.seats} → {updated.seats}")

        restored = await self._ledger.restore_seats(booking.route_id, delta)
        if not restored.ok:
            return Result.failure(
                ErrorKind.PARTIAL_FAILURE,
                f"Seats updated but {delta} seat(s) could not be returned to the route: "
                f"{restored.error.message}",
                step="restore_seats",
            )
        return Result.success(updated)
