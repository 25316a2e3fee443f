# seatshare/core/directory/service.py
"""
Справочник маршрутов: только чтение.

Списки собираются пакетно: сначала основная выборка, затем по одному
запросу на каждую связанную сущность (маршруты, водители, автомобили,
пассажиры) и сборка результата в памяти.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from seatshare.common.constants import BookingStatus, RouteStatus
from seatshare.common.logger import log_debug, log_error
from seatshare.common.results import ErrorKind, Result
from seatshare.core.bookings.models import Booking, DriverBookings
from seatshare.core.bookings.repository import BookingRepository
from seatshare.core.routes.models import Route, RouteBooking
from seatshare.core.routes.repository import RouteRepository
from seatshare.core.users.repository import UserRepository

# Значение фильтра «все маршруты» в панели водителя
ALL_ROUTES = "all"

DASHBOARD_STATUSES = (RouteStatus.UPCOMING, RouteStatus.ONGOING, RouteStatus.COMPLETED)


class RouteDirectory:
    """Поиск маршрутов и списки бронирований."""

    def __init__(
        self,
        routes: RouteRepository,
        bookings: BookingRepository,
        users: UserRepository,
    ) -> None:
        self._routes = routes
        self._bookings = bookings
        self._users = users

    # =========================================================================
    # СБОРКА
    # =========================================================================

    async def _attach_drivers(self, routes: Iterable[Route]) -> list[Route]:
        """Присоединяет водителей и автомобили (по запросу на сущность)."""
        routes = list(routes)
        drivers = await self._users.get_drivers(r.driver_id for r in routes)
        vehicles = await self._users.get_vehicles(r.vehicle_id for r in routes)
        return [
            route.model_copy(
                update={
                    "driver": drivers.get(route.driver_id),
                    "vehicle": vehicles.get(route.vehicle_id) if route.vehicle_id else None,
                }
            )
            for route in routes
        ]

    async def _attach_passengers(self, bookings: Iterable[Booking]) -> list[Booking]:
        bookings = list(bookings)
        passengers = await self._users.get_passengers(b.passenger_id for b in bookings)
        return [
            booking.model_copy(update={"passenger": passengers.get(booking.passenger_id)})
            for booking in bookings
        ]

    async def _attach_routes(self, bookings: Iterable[Booking]) -> list[Booking]:
        bookings = list(bookings)
        routes = await self._routes.get_many(b.route_id for b in bookings)
        joined = {r.id: r for r in await self._attach_drivers(routes.values())}
        return [
            booking.model_copy(update={"route": joined.get(booking.route_id)})
            for booking in bookings
        ]

    # =========================================================================
    # МАРШРУТЫ
    # =========================================================================

    async def search(
        self,
        origin: str = "",
        destination: str = "",
        min_seats: int = 1,
        now: datetime | None = None,
    ) -> Result[list[Route]]:
        """
        Поиск предстоящих маршрутов.

        Совпадение по подстроке без учёта регистра, пустые фильтры подходят
        ко всему. Уже отправившиеся маршруты скрываются.

        Returns:
            Result со списком маршрутов по дате и времени отправления
        """
        if min_seats < 0:
            return Result.failure(ErrorKind.VALIDATION, "Seat count cannot be negative.")
        now = now or datetime.now()
        try:
            found = await self._routes.search(origin, destination, min_seats)
            visible = [route for route in found if route.departure_at >= now]
            result = await self._attach_drivers(visible)
        except Exception as e:
            await log_error(f"Ошибка поиска маршрутов '{origin}' → '{destination}': {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not search routes: {e}")

        await log_debug(f"Поиск '{origin}' → '{destination}' (мест ≥ {min_seats}): {len(result)}")
        return Result.success(result)

    async def get_route(self, route_id: str) -> Result[Route]:
        """Маршрут с водителем и автомобилем."""
        try:
            route = await self._routes.get_by_id(route_id)
            if route is None:
                return Result.failure(ErrorKind.NOT_FOUND, "Route not found.")
            (joined,) = await self._attach_drivers([route])
        except Exception as e:
            await log_error(f"Ошибка загрузки маршрута {route_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load route: {e}")
        return Result.success(joined)

    async def active_for_driver(self, driver_id: str) -> Result[list[Route]]:
        """
        Все неотменённые маршруты водителя со списками пассажиров.
        Бронирования всех маршрутов загружаются одним запросом.
        """
        try:
            routes = await self._routes.list_for_driver(driver_id, DASHBOARD_STATUSES)
            bookings = await self._bookings.list_for_routes(r.id for r in routes)
            passengers = await self._users.get_passengers(b.passenger_id for b in bookings)
            vehicles = await self._users.get_vehicles(r.vehicle_id for r in routes)
        except Exception as e:
            await log_error(f"Ошибка загрузки маршрутов водителя {driver_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load routes: {e}")

        by_route: dict[str, list[RouteBooking]] = {}
        for booking in bookings:
            by_route.setdefault(booking.route_id, []).append(
                RouteBooking(
                    id=booking.id,
                    booking_ref=booking.booking_ref,
                    passenger_id=booking.passenger_id,
                    seats=booking.seats,
                    grand_total=booking.grand_total,
                    status=booking.status,
                    payment_status=booking.payment_status,
                    passenger=passengers.get(booking.passenger_id),
                )
            )

        result = [
            route.model_copy(
                update={
                    "vehicle": vehicles.get(route.vehicle_id) if route.vehicle_id else None,
                    "bookings": by_route.get(route.id, []),
                }
            )
            for route in routes
        ]
        return Result.success(result)

    async def upcoming_for_driver(self, driver_id: str, limit: int = 5) -> Result[list[Route]]:
        """Ближайшие предстоящие маршруты водителя со свободными местами."""
        try:
            routes = await self._routes.list_for_driver(
                driver_id,
                [RouteStatus.UPCOMING],
                min_seats=1,
                limit=limit,
            )
        except Exception as e:
            await log_error(f"Ошибка загрузки предстоящих маршрутов {driver_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load routes: {e}")
        return Result.success(routes)

    # =========================================================================
    # БРОНИРОВАНИЯ
    # =========================================================================

    async def bookings_for_passenger(self, passenger_id: str) -> Result[list[Booking]]:
        """
        Бронирования пассажира с маршрутами, водителями и автомобилями.
        Новые первыми.
        """
        try:
            bookings = await self._bookings.list_for_passenger(passenger_id)
            result = await self._attach_routes(bookings)
        except Exception as e:
            await log_error(f"Ошибка загрузки бронирований пассажира {passenger_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load bookings: {e}")
        return Result.success(result)

    async def bookings_for_route(self, route_id: str) -> Result[list[Booking]]:
        """
        Бронирования одного маршрута с пассажирами.
        Для фильтра «все» или пустого значения возвращается пустой список.
        """
        if not route_id or not route_id.strip() or route_id == ALL_ROUTES:
            return Result.success([])
        try:
            bookings = await self._bookings.list_for_routes([route_id])
            result = await self._attach_passengers(bookings)
        except Exception as e:
            await log_error(f"Ошибка загрузки бронирований маршрута {route_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load bookings: {e}")
        return Result.success(result)

    async def bookings_for_driver(self, driver_id: str) -> Result[DriverBookings]:
        """Бронирования по всем маршрутам водителя и число ожидающих решения."""
        try:
            route_ids = await self._routes.list_ids_for_driver(driver_id)
            bookings = await self._bookings.list_for_routes(route_ids)
            with_passengers = await self._attach_passengers(bookings)
            result = await self._attach_routes(with_passengers)
        except Exception as e:
            await log_error(f"Ошибка загрузки бронирований водителя {driver_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load bookings: {e}")

        pending = sum(1 for b in result if b.status == BookingStatus.PENDING)
        return Result.success(DriverBookings(bookings=result, pending_count=pending))

    async def get_booking(self, booking_id: str) -> Result[Booking]:
        """Бронирование с маршрутом и пассажиром."""
        try:
            booking = await self._bookings.get_by_id(booking_id)
            if booking is None:
                return Result.failure(ErrorKind.NOT_FOUND, "Booking not found.")
            (with_passenger,) = await self._attach_passengers([booking])
            (joined,) = await self._attach_routes([with_passenger])
        except Exception as e:
            await log_error(f"Ошибка загрузки бронирования {booking_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load booking: {e}")
        return Result.success(joined)
