# seatshare/core/routes/ledger.py
"""
Учёт свободных мест маршрута.

Единственное место, где меняется seats_left. Списание и возврат
выполняются одним условным запросом, поэтому конкурентные бронирования
не могут продать больше мест, чем есть.
"""

from __future__ import annotations

from seatshare.common.constants import RouteStatus
from seatshare.common.logger import log_debug, log_error, log_warning
from seatshare.common.results import ErrorKind, Result
from seatshare.core.routes.repository import RouteRepository

CAPACITY_MESSAGE = "Sorry, these seats are no longer available."
CLOSED_ROUTE_MESSAGE = "This route is no longer accepting bookings."


class SeatLedger:
    """Списание и возврат мест маршрута."""

    def __init__(self, routes: RouteRepository) -> None:
        self._routes = routes

    async def reserve_seats(self, route_id: str, count: int) -> Result[int]:
        """
        Атомарно списывает count мест.

        Returns:
            Result с остатком мест после списания; при нехватке мест
            ошибка capacity_conflict (обычный исход, а не сбой)
        """
        if count < 1:
            return Result.failure(ErrorKind.VALIDATION, "Seat count must be at least 1.")

        try:
            route = await self._routes.reserve_seats(route_id, count)
        except Exception as e:
            await log_error(f"Ошибка списания {count} мест маршрута {route_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not reserve seats: {e}", step="reserve_seats")

        if route is None:
            return await self._explain_rejection(route_id, count)

        await log_debug(f"Маршрут {route_id}: списано {count}, осталось {route.seats_left}")
        return Result.success(route.seats_left)

    async def _explain_rejection(self, route_id: str, count: int) -> Result[int]:
        """Условное списание не прошло: нет маршрута, он закрыт или мест не хватило."""
        try:
            route = await self._routes.get_by_id(route_id)
        except Exception as e:
            await log_error(f"Ошибка чтения маршрута {route_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load route: {e}", step="reserve_seats")

        if route is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Route not found.")
        if route.status != RouteStatus.UPCOMING:
            return Result.failure(ErrorKind.INVALID_TRANSITION, CLOSED_ROUTE_MESSAGE)

        await log_warning(f"Недостаточно мест на маршруте {route_id} для {count}")
        return Result.failure(ErrorKind.CAPACITY_CONFLICT, CAPACITY_MESSAGE)

    async def restore_seats(self, route_id: str, count: int) -> Result[int]:
        """
        Атомарно возвращает count мест (не больше seats_total).

        Returns:
            Result с остатком мест после возврата
        """
        if count < 1:
            return Result.failure(ErrorKind.VALIDATION, "Seat count must be at least 1.")

        try:
            route = await self._routes.restore_seats(route_id, count)
        except Exception as e:
            await log_error(f"Ошибка возврата {count} мест маршрута {route_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not restore seats: {e}", step="restore_seats")

        if route is None:
            return Result.failure(ErrorKind.NOT_FOUND, "Route not found.", step="restore_seats")

        await log_debug(f"Маршрут {route_id}: возвращено {count}, осталось {route.seats_left}")
        return Result.success(route.seats_left)
