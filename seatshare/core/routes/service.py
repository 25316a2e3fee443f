# seatshare/core/routes/service.py
"""
Сервис маршрутов: публикация маршрута водителем и его жизненный цикл.
"""

from __future__ import annotations

from datetime import datetime

from seatshare.common.constants import RouteStatus
from seatshare.common.logger import log_error, log_info, log_warning
from seatshare.common.results import ErrorKind, Result
from seatshare.core.routes.models import Route, RouteCreateDTO
from seatshare.core.routes.repository import RouteRepository
from seatshare.core.routes.state_machine import RouteStateMachine
from seatshare.core.users.identity import (
    ACCOUNT_NOT_READY,
    IdentityProvider,
    require_user,
    wait_for_user_record,
)
from seatshare.core.users.repository import UserRepository
from seatshare.infra.event_bus import DomainEvent, EventBus, EventTypes


class RouteService:
    """Сервис маршрутов."""

    def __init__(
        self,
        routes: RouteRepository,
        users: UserRepository,
        identity: IdentityProvider,
        event_bus: EventBus | None = None,
    ) -> None:
        self._routes = routes
        self._users = users
        self._identity = identity
        self._event_bus = event_bus

    async def _notify(self, event_type: str, payload: dict) -> None:
        if self._event_bus is not None:
            await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))

    async def post_route(self, dto: RouteCreateDTO) -> Result[Route]:
        """
        Публикует маршрут от имени текущего пользователя.
        При создании все места свободны.
        """
        auth = require_user(self._identity)
        if not auth.ok:
            return Result.from_error(auth.error)
        driver_id = auth.value

        try:
            if not await wait_for_user_record(self._users, driver_id):
                return Result.failure(ErrorKind.NOT_FOUND, ACCOUNT_NOT_READY)

            if dto.vehicle_id is not None:
                vehicles = await self._users.get_vehicles([dto.vehicle_id])
                vehicle = vehicles.get(dto.vehicle_id)
                if vehicle is None or vehicle.driver_id != driver_id:
                    return Result.failure(ErrorKind.FORBIDDEN, "This vehicle is not registered to you.")

            route = Route(
                driver_id=driver_id,
                vehicle_id=dto.vehicle_id,
                origin=dto.origin.strip(),
                destination=dto.destination.strip(),
                departure_date=dto.departure_date,
                departure_time=dto.departure_time,
                duration_hours=dto.duration_hours,
                seats_total=dto.seats_total,
                seats_left=dto.seats_total,
                fare_per_seat=dto.fare_per_seat,
            )
            created = await self._routes.create(route)
        except Exception as e:
            await log_error(f"Ошибка публикации маршрута водителем {driver_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not post route: {e}")

        await log_info(f"Маршрут {created.id} опубликован: {created.origin} → {created.destination}")
        await self._notify(EventTypes.ROUTE_POSTED, {"route_id": created.id, "driver_id": driver_id})
        return Result.success(created)

    async def update_status(self, route_id: str, new_status: RouteStatus) -> Result[Route]:
        """Меняет статус маршрута (только водитель маршрута)."""
        auth = require_user(self._identity)
        if not auth.ok:
            return Result.from_error(auth.error)

        try:
            route = await self._routes.get_by_id(route_id)
            if route is None:
                return Result.failure(ErrorKind.NOT_FOUND, "Route not found.")
            if route.driver_id != auth.value:
                return Result.failure(ErrorKind.FORBIDDEN, "Only the driver can change this route.")
            return await self._apply_transition(route, new_status)
        except Exception as e:
            await log_error(f"Ошибка смены статуса маршрута {route_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not update route: {e}")

    async def cancel_route(self, route_id: str) -> Result[Route]:
        """Отменяет маршрут. Отмена необратима."""
        return await self.update_status(route_id, RouteStatus.CANCELLED)

    async def refresh_statuses(self, driver_id: str, now: datetime | None = None) -> Result[list[Route]]:
        """
        Приводит статусы незавершённых маршрутов водителя к расписанию.

        Returns:
            Маршруты, статус которых был изменён
        """
        changed: list[Route] = []
        try:
            routes = await self._routes.list_for_driver(
                driver_id,
                statuses=[RouteStatus.UPCOMING, RouteStatus.ONGOING],
            )
            for route in routes:
                target = RouteStateMachine.resolved_status(route, now)
                current = route
                # upcoming -> completed проходит через ongoing
                while current.status != target:
                    step = RouteStatus.ONGOING if current.status == RouteStatus.UPCOMING else target
                    result = await self._apply_transition(current, step)
                    if not result.ok:
                        break
                    current = result.value
                if current is not route:
                    changed.append(current)
        except Exception as e:
            await log_error(f"Ошибка обновления статусов маршрутов водителя {driver_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not refresh route statuses: {e}")

        return Result.success(changed)

    async def _apply_transition(self, route: Route, new_status: RouteStatus) -> Result[Route]:
        if route.status == new_status and RouteStateMachine.is_terminal(new_status):
            return Result.success(route)

        if not RouteStateMachine.can_transition(route.status, new_status):
            await log_warning(f"Недопустимый переход маршрута {route.id}: {route.status.value} → {new_status.value}")
            return Result.failure(
                ErrorKind.INVALID_TRANSITION,
                f"Cannot change route from {route.status.value} to {new_status.value}.",
            )

        updated = await self._routes.update_status(route.id, new_status, expected_status=route.status)
        if updated is None:
            return Result.failure(ErrorKind.INVALID_TRANSITION, "Route was modified concurrently.")

        await log_info(f"Маршрут {route.id}: {route.status.value} → {new_status.value}")
        await self._notify(
            EventTypes.ROUTE_STATUS_CHANGED,
            {
                "route_id": route.id,
                "driver_id": route.driver_id,
                "old_status": route.status.value,
                "new_status": new_status.value,
            },
        )
        return Result.success(updated)
