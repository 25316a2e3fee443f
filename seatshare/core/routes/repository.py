# seatshare/core/routes/repository.py
"""
Репозиторий маршрутов.

Изменения мест выполняются одним условным UPDATE на стороне БД:
проверка остатка и списание происходят атомарно, без чтения перед записью.
После каждой зафиксированной записи изменение публикуется в поток изменений.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from asyncpg import Record

from seatshare.common.constants import RouteStatus
from seatshare.core.routes.models import Route
from seatshare.infra.change_feed import ChangeAction, ChangeFeed
from seatshare.infra.database import DatabaseManager

ROUTE_COLUMNS = """
    id, driver_id, vehicle_id, origin, destination,
    departure_date, departure_time, duration_hours,
    seats_total, seats_left, fare_per_seat, status, created_at
"""


def like_pattern(text: str) -> str | None:
    """Шаблон ILIKE «содержит» с экранированием спецсимволов; пустой текст не фильтрует."""
    text = (text or "").strip()
    if not text:
        return None
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class RouteRepository:
    """Репозиторий маршрутов."""

    def __init__(self, db: DatabaseManager, feed: ChangeFeed | None = None) -> None:
        """
        Args:
            db: Менеджер базы данных
            feed: Поток изменений (None отключает публикацию)
        """
        self._db = db
        self._feed = feed

    @staticmethod
    def _row_to_route(row: Record) -> Route:
        return Route.model_validate(dict(row))

    async def _publish(self, action: ChangeAction, route: Route) -> None:
        if self._feed is not None:
            await self._feed.publish(action, "routes", route.to_record())

    async def create(self, route: Route) -> Route:
        """Сохраняет новый маршрут."""
        row = await self._db.fetchrow(
            f"""
            INSERT INTO routes (
                id, driver_id, vehicle_id, origin, destination,
                departure_date, departure_time, duration_hours,
                seats_total, seats_left, fare_per_seat, status
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
            RETURNING {ROUTE_COLUMNS}
            """,
            route.id,
            route.driver_id,
            route.vehicle_id,
            route.origin,
            route.destination,
            route.departure_date,
            route.departure_time,
            route.duration_hours,
            route.seats_total,
            route.seats_left,
            route.fare_per_seat,
            route.status.value,
        )
        created = self._row_to_route(row)
        await self._publish(ChangeAction.INSERT, created)
        return created

    async def get_by_id(self, route_id: str) -> Route | None:
        row = await self._db.fetchrow(
            f"SELECT {ROUTE_COLUMNS} FROM routes WHERE id = $1",
            route_id,
        )
        return self._row_to_route(row) if row else None

    async def get_many(self, route_ids: Iterable[str]) -> dict[str, Route]:
        """Маршруты по набору ID одним запросом."""
        ids = sorted(set(route_ids))
        if not ids:
            return {}
        rows = await self._db.fetch(
            f"SELECT {ROUTE_COLUMNS} FROM routes WHERE id = ANY($1::text[])",
            ids,
        )
        return {row["id"]: self._row_to_route(row) for row in rows}

    # =========================================================================
    # МЕСТА
    # =========================================================================

    async def reserve_seats(self, route_id: str, count: int) -> Route | None:
        """
        Списывает места, только если их хватает.

        Returns:
            Маршрут после списания или None, если мест не хватило
            (или маршрут не принимает бронирования)
        """
        row = await self._db.fetchrow(
            f"""
            UPDATE routes
            SET seats_left = seats_left - $2
            WHERE id = $1
              AND status = $3
              AND seats_left >= $2
            RETURNING {ROUTE_COLUMNS}
            """,
            route_id,
            count,
            RouteStatus.UPCOMING.value,
        )
        if row is None:
            return None
        route = self._row_to_route(row)
        await self._publish(ChangeAction.UPDATE, route)
        return route

    async def restore_seats(self, route_id: str, count: int) -> Route | None:
        """
        Возвращает места с ограничением сверху seats_total.

        Returns:
            Маршрут после возврата или None, если маршрута нет
        """
        row = await self._db.fetchrow(
            f"""
            UPDATE routes
            SET seats_left = LEAST(seats_total, seats_left + $2)
            WHERE id = $1
            RETURNING {ROUTE_COLUMNS}
            """,
            route_id,
            count,
        )
        if row is None:
            return None
        route = self._row_to_route(row)
        await self._publish(ChangeAction.UPDATE, route)
        return route

    # =========================================================================
    # СТАТУС
    # =========================================================================

    async def update_status(
        self,
        route_id: str,
        new_status: RouteStatus,
        expected_status: RouteStatus,
    ) -> Route | None:
        """
        Меняет статус, если текущий статус равен ожидаемому.

        Returns:
            Обновлённый маршрут или None, если статус успел измениться
        """
        row = await self._db.fetchrow(
            f"""
            UPDATE routes
            SET status = $2
            WHERE id = $1 AND status = $3
            RETURNING {ROUTE_COLUMNS}
            """,
            route_id,
            new_status.value,
            expected_status.value,
        )
        if row is None:
            return None
        route = self._row_to_route(row)
        await self._publish(ChangeAction.UPDATE, route)
        return route

    # =========================================================================
    # ВЫБОРКИ
    # =========================================================================

    async def search(self, origin: str, destination: str, min_seats: int) -> list[Route]:
        """
        Предстоящие маршруты с подстрочным совпадением (без учёта регистра)
        и не менее чем min_seats свободными местами.
        """
        rows = await self._db.fetch(
            f"""
            SELECT {ROUTE_COLUMNS}
            FROM routes
            WHERE status = $1
              AND seats_left >= $2
              AND ($3::text IS NULL OR origin ILIKE $3)
              AND ($4::text IS NULL OR destination ILIKE $4)
            ORDER BY departure_date ASC, departure_time ASC
            """,
            RouteStatus.UPCOMING.value,
            min_seats,
            like_pattern(origin),
            like_pattern(destination),
        )
        return [self._row_to_route(row) for row in rows]

    async def list_for_driver(
        self,
        driver_id: str,
        statuses: Sequence[RouteStatus],
        min_seats: int = 0,
        limit: int | None = None,
    ) -> list[Route]:
        """Маршруты водителя в заданных статусах, по времени отправления."""
        rows = await self._db.fetch(
            f"""
            SELECT {ROUTE_COLUMNS}
            FROM routes
            WHERE driver_id = $1
              AND status = ANY($2::text[])
              AND seats_left >= $3
            ORDER BY departure_date ASC, departure_time ASC
            LIMIT $4
            """,
            driver_id,
            [status.value for status in statuses],
            min_seats,
            limit,
        )
        return [self._row_to_route(row) for row in rows]

    async def list_ids_for_driver(self, driver_id: str) -> list[str]:
        """ID всех маршрутов водителя."""
        rows = await self._db.fetch("SELECT id FROM routes WHERE driver_id = $1", driver_id)
        return [row["id"] for row in rows]
