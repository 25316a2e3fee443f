# seatshare/core/users/repository.py
"""
Репозиторий пользователей и автомобилей (только чтение).
Выборки принимают набор ID, чтобы списки собирались одним запросом на сущность.
"""

from __future__ import annotations

from typing import Iterable

from seatshare.core.users.models import DriverSummary, PassengerSummary, VehicleSummary
from seatshare.infra.database import DatabaseManager


def _unique(ids: Iterable[str | None]) -> list[str]:
    return sorted({i for i in ids if i})


class UserRepository:
    """Репозиторий пользователей."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def exists(self, user_id: str) -> bool:
        """Есть ли строка пользователя в БД."""
        return bool(await self._db.fetchval("SELECT EXISTS(SELECT 1 FROM users WHERE id = $1)", user_id))

    async def get_drivers(self, driver_ids: Iterable[str | None]) -> dict[str, DriverSummary]:
        """Водители по набору ID (отсутствующие пропускаются)."""
        ids = _unique(driver_ids)
        if not ids:
            return {}
        rows = await self._db.fetch(
            """
            SELECT id, name, emoji, avg_rating, total_trips
            FROM users
            WHERE id = ANY($1::text[])
            """,
            ids,
        )
        return {row["id"]: DriverSummary.model_validate(dict(row)) for row in rows}

    async def get_passengers(self, passenger_ids: Iterable[str | None]) -> dict[str, PassengerSummary]:
        """Пассажиры по набору ID."""
        ids = _unique(passenger_ids)
        if not ids:
            return {}
        rows = await self._db.fetch(
            """
            SELECT id, name, emoji, phone
            FROM users
            WHERE id = ANY($1::text[])
            """,
            ids,
        )
        return {row["id"]: PassengerSummary.model_validate(dict(row)) for row in rows}

    async def get_vehicles(self, vehicle_ids: Iterable[str | None]) -> dict[str, VehicleSummary]:
        """Автомобили по набору ID."""
        ids = _unique(vehicle_ids)
        if not ids:
            return {}
        rows = await self._db.fetch(
            """
            SELECT id, driver_id, make, model, color, plate_number
            FROM vehicles
            WHERE id = ANY($1::text[])
            """,
            ids,
        )
        return {row["id"]: VehicleSummary.model_validate(dict(row)) for row in rows}
