# seatshare/core/locations/repository.py
"""
Репозиторий местоположений: одна строка на поездку, запись через upsert.
"""

from __future__ import annotations

from seatshare.core.locations.models import Location
from seatshare.infra.change_feed import ChangeAction, ChangeFeed
from seatshare.infra.database import DatabaseManager

LOCATION_COLUMNS = "trip_id, driver_id, lat, lng, speed_kmh, heading_deg, recorded_at"


class LocationRepository:
    """Репозиторий местоположений."""

    def __init__(self, db: DatabaseManager, feed: ChangeFeed | None = None) -> None:
        self._db = db
        self._feed = feed

    async def upsert(self, location: Location) -> tuple[Location, bool]:
        """
        Записывает позицию, заменяя предыдущую позицию поездки.

        Returns:
            (сохранённая позиция, True если строка создана впервые)
        """
        row = await self._db.fetchrow(
            f"""
            INSERT INTO locations (trip_id, driver_id, lat, lng, speed_kmh, heading_deg, recorded_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (trip_id) DO UPDATE
            SET driver_id = EXCLUDED.driver_id,
                lat = EXCLUDED.lat,
                lng = EXCLUDED.lng,
                speed_kmh = EXCLUDED.speed_kmh,
                heading_deg = EXCLUDED.heading_deg,
                recorded_at = EXCLUDED.recorded_at
            RETURNING {LOCATION_COLUMNS}, (xmax = 0) AS inserted
            """,
            location.trip_id,
            location.driver_id,
            location.lat,
            location.lng,
            location.speed_kmh,
            location.heading_deg,
            location.recorded_at,
        )
        data = dict(row)
        inserted = bool(data.pop("inserted"))
        saved = Location.model_validate(data)

        if self._feed is not None:
            action = ChangeAction.INSERT if inserted else ChangeAction.UPDATE
            await self._feed.publish(action, "locations", saved.to_record())
        return saved, inserted

    async def get(self, trip_id: str) -> Location | None:
        row = await self._db.fetchrow(
            f"SELECT {LOCATION_COLUMNS} FROM locations WHERE trip_id = $1",
            trip_id,
        )
        return Location.model_validate(dict(row)) if row else None

    async def delete(self, trip_id: str) -> bool:
        """Удаляет позицию поездки. Возвращает True, если строка была."""
        status = await self._db.execute("DELETE FROM locations WHERE trip_id = $1", trip_id)
        deleted = status.endswith(" 1")
        if deleted and self._feed is not None:
            await self._feed.publish(ChangeAction.DELETE, "locations", {"trip_id": trip_id})
        return deleted
