# seatshare/core/locations/tracker.py
"""
Отслеживание позиции водителя во время поездки.

Хранится только последняя позиция: каждый отчёт заменяет предыдущий,
наблюдатели получают событие замены.
"""

from __future__ import annotations

from datetime import datetime, timezone

from seatshare.common.logger import log_debug, log_error, log_info
from seatshare.common.results import ErrorKind, Result
from seatshare.core.locations.models import Location
from seatshare.core.locations.repository import LocationRepository


class LocationTracker:
    """Приём и выдача позиции поездки."""

    def __init__(self, locations: LocationRepository) -> None:
        self._locations = locations

    @staticmethod
    def _validate(lat: float, lng: float, speed_kmh: float, heading_deg: float | None) -> str | None:
        if not -90.0 <= lat <= 90.0:
            return "Latitude must be between -90 and 90."
        if not -180.0 <= lng <= 180.0:
            return "Longitude must be between -180 and 180."
        if speed_kmh < 0:
            return "Speed cannot be negative."
        if heading_deg is not None and not 0.0 <= heading_deg < 360.0:
            return "Heading must be in [0, 360)."
        return None

    async def report(
        self,
        trip_id: str,
        driver_id: str,
        lat: float,
        lng: float,
        speed_kmh: float = 0.0,
        heading_deg: float | None = None,
        recorded_at: datetime | None = None,
    ) -> Result[Location]:
        """
        Записывает позицию водителя, заменяя предыдущую.

        Returns:
            Result с сохранённой позицией
        """
        error = self._validate(lat, lng, speed_kmh, heading_deg)
        if error is not None:
            return Result.failure(ErrorKind.VALIDATION, error)

        location = Location(
            trip_id=trip_id,
            driver_id=driver_id,
            lat=lat,
            lng=lng,
            speed_kmh=speed_kmh,
            heading_deg=heading_deg,
            recorded_at=recorded_at or datetime.now(timezone.utc),
        )
        try:
            saved, inserted = await self._locations.upsert(location)
        except Exception as e:
            await log_error(f"Ошибка записи позиции поездки {trip_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not save location: {e}")

        if inserted:
            await log_info(f"Поездка {trip_id}: первая позиция от водителя {driver_id}")
        else:
            await log_debug(f"Поездка {trip_id}: позиция ({saved.lat:.5f}, {saved.lng:.5f})")
        return Result.success(saved)

    async def latest(self, trip_id: str) -> Result[Location | None]:
        """Последняя позиция поездки; None, если отчётов ещё не было."""
        try:
            return Result.success(await self._locations.get(trip_id))
        except Exception as e:
            await log_error(f"Ошибка чтения позиции поездки {trip_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not load location: {e}")

    async def clear(self, trip_id: str) -> Result[bool]:
        """Удаляет позицию по окончании поездки."""
        try:
            deleted = await self._locations.delete(trip_id)
        except Exception as e:
            await log_error(f"Ошибка удаления позиции поездки {trip_id}: {e}", exc_info=True)
            return Result.failure(ErrorKind.TRANSPORT, f"Could not clear location: {e}")

        if deleted:
            await log_info(f"Поездка {trip_id}: позиция удалена")
        return Result.success(deleted)
