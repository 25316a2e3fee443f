# tests/core/test_location_tracker.py
"""
Тесты для отслеживания позиции поездки.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from seatshare.common.results import ErrorKind
from seatshare.core.locations.models import Location
from seatshare.core.locations.repository import LocationRepository
from seatshare.core.locations.tracker import LocationTracker

from tests.fakes import FakeLocationRepository


class TestReport:
    """Тесты для приёма позиции."""

    @pytest.mark.asyncio
    async def test_report_replaces_previous(self, tracker: LocationTracker, locations: FakeLocationRepository) -> None:
        """Хранится одна строка на поездку: новый отчёт заменяет старый."""
        await tracker.report("trip-1", "driver-1", 12.97, 77.59, speed_kmh=40.0, heading_deg=90.0)
        await tracker.report("trip-1", "driver-1", 12.98, 77.60, speed_kmh=35.0)

        latest = await tracker.latest("trip-1")

        assert len(locations.rows) == 1
        assert latest.value.lat == 12.98
        assert latest.value.heading_deg is None

    @pytest.mark.asyncio
    async def test_latest_without_reports(self, tracker: LocationTracker) -> None:
        result = await tracker.latest("trip-unknown")

        assert result.ok
        assert result.value is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "lat,lng,speed,heading,message",
        [
            (91.0, 0.0, 0.0, None, "Latitude must be between -90 and 90."),
            (0.0, -180.5, 0.0, None, "Longitude must be between -180 and 180."),
            (0.0, 0.0, -5.0, None, "Speed cannot be negative."),
            (0.0, 0.0, 10.0, 360.0, "Heading must be in [0, 360)."),
        ],
    )
    async def test_invalid_reading(self, tracker: LocationTracker, locations, lat, lng, speed, heading, message) -> None:
        result = await tracker.report("trip-1", "driver-1", lat, lng, speed_kmh=speed, heading_deg=heading)

        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error.message == message
        assert locations.rows == {}

    @pytest.mark.asyncio
    async def test_boundary_values_accepted(self, tracker: LocationTracker) -> None:
        result = await tracker.report("trip-1", "driver-1", -90.0, 180.0, speed_kmh=0.0, heading_deg=0.0)

        assert result.ok

    @pytest.mark.asyncio
    async def test_storage_error(self, tracker: LocationTracker, locations: FakeLocationRepository) -> None:
        locations.fail("upsert")

        result = await tracker.report("trip-1", "driver-1", 12.9, 77.5)

        assert result.error.kind == ErrorKind.TRANSPORT


class TestClear:
    """Тесты для удаления позиции."""

    @pytest.mark.asyncio
    async def test_clear(self, tracker: LocationTracker) -> None:
        await tracker.report("trip-1", "driver-1", 12.9, 77.5)

        cleared = await tracker.clear("trip-1")
        again = await tracker.clear("trip-1")

        assert cleared.value is True
        assert again.value is False
        assert (await tracker.latest("trip-1")).value is None


class TestLocationRepository:
    """Тесты SQL репозитория позиций."""

    @pytest.mark.asyncio
    async def test_upsert_reports_insert_or_update(self, mock_db: AsyncMock) -> None:
        """Признак вставки берётся из RETURNING и определяет тип события."""
        location = Location(trip_id="trip-1", driver_id="driver-1", lat=12.9, lng=77.5)
        row = {**location.model_dump(), "inserted": False}
        mock_db.fetchrow = AsyncMock(return_value=row)
        feed = AsyncMock()

        saved, inserted = await LocationRepository(mock_db, feed).upsert(location)

        sql = mock_db.fetchrow.await_args.args[0]
        assert "ON CONFLICT (trip_id) DO UPDATE" in sql
        assert inserted is False
        assert saved.trip_id == "trip-1"
        assert feed.publish.await_args.args[0].value == "update"

    @pytest.mark.asyncio
    async def test_delete_publishes_delete(self, mock_db: AsyncMock) -> None:
        mock_db.execute = AsyncMock(return_value="DELETE 1")
        feed = AsyncMock()

        deleted = await LocationRepository(mock_db, feed).delete("trip-1")

        assert deleted is True
        action, table, record = feed.publish.await_args.args
        assert (action.value, table, record) == ("delete", "locations", {"trip_id": "trip-1"})

    @pytest.mark.asyncio
    async def test_delete_missing_row(self, mock_db: AsyncMock) -> None:
        mock_db.execute = AsyncMock(return_value="DELETE 0")
        feed = AsyncMock()

        assert await LocationRepository(mock_db, feed).delete("trip-1") is False
        feed.publish.assert_not_awaited()
