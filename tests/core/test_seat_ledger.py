# tests/core/test_seat_ledger.py
"""
Тесты для учёта свободных мест маршрута.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from seatshare.common.constants import RouteStatus
from seatshare.common.results import ErrorKind
from seatshare.core.routes.ledger import CAPACITY_MESSAGE, CLOSED_ROUTE_MESSAGE, SeatLedger
from seatshare.core.routes.repository import RouteRepository

from tests.fakes import FakeRouteRepository, make_route


def route_row(**overrides) -> dict:
    route = make_route(id="r-1", **overrides)
    return route.model_dump(exclude={"driver", "vehicle", "bookings"})


class TestReserveSeats:
    """Тесты для списания мест."""

    @pytest.mark.asyncio
    async def test_reserve_decrements(self, ledger: SeatLedger, routes: FakeRouteRepository, route) -> None:
        result = await ledger.reserve_seats(route.id, 3)

        assert result.ok
        assert result.value == 1
        assert routes.routes[route.id].seats_left == 1

    @pytest.mark.asyncio
    async def test_reserve_more_than_left_is_capacity_conflict(self, ledger: SeatLedger, routes, route) -> None:
        """Нехватка мест: ошибка capacity_conflict, остаток не меняется."""
        result = await ledger.reserve_seats(route.id, 5)

        assert not result.ok
        assert result.error.kind == ErrorKind.CAPACITY_CONFLICT
        assert result.error.message == CAPACITY_MESSAGE
        assert routes.routes[route.id].seats_left == 4

    @pytest.mark.asyncio
    async def test_reserve_on_cancelled_route(self, ledger: SeatLedger, routes: FakeRouteRepository) -> None:
        """Закрытый маршрут: ошибка перехода, а не нехватка мест."""
        cancelled = routes.add(make_route(status=RouteStatus.CANCELLED))

        result = await ledger.reserve_seats(cancelled.id, 1)

        assert result.error.kind == ErrorKind.INVALID_TRANSITION
        assert result.error.message == CLOSED_ROUTE_MESSAGE

    @pytest.mark.asyncio
    async def test_reserve_on_missing_route(self, ledger: SeatLedger) -> None:
        result = await ledger.reserve_seats("missing", 1)

        assert result.error.kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_reserve_rejects_non_positive_count(self, ledger: SeatLedger, route) -> None:
        result = await ledger.reserve_seats(route.id, 0)

        assert result.error.kind == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_transport_error(self, ledger: SeatLedger, routes: FakeRouteRepository, route) -> None:
        routes.fail("reserve_seats")

        result = await ledger.reserve_seats(route.id, 1)

        assert result.error.kind == ErrorKind.TRANSPORT
        assert result.error.step == "reserve_seats"

    @pytest.mark.asyncio
    async def test_concurrent_reservations_never_oversell(self, ledger: SeatLedger, routes, route) -> None:
        """Десять параллельных заявок на 4 места: успешны ровно четыре."""
        results = await asyncio.gather(*(ledger.reserve_seats(route.id, 1) for _ in range(10)))

        assert sum(1 for r in results if r.ok) == 4
        assert all(r.error.kind == ErrorKind.CAPACITY_CONFLICT for r in results if not r.ok)
        assert routes.routes[route.id].seats_left == 0

    @pytest.mark.asyncio
    async def test_last_seat_goes_to_one_caller(self, ledger: SeatLedger, routes: FakeRouteRepository) -> None:
        last = routes.add(make_route(seats_left=1))

        first, second = await asyncio.gather(ledger.reserve_seats(last.id, 1), ledger.reserve_seats(last.id, 1))

        assert sorted([first.ok, second.ok]) == [False, True]
        assert routes.routes[last.id].seats_left == 0


class TestRestoreSeats:
    """Тесты для возврата мест."""

    @pytest.mark.asyncio
    async def test_restore_increments(self, ledger: SeatLedger, routes: FakeRouteRepository) -> None:
        booked = routes.add(make_route(seats_left=1))

        result = await ledger.restore_seats(booked.id, 2)

        assert result.value == 3

    @pytest.mark.asyncio
    async def test_restore_is_capped_at_total(self, ledger: SeatLedger, routes, route) -> None:
        """Остаток не превышает seats_total."""
        result = await ledger.restore_seats(route.id, 3)

        assert result.value == 4
        assert routes.routes[route.id].seats_left == 4

    @pytest.mark.asyncio
    async def test_restore_missing_route(self, ledger: SeatLedger) -> None:
        result = await ledger.restore_seats("missing", 1)

        assert result.error.kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_restore_transport_error(self, ledger: SeatLedger, routes: FakeRouteRepository, route) -> None:
        routes.fail("restore_seats", TimeoutError("timeout"))

        result = await ledger.restore_seats(route.id, 1)

        assert result.error.kind == ErrorKind.TRANSPORT
        assert result.error.step == "restore_seats"


class TestConditionalUpdates:
    """Тесты SQL: проверка и списание выполняются одним запросом."""

    @pytest.mark.asyncio
    async def test_reserve_is_single_conditional_update(self, mock_db: AsyncMock) -> None:
        mock_db.fetchrow = AsyncMock(return_value=route_row(seats_left=2))
        ledger = SeatLedger(RouteRepository(mock_db))

        result = await ledger.reserve_seats("r-1", 2)

        assert result.value == 2
        mock_db.fetchrow.assert_awaited_once()
        sql, route_id, count, status = mock_db.fetchrow.await_args.args
        assert sql.lstrip().startswith("UPDATE routes")
        assert "seats_left = seats_left - $2" in sql
        assert "seats_left >= $2" in sql
        assert (route_id, count, status) == ("r-1", 2, "upcoming")
        mock_db.fetch.assert_not_awaited()
        mock_db.fetchval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reserve_no_row_then_reads_route(self, mock_db: AsyncMock) -> None:
        """Только после отказа UPDATE маршрут читается, чтобы назвать причину."""
        mock_db.fetchrow = AsyncMock(side_effect=[None, route_row(seats_left=1)])
        ledger = SeatLedger(RouteRepository(mock_db))

        result = await ledger.reserve_seats("r-1", 2)

        assert result.error.kind == ErrorKind.CAPACITY_CONFLICT
        update_sql, select_sql = (call.args[0] for call in mock_db.fetchrow.await_args_list)
        assert update_sql.lstrip().startswith("UPDATE routes")
        assert select_sql.lstrip().startswith("SELECT")

    @pytest.mark.asyncio
    async def test_reserve_no_row_and_no_route(self, mock_db: AsyncMock) -> None:
        mock_db.fetchrow = AsyncMock(return_value=None)
        ledger = SeatLedger(RouteRepository(mock_db))

        result = await ledger.reserve_seats("r-1", 2)

        assert result.error.kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_restore_caps_in_sql(self, mock_db: AsyncMock) -> None:
        mock_db.fetchrow = AsyncMock(return_value=route_row())
        ledger = SeatLedger(RouteRepository(mock_db))

        await ledger.restore_seats("r-1", 1)

        sql = mock_db.fetchrow.await_args.args[0]
        assert "LEAST(seats_total, seats_left + $2)" in sql

    @pytest.mark.asyncio
    async def test_reserve_publishes_route_change(self, mock_db: AsyncMock) -> None:
        """После списания изменение маршрута уходит в поток изменений."""
        mock_db.fetchrow = AsyncMock(return_value=route_row(seats_left=3))
        feed = AsyncMock()
        ledger = SeatLedger(RouteRepository(mock_db, feed))

        await ledger.reserve_seats("r-1", 1)

        action, table, record = feed.publish.await_args.args
        assert action.value == "update"
        assert table == "routes"
        assert record["seats_left"] == 3
