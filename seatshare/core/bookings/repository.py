# seatshare/core/bookings/repository.py
"""
Репозиторий бронирований.

Переходы статуса, оплата и изменение мест выполняются условными
UPDATE: запрос проверяет ожидаемое состояние строки, поэтому из двух
конкурентных изменений проходит только одно.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from asyncpg import Record

from seatshare.common.constants import ACTIVE_BOOKING_STATUSES, BookingStatus, PaymentStatus
from seatshare.core.bookings.models import Booking, FareBreakdown
from seatshare.infra.change_feed import ChangeAction, ChangeFeed
from seatshare.infra.database import DatabaseManager

BOOKING_COLUMNS = """
    id, booking_ref, route_id, passenger_id, seats,
    total_fare, service_fee, grand_total,
    payment_method, payment_status, status,
    created_at, updated_at, paid_at
"""

# Имя частичного уникального индекса «одно активное бронирование на маршрут»
ACTIVE_BOOKING_INDEX = "unique_passenger_route"

_ACTIVE_STATUSES = [status.value for status in ACTIVE_BOOKING_STATUSES]


class BookingRepository:
    """Репозиторий бронирований."""

    def __init__(self, db: DatabaseManager, feed: ChangeFeed | None = None) -> None:
        """
        Args:
            db: Менеджер базы данных
            feed: Поток изменений (None отключает публикацию)
        """
        self._db = db
        self._feed = feed

    @staticmethod
    def _row_to_booking(row: Record) -> Booking:
        return Booking.model_validate(dict(row))

    async def _publish(self, action: ChangeAction, booking: Booking) -> None:
        if self._feed is not None:
            await self._feed.publish(action, "bookings", booking.to_record())

    async def create(self, booking: Booking) -> Booking:
        """
        Сохраняет бронирование.

        Raises:
            asyncpg.UniqueViolationError: дубликат кода бронирования или
                второе активное бронирование пассажира на маршрут
        """
        row = await self._db.fetchrow(
            f"""
            INSERT INTO bookings (
                id, booking_ref, route_id, passenger_id, seats,
                total_fare, service_fee, grand_total,
                payment_method, payment_status, status
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            RETURNING {BOOKING_COLUMNS}
            """,
            booking.id,
            booking.booking_ref,
            booking.route_id,
            booking.passenger_id,
            booking.seats,
            booking.total_fare,
            booking.service_fee,
            booking.grand_total,
            booking.payment_method.value,
            booking.payment_status.value,
            booking.status.value,
        )
        created = self._row_to_booking(row)
        await self._publish(ChangeAction.INSERT, created)
        return created

    async def get_by_id(self, booking_id: str) -> Booking | None:
        row = await self._db.fetchrow(
            f"SELECT {BOOKING_COLUMNS} FROM bookings WHERE id = $1",
            booking_id,
        )
        return self._row_to_booking(row) if row else None

    async def find_active(self, route_id: str, passenger_id: str) -> Booking | None:
        """Активное бронирование пассажира на маршрут, если есть."""
        row = await self._db.fetchrow(
            f"""
            SELECT {BOOKING_COLUMNS}
            FROM bookings
            WHERE route_id = $1
              AND passenger_id = $2
              AND status = ANY($3::text[])
            """,
            route_id,
            passenger_id,
            _ACTIVE_STATUSES,
        )
        return self._row_to_booking(row) if row else None

    # =========================================================================
    # УСЛОВНЫЕ ИЗМЕНЕНИЯ
    # =========================================================================

    async def update_status(
        self,
        booking_id: str,
        new_status: BookingStatus,
        expected_status: BookingStatus,
    ) -> Booking | None:
        """
        Меняет статус, если текущий равен ожидаемому.

        Returns:
            Обновлённое бронирование или None, если статус уже другой
        """
        row = await self._db.fetchrow(
            f"""
            UPDATE bookings
            SET status = $2, updated_at = NOW()
            WHERE id = $1 AND status = $3
            RETURNING {BOOKING_COLUMNS}
            """,
            booking_id,
            new_status.value,
            expected_status.value,
        )
        if row is None:
            return None
        booking = self._row_to_booking(row)
        await self._publish(ChangeAction.UPDATE, booking)
        return booking

    async def mark_paid(self, booking_id: str) -> Booking | None:
        """
        Отмечает оплату активного неоплаченного бронирования.

        Returns:
            Обновлённое бронирование или None, если условие не выполнено
        """
        row = await self._db.fetchrow(
            f"""
            UPDATE bookings
            SET payment_status = $2, paid_at = NOW(), updated_at = NOW()
            WHERE id = $1
              AND payment_status = $3
              AND status = ANY($4::text[])
            RETURNING {BOOKING_COLUMNS}
            """,
            booking_id,
            PaymentStatus.PAID.value,
            PaymentStatus.PENDING.value,
            _ACTIVE_STATUSES,
        )
        if row is None:
            return None
        booking = self._row_to_booking(row)
        await self._publish(ChangeAction.UPDATE, booking)
        return booking

    async def update_seats(
        self,
        booking_id: str,
        expected_seats: int,
        fare: FareBreakdown,
    ) -> Booking | None:
        """
        Меняет количество мест ожидающего бронирования, если оно не менялось.

        Returns:
            Обновлённое бронирование или None, если бронирование уже не
            ожидающее или количество мест изменилось
        """
        row = await self._db.fetchrow(
            f"""
            UPDATE bookings
            SET seats = $3,
                total_fare = $4,
                service_fee = $5,
                grand_total = $6,
                updated_at = NOW()
            WHERE id = $1
              AND seats = $2
              AND status = $7
            RETURNING {BOOKING_COLUMNS}
            """,
            booking_id,
            expected_seats,
            fare.seats,
            fare.total_fare,
            fare.service_fee,
            fare.grand_total,
            BookingStatus.PENDING.value,
        )
        if row is None:
            return None
        booking = self._row_to_booking(row)
        await self._publish(ChangeAction.UPDATE, booking)
        return booking

    # =========================================================================
    # ВЫБОРКИ
    # =========================================================================

    async def list_for_passenger(self, passenger_id: str) -> list[Booking]:
        """Бронирования пассажира, новые первыми."""
        rows = await self._db.fetch(
            f"""
            SELECT {BOOKING_COLUMNS}
            FROM bookings
            WHERE passenger_id = $1
            ORDER BY created_at DESC
            """,
            passenger_id,
        )
        return [self._row_to_booking(row) for row in rows]

    async def list_for_routes(
        self,
        route_ids: Iterable[str],
        statuses: Sequence[BookingStatus] | None = None,
    ) -> list[Booking]:
        """Бронирования набора маршрутов одним запросом, новые первыми."""
        ids = sorted(set(route_ids))
        if not ids:
            return []
        status_values = [status.value for status in statuses] if statuses else None
        rows = await self._db.fetch(
            f"""
            SELECT {BOOKING_COLUMNS}
            FROM bookings
            WHERE route_id = ANY($1::text[])
              AND ($2::text[] IS NULL OR status = ANY($2::text[]))
            ORDER BY created_at DESC
            """,
            ids,
            status_values,
        )
        return [self._row_to_booking(row) for row in rows]
