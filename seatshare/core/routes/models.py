# seatshare/core/routes/models.py
"""
Модели данных маршрутов.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from seatshare.common.constants import BookingStatus, PaymentStatus, RouteStatus
from seatshare.core.users.models import DriverSummary, PassengerSummary, VehicleSummary


class RouteBooking(BaseModel):
    """Бронирование в карточке маршрута водителя."""

    id: str = Field(..., description="ID бронирования")
    booking_ref: str = Field(..., description="Код бронирования")
    passenger_id: str = Field(..., description="ID пассажира")
    seats: int = Field(..., ge=1, description="Количество мест")
    grand_total: int = Field(0, ge=0, description="Итого к оплате")
    status: BookingStatus = Field(..., description="Статус бронирования")
    payment_status: PaymentStatus = Field(PaymentStatus.PENDING, description="Статус оплаты")
    passenger: PassengerSummary | None = Field(None, description="Пассажир")

    class Config:
        from_attributes = True


class Route(BaseModel):
    """Маршрут, опубликованный водителем."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="ID маршрута")
    driver_id: str = Field(..., description="ID водителя")
    vehicle_id: str | None = Field(None, description="ID автомобиля")

    origin: str = Field(..., min_length=1, description="Откуда")
    destination: str = Field(..., min_length=1, description="Куда")
    departure_date: date = Field(..., description="Дата отправления")
    departure_time: time = Field(..., description="Время отправления")
    duration_hours: float | None = Field(None, ge=0.0, description="Длительность поездки в часах")

    # Вместимость
    seats_total: int = Field(..., ge=1, description="Всего мест")
    seats_left: int = Field(..., ge=0, description="Свободных мест")
    fare_per_seat: int = Field(..., ge=0, description="Цена за место")

    status: RouteStatus = Field(RouteStatus.UPCOMING, description="Статус маршрута")
    created_at: datetime | None = Field(None, description="Время создания")

    # Присоединённые данные (заполняются справочником маршрутов)
    driver: DriverSummary | None = Field(None, description="Водитель")
    vehicle: VehicleSummary | None = Field(None, description="Автомобиль")
    bookings: list[RouteBooking] = Field(default_factory=list, description="Бронирования")

    class Config:
        from_attributes = True

    @model_validator(mode="after")
    def check_seat_bounds(self) -> "Route":
        if self.seats_left > self.seats_total:
            raise ValueError("seats_left cannot exceed seats_total")
        return self

    @property
    def departure_at(self) -> datetime:
        """Момент отправления (локальное время маршрута)."""
        return datetime.combine(self.departure_date, self.departure_time)

    @property
    def arrival_at(self) -> datetime | None:
        """Ожидаемое прибытие, если известна длительность."""
        if self.duration_hours is None:
            return None
        return self.departure_at + timedelta(hours=self.duration_hours)

    @property
    def seats_booked(self) -> int:
        return self.seats_total - self.seats_left

    def to_record(self) -> dict[str, Any]:
        """Строка таблицы routes в JSON-совместимом виде."""
        return self.model_dump(mode="json", exclude={"driver", "vehicle", "bookings"})


class RouteCreateDTO(BaseModel):
    """DTO для публикации маршрута."""

    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    departure_date: date
    departure_time: time
    duration_hours: float | None = Field(None, ge=0.0)
    seats_total: int = Field(..., ge=1)
    fare_per_seat: int = Field(..., ge=0)
    vehicle_id: str | None = None
