# seatshare/core/bookings/models.py
"""
Модели данных бронирований.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from seatshare.common.constants import (
    ACTIVE_BOOKING_STATUSES,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
)
from seatshare.core.routes.models import Route
from seatshare.core.users.models import PassengerSummary

_REF_ALPHABET = string.ascii_uppercase + string.digits


def generate_booking_ref(prefix: str = "PR", length: int = 6) -> str:
    """Человекочитаемый код бронирования, например PR7K2M9Q."""
    return prefix + "".join(secrets.choice(_REF_ALPHABET) for _ in range(length))


class FareBreakdown(BaseModel):
    """Расчёт стоимости бронирования (целые единицы валюты)."""

    fare_per_seat: int = Field(..., ge=0, description="Цена за место")
    seats: int = Field(..., ge=1, description="Количество мест")
    total_fare: int = Field(..., ge=0, description="Стоимость мест")
    service_fee: int = Field(..., ge=0, description="Сервисный сбор")
    grand_total: int = Field(..., ge=0, description="Итого к оплате")
    currency: str = Field("INR", description="Валюта")


class Booking(BaseModel):
    """Бронирование мест пассажиром."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="ID бронирования")
    booking_ref: str = Field(..., description="Код бронирования")
    route_id: str = Field(..., description="ID маршрута")
    passenger_id: str = Field(..., description="ID пассажира")

    seats: int = Field(..., ge=1, description="Количество мест")
    total_fare: int = Field(..., ge=0, description="Стоимость мест")
    service_fee: int = Field(..., ge=0, description="Сервисный сбор")
    grand_total: int = Field(..., ge=0, description="Итого к оплате")

    payment_method: PaymentMethod = Field(PaymentMethod.CASH, description="Способ оплаты")
    payment_status: PaymentStatus = Field(PaymentStatus.PENDING, description="Статус оплаты")
    status: BookingStatus = Field(BookingStatus.PENDING, description="Статус бронирования")

    created_at: datetime | None = Field(None, description="Время создания")
    updated_at: datetime | None = Field(None, description="Время изменения")
    paid_at: datetime | None = Field(None, description="Время оплаты")

    # Присоединённые данные (заполняются справочником маршрутов)
    route: Route | None = Field(None, description="Маршрут")
    passenger: PassengerSummary | None = Field(None, description="Пассажир")

    class Config:
        from_attributes = True

    @property
    def is_active(self) -> bool:
        """Удерживает ли бронирование места."""
        return self.status in ACTIVE_BOOKING_STATUSES

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    def to_record(self) -> dict[str, Any]:
        """Строка таблицы bookings в JSON-совместимом виде."""
        return self.model_dump(mode="json", exclude={"route", "passenger"})


class DriverBookings(BaseModel):
    """Бронирования по всем маршрутам водителя."""

    bookings: list[Booking] = Field(default_factory=list)
    pending_count: int = Field(0, ge=0, description="Ожидают решения водителя")
