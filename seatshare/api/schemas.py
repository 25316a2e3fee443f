# seatshare/api/schemas.py
"""
Модели запросов и ответов HTTP API.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from seatshare.common.constants import PaymentMethod, RouteStatus


class HealthStatus(BaseModel):
    """Состояние сервиса и его зависимостей."""
    status: str
    service: str
    version: str
    checks: dict[str, bool] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    detail: str
    kind: str
    step: str | None = None


class BookingRequest(BaseModel):
    """Запрос на бронирование мест."""
    seats: int = Field(..., ge=1, description="Количество мест")
    payment_method: PaymentMethod = Field(PaymentMethod.CASH, description="Способ оплаты")


class SeatsUpdateRequest(BaseModel):
    seats: int = Field(..., ge=1, description="Новое количество мест")


class RouteStatusRequest(BaseModel):
    status: RouteStatus


class LocationReport(BaseModel):
    """Отчёт водителя о позиции."""
    lat: float = Field(..., description="Широта")
    lng: float = Field(..., description="Долгота")
    speed_kmh: float = Field(0.0, description="Скорость, км/ч")
    heading_deg: float | None = Field(None, description="Курс, градусы")


class ClearedResponse(BaseModel):
    cleared: bool
