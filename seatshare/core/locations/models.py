# seatshare/core/locations/models.py
"""
Модель текущего местоположения поездки.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class Location(BaseModel):
    """Последняя известная позиция водителя в поездке (одна на поездку)."""

    trip_id: str = Field(..., description="ID поездки (ID маршрута)")
    driver_id: str = Field(..., description="ID водителя")
    lat: float = Field(..., ge=-90.0, le=90.0, description="Широта")
    lng: float = Field(..., ge=-180.0, le=180.0, description="Долгота")
    speed_kmh: float = Field(0.0, ge=0.0, description="Скорость, км/ч")
    heading_deg: float | None = Field(None, ge=0.0, lt=360.0, description="Курс, градусы")
    recorded_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Время замера",
    )

    class Config:
        from_attributes = True

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
