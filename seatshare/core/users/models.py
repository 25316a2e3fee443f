# seatshare/core/users/models.py
"""
Краткие сведения о пользователях и автомобилях для списков и карточек.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class DriverSummary(BaseModel):
    """Водитель в карточке маршрута."""

    id: str = Field(..., description="ID водителя")
    name: str = Field("", description="Имя")
    emoji: str = Field("", description="Аватар-эмодзи")
    avg_rating: float = Field(0.0, ge=0.0, le=5.0, description="Средний рейтинг")
    total_trips: int = Field(0, ge=0, description="Количество поездок")

    class Config:
        from_attributes = True


class PassengerSummary(BaseModel):
    """Пассажир в списке заявок водителя."""

    id: str = Field(..., description="ID пассажира")
    name: str = Field("", description="Имя")
    emoji: str = Field("", description="Аватар-эмодзи")
    phone: str | None = Field(None, description="Телефон")

    class Config:
        from_attributes = True


class VehicleSummary(BaseModel):
    """Автомобиль водителя."""

    id: str = Field(..., description="ID автомобиля")
    driver_id: str = Field(..., description="ID водителя")
    make: str = Field("", description="Марка")
    model: str = Field("", description="Модель")
    color: str = Field("", description="Цвет")
    plate_number: str = Field("", description="Госномер")

    class Config:
        from_attributes = True

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.color, self.make, self.model) if part)
