# seatshare/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ActorRole(str, Enum):
    """Роль участника по отношению к конкретному бронированию."""
    PASSENGER = "passenger"
    DRIVER = "driver"


class RouteStatus(str, Enum):
    """Статусы маршрута."""
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingStatus(str, Enum):
    """Статусы бронирования."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Бронирования, которые ещё удерживают места на маршруте
ACTIVE_BOOKING_STATUSES: tuple[BookingStatus, ...] = (
    BookingStatus.PENDING,
    BookingStatus.ACCEPTED,
)


class PaymentStatus(str, Enum):
    """Статусы оплаты."""
    PENDING = "pending"
    PAID = "paid"


class PaymentMethod(str, Enum):
    """Способы оплаты."""
    CASH = "cash"
    OTHER = "other"
