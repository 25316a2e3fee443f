# seatshare/core/users/__init__.py
"""
Домен пользователей.
Идентификация текущего пользователя и краткие карточки водителей, пассажиров, автомобилей.
"""

from seatshare.core.users.identity import (
    HeaderIdentityProvider,
    IdentityProvider,
    StaticIdentityProvider,
    require_user,
    wait_for_user_record,
)
from seatshare.core.users.models import DriverSummary, PassengerSummary, VehicleSummary
from seatshare.core.users.repository import UserRepository

__all__ = [
    "HeaderIdentityProvider",
    "IdentityProvider",
    "StaticIdentityProvider",
    "require_user",
    "wait_for_user_record",
    "DriverSummary",
    "PassengerSummary",
    "VehicleSummary",
    "UserRepository",
]
