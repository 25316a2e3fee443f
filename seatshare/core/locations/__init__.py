# seatshare/core/locations/__init__.py
"""
Домен местоположений.
Последняя позиция водителя в поездке.
"""

from seatshare.core.locations.models import Location
from seatshare.core.locations.repository import LocationRepository
from seatshare.core.locations.tracker import LocationTracker

__all__ = [
    "Location",
    "LocationRepository",
    "LocationTracker",
]
