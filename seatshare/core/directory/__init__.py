# seatshare/core/directory/__init__.py
"""
Справочник маршрутов (чтение).
"""

from seatshare.core.directory.service import ALL_ROUTES, RouteDirectory

__all__ = [
    "ALL_ROUTES",
    "RouteDirectory",
]
