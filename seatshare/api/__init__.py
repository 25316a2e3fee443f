# seatshare/api/__init__.py
"""
HTTP и WebSocket интерфейс.
"""

from seatshare.api.app import create_app
from seatshare.api.container import ServiceContainer, build_container

__all__ = [
    "create_app",
    "ServiceContainer",
    "build_container",
]
