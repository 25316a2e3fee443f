# seatshare/api/dependencies.py
"""
Зависимости FastAPI: контейнер приложения и сервисы текущего запроса.
"""

from __future__ import annotations

from fastapi import Depends, Request

from seatshare.api.container import ServiceContainer
from seatshare.core.bookings.orchestrator import BookingOrchestrator
from seatshare.core.directory.service import RouteDirectory
from seatshare.core.locations.tracker import LocationTracker
from seatshare.core.routes.service import RouteService
from seatshare.core.users.identity import HeaderIdentityProvider, IdentityProvider


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_identity(request: Request) -> IdentityProvider:
    from seatshare.config import settings

    return HeaderIdentityProvider(request.headers, settings.identity.USER_ID_HEADER)


def get_orchestrator(
    container: ServiceContainer = Depends(get_container),
    identity: IdentityProvider = Depends(get_identity),
) -> BookingOrchestrator:
    return BookingOrchestrator(
        container.bookings,
        container.routes,
        identity,
        fares=container.fares,
        event_bus=container.event_bus,
    )


def get_route_service(
    container: ServiceContainer = Depends(get_container),
    identity: IdentityProvider = Depends(get_identity),
) -> RouteService:
    return RouteService(container.routes, container.users, identity, container.event_bus)


def get_directory(container: ServiceContainer = Depends(get_container)) -> RouteDirectory:
    return RouteDirectory(container.routes, container.bookings, container.users)


def get_tracker(container: ServiceContainer = Depends(get_container)) -> LocationTracker:
    return LocationTracker(container.locations)
