# seatshare/api/routes.py
"""
REST endpoints: маршруты, бронирования, позиция поездки.
Личность пользователя приходит в заголовке от шлюза аутентификации.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from seatshare.api.dependencies import (
    get_directory,
    get_identity,
    get_orchestrator,
    get_route_service,
    get_tracker,
)
from seatshare.api.errors import OperationFailed, unwrap
from seatshare.api.schemas import (
    BookingRequest,
    ClearedResponse,
    LocationReport,
    RouteStatusRequest,
    SeatsUpdateRequest,
)
from seatshare.common.results import ErrorKind, OperationError
from seatshare.core.bookings.models import Booking, DriverBookings, FareBreakdown
from seatshare.core.bookings.orchestrator import BookingOrchestrator
from seatshare.core.directory.service import RouteDirectory
from seatshare.core.locations.models import Location
from seatshare.core.locations.tracker import LocationTracker
from seatshare.core.routes.models import Route, RouteCreateDTO
from seatshare.core.routes.service import RouteService
from seatshare.core.users.identity import IdentityProvider, require_user

router = APIRouter()


# === ROUTES ===

@router.get("/routes/search", response_model=list[Route], tags=["Routes"])
async def search_routes(
    origin: str = "",
    destination: str = "",
    min_seats: int = Query(1, ge=0),
    directory: RouteDirectory = Depends(get_directory),
):
    """Поиск предстоящих маршрутов."""
    return unwrap(await directory.search(origin, destination, min_seats))


@router.post("/routes", response_model=Route, status_code=201, tags=["Routes"])
async def post_route(
    dto: RouteCreateDTO,
    service: RouteService = Depends(get_route_service),
):
    """Публикация маршрута текущим водителем."""
    return unwrap(await service.post_route(dto))


@router.get("/routes/{route_id}", response_model=Route, tags=["Routes"])
async def get_route(route_id: str, directory: RouteDirectory = Depends(get_directory)):
    return unwrap(await directory.get_route(route_id))


@router.patch("/routes/{route_id}/status", response_model=Route, tags=["Routes"])
async def update_route_status(
    route_id: str,
    request: RouteStatusRequest,
    service: RouteService = Depends(get_route_service),
):
    return unwrap(await service.update_status(route_id, request.status))


@router.post("/routes/{route_id}/cancel", response_model=Route, tags=["Routes"])
async def cancel_route(route_id: str, service: RouteService = Depends(get_route_service)):
    return unwrap(await service.cancel_route(route_id))


@router.get("/routes/{route_id}/bookings", response_model=list[Booking], tags=["Routes"])
async def route_bookings(route_id: str, directory: RouteDirectory = Depends(get_directory)):
    """Бронирования маршрута (для «all» пустой список)."""
    return unwrap(await directory.bookings_for_route(route_id))


@router.get("/routes/{route_id}/quote", response_model=FareBreakdown, tags=["Bookings"])
async def quote(
    route_id: str,
    seats: int = Query(..., ge=1),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """Стоимость бронирования до подтверждения."""
    return unwrap(await orchestrator.quote(route_id, seats))


@router.post("/routes/{route_id}/bookings", response_model=Booking, status_code=201, tags=["Bookings"])
async def confirm_booking(
    route_id: str,
    request: BookingRequest,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """Бронирование мест текущим пассажиром."""
    return unwrap(await orchestrator.confirm_booking(route_id, request.seats, request.payment_method))


# === DRIVER DASHBOARD ===

@router.get("/drivers/me/routes", response_model=list[Route], tags=["Driver"])
async def my_routes(
    identity: IdentityProvider = Depends(get_identity),
    service: RouteService = Depends(get_route_service),
    directory: RouteDirectory = Depends(get_directory),
):
    """Маршруты водителя со списками пассажиров; статусы приводятся к текущему времени."""
    driver_id = unwrap(require_user(identity))
    unwrap(await service.refresh_statuses(driver_id))
    return unwrap(await directory.active_for_driver(driver_id))


@router.get("/drivers/me/routes/upcoming", response_model=list[Route], tags=["Driver"])
async def my_upcoming_routes(
    limit: int = Query(5, ge=1, le=50),
    identity: IdentityProvider = Depends(get_identity),
    directory: RouteDirectory = Depends(get_directory),
):
    driver_id = unwrap(require_user(identity))
    return unwrap(await directory.upcoming_for_driver(driver_id, limit))


@router.get("/drivers/me/bookings", response_model=DriverBookings, tags=["Driver"])
async def my_route_bookings(
    identity: IdentityProvider = Depends(get_identity),
    directory: RouteDirectory = Depends(get_directory),
):
    driver_id = unwrap(require_user(identity))
    return unwrap(await directory.bookings_for_driver(driver_id))


# === BOOKINGS ===

@router.get("/bookings/mine", response_model=list[Booking], tags=["Bookings"])
async def my_bookings(
    identity: IdentityProvider = Depends(get_identity),
    directory: RouteDirectory = Depends(get_directory),
):
    passenger_id = unwrap(require_user(identity))
    return unwrap(await directory.bookings_for_passenger(passenger_id))


@router.get("/bookings/{booking_id}", response_model=Booking, tags=["Bookings"])
async def get_booking(booking_id: str, directory: RouteDirectory = Depends(get_directory)):
    return unwrap(await directory.get_booking(booking_id))


@router.post("/bookings/{booking_id}/cancel", response_model=Booking, tags=["Bookings"])
async def cancel_booking(booking_id: str, orchestrator: BookingOrchestrator = Depends(get_orchestrator)):
    return unwrap(await orchestrator.cancel_booking(booking_id))


@router.patch("/bookings/{booking_id}/seats", response_model=Booking, tags=["Bookings"])
async def update_booking_seats(
    booking_id: str,
    request: SeatsUpdateRequest,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    return unwrap(await orchestrator.update_seats(booking_id, request.seats))


@router.post("/bookings/{booking_id}/accept", response_model=Booking, tags=["Driver"])
async def accept_booking(booking_id: str, orchestrator: BookingOrchestrator = Depends(get_orchestrator)):
    return unwrap(await orchestrator.accept_booking(booking_id))


@router.post("/bookings/{booking_id}/decline", response_model=Booking, tags=["Driver"])
async def decline_booking(booking_id: str, orchestrator: BookingOrchestrator = Depends(get_orchestrator)):
    return unwrap(await orchestrator.decline_booking(booking_id))


@router.post("/bookings/{booking_id}/complete", response_model=Booking, tags=["Driver"])
async def complete_booking(booking_id: str, orchestrator: BookingOrchestrator = Depends(get_orchestrator)):
    return unwrap(await orchestrator.complete_booking(booking_id))


@router.post("/bookings/{booking_id}/paid", response_model=Booking, tags=["Driver"])
async def mark_booking_paid(booking_id: str, orchestrator: BookingOrchestrator = Depends(get_orchestrator)):
    """Водитель подтверждает получение оплаты наличными."""
    return unwrap(await orchestrator.mark_paid(booking_id))


# === TRIP POSITION ===

async def _require_trip_driver(
    trip_id: str,
    identity: IdentityProvider,
    directory: RouteDirectory,
) -> str:
    driver_id = unwrap(require_user(identity))
    route = unwrap(await directory.get_route(trip_id))
    if route.driver_id != driver_id:
        raise OperationFailed(OperationError(ErrorKind.FORBIDDEN, "Only the route's driver can do this."))
    return driver_id


@router.put("/trips/{trip_id}/location", response_model=Location, tags=["Trips"])
async def report_location(
    trip_id: str,
    report: LocationReport,
    identity: IdentityProvider = Depends(get_identity),
    directory: RouteDirectory = Depends(get_directory),
    tracker: LocationTracker = Depends(get_tracker),
):
    """Отчёт водителя о позиции: заменяет предыдущую позицию поездки."""
    driver_id = await _require_trip_driver(trip_id, identity, directory)
    return unwrap(
        await tracker.report(
            trip_id,
            driver_id,
            report.lat,
            report.lng,
            speed_kmh=report.speed_kmh,
            heading_deg=report.heading_deg,
        )
    )


@router.get("/trips/{trip_id}/location", response_model=Location | None, tags=["Trips"])
async def latest_location(trip_id: str, tracker: LocationTracker = Depends(get_tracker)):
    """Последняя позиция; null, если водитель ещё не сообщал."""
    return unwrap(await tracker.latest(trip_id))


@router.delete("/trips/{trip_id}/location", response_model=ClearedResponse, tags=["Trips"])
async def clear_location(
    trip_id: str,
    identity: IdentityProvider = Depends(get_identity),
    directory: RouteDirectory = Depends(get_directory),
    tracker: LocationTracker = Depends(get_tracker),
):
    await _require_trip_driver(trip_id, identity, directory)
    return ClearedResponse(cleared=unwrap(await tracker.clear(trip_id)))
