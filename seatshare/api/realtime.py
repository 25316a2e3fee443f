# seatshare/api/realtime.py
"""
WebSocket endpoints живых представлений.

Каждое соединение получает своего подписчика на поток изменений;
при отключении клиента подписка закрывается.

- /ws/bookings/mine: бронирования пассажира
- /ws/bookings/{booking_id}: статус бронирования
- /ws/routes/{route_id}/requests: заявки на маршрут
- /ws/routes/{route_id}: маршрут (остаток мест)
- /ws/trips/{trip_id}/position: позиция поездки
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from seatshare.api.container import ServiceContainer
from seatshare.common.logger import log_debug, log_error
from seatshare.core.directory.service import RouteDirectory
from seatshare.core.locations.tracker import LocationTracker
from seatshare.core.realtime.live import LiveFeeds, LiveUpdate
from seatshare.core.realtime.subscriber import ChangeFeedSubscriber

router = APIRouter()


def _live_feeds(container: ServiceContainer) -> LiveFeeds:
    return LiveFeeds(
        ChangeFeedSubscriber(container.feed),
        RouteDirectory(container.routes, container.bookings, container.users),
        LocationTracker(container.locations),
    )


async def _send_updates(websocket: WebSocket, updates: AsyncIterator[LiveUpdate]) -> None:
    try:
        async for update in updates:
            await websocket.send_json(update.model_dump(mode="json"))
    except Exception as e:
        await log_error(f"Отправка обновлений в {websocket.url.path} прервана: {e}", exc_info=True)
        raise


async def _serve(websocket: WebSocket, open_stream: Callable[[LiveFeeds], AsyncIterator[LiveUpdate]]) -> None:
    """Отдаёт обновления, пока клиент подключён."""
    await websocket.accept()
    live = _live_feeds(websocket.app.state.container)
    updates = open_stream(live)
    sender = asyncio.create_task(_send_updates(websocket, updates))
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await log_debug(f"WebSocket {websocket.url.path} отключён")
    finally:
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
        await updates.aclose()
        await live.close()


@router.websocket("/ws/bookings/mine")
async def my_bookings(websocket: WebSocket) -> None:
    """Бронирования пассажира; личность берётся из заголовка рукопожатия."""
    from seatshare.config import settings

    passenger_id = websocket.headers.get(settings.identity.USER_ID_HEADER)
    if not passenger_id:
        await websocket.close(code=4401)
        return
    await _serve(websocket, lambda live: live.my_bookings(passenger_id))


@router.websocket("/ws/bookings/{booking_id}")
async def booking_status(websocket: WebSocket, booking_id: str) -> None:
    await _serve(websocket, lambda live: live.booking_status(booking_id))


@router.websocket("/ws/routes/{route_id}/requests")
async def route_requests(websocket: WebSocket, route_id: str) -> None:
    await _serve(websocket, lambda live: live.route_requests(route_id))


@router.websocket("/ws/routes/{route_id}")
async def route_updates(websocket: WebSocket, route_id: str) -> None:
    await _serve(websocket, lambda live: live.route(route_id))


@router.websocket("/ws/trips/{trip_id}/position")
async def trip_position(websocket: WebSocket, trip_id: str) -> None:
    await _serve(websocket, lambda live: live.trip_position(trip_id))
