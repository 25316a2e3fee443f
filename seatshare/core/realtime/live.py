# seatshare/core/realtime/live.py
"""
Живые представления состояния для интерфейса.

Каждый поток сначала открывает подписку, затем отдельно читает текущее
состояние и отдаёт его снимком. Любое событие изменения служит только
поводом перечитать состояние: события не применяются как приращения.
При недоступности потока изменений выдаётся признак деградации.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable

from pydantic import BaseModel, Field, ValidationError

from seatshare.common.logger import log_debug, log_warning
from seatshare.common.results import Result
from seatshare.core.directory.service import RouteDirectory
from seatshare.core.locations.models import Location
from seatshare.core.locations.tracker import LocationTracker
from seatshare.core.realtime import topics
from seatshare.core.realtime.subscriber import ChangeFeedSubscriber
from seatshare.core.realtime.topics import Topic
from seatshare.infra.change_feed import (
    TRANSPORT_ERRORS,
    ChangeAction,
    ChangeEvent,
    ChangeFeedUnavailable,
)

Loader = Callable[[], Awaitable[Result[Any]]]


class UpdateKind(str, Enum):
    SNAPSHOT = "snapshot"
    CHANGE = "change"
    DEGRADED = "degraded"


class LiveUpdate(BaseModel):
    """Очередное состояние живого представления."""

    kind: UpdateKind = Field(..., description="Снимок, изменение или деградация")
    data: Any = Field(None, description="Актуальное состояние")
    message: str | None = Field(None, description="Причина деградации")


class LiveFeeds:
    """Живые потоки одной сессии поверх её подписчика."""

    def __init__(
        self,
        subscriber: ChangeFeedSubscriber,
        directory: RouteDirectory,
        tracker: LocationTracker,
    ) -> None:
        self._subscriber = subscriber
        self._directory = directory
        self._tracker = tracker

    async def close(self) -> None:
        await self._subscriber.close_all()

    async def _follow(
        self,
        topic: Topic,
        load: Loader,
        merge: Callable[[ChangeEvent], Any] | None = None,
    ) -> AsyncIterator[LiveUpdate]:
        try:
            subscription = await self._subscriber.subscribe(topic.key, topic.change_filter)
        except TRANSPORT_ERRORS as e:
            await log_warning(f"Не удалось подписаться на '{topic.key}': {e}")
            yield LiveUpdate(kind=UpdateKind.DEGRADED, message=f"Live updates unavailable: {e}")
            return

        try:
            snapshot = await load()
            if snapshot.ok:
                yield LiveUpdate(kind=UpdateKind.SNAPSHOT, data=snapshot.value)
            else:
                yield LiveUpdate(kind=UpdateKind.DEGRADED, message=snapshot.error.message)

            async for event in subscription:
                if merge is not None:
                    try:
                        merged = merge(event)
                    except ValidationError as e:
                        await log_warning(f"Пропущено некорректное событие '{topic.key}': {e}")
                        continue
                    yield LiveUpdate(kind=UpdateKind.CHANGE, data=merged)
                    continue
                refreshed = await load()
                if refreshed.ok:
                    yield LiveUpdate(kind=UpdateKind.CHANGE, data=refreshed.value)
                else:
                    yield LiveUpdate(kind=UpdateKind.DEGRADED, message=refreshed.error.message)
        except ChangeFeedUnavailable as e:
            await log_warning(f"Живой поток '{topic.key}' деградировал: {e}")
            yield LiveUpdate(kind=UpdateKind.DEGRADED, message=f"Live updates unavailable: {e}")
        finally:
            await subscription.close()
            await log_debug(f"Живой поток '{topic.key}' завершён")

    # =========================================================================
    # ПОТОКИ
    # =========================================================================

    def booking_status(self, booking_id: str) -> AsyncIterator[LiveUpdate]:
        """Статус одного бронирования."""
        return self._follow(
            topics.booking_status(booking_id),
            lambda: self._directory.get_booking(booking_id),
        )

    def route_requests(self, route_id: str) -> AsyncIterator[LiveUpdate]:
        """Список бронирований маршрута, обновляемый при новых заявках."""
        return self._follow(
            topics.new_bookings_on_route(route_id),
            lambda: self._directory.bookings_for_route(route_id),
        )

    def route(self, route_id: str) -> AsyncIterator[LiveUpdate]:
        """Один маршрут (остаток мест, статус)."""
        return self._follow(
            topics.route_updates(route_id),
            lambda: self._directory.get_route(route_id),
        )

    def my_bookings(self, passenger_id: str) -> AsyncIterator[LiveUpdate]:
        """Бронирования пассажира."""
        return self._follow(
            topics.passenger_bookings(passenger_id),
            lambda: self._directory.bookings_for_passenger(passenger_id),
        )

    def trip_position(self, trip_id: str) -> AsyncIterator[LiveUpdate]:
        """Позиция поездки: событие замены несёт всю строку, перечитывать не нужно."""
        return self._follow(
            topics.trip_position(trip_id),
            lambda: self._tracker.latest(trip_id),
            merge=_merge_location,
        )


def _merge_location(event: ChangeEvent) -> Location | None:
    if event.action == ChangeAction.DELETE:
        return None
    return Location.model_validate(event.record)
