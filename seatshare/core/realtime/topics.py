# seatshare/core/realtime/topics.py
"""
Темы подписок на поток изменений.

Ключ темы обозначает слот экрана (например, «заявки на маршрут»),
а фильтр задаёт, за какой строкой следить. Повторная подписка на тот же
ключ с другим фильтром заменяет прежнюю подписку.
"""

from __future__ import annotations

from dataclasses import dataclass

from seatshare.infra.change_feed import ChangeAction, ChangeFilter


class TopicKeys:
    """Ключи слотов подписки."""
    ROUTE_REQUESTS = "route_requests"
    BOOKING_STATUS = "booking_status"
    ROUTE = "route"
    MY_BOOKINGS = "my_bookings"
    TRIP_POSITION = "trip_position"


@dataclass(frozen=True)
class Topic:
    key: str
    change_filter: ChangeFilter


def new_bookings_on_route(route_id: str) -> Topic:
    """Новые бронирования на маршрут."""
    return Topic(
        key=TopicKeys.ROUTE_REQUESTS,
        change_filter=ChangeFilter(
            table="bookings",
            column="route_id",
            value=str(route_id),
            actions=frozenset({ChangeAction.INSERT}),
        ),
    )


def booking_status(booking_id: str) -> Topic:
    """Изменения одного бронирования."""
    return Topic(
        key=TopicKeys.BOOKING_STATUS,
        change_filter=ChangeFilter(
            table="bookings",
            column="id",
            value=str(booking_id),
            actions=frozenset({ChangeAction.UPDATE}),
        ),
    )


def route_updates(route_id: str) -> Topic:
    """Изменения одного маршрута (остаток мест, статус)."""
    return Topic(
        key=TopicKeys.ROUTE,
        change_filter=ChangeFilter(
            table="routes",
            column="id",
            value=str(route_id),
            actions=frozenset({ChangeAction.UPDATE}),
        ),
    )


def passenger_bookings(passenger_id: str) -> Topic:
    """Создание и изменение бронирований пассажира."""
    return Topic(
        key=TopicKeys.MY_BOOKINGS,
        change_filter=ChangeFilter(
            table="bookings",
            column="passenger_id",
            value=str(passenger_id),
            actions=frozenset({ChangeAction.INSERT, ChangeAction.UPDATE}),
        ),
    )


def trip_position(trip_id: str) -> Topic:
    """Замена позиции поездки (включая удаление в конце поездки)."""
    return Topic(
        key=TopicKeys.TRIP_POSITION,
        change_filter=ChangeFilter(table="locations", column="trip_id", value=str(trip_id)),
    )
