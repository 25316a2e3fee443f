# seatshare/core/routes/state_machine.py
"""
Жизненный цикл маршрута.
"""

from __future__ import annotations

from datetime import datetime

from seatshare.common.constants import RouteStatus
from seatshare.core.routes.models import Route


class RouteStateMachine:
    ALLOWED_TRANSITIONS = {
        RouteStatus.UPCOMING: [RouteStatus.ONGOING, RouteStatus.CANCELLED],
        RouteStatus.ONGOING: [RouteStatus.COMPLETED, RouteStatus.CANCELLED],
        RouteStatus.COMPLETED: [],
        RouteStatus.CANCELLED: [],
    }

    # Порядок для автоматического продвижения статуса
    _PROGRESS = {
        RouteStatus.UPCOMING: 0,
        RouteStatus.ONGOING: 1,
        RouteStatus.COMPLETED: 2,
    }

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = RouteStatus(current_status)
            new = RouteStatus(new_status)
        except ValueError:
            return False
        return new in RouteStateMachine.ALLOWED_TRANSITIONS.get(curr, [])

    @staticmethod
    def is_terminal(status: RouteStatus) -> bool:
        return not RouteStateMachine.ALLOWED_TRANSITIONS.get(status)

    @staticmethod
    def resolved_status(route: Route, now: datetime | None = None) -> RouteStatus:
        """
        Статус, который маршрут должен иметь по расписанию.

        До отправления маршрут предстоящий, после отправления идёт до
        расчётного прибытия, затем завершён. Отменённый и завершённый
        маршруты не меняются, статус никогда не откатывается назад.
        Без длительности маршрут после отправления остаётся в пути.
        """
        if RouteStateMachine.is_terminal(route.status):
            return route.status

        now = now or datetime.now()
        if now < route.departure_at:
            scheduled = RouteStatus.UPCOMING
        elif route.arrival_at is None or now < route.arrival_at:
            scheduled = RouteStatus.ONGOING
        else:
            scheduled = RouteStatus.COMPLETED

        progress = RouteStateMachine._PROGRESS
        if progress[scheduled] <= progress[route.status]:
            return route.status
        return scheduled
