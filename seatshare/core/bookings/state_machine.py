# seatshare/core/bookings/state_machine.py
"""
Жизненный цикл бронирования.
"""

from __future__ import annotations

from seatshare.common.constants import ActorRole, BookingStatus


class BookingStateMachine:
    ALLOWED_TRANSITIONS = {
        BookingStatus.PENDING: [BookingStatus.ACCEPTED, BookingStatus.CANCELLED],
        BookingStatus.ACCEPTED: [BookingStatus.COMPLETED, BookingStatus.CANCELLED],
        BookingStatus.COMPLETED: [],
        BookingStatus.CANCELLED: [],
    }

    # Принимает и завершает водитель; отменить может любая сторона
    # (отмена водителем из pending означает отклонение заявки)
    ACTOR_PERMISSIONS = {
        BookingStatus.ACCEPTED: {ActorRole.DRIVER},
        BookingStatus.COMPLETED: {ActorRole.DRIVER},
        BookingStatus.CANCELLED: {ActorRole.DRIVER, ActorRole.PASSENGER},
    }

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = BookingStatus(current_status)
            new = BookingStatus(new_status)
        except ValueError:
            return False
        return new in BookingStateMachine.ALLOWED_TRANSITIONS.get(curr, [])

    @staticmethod
    def is_terminal(status: BookingStatus) -> bool:
        return not BookingStateMachine.ALLOWED_TRANSITIONS.get(status)

    @staticmethod
    def actor_allowed(actor: ActorRole, new_status: BookingStatus) -> bool:
        return actor in BookingStateMachine.ACTOR_PERMISSIONS.get(new_status, set())
