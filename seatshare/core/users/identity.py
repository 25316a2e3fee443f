# seatshare/core/users/identity.py
"""
Граница с провайдером идентификации.

Ядро не управляет сессиями: ему нужен только ID текущего пользователя
или None, если пользователь не вошёл.
"""

from __future__ import annotations

import asyncio
from typing import Mapping

from seatshare.common.logger import log_debug, log_warning
from seatshare.common.results import ErrorKind, Result
from seatshare.core.users.repository import UserRepository

NOT_LOGGED_IN = "Not logged in"
ACCOUNT_NOT_READY = "Account setup is still in progress. Please try again in a moment."


class IdentityProvider:
    """Источник ID текущего пользователя."""

    def current_user_id(self) -> str | None:
        raise NotImplementedError


def require_user(identity: IdentityProvider) -> Result[str]:
    """ID текущего пользователя или ошибка not_authenticated."""
    user_id = identity.current_user_id()
    if not user_id:
        return Result.failure(ErrorKind.NOT_AUTHENTICATED, NOT_LOGGED_IN)
    return Result.success(user_id)


class StaticIdentityProvider(IdentityProvider):
    """Фиксированный пользователь (фоновые задачи, тесты)."""

    def __init__(self, user_id: str | None) -> None:
        self._user_id = user_id

    def current_user_id(self) -> str | None:
        return self._user_id


class HeaderIdentityProvider(IdentityProvider):
    """ID пользователя из заголовка, который выставляет шлюз аутентификации."""

    def __init__(self, headers: Mapping[str, str], header_name: str = "X-User-Id") -> None:
        self._headers = headers
        self._header_name = header_name

    def current_user_id(self) -> str | None:
        value = self._headers.get(self._header_name)
        if value is None:
            return None
        value = value.strip()
        return value or None


async def wait_for_user_record(
    users: UserRepository,
    user_id: str,
    attempts: int | None = None,
    delay: float | None = None,
) -> bool:
    """
    Ждёт появления строки пользователя после регистрации.

    Строку создаёт триггер на стороне провайдера идентификации, поэтому
    сразу после регистрации её может ещё не быть.

    Args:
        users: Репозиторий пользователей
        user_id: ID пользователя
        attempts: Количество проверок (по умолчанию из конфига)
        delay: Пауза между проверками в секундах (по умолчанию из конфига)

    Returns:
        True, если строка появилась
    """
    if attempts is None or delay is None:
        from seatshare.config import settings
        attempts = settings.identity.USER_RECORD_RETRY_ATTEMPTS if attempts is None else attempts
        delay = settings.identity.USER_RECORD_RETRY_DELAY if delay is None else delay

    for attempt in range(1, attempts + 1):
        if await users.exists(user_id):
            return True
        await log_debug(f"Пользователь {user_id} ещё не создан (проверка {attempt}/{attempts})")
        if attempt < attempts:
            await asyncio.sleep(delay)

    await log_warning(f"Пользователь {user_id} не появился после {attempts} проверок")
    return False
