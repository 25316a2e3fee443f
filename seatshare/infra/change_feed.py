# seatshare/infra/change_feed.py
"""
Поток изменений строк поверх Redis Pub/Sub.

После каждой зафиксированной записи репозиторий публикует ChangeEvent
в каналы вида changes:{table}:{column}:{value}, по одному на каждую
колонку, по которой разрешена фильтрация. Подписчик слушает ровно один
канал своего фильтра, поэтому получает только подходящие события.
Истории нет: подписка видит только события после открытия.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from seatshare.common.logger import log_debug, log_error, log_warning
from seatshare.infra.redis_client import RedisClient


# Колонки, по которым можно фильтровать поток изменений каждой таблицы
FEED_COLUMNS: dict[str, tuple[str, ...]] = {
    "bookings": ("id", "route_id", "passenger_id"),
    "routes": ("id", "driver_id"),
    "locations": ("trip_id",),
}

TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    RedisConnectionError,
    RedisTimeoutError,
    ConnectionError,
    OSError,
)


class ChangeAction(str, Enum):
    """Тип изменения строки."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """Событие изменения одной строки."""
    event_id: str = Field(default_factory=lambda: str(uuid4()), description="ID события")
    action: ChangeAction = Field(..., description="Тип изменения")
    table: str = Field(..., description="Таблица")
    record: dict[str, Any] = Field(default_factory=dict, description="Строка после изменения")
    committed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Момент фиксации",
    )


class ChangeFeedError(Exception):
    """Ошибка потока изменений."""


class ChangeFeedUnavailable(ChangeFeedError):
    """Поток больше не доставляет события: обрыв без восстановления или сбой чтения."""


@dataclass(frozen=True)
class ChangeFilter:
    """
    Фильтр подписки: таблица, равенство по одной колонке и набор действий.

    Raises:
        ValueError: если по колонке нельзя фильтровать
    """
    table: str
    column: str
    value: str
    actions: frozenset[ChangeAction] = field(default_factory=lambda: frozenset(ChangeAction))

    def __post_init__(self) -> None:
        allowed = FEED_COLUMNS.get(self.table)
        if allowed is None:
            raise ValueError(f"Unknown change feed table: {self.table}")
        if self.column not in allowed:
            raise ValueError(f"Column {self.column} of {self.table} is not filterable")
        if not self.actions:
            raise ValueError("Change filter needs at least one action")

    @property
    def channel(self) -> str:
        return channel_name(self.table, self.column, self.value)

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table or event.action not in self.actions:
            return False
        value = event.record.get(self.column)
        return value is not None and str(value) == self.value


def channel_name(table: str, column: str, value: Any) -> str:
    return f"changes:{table}:{column}:{value}"


def channels_for(table: str, record: dict[str, Any]) -> list[str]:
    """Каналы, в которые публикуется изменение строки."""
    return [
        channel_name(table, column, record[column])
        for column in FEED_COLUMNS.get(table, ())
        if record.get(column) is not None
    ]


# Маркер закрытия потока в очереди
_CLOSED = object()


class ChangeStream:
    """
    Подписка на один фильтр: явное открытие и закрытие, асинхронная итерация.

    Чтение из Redis идёт в отдельной задаче, события складываются в очередь.
    При обрыве соединения поток переподписывается сам; если это не удалось
    за resubscribe_attempts попыток, итерация завершается ChangeFeedUnavailable.

    Example:
        async with await feed.stream(change_filter) as stream:
            async for event in stream:
                ...
    """

    def __init__(
        self,
        redis: RedisClient,
        change_filter: ChangeFilter,
        *,
        resubscribe_attempts: int = 5,
        resubscribe_delay: float = 1.0,
        poll_timeout: float = 1.0,
        buffer_size: int = 100,
    ) -> None:
        self._redis = redis
        self._filter = change_filter
        self._resubscribe_attempts = resubscribe_attempts
        self._resubscribe_delay = resubscribe_delay
        self._poll_timeout = poll_timeout
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=buffer_size)
        self._pubsub = None
        self._reader: asyncio.Task | None = None
        self._opened = False
        self._closed = False

    @property
    def change_filter(self) -> ChangeFilter:
        return self._filter

    @property
    def is_open(self) -> bool:
        # Остановившееся чтение означает, что событий больше не будет
        reading = self._reader is not None and not self._reader.done()
        return self._opened and not self._closed and reading

    async def open(self) -> None:
        """Подписывается на канал фильтра и запускает чтение."""
        if self._opened:
            return
        await self._subscribe()
        self._opened = True
        self._reader = asyncio.create_task(self._read_loop())

    async def close(self) -> None:
        """Отписывается и будит ожидающего потребителя. Повторный вызов ничего не делает."""
        if self._closed:
            return
        self._closed = True

        if self._reader is not None:
            self._reader.cancel()
            # Чтение могло уже завершиться с ошибкой: она сообщена потребителю
            await asyncio.gather(self._reader, return_exceptions=True)
            self._reader = None

        await self._drop_pubsub()

        # Недоставленные события после закрытия не нужны
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    async def __aenter__(self) -> ChangeStream:
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def __aiter__(self) -> ChangeStream:
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            # Оставляем маркер для следующих читателей
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        if isinstance(item, ChangeFeedUnavailable):
            self._queue.put_nowait(item)
            raise item
        return item

    # =========================================================================
    # ЧТЕНИЕ ИЗ REDIS
    # =========================================================================

    async def _subscribe(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._redis.make_key(self._filter.channel))
        self._pubsub = pubsub

    async def _drop_pubsub(self) -> None:
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is None:
            return
        try:
            await pubsub.unsubscribe()
            await pubsub.aclose()
        except (*TRANSPORT_ERRORS, RedisError) as e:
            await log_debug(f"Подписка {self._filter.channel} закрыта с ошибкой: {e}")

    async def _read_loop(self) -> None:
        failures = 0
        while not self._closed:
            try:
                if self._pubsub is None:
                    await self._subscribe()
                    await log_debug(f"Переподписка на {self._filter.channel} выполнена")
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=self._poll_timeout,
                )
                if message is not None:
                    await self._deliver(message)
            except TRANSPORT_ERRORS as e:
                failures += 1
                await self._drop_pubsub()
                if failures > self._resubscribe_attempts:
                    await log_error(
                        f"Поток изменений {self._filter.channel} недоступен "
                        f"после {self._resubscribe_attempts} попыток: {e}"
                    )
                    await self._queue.put(ChangeFeedUnavailable(str(e)))
                    return
                await log_warning(
                    f"Обрыв подписки {self._filter.channel} "
                    f"(попытка {failures}/{self._resubscribe_attempts}): {e}"
                )
                await asyncio.sleep(self._resubscribe_delay * failures)
                continue
            except Exception as e:
                await log_error(f"Чтение потока изменений {self._filter.channel} остановлено: {e}", exc_info=True)
                await self._drop_pubsub()
                await self._queue.put(ChangeFeedUnavailable(str(e)))
                return

            failures = 0

    async def _deliver(self, message: dict[str, Any]) -> None:
        event = await self._decode(message)
        if event is not None and self._filter.matches(event):
            await self._queue.put(event)

    async def _decode(self, message: dict[str, Any]) -> ChangeEvent | None:
        data = message.get("data")
        try:
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            if not isinstance(data, str):
                return None
            return ChangeEvent.model_validate_json(data)
        except (UnicodeDecodeError, ValidationError) as e:
            await log_warning(f"Некорректное событие в {self._filter.channel}: {e}")
            return None


class ChangeFeed:
    """Публикация и подписка на изменения строк."""

    def __init__(
        self,
        redis: RedisClient,
        *,
        resubscribe_attempts: int | None = None,
        resubscribe_delay: float | None = None,
        poll_timeout: float | None = None,
        buffer_size: int | None = None,
    ) -> None:
        from seatshare.config import settings

        self._redis = redis
        self._resubscribe_attempts = (
            resubscribe_attempts if resubscribe_attempts is not None
            else settings.realtime.RESUBSCRIBE_ATTEMPTS
        )
        self._resubscribe_delay = (
            resubscribe_delay if resubscribe_delay is not None
            else settings.realtime.RESUBSCRIBE_DELAY
        )
        self._poll_timeout = poll_timeout if poll_timeout is not None else settings.realtime.POLL_TIMEOUT
        self._buffer_size = buffer_size if buffer_size is not None else settings.realtime.STREAM_BUFFER_SIZE

    async def publish(self, action: ChangeAction, table: str, record: dict[str, Any]) -> bool:
        """
        Публикует изменение строки во все каналы её фильтруемых колонок.
        Ошибки транспорта логируются: запись в БД уже зафиксирована.

        Returns:
            True, если событие отправлено во все каналы
        """
        event = ChangeEvent(action=action, table=table, record=record)
        payload = event.model_dump_json()
        try:
            for channel in channels_for(table, record):
                await self._redis.publish(channel, payload)
            return True
        except TRANSPORT_ERRORS as e:
            await log_error(f"Не удалось опубликовать изменение {table}/{action.value}: {e}")
            return False

    async def stream(self, change_filter: ChangeFilter) -> ChangeStream:
        """Открывает подписку на фильтр."""
        stream = ChangeStream(
            self._redis,
            change_filter,
            resubscribe_attempts=self._resubscribe_attempts,
            resubscribe_delay=self._resubscribe_delay,
            poll_timeout=self._poll_timeout,
            buffer_size=self._buffer_size,
        )
        await stream.open()
        return stream
