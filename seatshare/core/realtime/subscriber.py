# seatshare/core/realtime/subscriber.py
"""
Подписчик на поток изменений: не больше одной подписки на ключ темы.

Подписка на уже занятый ключ сначала закрывает прежнюю, поэтому при
повторном открытии экрана или смене параметра слушатели не копятся.
"""

from __future__ import annotations

import asyncio
from typing import Any

from seatshare.common.logger import log_debug
from seatshare.infra.change_feed import ChangeEvent, ChangeFeed, ChangeFilter, ChangeStream


class Subscription:
    """
    Активная подписка по ключу темы.
    Итерируется как поток событий; закрытие освобождает ключ, если
    подписку ещё не заменили.
    """

    def __init__(self, owner: ChangeFeedSubscriber, key: str, stream: ChangeStream) -> None:
        self._owner = owner
        self._key = key
        self._stream = stream

    @property
    def key(self) -> str:
        return self._key

    @property
    def change_filter(self) -> ChangeFilter:
        return self._stream.change_filter

    @property
    def is_active(self) -> bool:
        return self._stream.is_open

    async def close(self) -> None:
        await self._owner._release(self)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> ChangeEvent:
        return await self._stream.__anext__()


class ChangeFeedSubscriber:
    """Соответствие «ключ темы → подписка» для одной сессии."""

    def __init__(self, feed: ChangeFeed) -> None:
        self._feed = feed
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = asyncio.Lock()

    @property
    def active_topics(self) -> list[str]:
        return sorted(self._subscriptions)

    def get(self, topic_key: str) -> Subscription | None:
        return self._subscriptions.get(topic_key)

    async def subscribe(self, topic_key: str, change_filter: ChangeFilter) -> Subscription:
        """
        Открывает подписку по ключу, закрыв прежнюю с тем же ключом.
        Новая подписка видит только события после открытия.

        Raises:
            ошибки транспорта при открытии подписки
        """
        async with self._lock:
            previous = self._subscriptions.pop(topic_key, None)
            if previous is not None:
                await previous._stream.close()
                await log_debug(f"Подписка '{topic_key}' заменена")

            stream = await self._feed.stream(change_filter)
            subscription = Subscription(self, topic_key, stream)
            self._subscriptions[topic_key] = subscription

        await log_debug(f"Подписка '{topic_key}' на {change_filter.channel}")
        return subscription

    async def unsubscribe(self, topic_key: str) -> None:
        """Закрывает подписку по ключу. Без подписки ничего не делает."""
        async with self._lock:
            subscription = self._subscriptions.pop(topic_key, None)
        if subscription is not None:
            await subscription._stream.close()
            await log_debug(f"Подписка '{topic_key}' закрыта")

    async def _release(self, subscription: Subscription) -> None:
        async with self._lock:
            if self._subscriptions.get(subscription.key) is subscription:
                del self._subscriptions[subscription.key]
        await subscription._stream.close()

    async def close_all(self) -> None:
        """Закрывает все подписки сессии."""
        async with self._lock:
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()
        for subscription in subscriptions:
            await subscription._stream.close()
        if subscriptions:
            await log_debug(f"Закрыто подписок: {len(subscriptions)}")

    async def __aenter__(self) -> ChangeFeedSubscriber:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close_all()
