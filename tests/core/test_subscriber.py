# tests/core/test_subscriber.py
"""
Тесты для подписчика на поток изменений.
"""

from __future__ import annotations

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from seatshare.core.realtime import topics
from seatshare.core.realtime.subscriber import ChangeFeedSubscriber
from seatshare.core.realtime.topics import TopicKeys
from seatshare.infra.change_feed import ChangeAction, ChangeFeed, ChangeFeedUnavailable, ChangeFilter

from tests.fakes import FakeRedis


async def drain(subscription, timeout: float = 0.1) -> list:
    """Все события, пришедшие за timeout."""
    received = []
    while True:
        try:
            received.append(await asyncio.wait_for(subscription.__anext__(), timeout))
        except asyncio.TimeoutError:
            return received


@pytest.fixture
def subscriber(feed: ChangeFeed) -> ChangeFeedSubscriber:
    return ChangeFeedSubscriber(feed)


class TestTopics:
    """Тесты для тем подписок."""

    def test_topic_keys_are_slots(self) -> None:
        """Ключ не зависит от ID: фильтр несёт конкретную строку."""
        first = topics.new_bookings_on_route("r-1")
        second = topics.new_bookings_on_route("r-2")

        assert first.key == second.key == TopicKeys.ROUTE_REQUESTS
        assert first.change_filter.channel == "changes:bookings:route_id:r-1"
        assert first.change_filter.actions == frozenset({ChangeAction.INSERT})

    def test_filters(self) -> None:
        assert topics.booking_status("b-1").change_filter.actions == frozenset({ChangeAction.UPDATE})
        assert topics.route_updates("r-1").change_filter.table == "routes"
        assert topics.passenger_bookings("p-1").change_filter.actions == frozenset(
            {ChangeAction.INSERT, ChangeAction.UPDATE}
        )
        assert topics.trip_position("t-1").change_filter.actions == frozenset(ChangeAction)


class TestChangeFeedSubscriber:
    """Тесты для ChangeFeedSubscriber."""

    @pytest.mark.asyncio
    async def test_resubscribe_replaces_previous(self, subscriber, fake_redis: FakeRedis) -> None:
        """Повторная подписка по ключу закрывает прежнюю."""
        topic_1 = topics.new_bookings_on_route("r-1")
        topic_2 = topics.new_bookings_on_route("r-2")

        first = await subscriber.subscribe(topic_1.key, topic_1.change_filter)
        second = await subscriber.subscribe(topic_2.key, topic_2.change_filter)

        assert first.is_active is False
        assert second.is_active is True
        assert subscriber.active_topics == [TopicKeys.ROUTE_REQUESTS]
        assert subscriber.get(TopicKeys.ROUTE_REQUESTS) is second
        assert fake_redis.subscriber_count("changes:bookings:route_id:r-1") == 0
        assert fake_redis.subscriber_count("changes:bookings:route_id:r-2") == 1
        await subscriber.close_all()

    @pytest.mark.asyncio
    async def test_no_double_delivery(self, subscriber, feed: ChangeFeed, fake_redis: FakeRedis) -> None:
        """Подписка на тот же фильтр дважды: событие приходит один раз."""
        change_filter = ChangeFilter("routes", "id", "r-1")
        await subscriber.subscribe("route", change_filter)
        current = await subscriber.subscribe("route", change_filter)

        await feed.publish(ChangeAction.UPDATE, "routes", {"id": "r-1", "seats_left": 1})
        received = await drain(current)

        assert len(received) == 1
        assert fake_redis.subscriber_count("changes:routes:id:r-1") == 1
        await subscriber.close_all()

    @pytest.mark.asyncio
    async def test_different_keys_coexist(self, subscriber) -> None:
        await subscriber.subscribe("route", ChangeFilter("routes", "id", "r-1"))
        await subscriber.subscribe("booking_status", ChangeFilter("bookings", "id", "b-1"))

        assert subscriber.active_topics == ["booking_status", "route"]
        await subscriber.close_all()

    @pytest.mark.asyncio
    async def test_unsubscribe_is_idempotent(self, subscriber, fake_redis: FakeRedis) -> None:
        subscription = await subscriber.subscribe("route", ChangeFilter("routes", "id", "r-1"))

        await subscriber.unsubscribe("route")
        await subscriber.unsubscribe("route")
        await subscriber.unsubscribe("never-subscribed")

        assert subscription.is_active is False
        assert subscriber.active_topics == []
        assert fake_redis.subscriber_count("changes:routes:id:r-1") == 0

    @pytest.mark.asyncio
    async def test_stale_close_keeps_replacement(self, subscriber) -> None:
        """Закрытие заменённой подписки не трогает новую."""
        old = await subscriber.subscribe("route", ChangeFilter("routes", "id", "r-1"))
        new = await subscriber.subscribe("route", ChangeFilter("routes", "id", "r-2"))

        await old.close()

        assert subscriber.get("route") is new
        assert new.is_active
        await new.close()
        assert subscriber.active_topics == []

    @pytest.mark.asyncio
    async def test_context_manager_closes_all(self, feed: ChangeFeed, fake_redis: FakeRedis) -> None:
        async with ChangeFeedSubscriber(feed) as subscriber:
            await subscriber.subscribe("route", ChangeFilter("routes", "id", "r-1"))
            await subscriber.subscribe("my_bookings", ChangeFilter("bookings", "passenger_id", "p-1"))

        assert subscriber.active_topics == []
        assert fake_redis.subscribers.get("test:changes:routes:id:r-1", set()) == set()

    @pytest.mark.asyncio
    async def test_subscribe_failure_propagates(self, subscriber, fake_redis: FakeRedis) -> None:
        """Ошибка открытия подписки видна вызывающему коду, ключ не занят."""
        fake_redis.failing = True

        with pytest.raises(RedisConnectionError):
            await subscriber.subscribe("route", ChangeFilter("routes", "id", "r-1"))

        assert subscriber.active_topics == []

    @pytest.mark.asyncio
    async def test_failed_reader_releases_key(self, subscriber, fake_redis: FakeRedis) -> None:
        """После сбоя чтения подписка неактивна, отписка и повторная подписка проходят."""
        topic = topics.trip_position("t-1")
        failed = await subscriber.subscribe(topic.key, topic.change_filter)
        fake_redis.read_error = ResponseError("unexpected reply")

        with pytest.raises(ChangeFeedUnavailable):
            await asyncio.wait_for(failed.__anext__(), 1.0)
        assert failed.is_active is False
        assert fake_redis.subscriber_count("changes:locations:trip_id:t-1") == 0

        fake_redis.read_error = None
        replacement = await subscriber.subscribe(topic.key, topic.change_filter)
        assert replacement.is_active

        await subscriber.unsubscribe(topic.key)
        await subscriber.unsubscribe(topic.key)
        assert subscriber.active_topics == []

    @pytest.mark.asyncio
    async def test_malformed_payload_does_not_stop_delivery(
        self, subscriber, feed: ChangeFeed, fake_redis: FakeRedis
    ) -> None:
        topic = topics.trip_position("t-1")
        subscription = await subscriber.subscribe(topic.key, topic.change_filter)

        fake_redis.deliver_raw("changes:locations:trip_id:t-1", b"\xff\xfe not utf-8")
        await feed.publish(ChangeAction.UPDATE, "locations", {"trip_id": "t-1", "lat": 12.9})
        received = await drain(subscription)

        assert [event.record["lat"] for event in received] == [12.9]
        assert subscription.is_active
        await subscriber.close_all()
