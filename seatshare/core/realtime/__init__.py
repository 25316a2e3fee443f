# seatshare/core/realtime/__init__.py
"""
Подписки на поток изменений и живые представления состояния.
"""

from seatshare.core.realtime.topics import Topic, TopicKeys
from seatshare.core.realtime.subscriber import ChangeFeedSubscriber, Subscription
from seatshare.core.realtime.live import LiveFeeds, LiveUpdate, UpdateKind

__all__ = [
    "Topic",
    "TopicKeys",
    "ChangeFeedSubscriber",
    "Subscription",
    "LiveFeeds",
    "LiveUpdate",
    "UpdateKind",
]
