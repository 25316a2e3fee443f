# seatshare/infra/redis_client.py
"""
Клиент Redis.
Используется как транспорт потока изменений (Pub/Sub).
"""

from __future__ import annotations

import redis.asyncio as redis
from redis.asyncio.client import PubSub

from seatshare.common.logger import log_error, log_info
from seatshare.common.constants import TypeMsg


class RedisClient:
    """
    Асинхронный клиент Redis (Singleton).
    Все каналы и ключи получают префикс пространства имён.
    """

    _instance: RedisClient | None = None
    _client: redis.Redis | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client = None
        self._namespace = "seatshare"

    @property
    def client(self) -> redis.Redis:
        """Возвращает клиент Redis."""
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован. Вызовите connect() сначала.")
        return self._client

    @property
    def namespace(self) -> str:
        return self._namespace

    def make_key(self, key: str) -> str:
        """Добавляет namespace к ключу или имени канала."""
        return f"{self._namespace}:{key}"

    async def connect(
        self,
        url: str | None = None,
        max_connections: int = 50,
        namespace: str | None = None,
    ) -> None:
        """
        Подключается к Redis.

        Args:
            url: URL Redis (если None, берётся из конфига)
            max_connections: Максимальное количество соединений
            namespace: Префикс ключей и каналов
        """
        if self._client is not None:
            return

        if url is None:
            from seatshare.config import settings
            url = settings.redis.url
            max_connections = settings.redis.REDIS_MAX_CONNECTIONS
            namespace = settings.redis.REDIS_NAMESPACE

        if namespace:
            self._namespace = namespace

        await log_info("Подключение к Redis...", type_msg=TypeMsg.INFO)

        self._client = redis.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )
        await self._client.ping()

        await log_info("Подключение к Redis установлено", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает соединение с Redis."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            await log_info("Соединение с Redis закрыто", type_msg=TypeMsg.INFO)

    # =========================================================================
    # PUB/SUB
    # =========================================================================

    async def publish(self, channel: str, message: str) -> int:
        """
        Публикует сообщение в канал (с учётом namespace).

        Returns:
            Количество подписчиков, получивших сообщение
        """
        return await self.client.publish(self.make_key(channel), message)

    def pubsub(self) -> PubSub:
        """Создаёт новый объект подписки. Имена каналов передаются через make_key()."""
        return self.client.pubsub()

    async def health_check(self) -> bool:
        """Проверяет здоровье подключения к Redis."""
        try:
            return bool(await self.client.ping())
        except Exception as e:
            await log_error(f"Health check Redis failed: {e}")
            return False


_redis_client: RedisClient | None = None


def get_redis() -> RedisClient:
    """Возвращает глобальный экземпляр RedisClient."""
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient()
    return _redis_client


async def init_redis() -> None:
    """Подключается к Redis по настройкам из конфигурации."""
    from seatshare.config import settings

    await get_redis().connect(
        url=settings.redis.url,
        max_connections=settings.redis.REDIS_MAX_CONNECTIONS,
        namespace=settings.redis.REDIS_NAMESPACE,
    )
    await log_info(
        f"Redis подключён: {settings.redis.REDIS_HOST}:{settings.redis.REDIS_PORT}",
        type_msg=TypeMsg.INFO,
    )


async def close_redis() -> None:
    """Закрывает подключение к Redis."""
    await get_redis().disconnect()
