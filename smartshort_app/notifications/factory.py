"""
Factory for creating notification transports.
Simple, clean factory with singleton caching.
"""

import logging
from enum import Enum

from .strategies import InMemoryNotifier, NotificationStrategy, NullNotifier, RedisStreamNotifier
from smartshort_app.config import settings

logger = logging.getLogger(__name__)


class NotificationBackend(Enum):
    """Available notification backends"""
    REDIS_STREAMS = "redis_streams"
    MEMORY = "memory"
    NULL = "null"


class NotificationFactory:
    """
    Simple factory for creating notification transports.

    Gets configuration from settings (not passed as parameters).
    """

    _instance: NotificationStrategy = None  # Single cached instance

    @classmethod
    def create(cls, backend: NotificationBackend) -> NotificationStrategy:
        """
        Create or return cached notification transport.

        Args:
            backend: Type of transport (from enum)

        Returns:
            Singleton transport instance
        """
        if cls._instance is not None:
            return cls._instance

        if backend == NotificationBackend.REDIS_STREAMS:
            import redis.asyncio as aioredis

            # Connection is lazy: a Redis outage only costs dropped events
            redis_client = aioredis.from_url(
                settings.redis_url,
                decode_responses=False,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
            cls._instance = RedisStreamNotifier(redis_client, maxlen=settings.notification_stream_maxlen)
            logger.info("✅ Redis stream notifier initialized")

        elif backend == NotificationBackend.MEMORY:
            cls._instance = InMemoryNotifier(
                maxlen=settings.notification_stream_maxlen,
                max_channels=settings.notification_memory_max_channels,
            )
            logger.info("✅ In-memory notifier initialized")

        elif backend == NotificationBackend.NULL:
            cls._instance = NullNotifier()
            logger.info("✅ Null notifier initialized")

        else:
            raise ValueError(f"Unknown notification backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
