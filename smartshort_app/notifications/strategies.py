"""
Notification strategies using Strategy Pattern.
Allows switching between different real-time transports (Redis Streams, In-Memory, Null).

Events are keyed by owner id: each owner has one channel, and whatever
pushes to browsers (socket server, SSE endpoint) reads from it.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict, deque
from typing import List

from .models import LinkEvent

logger = logging.getLogger(__name__)


class NotificationStrategy(ABC):
    """
    Abstract base class for notification transports.

    publish() may raise; the EventDispatcher is the one place that
    catches and logs delivery failures.
    """

    @abstractmethod
    async def publish(self, channel: str, event: LinkEvent) -> None:
        """
        Publish an event to a channel.

        Args:
            channel: Channel name (one per owner)
            event: LinkEvent to publish
        """
        pass

    @abstractmethod
    async def read(self, channel: str, count: int = 100) -> List[LinkEvent]:
        """
        Read the most recent events of a channel, oldest first.

        Args:
            channel: Channel name
            count: Maximum number of events to return
        """
        pass

    async def close(self) -> None:
        """Release transport resources"""
        return None


class RedisStreamNotifier(NotificationStrategy):
    """
    Redis Streams transport.

    - XADD with approximate MAXLEN keeps every owner stream bounded
    - Consumers read with XREAD / XREVRANGE and can resume from an id
    - Built into Redis (no extra infrastructure)
    """

    def __init__(self, redis_client, maxlen: int = 1000):
        """
        Args:
            redis_client: redis.asyncio.Redis instance
            maxlen: Approximate cap of each owner stream
        """
        self.redis = redis_client
        self.maxlen = maxlen

    async def publish(self, channel: str, event: LinkEvent) -> None:
        await self.redis.xadd(
            channel,
            {"data": event.model_dump_json()},
            maxlen=self.maxlen,
            approximate=True,
        )

    async def read(self, channel: str, count: int = 100) -> List[LinkEvent]:
        entries = await self.redis.xrevrange(channel, count=count)
        events = []
        for message_id, fields in reversed(entries):
            raw = fields.get(b"data") or fields.get("data")
            try:
                if isinstance(raw, bytes):
                    raw = raw.decode("utf-8")
                events.append(LinkEvent(**json.loads(raw)))
            except (TypeError, ValueError) as e:
                logger.warning("⚠️  Skipping unreadable event %s: %s", message_id, e)
        return events

    async def close(self) -> None:
        await self.redis.aclose()


class InMemoryNotifier(NotificationStrategy):
    """
    In-memory transport using bounded deques.

    Not shared between processes; used in development and tests.
    At most max_channels owners are kept; the least recently used
    channel is dropped first.
    """

    def __init__(self, maxlen: int = 1000, max_channels: int = 10_000):
        self.maxlen = maxlen
        self.max_channels = max_channels
        self._channels: "OrderedDict[str, deque]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._channels)

    def _get_channel(self, channel: str) -> deque:
        events = self._channels.get(channel)
        if events is None:
            events = self._channels[channel] = deque(maxlen=self.maxlen)
            while len(self._channels) > self.max_channels:
                self._channels.popitem(last=False)
        else:
            self._channels.move_to_end(channel)
        return events

    async def publish(self, channel: str, event: LinkEvent) -> None:
        self._get_channel(channel).append(event)

    async def read(self, channel: str, count: int = 100) -> List[LinkEvent]:
        if channel not in self._channels:
            return []
        events = list(self._get_channel(channel))
        return events[-count:] if count else events


class NullNotifier(NotificationStrategy):
    """
    Null Object Pattern - transport that drops everything.
    Used when real-time updates are disabled.
    """

    async def publish(self, channel: str, event: LinkEvent) -> None:
        return None

    async def read(self, channel: str, count: int = 100) -> List[LinkEvent]:
        return []
