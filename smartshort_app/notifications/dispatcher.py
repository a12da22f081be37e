"""
Fire-and-forget delivery of link events.

dispatch() schedules delivery as a background task and returns at once.
The request path never awaits a transport, and delivery failures only
show up in the logs.
"""

import asyncio
import logging
from typing import Set

from smartshort_app.config import settings
from .models import LinkEvent
from .strategies import NotificationStrategy

logger = logging.getLogger(__name__)


class EventDispatcher:
    def __init__(
        self,
        notifier: NotificationStrategy,
        channel_prefix: str = None,
        timeout: float = None,
    ):
        self.notifier = notifier
        self.channel_prefix = channel_prefix or settings.notification_channel_prefix
        self.timeout = timeout if timeout is not None else settings.notification_timeout_seconds
        # Strong references; the event loop only keeps weak ones
        self._pending: Set[asyncio.Task] = set()

    def channel_for(self, owner_id: str) -> str:
        return f"{self.channel_prefix}:{owner_id}"

    def dispatch(self, event: LinkEvent) -> None:
        """Schedule delivery of an event. Never raises, never blocks."""
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(event))
        except RuntimeError as e:
            logger.warning("⚠️  No running loop, dropping %s event: %s", event.type.value, e)
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: LinkEvent) -> None:
        try:
            await asyncio.wait_for(
                self.notifier.publish(self.channel_for(event.owner_id), event),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("⚠️  Timed out publishing %s for %s", event.type.value, event.short_code)
        except Exception as e:
            logger.warning("❌ Failed to publish %s for %s: %s", event.type.value, event.short_code, e)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
