"""
Real-time notification module.
Implements Strategy Pattern for flexible transports.
"""

from .strategies import NotificationStrategy, RedisStreamNotifier, InMemoryNotifier, NullNotifier
from .factory import NotificationFactory, NotificationBackend
from .models import LinkEvent, LinkEventType
from .dispatcher import EventDispatcher

__all__ = [
    "NotificationStrategy",
    "RedisStreamNotifier",
    "InMemoryNotifier",
    "NullNotifier",
    "NotificationFactory",
    "NotificationBackend",
    "LinkEvent",
    "LinkEventType",
    "EventDispatcher",
]
