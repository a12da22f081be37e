"""
Database models for the link registry.

Click history lives in its own table so that it can be capped per link
without touching the link's click counter.
"""

from .short_link import ShortLink
from .click_event import ClickEvent

__all__ = ["ShortLink", "ClickEvent"]
