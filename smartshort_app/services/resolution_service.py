"""
Hot redirect path: resolve a short code and record the click.

The live check and the increment are one UPDATE ... RETURNING statement,
so concurrent redirects of the same code serialize on the row inside the
database and no increment is lost. The click row and the history pruning
ride on the same transaction.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from smartshort_app.config import settings
from smartshort_app.exceptions import NotFoundOrExpired
from smartshort_app.models.click_event import ClickEvent
from smartshort_app.models.short_link import ShortLink, utcnow
from smartshort_app.notifications.dispatcher import EventDispatcher
from smartshort_app.notifications.models import LinkEvent, LinkEventType

logger = logging.getLogger(__name__)

_TABLET = re.compile(r"ipad|tablet|kindle|silk", re.IGNORECASE)
_MOBILE = re.compile(r"mobi|iphone|ipod|android", re.IGNORECASE)
_BOT = re.compile(r"bot|crawl|spider|slurp|curl|wget", re.IGNORECASE)
_BROWSERS = (
    ("Edge", re.compile(r"Edg(e|A|iOS)?/")),
    ("Opera", re.compile(r"OPR/|Opera")),
    ("Firefox", re.compile(r"Firefox/|FxiOS/")),
    ("Chrome", re.compile(r"Chrome/|CriOS/")),
    ("Safari", re.compile(r"Safari/")),
)


def describe_user_agent(user_agent: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Coarse (device, browser) classification of a User-Agent header."""
    if not user_agent:
        return None, None
    if _BOT.search(user_agent):
        device = "bot"
    elif _TABLET.search(user_agent):
        device = "tablet"
    elif _MOBILE.search(user_agent):
        device = "mobile"
    else:
        device = "desktop"
    browser = next((name for name, pattern in _BROWSERS if pattern.search(user_agent)), "Other")
    return device, browser


@dataclass
class ClickContext:
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    device: Optional[str] = None
    browser: Optional[str] = None

    def __post_init__(self):
        if self.user_agent and not (self.device and self.browser):
            device, browser = describe_user_agent(self.user_agent)
            self.device = self.device or device
            self.browser = self.browser or browser


@dataclass(frozen=True)
class Resolution:
    original_url: str
    clicks: int
    link_id: str
    short_code: str
    owner_id: str


class ResolutionService:
    def __init__(
        self,
        db: AsyncSession,
        dispatcher: Optional[EventDispatcher] = None,
        history_cap: int = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.history_cap = history_cap or settings.click_history_cap

    async def resolve_and_record(
        self,
        short_code: str,
        context: Optional[ClickContext] = None,
        now: Optional[datetime] = None,
    ) -> Resolution:
        """
        Count a visit to a live link and return where to send the visitor.

        Raises:
            NotFoundOrExpired: code unknown, deactivated or past its expiry
        """
        context = context if context is not None else ClickContext()
        now = now or utcnow()

        stmt = (
            update(ShortLink)
            .where(
                ShortLink.short_code == short_code,
                ShortLink.is_active.is_(True),
                or_(ShortLink.expires_at.is_(None), ShortLink.expires_at > now),
            )
            # updated_at tracks owner edits, not visits
            .values(clicks=ShortLink.clicks + 1, last_clicked=now, updated_at=ShortLink.updated_at)
            .returning(ShortLink.id, ShortLink.original_url, ShortLink.owner_id, ShortLink.clicks)
            .execution_options(synchronize_session=False)
        )

        try:
            row = (await self.db.execute(stmt)).one_or_none()
            if row is None:
                # Nothing was written. Commit rather than roll back so objects
                # the caller already holds in this session stay loaded.
                await self.db.commit()
                raise NotFoundOrExpired()

            self.db.add(ClickEvent(
                short_link_id=row.id,
                clicked_at=now,
                ip_address=context.ip,
                user_agent=context.user_agent,
                referrer=context.referrer,
                country=context.country,
                city=context.city,
                device=context.device,
                browser=context.browser,
            ))
            await self.db.flush()

            # History can only exceed the cap once clicks has
            if row.clicks > self.history_cap:
                await self._prune_history(row.id)

            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        resolution = Resolution(
            original_url=row.original_url,
            clicks=row.clicks,
            link_id=row.id,
            short_code=short_code,
            owner_id=row.owner_id,
        )
        self._emit_resolved(resolution)
        return resolution

    async def _prune_history(self, link_id: str) -> int:
        """Drop everything older than the newest history_cap clicks."""
        cutoff = await self.db.scalar(
            select(ClickEvent.id)
            .where(ClickEvent.short_link_id == link_id)
            .order_by(ClickEvent.id.desc())
            .offset(self.history_cap)
            .limit(1)
        )
        if cutoff is None:
            return 0
        result = await self.db.execute(
            delete(ClickEvent)
            .where(ClickEvent.short_link_id == link_id, ClickEvent.id <= cutoff)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def _emit_resolved(self, resolution: Resolution) -> None:
        if self.dispatcher is None:
            return
        self.dispatcher.dispatch(LinkEvent(
            type=LinkEventType.RESOLVED,
            owner_id=resolution.owner_id,
            link_id=resolution.link_id,
            short_code=resolution.short_code,
            clicks=resolution.clicks,
        ))
