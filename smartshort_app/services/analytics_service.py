"""
Read-only click analytics over the registry and the retained history.

Totals come from the clicks counters; day buckets and unique visitors can
only see the retained (capped) history.
"""

from datetime import timedelta
from typing import Dict

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from smartshort_app.models.click_event import ClickEvent
from smartshort_app.models.short_link import ShortLink, utcnow
from smartshort_app.schemas.analytics import DomainCount, GlobalStats, LinkStats, TopLink, UserStats


class AnalyticsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _clicks_by_day(self, *conditions) -> Dict[str, int]:
        day = func.date(ClickEvent.clicked_at)
        result = await self.db.execute(
            select(day, func.count(ClickEvent.id))
            .join(ShortLink, ShortLink.id == ClickEvent.short_link_id)
            .where(*conditions)
            .group_by(day)
            .order_by(day)
        )
        return {str(bucket): count for bucket, count in result.all()}

    async def link_stats(self, link: ShortLink) -> LinkStats:
        since = utcnow() - timedelta(days=7)
        history = ClickEvent.short_link_id == link.id

        total_history = await self.db.scalar(select(func.count(ClickEvent.id)).where(history))
        unique_clicks = await self.db.scalar(
            select(func.count(func.distinct(ClickEvent.ip_address))).where(history)
        )
        return LinkStats(
            total_clicks=link.clicks,
            unique_clicks=unique_clicks or 0,
            last_clicked=link.last_clicked,
            clicks_by_day=await self._clicks_by_day(history, ClickEvent.clicked_at >= since),
            total_history=total_history or 0,
        )

    async def user_stats(self, owner_id: str) -> UserStats:
        now = utcnow()
        owned = ShortLink.owner_id == owner_id

        total_urls = await self.db.scalar(select(func.count(ShortLink.id)).where(owned))
        total_clicks = await self.db.scalar(select(func.coalesce(func.sum(ShortLink.clicks), 0)).where(owned))
        recent_urls = await self.db.scalar(
            select(func.count(ShortLink.id)).where(owned, ShortLink.created_at >= now - timedelta(days=7))
        )
        top = await self.db.execute(
            select(ShortLink).where(owned).order_by(ShortLink.clicks.desc(), ShortLink.created_at.desc()).limit(5)
        )
        return UserStats(
            total_urls=total_urls or 0,
            total_clicks=total_clicks or 0,
            recent_urls=recent_urls or 0,
            top_urls=[TopLink.model_validate(link, from_attributes=True) for link in top.scalars()],
            clicks_by_day=await self._clicks_by_day(owned, ClickEvent.clicked_at >= now - timedelta(days=30)),
        )

    async def global_stats(self) -> GlobalStats:
        now = utcnow()
        since = now - timedelta(days=1)
        active = ShortLink.is_active.is_(True)

        total_urls = await self.db.scalar(select(func.count(ShortLink.id)).where(active))
        total_clicks = await self.db.scalar(select(func.coalesce(func.sum(ShortLink.clicks), 0)).where(active))
        recent_urls = await self.db.scalar(select(func.count(ShortLink.id)).where(ShortLink.created_at >= since))
        recent_clicks = await self.db.scalar(
            select(func.count(ClickEvent.id)).where(ClickEvent.clicked_at >= since)
        )
        domains = await self.db.execute(
            select(ShortLink.domain, func.count(ShortLink.id).label("count"))
            .where(active, ShortLink.domain.is_not(None))
            .group_by(ShortLink.domain)
            .order_by(func.count(ShortLink.id).desc(), ShortLink.domain)
            .limit(10)
        )
        return GlobalStats(
            total_urls=total_urls or 0,
            total_clicks=total_clicks or 0,
            recent_urls=recent_urls or 0,
            recent_clicks=recent_clicks or 0,
            top_domains=[DomainCount(domain=domain, count=count) for domain, count in domains.all()],
        )
