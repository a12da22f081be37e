"""
Owner-scoped management of links: listing, search, update, delete.

Authorization happens before this layer; every query here is filtered by
the owner id the caller vouches for.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from smartshort_app.config import settings
from smartshort_app.exceptions import AliasTaken, LinkNotFound, ValidationFailed
from smartshort_app.models.short_link import ShortLink, as_utc, utcnow
from smartshort_app.notifications.dispatcher import EventDispatcher
from smartshort_app.notifications.models import LinkEvent, LinkEventType
from smartshort_app.services.validation import validate_custom_alias

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "createdAt": ShortLink.created_at,
    "updatedAt": ShortLink.updated_at,
    "clicks": ShortLink.clicks,
    "lastClicked": ShortLink.last_clicked,
    "title": ShortLink.title,
    "shortCode": ShortLink.short_code,
    "expiresAt": ShortLink.expires_at,
}
FILTERS = ("all", "active", "inactive", "expired", "custom")
EDITABLE_FIELDS = ("title", "description", "expires_at", "keywords", "preview_image", "is_active")


class URLService:
    """
    Management-plane operations on a single owner's links.

    Notifications go through the injected dispatcher and never block.
    """

    def __init__(self, db: AsyncSession, dispatcher: Optional[EventDispatcher] = None):
        self.db = db
        self.dispatcher = dispatcher

    def _filter_clause(self, name: str):
        now = utcnow()
        if name == "active":
            return and_(
                ShortLink.is_active.is_(True),
                or_(ShortLink.expires_at.is_(None), ShortLink.expires_at > now),
            )
        if name == "inactive":
            return ShortLink.is_active.is_(False)
        if name == "expired":
            return and_(ShortLink.expires_at.is_not(None), ShortLink.expires_at <= now)
        if name == "custom":
            return ShortLink.custom_alias.is_not(None)
        return None

    async def _paginate(self, conditions: List, page: int, limit: int, order_by) -> Tuple[List[ShortLink], Dict[str, int]]:
        page = max(page, 1)
        limit = min(max(limit, 1), settings.max_page_size)

        total = await self.db.scalar(select(func.count()).select_from(ShortLink).where(*conditions))
        result = await self.db.execute(
            select(ShortLink)
            .where(*conditions)
            .order_by(*order_by)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        pagination = {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        }
        return list(result.scalars().all()), pagination

    async def get_user_urls(
        self,
        owner_id: str,
        page: int = 1,
        limit: int = None,
        sort: str = "createdAt",
        order: str = "desc",
        filter: str = "all",
    ) -> Tuple[List[ShortLink], Dict[str, int]]:
        if sort not in SORT_COLUMNS:
            raise ValidationFailed(f"Unsupported sort field: {sort}")
        if order not in ("asc", "desc"):
            raise ValidationFailed(f"Unsupported sort order: {order}")
        if filter not in FILTERS:
            raise ValidationFailed(f"Unsupported filter: {filter}")

        conditions = [ShortLink.owner_id == owner_id]
        clause = self._filter_clause(filter)
        if clause is not None:
            conditions.append(clause)

        column = SORT_COLUMNS[sort]
        ordering = column.desc() if order == "desc" else column.asc()
        # id keeps pages stable when the sort column ties
        return await self._paginate(conditions, page, limit or settings.default_page_size, [ordering, ShortLink.id])

    async def search_urls(
        self, owner_id: str, query: str, page: int = 1, limit: int = None
    ) -> Tuple[List[ShortLink], Dict[str, int]]:
        query = (query or "").strip()
        if not query:
            raise ValidationFailed("Search query is required")

        pattern = f"%{query.lower()}%"
        conditions = [
            ShortLink.owner_id == owner_id,
            or_(
                func.lower(ShortLink.original_url).like(pattern),
                func.lower(ShortLink.title).like(pattern),
                func.lower(ShortLink.description).like(pattern),
                func.lower(ShortLink.short_code).like(pattern),
            ),
        ]
        return await self._paginate(
            conditions, page, limit or settings.default_page_size, [ShortLink.created_at.desc(), ShortLink.id]
        )

    async def get_top_urls(self, limit: int = 10) -> List[ShortLink]:
        limit = min(max(limit, 1), settings.max_page_size)
        result = await self.db.execute(
            select(ShortLink)
            .where(ShortLink.is_active.is_(True))
            .order_by(ShortLink.clicks.desc(), ShortLink.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_owned(self, link_id: str, owner_id: str) -> ShortLink:
        link = await self.db.scalar(
            select(ShortLink).where(ShortLink.id == link_id, ShortLink.owner_id == owner_id)
        )
        if link is None:
            raise LinkNotFound()
        return link

    async def update_url(self, link_id: str, owner_id: str, changes: Dict[str, Any]) -> ShortLink:
        """
        Apply an owner's edits.

        `changes` holds only the fields the client sent. A new custom
        alias replaces the short code and is checked for uniqueness the
        same way allocation checks it.
        """
        link = await self.get_owned(link_id, owner_id)

        alias = changes.get("custom_alias")
        if alias and alias != link.short_code:
            alias = validate_custom_alias(alias)
            taken = await self.db.scalar(
                select(ShortLink.id).where(ShortLink.short_code == alias, ShortLink.id != link.id)
            )
            if taken is not None:
                raise AliasTaken()
            link.short_code = alias
            link.custom_alias = alias

        for name in EDITABLE_FIELDS:
            if name not in changes:
                continue
            value = changes[name]
            if name == "expires_at":
                value = as_utc(value)
            elif name == "keywords":
                value = list(value or [])
            elif name == "is_active" and value is None:
                continue
            setattr(link, name, value)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise AliasTaken()

        self._emit(LinkEventType.UPDATED, link)
        return link

    async def delete_url(self, link_id: str, owner_id: str) -> None:
        """Hard delete; click history goes with it (ON DELETE CASCADE)."""
        link = await self.get_owned(link_id, owner_id)
        await self.db.execute(delete(ShortLink).where(ShortLink.id == link.id))
        await self.db.commit()
        logger.info("🗑️  Deleted link %s for owner %s", link.short_code, owner_id)
        self._emit(LinkEventType.DELETED, link)

    async def bulk_delete(self, link_ids: List[str], owner_id: str) -> int:
        result = await self.db.execute(
            delete(ShortLink)
            .where(ShortLink.id.in_(link_ids), ShortLink.owner_id == owner_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info("🗑️  Bulk deleted %d links for owner %s", result.rowcount, owner_id)
        return result.rowcount

    def notify_created(self, link: ShortLink) -> None:
        self._emit(LinkEventType.CREATED, link)

    def _emit(self, event_type: LinkEventType, link: ShortLink) -> None:
        if self.dispatcher is None:
            return
        self.dispatcher.dispatch(LinkEvent(
            type=event_type,
            owner_id=link.owner_id,
            link_id=link.id,
            short_code=link.short_code,
            clicks=link.clicks,
        ))
