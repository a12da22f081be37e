"""
Deactivation of links whose expiry has passed.

The redirect path already checks expires_at itself, so a missed sweep
only delays the is_active flag; the next sweep catches up.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update

from smartshort_app.database.connection import SessionLocal
from smartshort_app.models.short_link import ShortLink, utcnow

logger = logging.getLogger(__name__)


class ExpiryReaper:
    def __init__(self, session_factory=SessionLocal):
        """
        Args:
            session_factory: async_sessionmaker producing the sweep's session
        """
        self.session_factory = session_factory

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Flip is_active off for every active link that expired before `now`.

        One bulk UPDATE; rows are never deleted and no other column
        changes. Errors are logged, never raised.

        Returns:
            Number of links deactivated (0 on failure)
        """
        now = now or utcnow()
        stmt = (
            update(ShortLink)
            .where(
                ShortLink.is_active.is_(True),
                ShortLink.expires_at.is_not(None),
                ShortLink.expires_at < now,
            )
            .values(is_active=False, updated_at=ShortLink.updated_at)
            .returning(ShortLink.short_code)
            .execution_options(synchronize_session=False)
        )

        try:
            async with self.session_factory() as session:
                codes = (await session.execute(stmt)).scalars().all()
                await session.commit()
        except Exception:
            logger.exception("❌ Error during expired links sweep")
            return 0

        if not codes:
            logger.info("✅ No expired links found")
            return 0

        logger.info("🧹 Sweep completed: %d links deactivated", len(codes))
        for code in codes:
            logger.debug("🔗 Deactivated expired link %s", code)
        return len(codes)
