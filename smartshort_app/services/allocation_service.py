"""
Allocation of short codes for new links.

The pre-insert existence check keeps collisions cheap, but uniqueness is
guaranteed by the UNIQUE constraint on short_links.short_code: two
concurrent writers can both pass the check, and the loser's INSERT fails
with IntegrityError. On the generated path that is just another
collision; on the custom alias path it means the alias is taken.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from smartshort_app.config import settings
from smartshort_app.exceptions import AliasTaken, AllocationExhausted, ValidationFailed
from smartshort_app.models.short_link import ShortLink, as_utc
from smartshort_app.services.short_code_factory import ShortCodeFactory
from smartshort_app.services.short_code_strategies import ShortCodeStrategy
from smartshort_app.services.validation import extract_domain, validate_custom_alias, validate_original_url

logger = logging.getLogger(__name__)


@dataclass
class AllocationOptions:
    custom_alias: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    preview_image: Optional[str] = None
    expires_at: Optional[datetime] = None


class AllocationService:
    """Turns a creation request into a persisted, uniquely coded ShortLink."""

    def __init__(
        self,
        db: AsyncSession,
        code_strategy: Optional[ShortCodeStrategy] = None,
        initial_length: int = None,
        attempts_per_length: int = None,
        max_attempts: int = None,
    ):
        self.db = db
        self.code_strategy = code_strategy if code_strategy is not None else ShortCodeFactory.create_strategy()
        self.initial_length = initial_length or settings.short_code_length
        self.attempts_per_length = attempts_per_length or settings.attempts_per_length
        self.max_attempts = max_attempts or settings.max_allocation_attempts

    async def allocate(
        self,
        original_url: str,
        owner_id: str,
        options: Optional[AllocationOptions] = None,
    ) -> ShortLink:
        """
        Validate the request and persist a new ShortLink.

        Raises:
            InvalidUrl: original_url is not an absolute http(s) URL
            InvalidAlias: custom alias has bad characters or length
            AliasTaken: custom alias already held by some link
            AllocationExhausted: no free generated code within max_attempts
        """
        options = options if options is not None else AllocationOptions()
        original_url = validate_original_url(original_url)
        if not owner_id:
            raise ValidationFailed("User id is required")

        if options.custom_alias:
            return await self._allocate_custom(original_url, owner_id, options)
        return await self._allocate_generated(original_url, owner_id, options)

    async def code_exists(self, short_code: str) -> bool:
        result = await self.db.execute(
            select(ShortLink.id).where(ShortLink.short_code == short_code).limit(1)
        )
        return result.first() is not None

    async def _allocate_custom(self, original_url: str, owner_id: str, options: AllocationOptions) -> ShortLink:
        alias = validate_custom_alias(options.custom_alias)
        if await self.code_exists(alias):
            raise AliasTaken()

        link = self._build_link(original_url, owner_id, alias, options, custom=True)
        try:
            await self._insert(link)
        except IntegrityError:
            # Lost the race to a concurrent insert; the user asked for this exact code
            raise AliasTaken()
        logger.info("🔗 Reserved custom alias %s for owner %s", alias, owner_id)
        return link

    async def _allocate_generated(self, original_url: str, owner_id: str, options: AllocationOptions) -> ShortLink:
        length = self.initial_length
        attempts_at_length = 0

        for attempt in range(1, self.max_attempts + 1):
            candidate = self.code_strategy.generate(length)

            if not await self.code_exists(candidate):
                link = self._build_link(original_url, owner_id, candidate, options)
                try:
                    await self._insert(link)
                    if attempt > 1:
                        logger.info("🔁 Allocated %s after %d attempts", candidate, attempt)
                    return link
                except IntegrityError:
                    if not await self.code_exists(candidate):
                        raise
                    logger.debug("Concurrent insert took %s, retrying", candidate)

            attempts_at_length += 1
            if attempts_at_length >= self.attempts_per_length:
                length += 1
                attempts_at_length = 0
                logger.warning("⚠️  Short code collisions, growing code length to %d", length)

        logger.error(
            "❌ Short code allocation exhausted after %d attempts (last length %d)",
            self.max_attempts, length,
        )
        raise AllocationExhausted()

    def _build_link(
        self,
        original_url: str,
        owner_id: str,
        short_code: str,
        options: AllocationOptions,
        custom: bool = False,
    ) -> ShortLink:
        return ShortLink(
            original_url=original_url,
            short_code=short_code,
            custom_alias=short_code if custom else None,
            owner_id=owner_id,
            title=options.title or None,
            description=options.description or None,
            keywords=list(options.keywords or []),
            preview_image=options.preview_image or None,
            domain=extract_domain(original_url),
            expires_at=as_utc(options.expires_at),
        )

    async def _insert(self, link: ShortLink) -> None:
        """Insert and commit; rolls back and re-raises on IntegrityError."""
        self.db.add(link)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise
