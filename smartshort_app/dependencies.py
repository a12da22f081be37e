"""
FastAPI dependencies for dependency injection.

This module provides singleton instances of the cache, notification
transport, event dispatcher, metadata analyzer and code strategy, and
composes them into request-scoped services.

Tests swap any of them through app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from smartshort_app.cache.factory import CacheBackend, CacheFactory
from smartshort_app.cache.strategies import CacheStrategy
from smartshort_app.config import settings
from smartshort_app.database.connection import get_db
from smartshort_app.enrichment.analyzer import MetadataAnalyzer
from smartshort_app.notifications.dispatcher import EventDispatcher
from smartshort_app.notifications.factory import NotificationBackend, NotificationFactory
from smartshort_app.notifications.strategies import NotificationStrategy
from smartshort_app.services.allocation_service import AllocationService
from smartshort_app.services.analytics_service import AnalyticsService
from smartshort_app.services.resolution_service import ResolutionService
from smartshort_app.services.short_code_factory import ShortCodeFactory
from smartshort_app.services.short_code_strategies import ShortCodeStrategy
from smartshort_app.services.url_service import URLService


@lru_cache()
def get_cache() -> CacheStrategy:
    """Cache instance (singleton), backend chosen by settings."""
    return CacheFactory.create(CacheBackend(settings.cache_backend))


@lru_cache()
def get_notifier() -> NotificationStrategy:
    """Notification transport (singleton), backend chosen by settings."""
    return NotificationFactory.create(NotificationBackend(settings.notification_backend))


@lru_cache()
def get_event_dispatcher() -> EventDispatcher:
    return EventDispatcher(get_notifier())


@lru_cache()
def get_analyzer() -> MetadataAnalyzer:
    return MetadataAnalyzer(cache=get_cache())


def get_code_strategy() -> ShortCodeStrategy:
    # ShortCodeFactory caches instances itself
    return ShortCodeFactory.create_strategy()


def get_allocation_service(
    db: AsyncSession = Depends(get_db),
    code_strategy: ShortCodeStrategy = Depends(get_code_strategy),
) -> AllocationService:
    return AllocationService(db=db, code_strategy=code_strategy)


def get_resolution_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> ResolutionService:
    return ResolutionService(db=db, dispatcher=dispatcher)


def get_url_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> URLService:
    """
    URLService with all dependencies injected.

    Controller depends on service, service depends on infrastructure.
    """
    return URLService(db=db, dispatcher=dispatcher)


def get_analytics_service(db: AsyncSession = Depends(get_db)) -> AnalyticsService:
    return AnalyticsService(db=db)
