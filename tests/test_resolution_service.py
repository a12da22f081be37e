"""
Tests for the redirect path: resolution, click counting and capped history.
"""
import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select, update

from smartshort_app.exceptions import NotFoundOrExpired
from smartshort_app.models.click_event import ClickEvent
from smartshort_app.models.short_link import ShortLink, as_utc, utcnow
from smartshort_app.notifications.dispatcher import EventDispatcher
from smartshort_app.notifications.models import LinkEventType
from smartshort_app.notifications.strategies import NotificationStrategy
from smartshort_app.services.allocation_service import AllocationOptions, AllocationService
from smartshort_app.services.resolution_service import ClickContext, ResolutionService, describe_user_agent


class FailingNotifier(NotificationStrategy):
    async def publish(self, channel, event):
        raise ConnectionError("transport down")

    async def read(self, channel, count=100):
        return []


async def create_link(session, url="https://example.com/path?q=1", **options):
    return await AllocationService(session).allocate(url, "user-1", AllocationOptions(**options))


async def fetch_link(session_factory, link_id) -> ShortLink:
    async with session_factory() as session:
        return await session.get(ShortLink, link_id)


async def history(session_factory, link_id):
    async with session_factory() as session:
        result = await session.execute(
            select(ClickEvent).where(ClickEvent.short_link_id == link_id).order_by(ClickEvent.id)
        )
        return list(result.scalars().all())


class TestResolve:
    """Test resolve_and_record"""

    @pytest.mark.asyncio
    async def test_resolve_returns_exact_url_and_counts(self, db_session, session_factory):
        link = await create_link(db_session)
        service = ResolutionService(db_session)

        resolution = await service.resolve_and_record(
            link.short_code,
            ClickContext(ip="203.0.113.7", user_agent="Mozilla/5.0 (Windows NT 10.0) Chrome/120.0", country="DE"),
        )

        assert resolution.original_url == "https://example.com/path?q=1"
        assert resolution.clicks == 1

        stored = await fetch_link(session_factory, link.id)
        assert stored.clicks == 1
        assert stored.last_clicked is not None

        events = await history(session_factory, link.id)
        assert len(events) == 1
        assert events[0].ip_address == "203.0.113.7"
        assert events[0].country == "DE"
        assert events[0].device == "desktop"
        assert events[0].browser == "Chrome"

    @pytest.mark.asyncio
    async def test_concurrent_resolutions_lose_no_increment(self, db_session, session_factory):
        link = await create_link(db_session)

        async def resolve_once():
            async with session_factory() as session:
                return await ResolutionService(session).resolve_and_record(link.short_code)

        results = await asyncio.gather(*(resolve_once() for _ in range(25)))

        stored = await fetch_link(session_factory, link.id)
        assert stored.clicks == 25
        # Every caller saw a distinct post-increment value
        assert sorted(r.clicks for r in results) == list(range(1, 26))
        assert len(await history(session_factory, link.id)) == 25

    @pytest.mark.asyncio
    async def test_history_is_capped_oldest_first(self, db_session, session_factory):
        link = await create_link(db_session)
        service = ResolutionService(db_session, history_cap=5)

        for i in range(8):
            await service.resolve_and_record(link.short_code, ClickContext(referrer=f"ref-{i}"))

        stored = await fetch_link(session_factory, link.id)
        events = await history(session_factory, link.id)
        assert stored.clicks == 8
        assert [e.referrer for e in events] == [f"ref-{i}" for i in range(3, 8)]

    @pytest.mark.asyncio
    async def test_default_cap_keeps_newest_thousand(self, db_session, session_factory):
        link = await create_link(db_session)
        service = ResolutionService(db_session)
        assert service.history_cap == 1000

        for i in range(1003):
            await service.resolve_and_record(link.short_code, ClickContext(referrer=f"ref-{i}"))

        stored = await fetch_link(session_factory, link.id)
        events = await history(session_factory, link.id)
        assert stored.clicks == 1003
        assert len(events) == 1000
        assert events[0].referrer == "ref-3"
        assert events[-1].referrer == "ref-1002"

    @pytest.mark.asyncio
    async def test_clicks_do_not_touch_updated_at(self, db_session, session_factory):
        link = await create_link(db_session)
        before = as_utc(link.updated_at)

        await ResolutionService(db_session).resolve_and_record(link.short_code)

        stored = await fetch_link(session_factory, link.id)
        assert as_utc(stored.updated_at) == before


class TestNotResolvable:
    """Unknown, deactivated and expired codes are indistinguishable"""

    @pytest.mark.asyncio
    async def test_unknown_code(self, db_session):
        with pytest.raises(NotFoundOrExpired) as exc_info:
            await ResolutionService(db_session).resolve_and_record("nope42")

        assert exc_info.value.message == "URL not found or expired"

    @pytest.mark.asyncio
    async def test_expired_link(self, db_session, session_factory):
        link = await create_link(db_session, expires_at=utcnow() - timedelta(minutes=1))
        link_id = link.id

        with pytest.raises(NotFoundOrExpired) as exc_info:
            await ResolutionService(db_session).resolve_and_record(link.short_code)

        assert exc_info.value.message == "URL not found or expired"
        stored = await fetch_link(session_factory, link_id)
        assert stored.clicks == 0
        assert await history(session_factory, link_id) == []

    @pytest.mark.asyncio
    async def test_expiry_instant_is_exclusive(self, db_session):
        expires = utcnow() + timedelta(hours=1)
        link = await create_link(db_session, expires_at=expires)
        service = ResolutionService(db_session)

        resolution = await service.resolve_and_record(link.short_code, now=expires - timedelta(seconds=1))
        assert resolution.clicks == 1

        with pytest.raises(NotFoundOrExpired):
            await service.resolve_and_record(link.short_code, now=expires)

    @pytest.mark.asyncio
    async def test_deactivated_link(self, db_session, session_factory):
        link = await create_link(db_session)
        link_id = link.id
        await db_session.execute(update(ShortLink).where(ShortLink.id == link_id).values(is_active=False))
        await db_session.commit()

        with pytest.raises(NotFoundOrExpired) as exc_info:
            await ResolutionService(db_session).resolve_and_record(link.short_code)

        assert exc_info.value.message == "URL not found or expired"
        stored = await fetch_link(session_factory, link_id)
        assert stored.clicks == 0

    @pytest.mark.asyncio
    async def test_caller_objects_stay_loaded_after_miss(self, db_session):
        """A miss leaves the session's objects readable without a reload"""
        link = await create_link(db_session, expires_at=utcnow() - timedelta(minutes=1))
        live = await create_link(db_session, url="https://example.org/live")
        service = ResolutionService(db_session)

        with pytest.raises(NotFoundOrExpired):
            await service.resolve_and_record(link.short_code)

        # Plain attribute access; an expired instance would need an async reload here
        assert link.original_url == "https://example.com/path?q=1"
        assert live.short_code
        resolution = await service.resolve_and_record(live.short_code)
        assert resolution.link_id == live.id
        assert resolution.clicks == 1


class TestResolvedEvents:
    """Test the 'link resolved' notification"""

    @pytest.mark.asyncio
    async def test_resolved_event_is_published(self, db_session, dispatcher, notifier):
        link = await create_link(db_session)

        await ResolutionService(db_session, dispatcher=dispatcher).resolve_and_record(link.short_code)
        await dispatcher.drain()

        events = await notifier.read("test_events:user-1")
        assert len(events) == 1
        assert events[0].type == LinkEventType.RESOLVED
        assert events[0].short_code == link.short_code
        assert events[0].clicks == 1

    @pytest.mark.asyncio
    async def test_transport_failure_does_not_fail_redirect(self, db_session, session_factory):
        link = await create_link(db_session)
        dispatcher = EventDispatcher(FailingNotifier(), timeout=1.0)

        resolution = await ResolutionService(db_session, dispatcher=dispatcher).resolve_and_record(link.short_code)
        await dispatcher.drain()

        assert resolution.clicks == 1
        assert (await fetch_link(session_factory, link.id)).clicks == 1

    @pytest.mark.asyncio
    async def test_no_event_for_failed_resolution(self, db_session, dispatcher, notifier):
        with pytest.raises(NotFoundOrExpired):
            await ResolutionService(db_session, dispatcher=dispatcher).resolve_and_record("missing")
        await dispatcher.drain()

        assert await notifier.read("test_events:user-1") == []


class TestUserAgent:
    @pytest.mark.parametrize("user_agent, expected", [
        ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0) AppleWebKit/605.1.15 Version/17.0 Mobile/15E148 Safari/604.1",
         ("mobile", "Safari")),
        ("Mozilla/5.0 (iPad; CPU OS 16_0) AppleWebKit/605.1.15 Safari/604.1", ("tablet", "Safari")),
        ("Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0", ("desktop", "Firefox")),
        ("Mozilla/5.0 (Windows NT 10.0) Chrome/120.0 Safari/537.36 Edg/120.0", ("desktop", "Edge")),
        ("Googlebot/2.1 (+http://www.google.com/bot.html)", ("bot", "Other")),
        (None, (None, None)),
    ])
    def test_describe_user_agent(self, user_agent, expected):
        assert describe_user_agent(user_agent) == expected
