"""Unit tests for the TTL cache, event channel and metadata service."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from bento_profile.services.cache import TTLCache
from bento_profile.services.events import ITEM_ADDED, PROFILE_UPDATED, EventChannel
from bento_profile.services.metadata import MetadataService, parse_repository_url


class TestTTLCache:
    def test_get_set(self):
        cache = TTLCache(ttl_seconds=60)
        assert cache.get("liz") is None
        cache.set("liz", {"name": "Liz"})
        assert cache.get("liz") == {"name": "Liz"}
        assert "liz" in cache
        assert len(cache) == 1

    def test_expired_entries_are_misses(self):
        cache = TTLCache(ttl_seconds=0)
        cache.set("liz", "value")
        # Any elapsed time exceeds a zero TTL
        cache._entries["liz"].cached_at -= 1
        assert cache.get("liz") is None
        assert "liz" not in cache

    def test_invalidate_and_clear(self):
        cache = TTLCache(ttl_seconds=60)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        cache.clear()
        assert len(cache) == 0
        assert cache.get_stats()["invalidations"] == 2

    def test_stats(self):
        cache = TTLCache(ttl_seconds=60, name="profiles")
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate_pct"] == 50.0
        assert stats["name"] == "profiles"

    def test_negative_ttl_rejected(self):
        with pytest.raises(ValueError):
            TTLCache(ttl_seconds=-1)

    @pytest.mark.asyncio
    async def test_get_or_fetch_deduplicates_concurrent_requests(self):
        cache = TTLCache(ttl_seconds=60)
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return "value"

        results = await asyncio.gather(*(cache.get_or_fetch("k", fetch) for _ in range(4)))
        assert results == ["value"] * 4
        assert calls == 1
        assert await cache.get_or_fetch("k", fetch) == "value"
        assert calls == 1

    @pytest.mark.asyncio
    async def test_failed_fetch_not_cached(self):
        cache = TTLCache(ttl_seconds=60)
        fetch = AsyncMock(side_effect=[RuntimeError("boom"), "value"])

        with pytest.raises(RuntimeError):
            await cache.get_or_fetch("k", fetch)
        assert await cache.get_or_fetch("k", fetch) == "value"
        assert fetch.await_count == 2


class TestEventChannel:
    def test_publish_reaches_subscribers(self):
        channel = EventChannel()
        received = []
        channel.subscribe(ITEM_ADDED, lambda event, payload: received.append((event, payload)))

        assert channel.publish(ITEM_ADDED, item_id="a") == 1
        assert received == [(ITEM_ADDED, {"item_id": "a"})]

    def test_unsubscribe(self):
        channel = EventChannel()
        received = []
        unsubscribe = channel.subscribe(PROFILE_UPDATED, lambda event, payload: received.append(event))
        unsubscribe()
        unsubscribe()
        channel.publish(PROFILE_UPDATED)
        assert received == []
        assert channel.subscriber_count(PROFILE_UPDATED) == 0

    def test_wildcard_subscriber(self):
        channel = EventChannel()
        received = []
        channel.subscribe("*", lambda event, payload: received.append(event))
        channel.publish(ITEM_ADDED)
        channel.publish(PROFILE_UPDATED)
        assert received == [ITEM_ADDED, PROFILE_UPDATED]

    def test_failing_handler_does_not_stop_delivery(self, caplog):
        channel = EventChannel()
        received = []

        def broken(event, payload):
            raise RuntimeError("handler bug")

        channel.subscribe(ITEM_ADDED, broken)
        channel.subscribe(ITEM_ADDED, lambda event, payload: received.append(event))

        assert channel.publish(ITEM_ADDED) == 1
        assert received == [ITEM_ADDED]
        assert "handler bug" in caplog.text

    def test_channels_are_independent(self):
        first, second = EventChannel(), EventChannel()
        received = []
        first.subscribe(ITEM_ADDED, lambda event, payload: received.append(event))
        second.publish(ITEM_ADDED)
        assert received == []


class TestMetadataService:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://github.com/octo/hello", ("github", "octo", "hello")),
            ("github.com/octo/hello.git", ("github", "octo", "hello")),
            ("https://gitlab.com/group/project/", ("gitlab", "group", "project")),
            ("https://example.org/octo/hello", None),
            ("https://github.com/octo", None),
        ],
    )
    def test_parse_repository_url(self, url, expected):
        assert parse_repository_url(url) == expected

    @pytest.mark.asyncio
    async def test_link_content_uses_fetchers(self):
        service = MetadataService(
            fetch_page_title=AsyncMock(return_value="Example"),
            fetch_page_image=AsyncMock(return_value=None),
        )
        content = await service.link_content("https://example.org")
        assert content == {"url": "https://example.org", "title": "Example"}

    @pytest.mark.asyncio
    async def test_results_cached(self):
        fetch_title = AsyncMock(return_value="Example")
        service = MetadataService(fetch_page_title=fetch_title)
        await service.page_title("https://example.org")
        await service.page_title("https://example.org")
        assert fetch_title.await_count == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_yields_none(self):
        service = MetadataService(fetch_repository=AsyncMock(side_effect=ConnectionError("offline")))
        assert await service.repository("github", "octo", "hello") is None

    @pytest.mark.asyncio
    async def test_missing_fetchers(self):
        service = MetadataService()
        assert await service.page_title("https://example.org") is None
        assert await service.link_content("https://example.org") == {"url": "https://example.org"}
