"""Tests for the cache layer, list-cache invalidation and typing flags."""

import asyncio
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from linkup_messaging.api import dependencies
from linkup_messaging.api.app import app
from linkup_messaging.cache.base import Cache, CacheError
from linkup_messaging.cache.memory import InMemoryCache
from linkup_messaging.config import Settings
from linkup_messaging.domain.errors import DependencyUnavailable
from linkup_messaging.domain.views import ConversationPage
from linkup_messaging.repositories.directory import InMemoryUserDirectory
from linkup_messaging.services.invalidation import ConversationListCache, conversation_list_key
from linkup_messaging.services.presence import TypingPresence


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FlakyCache(InMemoryCache):
    """In-memory cache whose deletes fail a set number of times."""

    def __init__(self, failures: int = 0):
        super().__init__()
        self.failures = failures
        self.deletes = 0

    async def delete(self, key):
        self.deletes += 1
        if self.failures > 0:
            self.failures -= 1
            raise CacheError("connection refused")
        await super().delete(key)


class DownCache(Cache):
    async def get(self, key):
        raise CacheError("down")

    async def set(self, key, value, ttl):
        raise CacheError("down")

    async def delete(self, key):
        raise CacheError("down")

    async def incr(self, key, ttl):
        raise CacheError("down")

    async def ping(self):
        return False


def empty_page(page=1, limit=10):
    return ConversationPage(conversations=[], total=0, page=page, limit=limit)


@pytest.mark.asyncio
async def test_memory_cache_expiry():
    clock = FakeClock()
    cache = InMemoryCache(clock=clock)
    await cache.set("k", {"a": [1]}, ttl=10)
    assert await cache.get("k") == {"a": [1]}

    clock.now += 10
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_memory_cache_values_are_copied():
    cache = InMemoryCache()
    value = {"items": [1, 2]}
    await cache.set("k", value, ttl=60)
    value["items"].append(3)

    stored = await cache.get("k")
    stored["items"].append(4)
    assert await cache.get("k") == {"items": [1, 2]}


@pytest.mark.asyncio
async def test_memory_cache_incr_keeps_first_expiry():
    clock = FakeClock()
    cache = InMemoryCache(clock=clock)
    assert await cache.incr("c", ttl=5) == 1
    clock.now += 3
    assert await cache.incr("c", ttl=5) == 2
    clock.now += 2
    assert await cache.incr("c", ttl=5) == 1


@pytest.mark.asyncio
async def test_list_cache_pages_share_one_entry():
    cache = InMemoryCache()
    list_cache = ConversationListCache(cache)
    user_id = uuid4()
    version = await list_cache.version(user_id)
    await list_cache.store(user_id, empty_page(1, 10), version)
    await list_cache.store(user_id, empty_page(2, 5), version)

    entry = await cache.get(conversation_list_key(user_id))
    assert entry["version"] == version
    assert set(entry["pages"]) == {"1:10", "2:5"}
    assert (await list_cache.get(user_id, 2, 5)).limit == 5

    await list_cache.invalidate([user_id])
    assert await list_cache.get(user_id, 1, 10) is None
    assert await list_cache.get(user_id, 2, 5) is None


@pytest.mark.asyncio
async def test_page_computed_before_eviction_is_not_served():
    list_cache = ConversationListCache(InMemoryCache())
    user_id = uuid4()
    version = await list_cache.version(user_id)

    await list_cache.prepare([user_id])
    await list_cache.invalidate([user_id])
    await list_cache.store(user_id, empty_page(), version)

    assert await list_cache.get(user_id, 1, 10) is None
    assert await list_cache.version(user_id) != version


@pytest.mark.asyncio
async def test_invalidate_retries_transient_failures():
    cache = FlakyCache(failures=2)
    list_cache = ConversationListCache(cache, retries=2)
    user_id = uuid4()
    await list_cache.store(user_id, empty_page(), await list_cache.version(user_id))

    await list_cache.invalidate([user_id])
    assert cache.deletes == 4
    assert await list_cache.get(user_id, 1, 10) is None


@pytest.mark.asyncio
async def test_prepare_refuses_when_cache_is_down():
    list_cache = ConversationListCache(DownCache(), retries=2)
    with pytest.raises(DependencyUnavailable):
        await list_cache.prepare([uuid4()])


@pytest.mark.asyncio
async def test_invalidate_after_write_does_not_raise():
    cache = FlakyCache(failures=10)
    list_cache = ConversationListCache(cache, retries=2)
    await list_cache.invalidate([uuid4()])
    assert cache.deletes == 3


@pytest.mark.asyncio
async def test_list_cache_reads_degrade_to_miss():
    list_cache = ConversationListCache(DownCache())
    user_id = uuid4()
    assert await list_cache.get(user_id, 1, 10) is None
    assert await list_cache.version(user_id) is None
    await list_cache.store(user_id, empty_page(), None)


@pytest.mark.asyncio
async def test_typing_flags_expire():
    clock = FakeClock()
    presence = TypingPresence(InMemoryCache(clock=clock), ttl=10)
    conversation_id, alice, bob = uuid4(), uuid4(), uuid4()

    await presence.set_typing(conversation_id, alice, True)
    assert await presence.typing_users(conversation_id, [alice, bob]) == [alice]

    clock.now += 10
    assert await presence.typing_users(conversation_id, [alice, bob]) == []

    await presence.set_typing(conversation_id, bob, True)
    await presence.set_typing(conversation_id, bob, False)
    assert await presence.typing_users(conversation_id, [bob]) == []


@pytest.mark.asyncio
async def test_typing_surfaces_cache_outage():
    presence = TypingPresence(DownCache())
    with pytest.raises(DependencyUnavailable):
        await presence.set_typing(uuid4(), uuid4(), True)


@pytest.mark.asyncio
async def test_writes_fail_with_503_when_cache_is_down():
    directory = InMemoryUserDirectory()
    built = dependencies.build_components(
        Settings(rate_limit=10_000), cache=DownCache(), directory=directory
    )
    previous = dependencies._components
    dependencies.set_components(built)
    try:
        alice = await directory.add_user("alice")
        bob = await directory.add_user("bob")
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            headers = {"X-User-ID": str(alice.user_id)}
            response = await client.post(
                "/conversations", json={"participantId": str(bob.user_id)}, headers=headers
            )
            assert response.status_code == 503

            listing = await client.get("/conversations", headers=headers)
            assert listing.status_code == 200
            assert listing.json()["total"] == 0
    finally:
        dependencies._components = previous


class SwitchableCache(InMemoryCache):
    """Deletes start failing once ``broken`` is set."""

    broken = False

    async def delete(self, key):
        if self.broken:
            raise CacheError("connection reset")
        await super().delete(key)


@pytest.mark.asyncio
async def test_committed_send_is_reported_when_eviction_fails(monkeypatch):
    """A send that reached the store returns 201 even if the cache then fails."""
    cache = SwitchableCache()
    directory = InMemoryUserDirectory()
    built = dependencies.build_components(Settings(rate_limit=10_000), cache=cache, directory=directory)
    repository = built.repository
    add_message = repository.add_message

    async def add_then_break(message):
        stored = await add_message(message)
        cache.broken = True
        return stored

    monkeypatch.setattr(repository, "add_message", add_then_break)
    previous = dependencies._components
    dependencies.set_components(built)
    try:
        alice = await directory.add_user("alice")
        bob = await directory.add_user("bob")
        conversation = await built.conversations.create_direct(alice.user_id, bob.user_id)
        url = f"/conversations/{conversation.conversation_id}/messages"
        headers = {"X-User-ID": str(alice.user_id)}
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post(url, json={"content": "hi"}, headers=headers)
            assert response.status_code == 201
            assert response.json()["sequence"] == 1

            history = (await client.get(url, headers=headers)).json()["messages"]
        assert [m["id"] for m in history] == [response.json()["id"]]
    finally:
        dependencies._components = previous


class GatedCache(InMemoryCache):
    """Holds writes of one key until released."""

    def __init__(self, gated_key):
        super().__init__()
        self.gated_key = gated_key
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def set(self, key, value, ttl):
        if key == self.gated_key:
            self.entered.set()
            await self.release.wait()
        await super().set(key, value, ttl)


@pytest.mark.asyncio
async def test_listing_racing_a_send_does_not_cache_stale_unread_count():
    directory = InMemoryUserDirectory()
    alice = await directory.add_user("alice")
    bob = await directory.add_user("bob")
    cache = GatedCache(conversation_list_key(alice.user_id))
    built = dependencies.build_components(Settings(), cache=cache, directory=directory)
    conversation = await built.conversations.create_direct(alice.user_id, bob.user_id)

    listing = asyncio.create_task(built.conversations.list_for_user(alice.user_id))
    await cache.entered.wait()
    await built.messages.send_message(bob.user_id, conversation.conversation_id, "hello")
    cache.release.set()

    stale = await listing
    assert stale.conversations[0].unread_count == 0

    fresh = await built.conversations.list_for_user(alice.user_id)
    assert fresh.conversations[0].unread_count == 1
    assert fresh.conversations[0].last_message.content == "hello"
