"""Shared fixtures: fresh in-memory components per test."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from linkup_messaging.api import dependencies
from linkup_messaging.api.app import app
from linkup_messaging.cache.memory import InMemoryCache
from linkup_messaging.config import Settings
from linkup_messaging.repositories.directory import InMemoryUserDirectory
from linkup_messaging.repositories.memory import InMemoryRepository


@pytest.fixture
def settings():
    return Settings(rate_limit=10_000, blocked_words=["spamword"])


@pytest.fixture
def components(settings):
    built = dependencies.build_components(
        settings,
        cache=InMemoryCache(),
        repository=InMemoryRepository(),
        directory=InMemoryUserDirectory(),
    )
    previous = dependencies._components
    dependencies.set_components(built)
    yield built
    dependencies._components = previous


@pytest_asyncio.fixture
async def users(components):
    directory = components.directory
    alice = await directory.add_user("alice", profile_picture="https://cdn.example/alice.png")
    bob = await directory.add_user("bob")
    carol = await directory.add_user("carol")
    dave = await directory.add_user("dave")
    return {"alice": alice, "bob": bob, "carol": carol, "dave": dave}


@pytest_asyncio.fixture
async def client(components):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

