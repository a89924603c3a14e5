"""
Shared pytest fixtures for the storeshift tests.

This module provides:
- A FakeRedis client fixture (see tests.fixtures)
- Store fixtures for each backend (memory, sql on in-memory SQLite, redis on FakeRedis)
- A parametrized `store` fixture running contract tests against every backend
- Registry fixtures over memory, SQL and Redis providers
"""

from typing import Any, Dict

import pytest

from storeshift.registry import ProviderRegistry
from storeshift.stores import MemoryStore, RedisStore, SQLStore

from tests.fixtures import FakeRedis


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore(name="memory")


@pytest.fixture
def sql_store():
    store = SQLStore(url="sqlite://", name="postgres")
    yield store
    store.close()


@pytest.fixture
def redis_store(fake_redis: FakeRedis) -> RedisStore:
    return RedisStore(name="redis", client=fake_redis)


@pytest.fixture(params=["memory", "sql", "redis"])
def store(request):
    """Every backend, for adapter contract tests."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def users_data() -> Dict[str, Dict[str, Any]]:
    return {
        "users": {
            "a": {"name": "Al"},
            "b": {"name": "Bo"},
            "c": {"name": None},
        }
    }


@pytest.fixture
def memory_registry(users_data) -> ProviderRegistry:
    """Two memory providers: `source` holding users, `target` empty."""
    return ProviderRegistry({
        "source": MemoryStore(initial_data=users_data),
        "target": MemoryStore(),
    })


@pytest.fixture
def mixed_registry(sql_store: SQLStore, redis_store: RedisStore) -> ProviderRegistry:
    """SQL provider `postgres` and Redis provider `redis`."""
    return ProviderRegistry({"postgres": sql_store, "redis": redis_store})
