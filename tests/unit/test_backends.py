"""
Unit tests for the Redis and SQL backends.

The SQL store runs against a temporary SQLite file through aiosqlite; the
Redis store is checked against a mocked ``redis.asyncio`` client.
"""
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from mastery_engine.config import Settings
from mastery_engine.mastery import MasteryStore
from mastery_engine.storage import InMemoryStore, KeyValueStore, create_store
from mastery_engine.storage.redis_store import RedisStore
from mastery_engine.storage.sql_store import SqlStore, _get_async_url


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    store = SqlStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'mastery.db'}")
    yield store
    await store.close()


class TestSqlStore:
    @pytest.mark.asyncio
    async def test_values(self, sql_store):
        await sql_store.set("a", "1")
        await sql_store.set("a", "2")

        assert await sql_store.get("a") == "2"
        assert await sql_store.get("missing") is None
        assert await sql_store.delete("a") == 1
        assert await sql_store.get("a") is None

    @pytest.mark.asyncio
    async def test_sorted_index(self, sql_store):
        assert await sql_store.zadd("idx", {"b": 0.5, "a": 0.5, "c": 0.1}) == 3
        assert await sql_store.zadd("idx", {"c": 0.9}) == 0

        assert await sql_store.zrange("idx", 0, -1) == ["a", "b", "c"]
        assert await sql_store.zrange("idx", -1, -1) == ["c"]
        assert await sql_store.zrange_by_score("idx", 0.4, 0.6) == ["a", "b"]
        assert await sql_store.zrange_by_score("idx", 0, 1, offset=1, count=1) == ["b"]
        assert await sql_store.zcard("idx") == 3

    @pytest.mark.asyncio
    async def test_trim_and_remove(self, sql_store):
        await sql_store.zadd("history", {"s1": 1, "s2": 2, "s3": 3})

        assert await sql_store.zremrangebyrank("history", 0, -3) == 1
        assert await sql_store.zrem("history", "s2") == 1
        assert await sql_store.zrange("history", 0, -1) == ["s3"]
        assert await sql_store.delete("history") == 1
        assert await sql_store.zcard("history") == 0

    @pytest.mark.asyncio
    async def test_mastery_store_over_sql(self, sql_store, clock):
        mastery_store = MasteryStore(sql_store, clock=clock)
        await mastery_store.create_mastery("u1", "vlan", "VLANs", initial_mastery=0.7)
        await mastery_store.create_mastery("u1", "stp", "Spanning Tree", initial_mastery=0.1)

        weakest = await mastery_store.get_weakest_concepts("u1", 1)

        assert [m.concept_id for m in weakest] == ["stp"]


def test_async_url_conversion():
    assert _get_async_url("sqlite:///x.db") == "sqlite+aiosqlite:///x.db"
    assert _get_async_url("postgresql://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert _get_async_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"


class TestRedisStore:
    @pytest.mark.asyncio
    async def test_delegates_to_client(self):
        client = AsyncMock()
        client.zrangebyscore.return_value = ["a"]
        store = RedisStore(client)

        assert await store.zrange_by_score("idx", 0, 100, offset=2, count=5) == ["a"]
        client.zrangebyscore.assert_awaited_with("idx", 0, 100, start=2, num=5)

        await store.zrange_by_score("idx", 0, 100)
        client.zrangebyscore.assert_awaited_with("idx", 0, 100)

        await store.zadd("idx", {"a": 1.0})
        client.zadd.assert_awaited_with("idx", {"a": 1.0})

    @pytest.mark.asyncio
    async def test_empty_variadic_calls_skip_client(self):
        client = AsyncMock()
        store = RedisStore(client)

        assert await store.delete() == 0
        assert await store.zrem("idx") == 0
        client.delete.assert_not_awaited()
        client.zrem.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close(self):
        client = AsyncMock()
        await RedisStore(client).close()

        client.aclose.assert_awaited_once()


def test_factory_selects_backend():
    assert isinstance(create_store(Settings(store_backend="memory")), InMemoryStore)

    redis_store = create_store(Settings(store_backend="redis", redis_url="redis://localhost:6399/0"))
    sql_store = create_store(Settings(store_backend="sql", database_url="sqlite+aiosqlite:///:memory:"))

    assert isinstance(redis_store, RedisStore)
    assert isinstance(sql_store, SqlStore)
    assert isinstance(sql_store, KeyValueStore)
