"""
Unit tests for the in-memory key-value store and rank helpers.

The in-memory store must behave like Redis sorted sets, since the mastery
store and session manager rely on rank and score semantics.
"""
import pytest

from mastery_engine.storage import InMemoryStore, KeySpace, KeyValueStore, rank_slice


@pytest.mark.parametrize(
    "length,start,stop,expected",
    [
        (5, 0, -1, slice(0, 5)),
        (5, 0, 1, slice(0, 2)),
        (5, -2, -1, slice(3, 5)),
        (5, -10, 2, slice(0, 3)),
        (5, 3, 100, slice(3, 5)),
        (5, 4, 2, slice(0, 0)),
        (0, 0, -1, slice(0, 0)),
    ],
)
def test_rank_slice(length, start, stop, expected):
    assert rank_slice(length, start, stop) == expected


def test_satisfies_protocol():
    assert isinstance(InMemoryStore(), KeyValueStore)


@pytest.mark.asyncio
async def test_get_set_delete():
    store = InMemoryStore()
    await store.set("a", "1")

    assert await store.get("a") == "1"
    assert await store.delete("a", "missing") == 1
    assert await store.get("a") is None


@pytest.mark.asyncio
async def test_zrange_orders_by_score_then_member():
    store = InMemoryStore()
    await store.zadd("idx", {"b": 0.5, "a": 0.5, "c": 0.1, "d": 0.9})

    assert await store.zrange("idx", 0, -1) == ["c", "a", "b", "d"]
    assert await store.zrange("idx", 0, 1) == ["c", "a"]
    assert await store.zrange("idx", -2, -1) == ["b", "d"]


@pytest.mark.asyncio
async def test_zadd_updates_existing_score():
    store = InMemoryStore()
    assert await store.zadd("idx", {"a": 1, "b": 2}) == 2
    assert await store.zadd("idx", {"a": 3}) == 0

    assert await store.zrange("idx", 0, -1) == ["b", "a"]
    assert await store.zcard("idx") == 2


@pytest.mark.asyncio
async def test_zrange_by_score_is_inclusive_with_paging():
    store = InMemoryStore()
    await store.zadd("idx", {m: s for m, s in zip("abcde", [1, 2, 3, 4, 5])})

    assert await store.zrange_by_score("idx", 2, 4) == ["b", "c", "d"]
    assert await store.zrange_by_score("idx", 0, 10, offset=1, count=2) == ["b", "c"]
    assert await store.zrange_by_score("idx", 6, 10) == []


@pytest.mark.asyncio
async def test_zremrangebyrank_keeps_newest():
    store = InMemoryStore()
    await store.zadd("history", {"s1": 100, "s2": 200, "s3": 300, "s4": 400})

    # keep the two highest scores
    removed = await store.zremrangebyrank("history", 0, -3)

    assert removed == 2
    assert await store.zrange("history", 0, -1) == ["s3", "s4"]


@pytest.mark.asyncio
async def test_zrem_and_delete_index():
    store = InMemoryStore()
    await store.zadd("idx", {"a": 1, "b": 2})

    assert await store.zrem("idx", "a", "zzz") == 1
    assert await store.zcard("idx") == 1
    assert await store.delete("idx") == 1
    assert await store.zcard("idx") == 0


def test_key_layout():
    keys = KeySpace("app")

    assert keys.mastery("u1", "c1") == "app:mastery:u1:c1"
    assert keys.review_queue("u1") == "app:review-queue:u1"
    assert keys.session("u1") == "app:session:u1"
    assert keys.session_archive("test_x") == "app:session-archive:test_x"
    assert KeySpace("").graph("u1") == "graph:u1"
