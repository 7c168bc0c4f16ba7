"""
Key-value store protocol.

Every persisted entity is a JSON blob under a string key. Ranking and due
queries go through sorted indexes (member -> float score) with Redis
sorted-set semantics: members ordered by score ascending, ties broken by
member, ranks inclusive and negative ranks counted from the end.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Async store consumed by the mastery store and session manager."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def zadd(self, key: str, mapping: dict[str, float]) -> int: ...

    async def zrem(self, key: str, *members: str) -> int: ...

    async def zrange(self, key: str, start: int, stop: int) -> list[str]: ...

    async def zrange_by_score(
        self,
        key: str,
        min_score: float,
        max_score: float,
        offset: int | None = None,
        count: int | None = None,
    ) -> list[str]: ...

    async def zremrangebyrank(self, key: str, start: int, stop: int) -> int: ...

    async def zcard(self, key: str) -> int: ...

    async def close(self) -> None: ...


def rank_slice(length: int, start: int, stop: int) -> slice:
    """
    Convert inclusive Redis-style ranks into a Python slice.

    Args:
        length: Number of members in the index
        start: First rank (negative counts from the end)
        stop: Last rank, inclusive (negative counts from the end)

    Returns:
        Slice selecting the same members Redis would return
    """
    if start < 0:
        start = max(0, length + start)
    if stop < 0:
        stop = length + stop
    stop = min(stop, length - 1)
    if start > stop:
        return slice(0, 0)
    return slice(start, stop + 1)
