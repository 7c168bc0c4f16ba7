"""In-process store for tests and local development."""
from __future__ import annotations

from .base import rank_slice


class InMemoryStore:
    """Dictionary-backed implementation of KeyValueStore."""

    def __init__(self):
        self._values: dict[str, str] = {}
        self._indexes: dict[str, dict[str, float]] = {}

    def _ordered(self, key: str) -> list[str]:
        index = self._indexes.get(key, {})
        return [member for member, _ in sorted(index.items(), key=lambda item: (item[1], item[0]))]

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._values.pop(key, None) is not None:
                removed += 1
            if self._indexes.pop(key, None) is not None:
                removed += 1
        return removed

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        index = self._indexes.setdefault(key, {})
        added = sum(1 for member in mapping if member not in index)
        index.update({member: float(score) for member, score in mapping.items()})
        return added

    async def zrem(self, key: str, *members: str) -> int:
        index = self._indexes.get(key)
        if not index:
            return 0
        removed = 0
        for member in members:
            if index.pop(member, None) is not None:
                removed += 1
        if not index:
            del self._indexes[key]
        return removed

    async def zrange(self, key: str, start: int, stop: int) -> list[str]:
        ordered = self._ordered(key)
        return ordered[rank_slice(len(ordered), start, stop)]

    async def zrange_by_score(
        self,
        key: str,
        min_score: float,
        max_score: float,
        offset: int | None = None,
        count: int | None = None,
    ) -> list[str]:
        index = self._indexes.get(key, {})
        matching = [m for m in self._ordered(key) if min_score <= index[m] <= max_score]
        offset = offset or 0
        if count is None or count < 0:
            return matching[offset:]
        return matching[offset : offset + count]

    async def zremrangebyrank(self, key: str, start: int, stop: int) -> int:
        ordered = self._ordered(key)
        doomed = ordered[rank_slice(len(ordered), start, stop)]
        return await self.zrem(key, *doomed) if doomed else 0

    async def zcard(self, key: str) -> int:
        return len(self._indexes.get(key, {}))

    async def close(self) -> None:
        return None
