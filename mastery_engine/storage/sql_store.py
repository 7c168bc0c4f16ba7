"""
SQL-backed store.

Persists blobs and sorted indexes in two tables through SQLAlchemy's async
engine, so any async driver works (``sqlite+aiosqlite`` by default,
``postgresql+asyncpg`` in deployment).
"""
from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy import Float, String, Text, delete, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .base import rank_slice


class Base(DeclarativeBase):
    pass


class KeyValueRow(Base):
    """One serialized entity."""

    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)


class IndexRow(Base):
    """One member of a sorted index."""

    __tablename__ = "kv_index_members"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    member: Mapped[str] = mapped_column(String(512), primary_key=True)
    score: Mapped[float] = mapped_column(Float, nullable=False, index=True)


def _get_async_url(url: str) -> str:
    """Convert sync URLs to their async driver equivalents when needed."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


class SqlStore:
    """KeyValueStore over an async SQLAlchemy engine."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )
        self._initialized = False

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> SqlStore:
        engine = create_async_engine(_get_async_url(url), echo=echo)
        logger.info(f"SQL store configured: {engine.url.render_as_string(hide_password=True)}")
        return cls(engine)

    async def init(self) -> None:
        """Create tables if they do not exist."""
        if self._initialized:
            return
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self._initialized = True
        logger.debug("SQL store tables initialized")

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide an async transactional scope around a series of operations."""
        await self.init()
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:  # Intentionally broad - rollback on any error before re-raising
                await session.rollback()
                raise

    async def _ordered_members(self, session: AsyncSession, key: str) -> list[str]:
        result = await session.execute(
            select(IndexRow.member).where(IndexRow.key == key).order_by(IndexRow.score, IndexRow.member)
        )
        return list(result.scalars().all())

    async def get(self, key: str) -> str | None:
        async with self.session_scope() as session:
            row = await session.get(KeyValueRow, key)
            return row.value if row is not None else None

    async def set(self, key: str, value: str) -> None:
        async with self.session_scope() as session:
            await session.merge(KeyValueRow(key=key, value=value))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        async with self.session_scope() as session:
            values = await session.execute(delete(KeyValueRow).where(KeyValueRow.key.in_(keys)))
            indexed = await session.execute(
                select(func.count(func.distinct(IndexRow.key))).where(IndexRow.key.in_(keys))
            )
            index_count = indexed.scalar_one()
            await session.execute(delete(IndexRow).where(IndexRow.key.in_(keys)))
            return values.rowcount + index_count

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        async with self.session_scope() as session:
            added = 0
            for member, score in mapping.items():
                row = await session.get(IndexRow, (key, member))
                if row is None:
                    session.add(IndexRow(key=key, member=member, score=float(score)))
                    added += 1
                else:
                    row.score = float(score)
            return added

    async def zrem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        async with self.session_scope() as session:
            result = await session.execute(
                delete(IndexRow).where(IndexRow.key == key, IndexRow.member.in_(members))
            )
            return result.rowcount

    async def zrange(self, key: str, start: int, stop: int) -> list[str]:
        async with self.session_scope() as session:
            ordered = await self._ordered_members(session, key)
        return ordered[rank_slice(len(ordered), start, stop)]

    async def zrange_by_score(
        self,
        key: str,
        min_score: float,
        max_score: float,
        offset: int | None = None,
        count: int | None = None,
    ) -> list[str]:
        query = (
            select(IndexRow.member)
            .where(IndexRow.key == key, IndexRow.score >= min_score, IndexRow.score <= max_score)
            .order_by(IndexRow.score, IndexRow.member)
        )
        if offset:
            query = query.offset(offset)
        if count is not None and count >= 0:
            query = query.limit(count)
        async with self.session_scope() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def zremrangebyrank(self, key: str, start: int, stop: int) -> int:
        async with self.session_scope() as session:
            ordered = await self._ordered_members(session, key)
            doomed = ordered[rank_slice(len(ordered), start, stop)]
            if not doomed:
                return 0
            await session.execute(
                delete(IndexRow).where(IndexRow.key == key, IndexRow.member.in_(doomed))
            )
            return len(doomed)

    async def zcard(self, key: str) -> int:
        async with self.session_scope() as session:
            result = await session.execute(select(func.count()).select_from(IndexRow).where(IndexRow.key == key))
            return result.scalar_one()

    async def close(self) -> None:
        await self.engine.dispose()
