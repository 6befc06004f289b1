"""SQL-backed session storage.

This module provides SqlSessionStore, which manages an async SQLAlchemy
engine (SQLite via aiosqlite by default, any async driver works), and
SqlSession, a Session implementation storing one JSON row per item.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import sqlalchemy as sa
import tenacity
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from agent_engine.platform.agent.messages import RunItem, item_from_dict, item_to_dict
from agent_engine.platform.settings import SessionDbSettings

logger = logging.getLogger(__name__)

metadata = sa.MetaData()

session_items = sa.Table(
    "agent_session_items",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("session_id", sa.String(255), nullable=False, index=True),
    sa.Column("item_data", sa.Text, nullable=False),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    ),
)


@dataclass
class SqlSessionStore:
    """Async engine holder for session tables.

    The schema is created on first connect.
    """

    url: str
    echo: bool = False
    _engine: AsyncEngine | None = field(init=False, default=None)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock, repr=False)

    @classmethod
    def from_settings(cls, settings: SessionDbSettings) -> "SqlSessionStore":
        return cls(url=settings.url, echo=settings.echo)

    async def connect(self) -> AsyncEngine:
        if self._engine is not None:
            return self._engine
        async with self._lock:
            if self._engine is None:
                self._engine = await self._create_engine()
                logger.info("Session database connected")
        return self._engine

    @tenacity.retry(
        wait=tenacity.wait_fixed(2),
        stop=(tenacity.stop_after_attempt(3) | tenacity.stop_after_delay(10)),
        retry=tenacity.retry_if_not_exception_type(RuntimeError),
        reraise=True,
    )
    async def _create_engine(self) -> AsyncEngine:
        engine_kwargs: dict = {"echo": self.echo}
        if ":memory:" in self.url:
            # a single shared connection, otherwise every connection gets its own database
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        engine = create_async_engine(self.url, **engine_kwargs)

        async with engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        return engine

    async def disconnect(self) -> None:
        async with self._lock:
            if self._engine is not None:
                await self._engine.dispose()
                self._engine = None
                logger.info("Session database disconnected")

    def is_connected(self) -> bool:
        return self._engine is not None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncConnection]:
        engine = await self.connect()
        async with engine.begin() as conn:
            yield conn

    def session(self, session_id: str) -> "SqlSession":
        return SqlSession(session_id, self)


def _encode(item: RunItem) -> str:
    return json.dumps(item_to_dict(item), default=str)


def _decode(data: str) -> RunItem:
    return item_from_dict(json.loads(data))


class SqlSession:
    """Session whose items live in the ``agent_session_items`` table."""

    def __init__(self, session_id: str, store: SqlSessionStore) -> None:
        self._session_id = session_id
        self._store = store

    @property
    def session_id(self) -> str:
        return self._session_id

    async def get_items(self, limit: int | None = None) -> list[RunItem]:
        if limit is not None and limit <= 0:
            return []
        query = sa.select(session_items.c.item_data).where(
            session_items.c.session_id == self._session_id
        )
        if limit is None:
            query = query.order_by(session_items.c.id)
        else:
            query = query.order_by(session_items.c.id.desc()).limit(limit)

        async with self._store.transaction() as conn:
            rows = (await conn.execute(query)).scalars().all()

        if limit is not None:
            rows = list(reversed(rows))
        return [_decode(row) for row in rows]

    async def add_items(self, items: list[RunItem]) -> None:
        if not items:
            return
        async with self._store.transaction() as conn:
            await conn.execute(
                session_items.insert(),
                [{"session_id": self._session_id, "item_data": _encode(item)} for item in items],
            )

    async def pop_item(self) -> RunItem | None:
        query = (
            sa.select(session_items.c.id, session_items.c.item_data)
            .where(session_items.c.session_id == self._session_id)
            .order_by(session_items.c.id.desc())
            .limit(1)
        )
        async with self._store.transaction() as conn:
            row = (await conn.execute(query)).first()
            if row is None:
                return None
            await conn.execute(session_items.delete().where(session_items.c.id == row.id))
        return _decode(row.item_data)

    async def clear_session(self) -> None:
        async with self._store.transaction() as conn:
            await conn.execute(
                session_items.delete().where(session_items.c.session_id == self._session_id)
            )
