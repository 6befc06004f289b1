"""In-process session storage."""

import asyncio

from agent_engine.platform.agent.messages import RunItem


class MemorySession:
    """Session kept in a list; lost when the process exits."""

    def __init__(self, session_id: str, items: list[RunItem] | None = None) -> None:
        self._session_id = session_id
        self._items: list[RunItem] = list(items or [])
        self._lock = asyncio.Lock()

    @property
    def session_id(self) -> str:
        return self._session_id

    async def get_items(self, limit: int | None = None) -> list[RunItem]:
        async with self._lock:
            if limit is None:
                return list(self._items)
            if limit <= 0:
                return []
            return self._items[-limit:]

    async def add_items(self, items: list[RunItem]) -> None:
        async with self._lock:
            self._items.extend(items)

    async def pop_item(self) -> RunItem | None:
        async with self._lock:
            if not self._items:
                return None
            return self._items.pop()

    async def clear_session(self) -> None:
        async with self._lock:
            self._items.clear()
