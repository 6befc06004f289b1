"""Session protocol.

A session is an append-only, ordered log of conversation items keyed by a
session id. The runner reads it before a run and appends to it after a
completed run; storage is up to the implementation.
"""

from typing import Protocol, runtime_checkable

from agent_engine.platform.agent.messages import RunItem


@runtime_checkable
class Session(Protocol):
    """Protocol for conversation persistence."""

    @property
    def session_id(self) -> str:
        """Identifier of the conversation."""
        ...

    async def get_items(self, limit: int | None = None) -> list[RunItem]:
        """Return stored items in order; only the latest ``limit`` when given."""
        ...

    async def add_items(self, items: list[RunItem]) -> None:
        """Append items to the end of the log."""
        ...

    async def pop_item(self) -> RunItem | None:
        """Remove and return the most recent item, or None when empty."""
        ...

    async def clear_session(self) -> None:
        """Remove every item of the session."""
        ...
