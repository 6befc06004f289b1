"""Streaming adapter.

A StreamedRunResult runs the turn loop in a background task and exposes
every appended item, in order, as a single-pass async event stream. The
channel is closed exactly once when the run reaches a terminal state; a
run error is re-raised to the consumer after the last event.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Coroutine
from typing import Any

from agent_engine.platform.agent.config import AgentConfig
from agent_engine.platform.agent.messages import MessageOutputItem, RunItem, StreamEvent
from agent_engine.platform.agent.results import RunResult
from agent_engine.platform.agent.state import RunState
from agent_engine.platform.agent.usage import Usage

logger = logging.getLogger(__name__)

_CLOSED = object()


class StreamedRunResult:
    """Handle on a run executing in the background."""

    def __init__(self, state: RunState) -> None:
        self._state = state
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._closed = False
        self._consumed = False
        self._error: BaseException | None = None
        self.result: RunResult | None = None

    def start(self, run: Coroutine[Any, Any, RunResult]) -> None:
        """Schedule the run on the current event loop."""
        self._task = asyncio.create_task(self._drive(run))

    async def _drive(self, run: Coroutine[Any, Any, RunResult]) -> None:
        try:
            self.result = await run
        except Exception as e:
            logger.debug(f"Streamed run ended with {type(e).__name__}: {e}")
            self._error = e
        finally:
            self._close()

    def push(self, event: StreamEvent) -> None:
        if self._closed:
            raise RuntimeError("Cannot push events to a closed stream")
        self._queue.put_nowait(event)

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    @property
    def is_complete(self) -> bool:
        return self._closed

    @property
    def current_agent(self) -> AgentConfig:
        return self._state.current_agent

    @property
    def current_turn(self) -> int:
        return self._state.current_turn

    @property
    def new_items(self) -> list[RunItem]:
        return list(self._state.generated_items)

    @property
    def usage(self) -> Usage:
        return self._state.usage

    @property
    def final_output(self) -> Any:
        return self.result.final_output if self.result is not None else None

    async def stream_events(self) -> AsyncIterator[StreamEvent]:
        """Yield events in append order until the run ends.

        Raises:
            RuntimeError: If the stream was already consumed
            AgentsError: Whatever terminal error the run ended with
        """
        if self._consumed:
            raise RuntimeError("Stream events can only be consumed once")
        self._consumed = True
        while True:
            event = await self._queue.get()
            if event is _CLOSED:
                break
            yield event
        if self._task is not None:
            await self._task
        if self._error is not None:
            raise self._error

    async def text_stream(self) -> AsyncIterator[str]:
        """Yield only the text of message outputs."""
        async for event in self.stream_events():
            if event.event_type == "message_output_created" and isinstance(
                event.item, MessageOutputItem
            ):
                content = event.item.content
                yield content if isinstance(content, str) else str(content)

    async def wait(self) -> RunResult:
        """Drain the stream and return the run result."""
        async for _ in self.stream_events():
            pass
        assert self.result is not None
        return self.result

    def cancel(self) -> None:
        """Cancel the background run; the stream closes once it unwinds."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
