"""Integration test fixtures.

This module provides shared fixtures for runner tests:
- a RunConfig wired to the scripted FakeModel
- small agents and tools reused across flows
"""

import asyncio

import pytest

from agent_engine.platform.agent.config import AgentConfig, RunConfig
from agent_engine.platform.agent.context import RunContext
from agent_engine.platform.agent.tools import FunctionTool, function_tool

# =============================================================================
# Run Fixtures
# =============================================================================


@pytest.fixture
def config(fake_model) -> RunConfig:
    """Run config routing every model call to the fake model."""
    return RunConfig(model=fake_model, tracing_disabled=True, model_timeout=5.0)


# =============================================================================
# Tool Fixtures
# =============================================================================


@pytest.fixture
def weather_tool() -> FunctionTool:
    """Tool returning a canned forecast."""

    @function_tool
    def get_weather(city: str) -> dict:
        """Get the weather for a city."""
        return {"city": city, "forecast": "sunny"}

    return get_weather


@pytest.fixture
def slow_and_fast_tools() -> tuple[FunctionTool, FunctionTool]:
    """Two tools where the first finishes last."""

    @function_tool
    async def slow_lookup(key: str) -> str:
        """Slow lookup."""
        await asyncio.sleep(0.05)
        return f"slow:{key}"

    @function_tool
    async def fast_lookup(key: str) -> str:
        """Fast lookup."""
        return f"fast:{key}"

    return slow_lookup, fast_lookup


@pytest.fixture
def delete_tool() -> FunctionTool:
    """Tool that needs approval before it runs."""

    @function_tool(needs_approval=True)
    def delete_record(ctx: RunContext[dict], record_id: str) -> str:
        """Delete a record."""
        ctx.context.setdefault("deleted", []).append(record_id)
        return f"deleted {record_id}"

    return delete_record


# =============================================================================
# Agent Fixtures
# =============================================================================


@pytest.fixture
def assistant(weather_tool) -> AgentConfig:
    """Agent with a single weather tool."""
    return AgentConfig(name="assistant", instructions="You are helpful.", tools=[weather_tool])
