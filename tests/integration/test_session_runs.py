"""Integration tests for runs backed by sessions."""

import pytest

from agent_engine.platform.agent.config import AgentConfig
from agent_engine.platform.agent.exceptions import InputGuardrailTripwireTriggered
from agent_engine.platform.agent.guardrails import blocked_terms_guardrail
from agent_engine.platform.agent.messages import MessageInputItem, MessageOutputItem
from agent_engine.platform.agent.protocol import FunctionCall
from agent_engine.platform.agent.runner import Runner
from agent_engine.platform.sessions import MemorySession, SqlSessionStore


@pytest.fixture
async def sql_store():
    store = SqlSessionStore(url="sqlite+aiosqlite:///:memory:")
    yield store
    await store.disconnect()


class TestSessionRuns:
    """Tests for session history across runs."""

    async def test_history_is_prepended(self, fake_model, config, assistant):
        """A second run sends the stored history before the new input."""
        session = MemorySession("conv-1")
        fake_model.add_turn("Hello Ann")
        fake_model.add_turn("You are Ann")

        await Runner.run(assistant, "I am Ann", session=session, run_config=config)
        result = await Runner.run(assistant, "Who am I?", session=session, run_config=config)

        assert fake_model.requests[1].input == [
            MessageInputItem(content="I am Ann"),
            MessageInputItem(content="Who am I?"),
        ]
        assert result.items[:3] == [
            MessageInputItem(content="I am Ann"),
            MessageOutputItem(content="Hello Ann", agent_name="assistant"),
            MessageInputItem(content="Who am I?"),
        ]

    async def test_completed_run_is_saved(self, fake_model, config, assistant):
        """Input and generated items are appended after the run."""
        session = MemorySession("conv-1")
        fake_model.add_turn(FunctionCall(call_id="c1", name="get_weather", arguments='{"city": "Oslo"}'))
        fake_model.add_turn("Sunny")

        result = await Runner.run(assistant, "weather?", session=session, run_config=config)

        assert await session.get_items() == [MessageInputItem(content="weather?"), *result.new_items]

    async def test_aborted_run_is_not_saved(self, fake_model, config):
        """A run that fails leaves the session unchanged."""
        agent = AgentConfig(name="a", input_guardrails=[blocked_terms_guardrail(["secret"])])
        session = MemorySession("conv-1")

        with pytest.raises(InputGuardrailTripwireTriggered):
            await Runner.run(agent, "the secret", session=session, run_config=config)

        assert await session.get_items() == []

    async def test_sql_session_round_trip(self, fake_model, config, assistant, sql_store):
        """A SQL-backed session feeds history into the next run."""
        session = sql_store.session("conv-sql")
        fake_model.add_turn("first answer")
        fake_model.add_turn("second answer")

        await Runner.run(assistant, "first", session=session, run_config=config)
        await Runner.run(assistant, "second", session=session, run_config=config)

        stored = await session.get_items()
        assert [item.content for item in stored] == ["first", "first answer", "second", "second answer"]
        assert fake_model.requests[1].input[0] == MessageInputItem(content="first")
