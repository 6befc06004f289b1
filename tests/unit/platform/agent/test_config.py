"""Unit tests for agent and run configuration."""

import dataclasses

import pytest
from pydantic import BaseModel

from agent_engine.platform.agent.config import AgentConfig, RunConfig
from agent_engine.platform.agent.context import RunContext
from agent_engine.platform.agent.exceptions import UserError
from agent_engine.platform.agent.handoffs import handoff
from agent_engine.platform.agent.tools import HostedTool, function_tool
from agent_engine.platform.settings import RunnerSettings, Settings


@function_tool
def search(query: str) -> str:
    """Search things."""
    return query


class Answer(BaseModel):
    text: str


class TestAgentConfig:
    """Tests for AgentConfig validation and helpers."""

    def test_minimal_agent(self):
        """Only a name is required."""
        agent = AgentConfig(name="helper")
        assert agent.tools == ()
        assert agent.handoffs == ()
        assert agent.output_schema() is None

    def test_is_frozen(self):
        """Agent configs cannot be mutated."""
        agent = AgentConfig(name="helper")
        with pytest.raises(dataclasses.FrozenInstanceError):
            agent.name = "other"  # type: ignore[misc]

    def test_sequences_become_tuples(self):
        """Mutable lists passed in are copied into tuples."""
        tools = [search]
        agent = AgentConfig(name="helper", tools=tools)
        tools.clear()
        assert agent.tools == (search,)

    @pytest.mark.parametrize("name", ["", "   "])
    def test_rejects_empty_name(self, name):
        """An empty name is a configuration error."""
        with pytest.raises(UserError):
            AgentConfig(name=name)

    def test_rejects_duplicate_tools(self):
        """Tool names must be unique."""
        with pytest.raises(UserError):
            AgentConfig(name="helper", tools=[search, search])

    def test_rejects_non_model_output_type(self):
        """output_type must be a pydantic model."""
        with pytest.raises(UserError):
            AgentConfig(name="helper", output_type=dict)  # type: ignore[arg-type]

    def test_rejects_lazy_handoff_without_name(self):
        """Lazy handoffs must name their target."""
        other = AgentConfig(name="other")
        with pytest.raises(UserError):
            AgentConfig(name="helper", handoffs=[handoff(lambda: other)])

    def test_rejects_tool_colliding_with_handoff(self):
        """A tool named like a transfer tool collides with the handoff."""

        @function_tool(name="transfer_to_other")
        def fake_transfer() -> str:
            """Not a real transfer."""
            return ""

        with pytest.raises(UserError):
            AgentConfig(name="helper", tools=[fake_transfer], handoffs=[AgentConfig(name="other")])

    def test_get_tool(self):
        """Tools can be looked up by name."""
        web = HostedTool(name="web_search")
        agent = AgentConfig(name="helper", tools=[search, web])
        assert agent.get_tool("search") is search
        assert agent.get_tool("missing") is None
        assert agent.function_tools == [search]

    def test_output_schema(self):
        """output_schema comes from the pydantic model."""
        agent = AgentConfig(name="helper", output_type=Answer)
        assert agent.output_schema()["properties"]["text"]["type"] == "string"

    async def test_static_instructions(self):
        """String instructions are returned as is."""
        agent = AgentConfig(name="helper", instructions="Be brief.")
        assert await agent.get_instructions(RunContext()) == "Be brief."

    async def test_dynamic_instructions(self):
        """Callable instructions receive the context and the agent."""

        async def instructions(ctx, agent):
            return f"{agent.name} serving {ctx.context['user']}"

        agent = AgentConfig(name="helper", instructions=instructions)
        assert await agent.get_instructions(RunContext(context={"user": "ann"})) == "helper serving ann"


class TestRunConfig:
    """Tests for RunConfig."""

    def test_defaults(self):
        """Defaults match the documented values."""
        config = RunConfig()
        assert config.max_turns == 10
        assert config.model_timeout == 60.0
        assert config.tool_timeout is None
        assert config.workflow_name == "agent_run"

    def test_rejects_zero_turns(self):
        """max_turns must be at least 1."""
        with pytest.raises(UserError):
            RunConfig(max_turns=0)

    def test_rejects_non_positive_timeout(self):
        """Timeouts must be positive."""
        with pytest.raises(UserError):
            RunConfig(tool_timeout=0)

    def test_from_settings(self):
        """Runner settings seed the config and overrides win."""
        settings = Settings(
            _env_file=None,
            runner=RunnerSettings(max_turns=4, tool_timeout_seconds=2.0, tracing_disabled=True),
        )
        config = RunConfig.from_settings(settings, max_turns=6)
        assert config.max_turns == 6
        assert config.tool_timeout == 2.0
        assert config.tracing_disabled is True
