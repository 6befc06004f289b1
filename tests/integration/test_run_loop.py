"""Integration tests for the turn loop.

Tests termination, turn limits, usage accounting, structured output and
model failures through Runner.run with a scripted model.
"""

import asyncio
from unittest.mock import patch

import pytest
from pydantic import BaseModel

from agent_engine.platform.agent.config import AgentConfig, RunConfig
from agent_engine.platform.agent.exceptions import (
    MaxTurnsExceededError,
    ModelBackendError,
    ModelBehaviorError,
    ModelTimeoutError,
    RunTimeoutError,
)
from agent_engine.platform.agent.messages import (
    MessageInputItem,
    MessageOutputItem,
    ToolCallItem,
    ToolCallOutputItem,
)
from agent_engine.platform.agent.protocol import FunctionCall, HostedToolCall, ModelSettings
from agent_engine.platform.agent.runner import Runner
from agent_engine.platform.agent.usage import Usage


class SlowModel:
    model_name = "slow-model"

    def __init__(self) -> None:
        self.calls = 0

    async def get_response(self, request):
        self.calls += 1
        await asyncio.sleep(1)


class Answer(BaseModel):
    city: str
    temperature: int


async def _span_attributes(fake_model, agent, include_sensitive_data: bool) -> dict:
    config = RunConfig(model=fake_model, trace_include_sensitive_data=include_sensitive_data)
    with patch("agent_engine.platform.observability.tracing.tracer") as tracer:
        await Runner.run(agent, "weather?", run_config=config)
    current = tracer.start_as_current_span.return_value.__enter__.return_value
    return {call.args[0]: call.args[1] for call in current.set_attribute.call_args_list}


class TestTermination:
    """Tests for when a run finishes."""

    async def test_single_turn_answer(self, fake_model, config, assistant):
        """A plain message ends the run after one model call."""
        fake_model.add_turn("Hello there")

        result = await Runner.run(assistant, "hi", run_config=config)

        assert result.final_output == "Hello there"
        assert result.new_items == [MessageOutputItem(content="Hello there", agent_name="assistant")]
        assert len(fake_model.requests) == 1
        assert result.last_agent is assistant
        assert result.last_response_id == "resp_1"

    async def test_first_request_shape(self, fake_model, config, assistant):
        """The first request carries instructions, input and enabled tools."""
        fake_model.add_turn("ok")

        await Runner.run(assistant, "hi", run_config=config)

        request = fake_model.requests[0]
        assert request.model == "fake-model"
        assert request.instructions == "You are helpful."
        assert request.input == [MessageInputItem(content="hi")]
        assert [spec.name for spec in request.tools] == ["get_weather"]
        assert request.previous_response_id is None

    async def test_tool_turn_then_answer(self, fake_model, config, assistant):
        """A tool call leads to another turn that sees the tool result."""
        fake_model.add_turn(FunctionCall(call_id="c1", name="get_weather", arguments='{"city": "Oslo"}'))
        fake_model.add_turn("It is sunny in Oslo")

        result = await Runner.run(assistant, "weather?", run_config=config)

        assert result.final_output == "It is sunny in Oslo"
        assert result.new_items[:2] == [
            ToolCallItem(id="c1", tool_name="get_weather", parameters={"city": "Oslo"}, agent_name="assistant"),
            ToolCallOutputItem(
                tool_call_id="c1", result={"city": "Oslo", "forecast": "sunny"}, tool_name="get_weather"
            ),
        ]
        second = fake_model.requests[1]
        assert second.input[-1] == result.new_items[1]
        assert second.previous_response_id == "resp_1"

    async def test_message_with_tool_call_continues(self, fake_model, config, assistant):
        """A message alongside a local tool call is not final."""
        fake_model.add_turn(
            "Let me check",
            FunctionCall(call_id="c1", name="get_weather", arguments='{"city": "Rome"}'),
        )
        fake_model.add_turn("Sunny")

        result = await Runner.run(assistant, "weather?", run_config=config)

        assert result.final_output == "Sunny"
        assert len(fake_model.requests) == 2

    async def test_hosted_call_does_not_continue(self, fake_model, config, assistant):
        """Hosted calls already have results, so a message alongside them is final."""
        fake_model.add_turn(
            HostedToolCall(kind="web_search_call", call_id="ws_1", payload={"status": "completed"}),
            "Found it",
        )

        result = await Runner.run(assistant, "search", run_config=config)

        assert result.final_output == "Found it"
        assert len(fake_model.requests) == 1
        assert result.new_items[0].hosted is True

    async def test_empty_turn_is_model_error(self, fake_model, config, assistant):
        """A turn without any output aborts the run."""
        fake_model.add_turn()

        with pytest.raises(ModelBehaviorError):
            await Runner.run(assistant, "hi", run_config=config)

    async def test_items_property_includes_input(self, fake_model, config, assistant):
        """items holds the input followed by generated items."""
        fake_model.add_turn("done")

        result = await Runner.run(assistant, "hi", run_config=config)

        assert result.items == [MessageInputItem(content="hi"), *result.new_items]
        assert result.to_input_list() == result.items


class TestTurnLimit:
    """Tests for max_turns enforcement."""

    async def test_aborts_after_exactly_max_turns(self, fake_model, assistant):
        """max_turns=2 makes exactly two model calls before aborting."""
        fake_model.repeat_forever(FunctionCall(call_id="loop", name="get_weather", arguments='{"city": "X"}'))
        config = RunConfig(model=fake_model, tracing_disabled=True, max_turns=2)

        with pytest.raises(MaxTurnsExceededError) as exc_info:
            await Runner.run(assistant, "loop", run_config=config)

        assert len(fake_model.requests) == 2
        assert exc_info.value.max_turns == 2
        assert exc_info.value.current_turn == 2

    async def test_final_answer_on_last_turn_succeeds(self, fake_model, assistant):
        """Finishing on the last allowed turn is not an error."""
        fake_model.add_turn(FunctionCall(call_id="c1", name="get_weather", arguments='{"city": "X"}'))
        fake_model.add_turn("done")
        config = RunConfig(model=fake_model, tracing_disabled=True, max_turns=2)

        result = await Runner.run(assistant, "hi", run_config=config)

        assert result.final_output == "done"


class TestUsage:
    """Tests for usage accumulation across turns."""

    async def test_usage_sums_every_turn(self, fake_model, config, assistant):
        """Run usage is the sum over model calls."""
        fake_model.add_turn(
            FunctionCall(call_id="c1", name="get_weather", arguments='{"city": "X"}'),
            usage=Usage(requests=1, input_tokens=100, output_tokens=20),
        )
        fake_model.add_turn("done", usage=Usage(requests=1, input_tokens=150, output_tokens=30))

        result = await Runner.run(assistant, "hi", run_config=config)

        assert result.usage == Usage(requests=2, input_tokens=250, output_tokens=50)
        assert result.context.usage == result.usage
        assert len(result.raw_responses) == 2


class TestConfiguration:
    """Tests for per-run configuration."""

    async def test_dynamic_instructions_see_context(self, fake_model, config):
        """Callable instructions are resolved with the run context."""
        agent = AgentConfig(name="greeter", instructions=lambda ctx, agent: f"Greet {ctx.context['user']}")
        fake_model.add_turn("Hi Ann")

        await Runner.run(agent, "hi", context={"user": "Ann"}, run_config=config)

        assert fake_model.requests[0].instructions == "Greet Ann"

    async def test_run_model_settings_override_agent(self, fake_model):
        """Run-level model settings win over the agent's."""
        agent = AgentConfig(name="a", model_settings=ModelSettings(temperature=0.1, max_tokens=100))
        config = RunConfig(
            model=fake_model, tracing_disabled=True, model_settings=ModelSettings(temperature=0.9)
        )
        fake_model.add_turn("ok")

        await Runner.run(agent, "hi", run_config=config)

        settings = fake_model.requests[0].settings
        assert settings.temperature == 0.9
        assert settings.max_tokens == 100

    async def test_structured_output(self, fake_model, config):
        """JSON output is parsed into the agent's output type."""
        agent = AgentConfig(name="weather", output_type=Answer)
        fake_model.add_turn('{"city": "Oslo", "temperature": 4}')

        result = await Runner.run(agent, "weather?", run_config=config)

        assert result.final_output == Answer(city="Oslo", temperature=4)
        assert result.final_output_as(Answer).city == "Oslo"
        assert fake_model.requests[0].output_schema == Answer.model_json_schema()

    async def test_invalid_structured_output(self, fake_model, config):
        """Output that does not match the output type is a model error."""
        agent = AgentConfig(name="weather", output_type=Answer)
        fake_model.add_turn("not json")

        with pytest.raises(ModelBehaviorError):
            await Runner.run(agent, "weather?", run_config=config)


class TestModelFailures:
    """Tests for model backend failures."""

    async def test_backend_exception_is_wrapped(self, fake_model, config, assistant):
        """Unexpected backend exceptions surface as ModelBackendError."""
        error = ConnectionError("reset by peer")
        fake_model.add_error(error)

        with pytest.raises(ModelBackendError) as exc_info:
            await Runner.run(assistant, "hi", run_config=config)

        assert exc_info.value.cause is error

    async def test_backend_timeout_without_limit(self, fake_model, assistant):
        """A backend TimeoutError with no model timeout configured is a plain backend error."""
        config = RunConfig(model=fake_model, tracing_disabled=True, model_timeout=None)
        error = TimeoutError("gateway timeout")
        fake_model.add_error(error)

        with pytest.raises(ModelBackendError) as exc_info:
            await Runner.run(assistant, "hi", run_config=config)

        assert not isinstance(exc_info.value, ModelTimeoutError)
        assert exc_info.value.cause is error

    async def test_model_timeout(self, assistant):
        """A model call exceeding its timeout raises ModelTimeoutError."""
        config = RunConfig(model=SlowModel(), tracing_disabled=True, model_timeout=0.05)

        with pytest.raises(ModelTimeoutError) as exc_info:
            await Runner.run(assistant, "hi", run_config=config)

        assert exc_info.value.timeout_seconds == 0.05

    async def test_run_timeout(self, assistant):
        """A run exceeding its overall timeout raises RunTimeoutError."""
        config = RunConfig(model=SlowModel(), tracing_disabled=True, model_timeout=None, run_timeout=0.05)

        with pytest.raises(RunTimeoutError):
            await Runner.run(assistant, "hi", run_config=config)


class TestTracingPayloads:
    """Tests for run data attached to spans."""

    async def test_sensitive_data_included(self, fake_model, assistant):
        """Model input and output are attached to the turn span."""
        fake_model.add_turn("Sunny in Oslo")

        attributes = await _span_attributes(fake_model, assistant, include_sensitive_data=True)

        assert "weather?" in attributes["input.value"]
        assert attributes["output.value"] == '["Sunny in Oslo"]'

    async def test_sensitive_data_excluded(self, fake_model, assistant):
        """Spans keep their names and labels but carry no inputs or outputs."""
        fake_model.add_turn("Sunny in Oslo")

        attributes = await _span_attributes(fake_model, assistant, include_sensitive_data=False)

        assert attributes["agent"] == "assistant"
        assert "input.value" not in attributes
        assert "output.value" not in attributes
