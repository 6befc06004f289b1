"""Configuration dataclasses for agents and runs.

Agent configurations are immutable definitions validated at construction.
Per-run options live in RunConfig, which the runner receives explicitly;
nothing here reads process-wide state.
"""

import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from agent_engine.platform.agent.context import RunContext
from agent_engine.platform.agent.exceptions import UserError
from agent_engine.platform.agent.guardrails import (
    InputGuardrail,
    OutputGuardrail,
    ToolInputGuardrail,
    ToolOutputGuardrail,
)
from agent_engine.platform.agent.handoffs import Handoff, as_handoff
from agent_engine.platform.agent.protocol import Model, ModelProvider, ModelSettings
from agent_engine.platform.agent.tools import FunctionTool, HostedTool, Tool
from agent_engine.platform.constants import DEFAULT_MAX_TURNS, DEFAULT_MODEL_TIMEOUT_SECONDS

if TYPE_CHECKING:
    from agent_engine.platform.settings import Settings

type Instructions = str | Callable[[RunContext, "AgentConfig"], str | Awaitable[str]]


@dataclass(frozen=True, eq=False)
class AgentConfig:
    """Immutable agent definition.

    Attributes:
        name: Agent name, also used to build its transfer tool name
        instructions: System prompt, or a callable (context, agent) -> str computing it
        model: Model identifier or Model instance; provider default when None
        model_settings: Sampling settings for this agent
        tools: Function and hosted tools available to the agent
        handoffs: Agents (or Handoff objects) the model may transfer to
        handoff_description: Sentence added to the transfer tool that targets this agent
        input_guardrails: Checks on the caller input (run once, on the starting agent)
        output_guardrails: Checks on the final output
        tool_input_guardrails: Checks before each function tool call
        tool_output_guardrails: Checks on each function tool result
        output_type: Pydantic model for structured final output
        max_tool_calls: Optional cap forwarded to the backend
    """

    name: str
    instructions: Instructions | None = None
    model: str | Model | None = None
    model_settings: ModelSettings = field(default_factory=ModelSettings)
    tools: Sequence[Tool] = ()
    handoffs: Sequence["AgentConfig | Handoff"] = ()
    handoff_description: str | None = None
    input_guardrails: Sequence[InputGuardrail] = ()
    output_guardrails: Sequence[OutputGuardrail] = ()
    tool_input_guardrails: Sequence[ToolInputGuardrail] = ()
    tool_output_guardrails: Sequence[ToolOutputGuardrail] = ()
    output_type: type[BaseModel] | None = None
    max_tool_calls: int | None = None

    def __post_init__(self) -> None:
        for attr in (
            "tools",
            "handoffs",
            "input_guardrails",
            "output_guardrails",
            "tool_input_guardrails",
            "tool_output_guardrails",
        ):
            object.__setattr__(self, attr, tuple(getattr(self, attr)))
        self._validate()

    def _validate(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise UserError("Agent name must be a non-empty string")
        if self.instructions is not None and not (
            isinstance(self.instructions, str) or callable(self.instructions)
        ):
            raise UserError(f"Agent '{self.name}': instructions must be a string or a callable")
        if self.output_type is not None and not (
            inspect.isclass(self.output_type) and issubclass(self.output_type, BaseModel)
        ):
            raise UserError(f"Agent '{self.name}': output_type must be a pydantic model class")

        seen: set[str] = set()
        for tool in self.tools:
            if not isinstance(tool, (FunctionTool, HostedTool)):
                raise UserError(f"Agent '{self.name}': unsupported tool {tool!r}")
            if tool.name in seen:
                raise UserError(f"Agent '{self.name}': duplicate tool name '{tool.name}'")
            seen.add(tool.name)

        for value in self.handoffs:
            if not isinstance(value, (AgentConfig, Handoff)):
                raise UserError(f"Agent '{self.name}': unsupported handoff {value!r}")
            target = as_handoff(value)
            if target.agent_name is None:
                raise UserError(f"Agent '{self.name}': lazy handoffs need an agent_name")
            if target.tool_name in seen:
                raise UserError(
                    f"Agent '{self.name}': tool name '{target.tool_name}' collides with a handoff"
                )
            seen.add(target.tool_name)

    @property
    def function_tools(self) -> list[FunctionTool]:
        return [tool for tool in self.tools if isinstance(tool, FunctionTool)]

    def get_tool(self, name: str) -> Tool | None:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    async def get_instructions(self, context: RunContext) -> str | None:
        """Resolve static or dynamic instructions for this run."""
        if self.instructions is None or isinstance(self.instructions, str):
            return self.instructions
        value = self.instructions(context, self)
        if inspect.isawaitable(value):
            value = await value
        return value

    def output_schema(self) -> dict[str, Any] | None:
        if self.output_type is None:
            return None
        return self.output_type.model_json_schema()


@dataclass(frozen=True)
class RunConfig:
    """Options for a single run.

    Attributes:
        max_turns: Maximum number of model calls before the run aborts
        model: Overrides every agent's model for this run
        model_provider: Resolves model names; LiteLLM provider when None
        model_settings: Overrides non-None agent model settings
        model_timeout: Per model call timeout in seconds (None = unbounded)
        tool_timeout: Default per tool call timeout in seconds (None = unbounded)
        run_timeout: Whole-run timeout in seconds (None = unbounded)
        tracing_disabled: Skip span creation for this run
        trace_include_sensitive_data: Attach inputs and outputs to spans
        workflow_name: Name of the top-level run span
    """

    max_turns: int = DEFAULT_MAX_TURNS
    model: str | Model | None = None
    model_provider: ModelProvider | None = None
    model_settings: ModelSettings | None = None
    model_timeout: float | None = DEFAULT_MODEL_TIMEOUT_SECONDS
    tool_timeout: float | None = None
    run_timeout: float | None = None
    tracing_disabled: bool = False
    trace_include_sensitive_data: bool = True
    workflow_name: str = "agent_run"

    def __post_init__(self) -> None:
        if self.max_turns < 1:
            raise UserError(f"max_turns must be at least 1, got {self.max_turns}")
        for name in ("model_timeout", "tool_timeout", "run_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise UserError(f"{name} must be positive, got {value}")

    @classmethod
    def from_settings(cls, settings: "Settings", **overrides: Any) -> "RunConfig":
        """Build a RunConfig from application settings."""
        runner = settings.runner
        values: dict[str, Any] = {
            "max_turns": runner.max_turns,
            "model_timeout": runner.model_timeout_seconds,
            "tool_timeout": runner.tool_timeout_seconds,
            "run_timeout": runner.run_timeout_seconds,
            "tracing_disabled": runner.tracing_disabled,
            "trace_include_sensitive_data": runner.trace_include_sensitive_data,
        }
        values.update(overrides)
        return cls(**values)
