"""Model backend contract.

This module defines the request/response shapes exchanged with a model
backend and the protocols a backend adapter must satisfy. The engine never
depends on a particular vendor; adapters such as LlmClient implement
``Model``.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

from agent_engine.platform.agent.messages import RunItem
from agent_engine.platform.agent.usage import Usage


@dataclass(frozen=True)
class ToolSpec:
    """Tool descriptor advertised to the model.

    Attributes:
        name: Tool name
        description: Human-readable description
        parameters: JSON schema of the parameters (hosted tools: vendor config)
        hosted: True for vendor-executed capabilities
    """

    name: str
    description: str
    parameters: dict[str, Any]
    hosted: bool = False


@dataclass(frozen=True)
class ModelSettings:
    """Sampling and tool-use settings forwarded to the backend.

    Attributes:
        temperature: Sampling temperature; backend default when None
        top_p: Nucleus sampling; backend default when None
        max_tokens: Completion token cap
        tool_choice: "auto", "required", "none" or a tool name
        parallel_tool_calls: Whether the model may request several tools per turn
        extra: Vendor-specific passthrough arguments
    """

    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    tool_choice: str | None = None
    parallel_tool_calls: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def merged_with(self, override: "ModelSettings | None") -> "ModelSettings":
        """Return settings where non-None fields of ``override`` win."""
        if override is None:
            return self
        return ModelSettings(
            temperature=override.temperature if override.temperature is not None else self.temperature,
            top_p=override.top_p if override.top_p is not None else self.top_p,
            max_tokens=override.max_tokens if override.max_tokens is not None else self.max_tokens,
            tool_choice=override.tool_choice if override.tool_choice is not None else self.tool_choice,
            parallel_tool_calls=(
                override.parallel_tool_calls
                if override.parallel_tool_calls is not None
                else self.parallel_tool_calls
            ),
            extra={**self.extra, **override.extra},
        )


@dataclass(frozen=True)
class ModelRequest:
    """One outgoing model call.

    Attributes:
        model: Model identifier
        instructions: System prompt of the active agent
        input: Conversation items to send (assistant output already filtered out)
        tools: Enabled tools plus synthetic handoff tools
        output_schema: JSON schema for structured output, if any
        settings: Sampling settings
        previous_response_id: Id of the last response, for backends that thread calls
        max_tool_calls: Optional cap on tool calls per response
    """

    model: str
    instructions: str | None
    input: list[RunItem]
    tools: list[ToolSpec] = field(default_factory=list)
    output_schema: dict[str, Any] | None = None
    settings: ModelSettings = field(default_factory=ModelSettings)
    previous_response_id: str | None = None
    max_tool_calls: int | None = None


@dataclass(frozen=True)
class OutputText:
    """Plain text emitted by the model."""

    text: str


@dataclass(frozen=True)
class FunctionCall:
    """A function-tool invocation emitted by the model.

    Attributes:
        call_id: Call identifier
        name: Requested tool name
        arguments: Serialized JSON arguments (or an already-decoded dict)
    """

    call_id: str
    name: str
    arguments: str | dict[str, Any] | None = None


@dataclass(frozen=True)
class HostedToolCall:
    """A vendor-hosted capability call that the vendor already executed.

    Attributes:
        kind: Raw vendor output type (e.g. "web_search_call")
        call_id: Call identifier
        payload: Vendor result payload
    """

    kind: str
    call_id: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ModelResponse:
    """Everything one model call returned.

    Attributes:
        output: Raw output elements (OutputText, FunctionCall, HostedToolCall,
            strings, conversation items or unrecognized vendor shapes)
        usage: Token usage of this call
        response_id: Backend response identifier
    """

    output: list[Any]
    usage: Usage = field(default_factory=Usage)
    response_id: str | None = None


class Model(Protocol):
    """Protocol for a model backend adapter."""

    async def get_response(self, request: ModelRequest) -> ModelResponse:
        """Send a request to the backend and return its response.

        Args:
            request: The fully composed request

        Returns:
            The backend response

        Raises:
            ModelBackendError: On transport or vendor-side failure
            NotImplementedCapabilityError: If the request needs an unsupported capability
        """
        ...


class ModelProvider(Protocol):
    """Protocol for resolving model names into Model instances."""

    def get_model(self, model_name: str | None) -> Model:
        """Return the Model for a name (None means the provider default)."""
        ...
