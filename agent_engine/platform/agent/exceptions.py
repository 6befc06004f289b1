"""Typed error hierarchy for agent runs.

Only tool-call failures are converted into conversation data. Every other
error in this module aborts the run and reaches the caller with structured
attributes, so retries and user-facing messages never need to parse text.
"""

from typing import Any


class AgentsError(Exception):
    """Base exception for all engine errors."""


class UserError(AgentsError):
    """Raised when an agent or run is configured incorrectly."""


class ModelBehaviorError(AgentsError):
    """Raised when the model produces output the engine cannot act on."""


class ModelBackendError(AgentsError):
    """Raised when the model backend fails (auth, rate limit, transport)."""

    def __init__(self, message: str, cause: BaseException | None = None):
        self.cause = cause
        super().__init__(f"Model backend error: {message}")


class ModelTimeoutError(ModelBackendError):
    """Raised when a single model call exceeds its timeout."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"model call timed out after {timeout_seconds}s")


class RunTimeoutError(AgentsError):
    """Raised when the whole run exceeds its timeout."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Run timed out after {timeout_seconds}s")


class MaxTurnsExceededError(AgentsError):
    """Raised when the turn limit is reached before the model finished."""

    def __init__(self, max_turns: int, current_turn: int):
        self.max_turns = max_turns
        self.current_turn = current_turn
        super().__init__(f"Max turns ({max_turns}) exceeded at turn {current_turn}")


class NotImplementedCapabilityError(AgentsError):
    """Raised when a deliberately unsupported backend capability is requested."""

    def __init__(self, capability: str):
        self.capability = capability
        super().__init__(f"Capability not implemented: {capability}")


class GuardrailTripwireTriggered(AgentsError):
    """Base exception for guardrail aborts."""

    def __init__(self, guardrail_name: str, message: str | None = None, output_info: Any = None):
        self.guardrail_name = guardrail_name
        self.output_info = output_info
        detail = f": {message}" if message else ""
        super().__init__(f"Guardrail '{guardrail_name}' triggered tripwire{detail}")


class InputGuardrailTripwireTriggered(GuardrailTripwireTriggered):
    """Raised when an input guardrail rejects the caller input."""


class OutputGuardrailTripwireTriggered(GuardrailTripwireTriggered):
    """Raised when an output guardrail rejects the final output.

    Carries the usage accrued by the model calls that already happened.
    """

    def __init__(
        self,
        guardrail_name: str,
        message: str | None = None,
        output_info: Any = None,
        usage: Any = None,
    ):
        self.usage = usage
        super().__init__(guardrail_name, message, output_info)


class ToolGuardrailTripwireTriggered(GuardrailTripwireTriggered):
    """Raised when a tool guardrail aborts the run."""

    def __init__(
        self,
        guardrail_name: str,
        tool_name: str,
        tool_call_id: str,
        message: str | None = None,
        output_info: Any = None,
    ):
        self.tool_name = tool_name
        self.tool_call_id = tool_call_id
        super().__init__(guardrail_name, message, output_info)


class ToolCallError(AgentsError):
    """Base exception for a single tool call failure.

    These are converted into error results and never escape a run.
    """

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(message)


class ToolTimeoutError(ToolCallError):
    """Raised when a tool call exceeds its timeout."""

    def __init__(self, tool_name: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(tool_name, f"Tool '{tool_name}' timed out after {timeout_seconds}s")


class InvalidToolInputError(ToolCallError):
    """Raised when tool arguments fail validation."""

    def __init__(self, tool_name: str, detail: str):
        self.detail = detail
        super().__init__(tool_name, f"Invalid input for tool '{tool_name}': {detail}")


class GuardrailExecutionError(AgentsError):
    """Raised when a guardrail function itself fails.

    Unlike a tripwire, this signals a broken check rather than unsafe content.
    """

    def __init__(
        self,
        guardrail_name: str,
        stage: str,
        cause: BaseException,
        tool_name: str | None = None,
    ):
        self.guardrail_name = guardrail_name
        self.stage = stage
        self.cause = cause
        self.tool_name = tool_name
        target = f" for tool '{tool_name}'" if tool_name else ""
        super().__init__(f"{stage} guardrail '{guardrail_name}'{target} failed: {cause!r}")


class ToolExecutionError(AgentsError):
    """Raised when resolving a tool call fails outside the tool's own code."""

    def __init__(self, tool_name: str, tool_call_id: str, cause: BaseException):
        self.tool_name = tool_name
        self.tool_call_id = tool_call_id
        self.cause = cause
        super().__init__(f"Resolving call '{tool_call_id}' to tool '{tool_name}' failed: {cause!r}")
