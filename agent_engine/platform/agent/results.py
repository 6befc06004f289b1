"""Run results."""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from agent_engine.platform.agent.config import AgentConfig
from agent_engine.platform.agent.context import RunContext
from agent_engine.platform.agent.messages import ApprovalRequestItem, RunItem
from agent_engine.platform.agent.protocol import ModelResponse
from agent_engine.platform.agent.state import RunState
from agent_engine.platform.agent.usage import Usage


@dataclass(frozen=True)
class RunResult:
    """Terminal snapshot of a run.

    A run that paused for approvals returns a result with ``interruptions``
    and no final output; pass ``to_state()`` back to the runner to resume.

    Attributes:
        input: Caller input (after input guardrail rewrites)
        new_items: Items generated during the run
        final_output: Final text or structured value; None when interrupted
        raw_responses: Every model response received
        usage: Usage accrued by this run
        last_response_id: Id of the last model response, for threading
        last_agent: Agent that was active when the run ended
        interruptions: Pending approval requests
        context: The run context
    """

    input: str | list[RunItem]
    new_items: list[RunItem]
    final_output: Any
    raw_responses: list[ModelResponse]
    usage: Usage
    last_response_id: str | None
    last_agent: AgentConfig
    context: RunContext
    interruptions: list[ApprovalRequestItem] = field(default_factory=list)
    _state: RunState | None = field(default=None, repr=False, compare=False)

    @property
    def items(self) -> list[RunItem]:
        """The full accumulated sequence: session history, input, generated items."""
        if self._state is not None:
            return self._state.all_items()
        return list(self.new_items)

    @property
    def is_interrupted(self) -> bool:
        return bool(self.interruptions)

    def final_output_as[T](self, cls: type[T]) -> T:
        """Return the final output, validated into ``cls`` when it is a pydantic model."""
        if isinstance(self.final_output, cls):
            return self.final_output
        if issubclass(cls, BaseModel):
            if isinstance(self.final_output, str):
                return cls.model_validate_json(self.final_output)  # type: ignore[return-value]
            return cls.model_validate(self.final_output)  # type: ignore[return-value]
        raise TypeError(f"Final output is {type(self.final_output).__name__}, not {cls.__name__}")

    def to_input_list(self) -> list[RunItem]:
        """Input plus generated items, ready to feed into a follow-up run."""
        if self._state is not None:
            return [*self._state.input_items, *self.new_items]
        return list(self.new_items)

    def to_state(self) -> RunState:
        """The run state to resume an interrupted run with.

        Raises:
            ValueError: If the result does not carry its state
        """
        if self._state is None:
            raise ValueError("This result cannot be resumed")
        return self._state
