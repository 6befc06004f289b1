"""The run loop's own state record.

The active agent lives here rather than on any shared agent object, so
concurrent runs over the same agent configurations never interfere.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any

from agent_engine.platform.agent.config import AgentConfig
from agent_engine.platform.agent.context import RunContext
from agent_engine.platform.agent.messages import (
    CALL_ITEM_TYPES,
    ApprovalRequestItem,
    CallItem,
    MessageInputItem,
    RunItem,
    pending_call_ids,
)
from agent_engine.platform.agent.protocol import ModelResponse
from agent_engine.platform.agent.usage import Usage
from agent_engine.platform.constants import DEFAULT_MAX_TURNS


def normalize_input(value: str | list[RunItem]) -> list[RunItem]:
    """Turn caller input into conversation items."""
    if isinstance(value, str):
        return [MessageInputItem(content=value)]
    return list(value)


@dataclass
class RunState:
    """Mutable record of one run, from the first turn to its terminal state.

    Attributes:
        starting_agent: Agent the run started with (its input guardrails ran)
        current_agent: Agent used to build the next request
        context: Run context shared with tools and guardrails
        original_input: Caller input as given (after input guardrail rewrites)
        history_items: Items loaded from the session before the run
        generated_items: Items appended during the run, in order
        raw_responses: Every model response received
        usage: Usage accrued by this run only
        current_turn: Number of model calls made so far
        max_turns: Turn limit for the run
        last_response_id: Id of the latest model response
        input_guardrails_done: Input guardrails already ran for this run
        interruptions: Approval requests the run is waiting on
        paused_agent: Agent whose tool calls are waiting for approval
        run_id: Identifier used in logs and spans
    """

    starting_agent: AgentConfig
    current_agent: AgentConfig
    context: RunContext
    original_input: str | list[RunItem]
    history_items: list[RunItem] = field(default_factory=list)
    generated_items: list[RunItem] = field(default_factory=list)
    raw_responses: list[ModelResponse] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    current_turn: int = 0
    max_turns: int = DEFAULT_MAX_TURNS
    last_response_id: str | None = None
    input_guardrails_done: bool = False
    interruptions: list[ApprovalRequestItem] = field(default_factory=list)
    paused_agent: AgentConfig | None = None
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def input_items(self) -> list[RunItem]:
        return normalize_input(self.original_input)

    def all_items(self) -> list[RunItem]:
        """History, caller input and generated items, in order."""
        return [*self.history_items, *self.input_items, *self.generated_items]

    def add_usage(self, usage: Usage) -> None:
        self.usage = self.usage.add(usage)
        self.context.add_usage(usage)

    def pending_calls(self) -> list[CallItem]:
        """Generated call items that still have no result."""
        pending = set(pending_call_ids(self.generated_items))
        return [
            item
            for item in self.generated_items
            if isinstance(item, CALL_ITEM_TYPES) and item.id in pending
        ]

    def to_dict(self) -> dict[str, Any]:
        """Summary for logs; items are not included."""
        return {
            "run_id": self.run_id,
            "current_agent": self.current_agent.name,
            "current_turn": self.current_turn,
            "max_turns": self.max_turns,
            "generated_items": len(self.generated_items),
            "interruptions": len(self.interruptions),
        }
