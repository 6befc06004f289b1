"""Handoff resolution.

Handoff targets are advertised to the model as synthetic
``transfer_to_<agent>`` tools. When the model calls one, the resolver
records the transition and the runner swaps the active agent in its own
loop state; agent configurations themselves are never mutated.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from agent_engine.platform.agent.messages import (
    HandoffCallItem,
    HandoffOutputItem,
    RunItem,
    ToolCallItem,
    ToolCallOutputItem,
)
from agent_engine.platform.agent.protocol import ToolSpec
from agent_engine.platform.constants import HANDOFF_TOOL_PREFIX, MULTIPLE_HANDOFFS_MESSAGE

if TYPE_CHECKING:
    from agent_engine.platform.agent.config import AgentConfig

logger = logging.getLogger(__name__)


class HandoffArgs(BaseModel):
    reason: str | None = Field(default=None, description="Why the conversation is being transferred")


def handoff_tool_name(agent_name: str) -> str:
    """Synthetic tool name for a transfer to ``agent_name``."""
    return f"{HANDOFF_TOOL_PREFIX}{agent_name.replace(' ', '_')}"


@dataclass(frozen=True)
class Handoff:
    """A handoff target, possibly resolved lazily.

    Passing a zero-argument callable as ``target`` allows cyclic handoff
    graphs between immutable agent configurations: the callable is only
    resolved when a request is built.

    Attributes:
        target: AgentConfig or a callable returning one
        agent_name: Target name; required for lazy targets
        tool_description: Overrides the generated tool description
    """

    target: "AgentConfig | Callable[[], AgentConfig]"
    agent_name: str | None = None
    tool_description: str | None = None

    def resolve(self) -> "AgentConfig":
        target = self.target
        if callable(target):
            return target()
        return target  # type: ignore[return-value]

    @property
    def name(self) -> str:
        if self.agent_name:
            return self.agent_name
        return self.resolve().name

    @property
    def tool_name(self) -> str:
        return handoff_tool_name(self.name)

    def to_spec(self) -> ToolSpec:
        description = self.tool_description
        if description is None:
            target_description = self.resolve().handoff_description
            description = f"Handoff to the {self.name} agent to handle the request."
            if target_description:
                description = f"{description} {target_description}"
        return ToolSpec(
            name=self.tool_name,
            description=description,
            parameters=HandoffArgs.model_json_schema(),
        )


def handoff(
    target: "AgentConfig | Callable[[], AgentConfig]",
    agent_name: str | None = None,
    tool_description: str | None = None,
) -> Handoff:
    """Build a Handoff; use a lambda target to reference an agent defined later."""
    return Handoff(target=target, agent_name=agent_name, tool_description=tool_description)


def as_handoff(value: "AgentConfig | Handoff") -> Handoff:
    if isinstance(value, Handoff):
        return value
    return Handoff(target=value, agent_name=value.name)


def handoff_map(agent: "AgentConfig") -> dict[str, Handoff]:
    """Declared handoffs of an agent keyed by synthetic tool name."""
    return {h.tool_name: h for h in (as_handoff(value) for value in agent.handoffs)}


def classify_handoff_calls(items: list[RunItem], agent: "AgentConfig") -> list[RunItem]:
    """Turn tool calls naming a declared handoff into HandoffCallItems.

    Calls to undeclared ``transfer_to_*`` names stay ordinary tool calls and
    resolve as "tool not found".
    """
    handoffs = handoff_map(agent)
    classified: list[RunItem] = []
    for item in items:
        if isinstance(item, ToolCallItem) and not item.hosted and item.tool_name in handoffs:
            classified.append(
                HandoffCallItem(
                    id=item.id,
                    tool_name=item.tool_name,
                    from_agent=agent.name,
                    to_agent=handoffs[item.tool_name].name,
                    parameters=item.parameters,
                )
            )
        else:
            classified.append(item)
    return classified


@dataclass(frozen=True)
class HandoffResolution:
    """What the resolver decided for one turn's handoff calls.

    Attributes:
        items: One HandoffOutputItem per handoff call, in source order
        new_agent: The agent to activate, or None when no transfer applies
    """

    items: list[HandoffOutputItem]
    new_agent: "AgentConfig | None"


def resolve_handoffs(calls: list[HandoffCallItem], agent: "AgentConfig") -> HandoffResolution:
    """Apply the first handoff of a turn; later ones are answered with an error."""
    handoffs = handoff_map(agent)
    outputs: list[HandoffOutputItem] = []
    new_agent = None
    for call in calls:
        target = handoffs.get(call.tool_name)
        if target is None:
            # call was classified against a different agent
            outputs.append(
                HandoffOutputItem(
                    tool_call_id=call.id,
                    from_agent=agent.name,
                    to_agent=call.to_agent,
                    error=f"Handoff target not found: {call.to_agent}",
                )
            )
            continue
        if new_agent is not None:
            logger.warning(f"Ignoring extra handoff to '{call.to_agent}' in the same turn")
            outputs.append(
                HandoffOutputItem(
                    tool_call_id=call.id,
                    from_agent=agent.name,
                    to_agent=call.to_agent,
                    error=MULTIPLE_HANDOFFS_MESSAGE,
                )
            )
            continue
        new_agent = target.resolve()
        logger.info(f"Handoff from '{agent.name}' to '{new_agent.name}'")
        outputs.append(
            HandoffOutputItem(tool_call_id=call.id, from_agent=agent.name, to_agent=new_agent.name)
        )
    return HandoffResolution(items=outputs, new_agent=new_agent)


def handoff_output_as_tool_result(item: HandoffOutputItem) -> ToolCallOutputItem:
    """Tool-result view of a handoff record, as sent back to the model."""
    if item.error is not None:
        return ToolCallOutputItem(tool_call_id=item.tool_call_id, error=item.error)
    result: dict[str, Any] = {"assistant": item.to_agent}
    return ToolCallOutputItem(tool_call_id=item.tool_call_id, result=result)
