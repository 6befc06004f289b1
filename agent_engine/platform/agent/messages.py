"""Conversation item types.

Every entity that makes up a conversation is one of the frozen dataclasses
below. Items are created once and appended to an ever-growing run history;
they are never mutated.
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(frozen=True)
class MessageInputItem:
    """A user- or system-supplied message.

    Attributes:
        content: Message text or structured content
        role: "user" or "system"
    """

    type: ClassVar[str] = "message_input"

    content: Any
    role: str = "user"


@dataclass(frozen=True)
class MessageOutputItem:
    """Model-produced text or structured output.

    Attributes:
        content: Output text (or structured value)
        role: Always "assistant" for model output
        agent_name: Agent that was active when the output was produced
    """

    type: ClassVar[str] = "message_output"

    content: Any
    role: str = "assistant"
    agent_name: str | None = None


@dataclass(frozen=True)
class ToolCallItem:
    """The model's request to invoke a tool.

    Attributes:
        id: Call identifier, unique within a run
        tool_name: Name of the requested tool
        parameters: Deserialized arguments; None when they could not be parsed
        hosted: True for vendor-executed capabilities (web search, etc.)
        agent_name: Agent that requested the call
    """

    type: ClassVar[str] = "tool_call"

    id: str
    tool_name: str
    parameters: Any = None
    hosted: bool = False
    agent_name: str | None = None


@dataclass(frozen=True)
class ToolCallOutputItem:
    """Result of a tool call; exactly one of result or error is meaningful.

    An item with ``error`` set is a failure. Otherwise it is a success and
    ``result`` holds the tool's return value (which may itself be None).

    Attributes:
        tool_call_id: Id of the request this result answers
        result: Tool return value on success
        error: Error message on failure
        tool_name: Name of the tool that produced the result
    """

    type: ClassVar[str] = "tool_call_output"

    tool_call_id: str
    result: Any = None
    error: str | None = None
    tool_name: str | None = None

    def __post_init__(self) -> None:
        if self.error is not None and self.result is not None:
            raise ValueError("ToolCallOutputItem cannot carry both result and error")

    @property
    def is_error(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class HandoffCallItem:
    """A tool call that the model used to transfer control to another agent.

    Attributes:
        id: Call identifier
        tool_name: Synthetic transfer tool name (transfer_to_<agent>)
        from_agent: Agent that requested the transfer
        to_agent: Requested target agent
        parameters: Deserialized arguments (optional transfer reason)
    """

    type: ClassVar[str] = "handoff_call"

    id: str
    tool_name: str
    from_agent: str
    to_agent: str
    parameters: Any = None


@dataclass(frozen=True)
class HandoffOutputItem:
    """Record of a completed or failed transfer between agents.

    Attributes:
        tool_call_id: Id of the handoff call this record answers
        from_agent: Agent that was active before the transfer
        to_agent: Target agent
        error: Why the transfer was not applied, if it was not
    """

    type: ClassVar[str] = "handoff_output"

    tool_call_id: str
    from_agent: str
    to_agent: str
    error: str | None = None


@dataclass(frozen=True)
class ApprovalRequestItem:
    """A paused tool call waiting for an approve/reject decision."""

    type: ClassVar[str] = "approval_request"

    tool_name: str
    tool_call_id: str
    parameters: Any = None
    agent_name: str | None = None


type RunItem = (
    MessageInputItem
    | MessageOutputItem
    | ToolCallItem
    | ToolCallOutputItem
    | HandoffCallItem
    | HandoffOutputItem
    | ApprovalRequestItem
)

type CallItem = ToolCallItem | HandoffCallItem
type CallResultItem = ToolCallOutputItem | HandoffOutputItem

ITEM_TYPES: dict[str, type] = {
    cls.type: cls
    for cls in (
        MessageInputItem,
        MessageOutputItem,
        ToolCallItem,
        ToolCallOutputItem,
        HandoffCallItem,
        HandoffOutputItem,
        ApprovalRequestItem,
    )
}

CALL_ITEM_TYPES = (ToolCallItem, HandoffCallItem)
CALL_RESULT_ITEM_TYPES = (ToolCallOutputItem, HandoffOutputItem)


def is_run_item(value: Any) -> bool:
    """Check whether a value is one of the conversation item types."""
    return isinstance(value, tuple(ITEM_TYPES.values()))


def pending_call_ids(items: list[RunItem]) -> list[str]:
    """Return ids of call items that have no matching result, in source order."""
    answered = {item.tool_call_id for item in items if isinstance(item, CALL_RESULT_ITEM_TYPES)}
    return [
        item.id
        for item in items
        if isinstance(item, CALL_ITEM_TYPES) and item.id not in answered
    ]


def item_to_dict(item: RunItem) -> dict[str, Any]:
    """Serialize an item into a JSON-compatible dict tagged with its type."""
    return {"type": item.type, **dataclasses.asdict(item)}


def item_from_dict(data: dict[str, Any]) -> RunItem:
    """Rebuild an item from the output of item_to_dict.

    Raises:
        ValueError: If the type tag is missing or unknown
    """
    payload = dict(data)
    item_type = payload.pop("type", None)
    cls = ITEM_TYPES.get(item_type)  # type: ignore[arg-type]
    if cls is None:
        raise ValueError(f"Unknown conversation item type: {item_type!r}")
    return cls(**payload)


@dataclass(frozen=True)
class StreamEvent:
    """Streaming execution event.

    Attributes:
        event_type: One of "message_output_created", "tool_called", "tool_output",
            "handoff_called", "handoff_output", "approval_requested", "agent_updated"
        item: The conversation item that was appended (None for agent_updated)
        turn_index: Zero-based turn the item was produced in
        data: Event-specific extra payload
    """

    event_type: str
    item: RunItem | None
    turn_index: int
    data: dict[str, Any] = dataclasses.field(default_factory=dict)


STREAM_EVENT_TYPES: dict[type, str] = {
    MessageInputItem: "message_input_created",
    MessageOutputItem: "message_output_created",
    ToolCallItem: "tool_called",
    ToolCallOutputItem: "tool_output",
    HandoffCallItem: "handoff_called",
    HandoffOutputItem: "handoff_output",
    ApprovalRequestItem: "approval_requested",
}


def stream_event_for(item: RunItem, turn_index: int) -> StreamEvent:
    """Build the stream event announcing that ``item`` was appended."""
    return StreamEvent(
        event_type=STREAM_EVENT_TYPES[type(item)],
        item=item,
        turn_index=turn_index,
    )
