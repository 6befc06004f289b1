"""Response interpretation.

Converts raw model output into conversation items and extracts the final
answer from an accumulated item sequence.
"""

import json
import logging
from typing import Any

from agent_engine.platform.agent.messages import (
    MessageOutputItem,
    RunItem,
    ToolCallItem,
    ToolCallOutputItem,
    is_run_item,
)
from agent_engine.platform.agent.protocol import FunctionCall, HostedToolCall, OutputText
from agent_engine.platform.constants import HOSTED_TOOL_NAMES

logger = logging.getLogger(__name__)


def parse_arguments(arguments: Any) -> Any:
    """Deserialize tool-call arguments.

    Empty arguments become an empty dict. Malformed JSON becomes None so the
    rest of the turn's output is not lost; the tool invoker reports it.
    """
    if arguments is None or arguments == "":
        return {}
    if not isinstance(arguments, str):
        return arguments
    try:
        return json.loads(arguments)
    except json.JSONDecodeError as e:
        logger.warning(f"Could not deserialize tool arguments: {e}")
        return None


def _content_text(content: Any) -> Any:
    """Flatten list-of-parts message content into text, leave anything else alone."""
    if isinstance(content, list):
        text_parts = [p.get("text", "") if isinstance(p, dict) else str(p) for p in content]
        return "".join(text_parts)
    return content


def _hosted_items(kind: str, call_id: str, payload: Any, agent_name: str | None) -> list[RunItem]:
    tool_name = HOSTED_TOOL_NAMES.get(kind, kind)
    return [
        ToolCallItem(
            id=call_id,
            tool_name=tool_name,
            parameters=payload,
            hosted=True,
            agent_name=agent_name,
        ),
        ToolCallOutputItem(tool_call_id=call_id, result=payload, tool_name=tool_name),
    ]


def _parse_dict(element: dict[str, Any], agent_name: str | None) -> list[RunItem] | None:
    """Handle vendor-shaped dict elements; None means unrecognized."""
    kind = element.get("type")
    if kind == "message":
        return [
            MessageOutputItem(
                content=_content_text(element.get("content")),
                role=element.get("role", "assistant"),
                agent_name=agent_name,
            )
        ]
    if kind in ("output_text", "text"):
        return [MessageOutputItem(content=element.get("text", ""), agent_name=agent_name)]
    if kind == "function_call":
        return [
            ToolCallItem(
                id=element.get("call_id") or element.get("id", ""),
                tool_name=element.get("name", ""),
                parameters=parse_arguments(element.get("arguments")),
                agent_name=agent_name,
            )
        ]
    if kind in HOSTED_TOOL_NAMES:
        call_id = element.get("id") or element.get("call_id", "")
        return _hosted_items(kind, call_id, element, agent_name)
    return None


def parse_response_items(raw_output: list[Any], agent_name: str | None = None) -> list[RunItem]:
    """Convert raw model output into conversation items, in source order.

    Args:
        raw_output: Output elements from a ModelResponse
        agent_name: Active agent, recorded on produced items

    Returns:
        Conversation items; unrecognized elements degrade to message output
    """
    items: list[RunItem] = []
    for element in raw_output:
        if is_run_item(element):
            items.append(element)
        elif isinstance(element, str):
            items.append(MessageOutputItem(content=element, agent_name=agent_name))
        elif isinstance(element, OutputText):
            items.append(MessageOutputItem(content=element.text, agent_name=agent_name))
        elif isinstance(element, FunctionCall):
            items.append(
                ToolCallItem(
                    id=element.call_id,
                    tool_name=element.name,
                    parameters=parse_arguments(element.arguments),
                    agent_name=agent_name,
                )
            )
        elif isinstance(element, HostedToolCall):
            items.extend(_hosted_items(element.kind, element.call_id, element.payload, agent_name))
        else:
            parsed = _parse_dict(element, agent_name) if isinstance(element, dict) else None
            if parsed is None:
                logger.debug(f"Unrecognized model output element of type {type(element).__name__}")
                parsed = [MessageOutputItem(content=element, agent_name=agent_name)]
            items.extend(parsed)
    return items


def extract_final_output(items: list[RunItem]) -> Any | None:
    """Return the content of the most recent message output, or None if there is none."""
    for item in reversed(items):
        if isinstance(item, MessageOutputItem):
            return item.content
    return None
