"""Shared constants for the execution engine."""

DEFAULT_MAX_TURNS = 10
DEFAULT_MODEL_TIMEOUT_SECONDS = 60.0
DEFAULT_MODEL = "gpt-4.1"

HANDOFF_TOOL_PREFIX = "transfer_to_"

TOOL_NOT_FOUND_MESSAGE = "Tool not found: {tool_name}"
TOOL_REJECTED_MESSAGE = "Tool call rejected: {tool_name}"
MULTIPLE_HANDOFFS_MESSAGE = "Multiple handoffs requested; only the first was applied"

# Fixed tool names for vendor-hosted capabilities, keyed by raw output type
HOSTED_TOOL_NAMES = {
    "web_search_call": "web_search",
    "file_search_call": "file_search",
    "image_generation_call": "image_generation",
    "code_interpreter_call": "code_interpreter",
    "computer_call": "computer_use",
}
