"""
Codex exec event type constants.

Event tags and item types emitted by `codex exec --json` (one JSON object
per stdout line).
"""


class EventType:
    """Top-level event tags."""

    THREAD_STARTED = "thread.started"
    TURN_STARTED = "turn.started"
    TURN_COMPLETED = "turn.completed"
    TURN_FAILED = "turn.failed"
    ITEM_STARTED = "item.started"
    ITEM_UPDATED = "item.updated"
    ITEM_COMPLETED = "item.completed"
    ERROR = "error"


class ItemType:
    """Item types carried by item.* events."""

    AGENT_MESSAGE = "agent_message"
    REASONING = "reasoning"
    COMMAND_EXECUTION = "command_execution"
    FILE_CHANGE = "file_change"
    MCP_TOOL_CALL = "mcp_tool_call"
    WEB_SEARCH = "web_search"
    TODO_LIST = "todo_list"
    FUNCTION_CALL = "function_call"
    TOOL_CALL = "tool_call"
    ERROR = "error"


# Plain-text notice printed when the working directory is not trusted
UNTRUSTED_DIRECTORY_PREFIX = "Not inside a trusted"
