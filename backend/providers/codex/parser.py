"""
Codex CLI stream parser implementation.

This module parses the newline-delimited JSON printed by `codex exec --json`
and converts it to canonical events.

Codex Event Types:
    - thread.started: Thread creation, contains thread_id
    - turn.started: New turn in conversation (not forwarded)
    - item.completed: Completed response item with content
    - turn.completed: End of turn with token usage
    - turn.failed / error: Error events
"""

import json
import logging
from typing import Any, Dict, Optional

from domain.events import AssistantEvent, CanonicalEvent, ErrorEvent, ResultEvent, SystemEvent, ToolInvocation
from providers.base import plain_text_event

from .events import UNTRUSTED_DIRECTORY_PREFIX, EventType, ItemType

logger = logging.getLogger("CodexStreamParser")


def _error_message(value: Any, default: str) -> str:
    if isinstance(value, dict):
        return str(value.get("message") or value.get("error") or default)
    if value:
        return str(value)
    return default


class CodexStreamParser:
    """Parser for Codex CLI streaming JSON output.

    Event Structure:
        {"type": "item.completed", "item": {"id": "item_0", "type": "agent_message", "text": "..."}}
    """

    @staticmethod
    def parse_payload(payload: Dict[str, Any]) -> Optional[CanonicalEvent]:
        """Map one decoded Codex event.

        Args:
            payload: JSON object from one stdout line

        Returns:
            Canonical event, or None if the event type is not forwarded
        """
        event_type = payload.get("type", "")

        if event_type == EventType.THREAD_STARTED:
            thread_id = payload.get("thread_id") or payload.get("data", {}).get("thread_id")
            if not thread_id:
                return None
            logger.debug(f"[CodexParser] thread.started: {thread_id}")
            return SystemEvent(session_id=thread_id)

        if event_type == EventType.ITEM_COMPLETED:
            item = payload.get("item")
            if not isinstance(item, dict):
                return None
            return CodexStreamParser._parse_item(item)

        if event_type == EventType.TURN_COMPLETED:
            return ResultEvent(final_text="", session_id=payload.get("thread_id"))

        if event_type == EventType.TURN_FAILED:
            return ErrorEvent(message=_error_message(payload.get("error"), "Codex turn failed"))

        if event_type == EventType.ERROR:
            message = payload.get("message") or payload.get("error") or payload.get("data")
            return ErrorEvent(message=_error_message(message, "Codex error"))

        return None

    @staticmethod
    def _parse_item(item: Dict[str, Any]) -> Optional[AssistantEvent]:
        item_type = item.get("type", "")

        if item_type == ItemType.AGENT_MESSAGE:
            return AssistantEvent(text=(item.get("text") or "").strip())

        if item_type == ItemType.REASONING:
            return AssistantEvent(thinking=item.get("text") or "")

        if item_type == ItemType.COMMAND_EXECUTION:
            return CodexStreamParser._tool("shell", {"command": item.get("command", "")})

        if item_type == ItemType.FILE_CHANGE:
            return CodexStreamParser._tool("apply_patch", {"changes": item.get("changes", [])})

        if item_type == ItemType.MCP_TOOL_CALL:
            # MCP tool calls use "tool" (and "server") instead of "name"
            tool = item.get("tool") or "tool"
            server = item.get("server")
            name = f"{server}__{tool}" if server else tool
            return CodexStreamParser._tool(name, item.get("arguments"))

        if item_type == ItemType.WEB_SEARCH:
            return CodexStreamParser._tool("web_search", {"query": item.get("query", "")})

        if item_type in (ItemType.FUNCTION_CALL, ItemType.TOOL_CALL):
            function = item.get("function") or {}
            name = item.get("name") or function.get("name") or "tool"
            arguments = item.get("arguments", item.get("input"))
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except json.JSONDecodeError:
                    pass
            return CodexStreamParser._tool(name, arguments)

        # reasoning deltas, todo lists, non-fatal item errors
        return None

    @staticmethod
    def _tool(name: str, raw_input: Any) -> AssistantEvent:
        return AssistantEvent(tool_invocations=[ToolInvocation(name=name, raw_input=raw_input)])

    @staticmethod
    def parse_plain_text(line: str) -> CanonicalEvent:
        """Best-effort mapping for non-JSON output lines."""
        if line.startswith(UNTRUSTED_DIRECTORY_PREFIX):
            return ErrorEvent(message=line)
        return plain_text_event(line)
