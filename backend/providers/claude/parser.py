"""
Claude Code stream-json parser.

Maps the events printed by `claude -p --output-format stream-json --verbose`
onto the canonical event shapes.
"""

import logging
from typing import Any, Dict, Optional

from domain.events import AssistantEvent, CanonicalEvent, ErrorEvent, ResultEvent, SystemEvent, ToolInvocation

logger = logging.getLogger("ClaudeStreamParser")


class ClaudeStreamParser:
    """Parser for Claude Code stream-json events.

    Event Types:
        - system (subtype=init): session_id, model, slash_commands, tools
        - assistant: message.content=[text, thinking, tool_use, ...]
        - user: tool results fed back to the model (not forwarded)
        - result: final text, total_cost_usd, duration_ms, session_id, is_error
        - stream_event: partial deltas with --include-partial-messages (not forwarded)
    """

    @staticmethod
    def parse_payload(payload: Dict[str, Any]) -> Optional[CanonicalEvent]:
        """Map one decoded stream-json event.

        Args:
            payload: JSON object from one stdout line

        Returns:
            Canonical event, or None if the event type is not forwarded
        """
        event_type = payload.get("type")

        if event_type == "system":
            if payload.get("subtype") != "init":
                return None
            session_id = payload.get("session_id")
            if not session_id:
                return None
            return SystemEvent(
                session_id=session_id,
                model=payload.get("model"),
                available_commands=payload.get("slash_commands"),
            )

        if event_type == "assistant":
            return ClaudeStreamParser._parse_assistant(payload)

        if event_type == "result":
            return ClaudeStreamParser._parse_result(payload)

        if event_type == "error":
            error = payload.get("error") or payload.get("message") or "Claude Code error"
            if isinstance(error, dict):
                error = error.get("message") or str(error)
            return ErrorEvent(message=str(error))

        return None

    @staticmethod
    def _parse_assistant(payload: Dict[str, Any]) -> AssistantEvent:
        message = payload.get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None

        text = ""
        thinking = ""
        tools: list[ToolInvocation] = []

        if isinstance(content, list):
            for block in content:
                if not isinstance(block, dict):
                    continue
                block_type = block.get("type")
                if block_type == "text":
                    text += block.get("text") or ""
                elif block_type == "thinking":
                    thinking += block.get("thinking") or ""
                elif block_type == "tool_use":
                    tools.append(ToolInvocation(name=block.get("name") or "tool", raw_input=block.get("input")))
        elif isinstance(content, str):
            text = content

        return AssistantEvent(text=text.strip(), thinking=thinking, tool_invocations=tools)

    @staticmethod
    def _parse_result(payload: Dict[str, Any]) -> CanonicalEvent:
        result = payload.get("result")
        final_text = result.strip() if isinstance(result, str) else None

        if payload.get("is_error"):
            subtype = payload.get("subtype") or "error"
            logger.warning(f"Claude Code reported an error result: {subtype}")
            return ErrorEvent(message=final_text or f"Claude Code finished with {subtype}")

        cost = payload.get("total_cost_usd")
        if cost is None:
            cost = payload.get("cost_usd")

        return ResultEvent(
            final_text=final_text,
            cost_usd=cost,
            duration_ms=payload.get("duration_ms"),
            session_id=payload.get("session_id"),
        )
