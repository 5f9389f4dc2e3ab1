"""
Canonical event types shared by the stream gateway and its clients.

Every provider adapter maps its vendor's stdout events onto exactly these
four shapes. The wire format (what goes inside each ``data:`` frame) is
produced by ``to_dict()`` and parsed back by ``event_from_dict()``.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union


@dataclass
class ToolInvocation:
    """A single tool call announced by the assistant."""

    name: str
    raw_input: Any = None


@dataclass
class SystemEvent:
    """Session metadata emitted when the CLI starts a turn."""

    session_id: str
    model: Optional[str] = None
    available_commands: Optional[list[Any]] = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"type": "system", "session_id": self.session_id}
        if self.model:
            data["model"] = self.model
        if self.available_commands is not None:
            data["slash_commands"] = self.available_commands
        return data


@dataclass
class AssistantEvent:
    """Cumulative snapshot of the assistant message currently being produced."""

    text: str = ""
    thinking: str = ""
    tool_invocations: list[ToolInvocation] = field(default_factory=list)

    def to_dict(self) -> dict:
        content: list[dict[str, Any]] = []
        if self.thinking:
            content.append({"type": "thinking", "thinking": self.thinking})
        if self.text:
            content.append({"type": "text", "text": self.text})
        for tool in self.tool_invocations:
            block: dict[str, Any] = {"type": "tool_use", "name": tool.name}
            if tool.raw_input is not None:
                block["input"] = tool.raw_input
            content.append(block)
        return {"type": "assistant", "message": {"content": content}}


@dataclass
class ResultEvent:
    """Final event of a successful turn."""

    final_text: Optional[str] = None
    cost_usd: Optional[float] = None
    duration_ms: Optional[int] = None
    session_id: Optional[str] = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"type": "result"}
        if self.final_text is not None:
            data["result"] = self.final_text
        if self.cost_usd is not None:
            data["cost_usd"] = self.cost_usd
        if self.duration_ms is not None:
            data["duration_ms"] = self.duration_ms
        if self.session_id:
            data["session_id"] = self.session_id
        return data


@dataclass
class ErrorEvent:
    """Terminal failure of a turn."""

    message: str

    def to_dict(self) -> dict:
        return {"type": "error", "error": self.message}


CanonicalEvent = Union[SystemEvent, AssistantEvent, ResultEvent, ErrorEvent]

# Literal payload of the closing frame
DONE_SENTINEL = "[DONE]"


def _parse_content_blocks(content: list) -> AssistantEvent:
    text_parts: list[str] = []
    thinking_parts: list[str] = []
    tools: list[ToolInvocation] = []

    for block in content:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text":
            text_parts.append(str(block.get("text") or ""))
        elif block_type == "thinking":
            thinking_parts.append(str(block.get("thinking") or ""))
        elif block_type == "tool_use":
            tools.append(ToolInvocation(name=str(block.get("name") or "tool"), raw_input=block.get("input")))

    return AssistantEvent(text="".join(text_parts), thinking="".join(thinking_parts), tool_invocations=tools)


def event_from_dict(data: Any) -> Optional[CanonicalEvent]:
    """Parse a wire-format dict back into a canonical event.

    Returns None for anything that is not one of the four known shapes.
    """
    if not isinstance(data, dict):
        return None

    event_type = data.get("type")

    if event_type == "system":
        return SystemEvent(
            session_id=str(data.get("session_id") or ""),
            model=data.get("model"),
            available_commands=data.get("slash_commands"),
        )

    if event_type == "assistant":
        message = data.get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, list):
            return AssistantEvent()
        return _parse_content_blocks(content)

    if event_type == "result":
        result = data.get("result")
        return ResultEvent(
            final_text=result if isinstance(result, str) else None,
            cost_usd=data.get("cost_usd"),
            duration_ms=data.get("duration_ms"),
            session_id=data.get("session_id"),
        )

    if event_type == "error":
        return ErrorEvent(message=str(data.get("error") or "Unknown error"))

    return None
