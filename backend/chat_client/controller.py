"""
Client-side stream controller for one chat turn.

TurnController consumes the gateway's canonical event stream and keeps a
renderable TurnState up to date:

    CONNECTING -> THINKING / USING_TOOL / RESPONDING (any order, repeatable)
               -> COMPLETE | ERRORED | CANCELLED

CANCELLED and ERRORED can be reached from any non-terminal phase. Once a
terminal phase is reached, further events are ignored.

Usage:
    async with httpx.AsyncClient(base_url="http://localhost:8000") as client:
        controller = TurnController(client)
        state = await controller.send("hello", provider="claude")
        print(state.phase, state.text)
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx
from domain.events import AssistantEvent, CanonicalEvent, ErrorEvent, ResultEvent, SystemEvent

from .frames import decode_payload, is_done, parse_data_line

logger = logging.getLogger("TurnController")

CHAT_PATH = "/api/chat"
NO_RESPONSE_TEXT = "No response received."


class TurnPhase(str, Enum):
    CONNECTING = "connecting"
    THINKING = "thinking"
    USING_TOOL = "tool_use"
    RESPONDING = "responding"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ERRORED = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TurnPhase.COMPLETE, TurnPhase.CANCELLED, TurnPhase.ERRORED)


@dataclass
class ToolCall:
    """One entry of the turn's tool-call log."""

    name: str
    input: Optional[str] = None


@dataclass
class TurnState:
    """Renderable state of a turn."""

    phase: TurnPhase = TurnPhase.CONNECTING
    text: str = ""
    thinking: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    current_tool: Optional[str] = None
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    cost_usd: Optional[float] = None
    duration_ms: Optional[int] = None
    session_id: Optional[str] = None
    model: Optional[str] = None
    error: Optional[str] = None


def _format_tool_input(raw_input: Any) -> Optional[str]:
    if raw_input is None:
        return None
    if isinstance(raw_input, str):
        return raw_input
    return json.dumps(raw_input, ensure_ascii=False)


class TurnController:
    """State machine for one streamed chat turn."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        on_session_id: Optional[Callable[[str], None]] = None,
        on_model: Optional[Callable[[str], None]] = None,
        on_slash_commands: Optional[Callable[[list], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._on_session_id = on_session_id
        self._on_model = on_model
        self._on_slash_commands = on_slash_commands
        self._clock = clock

        self.state = TurnState()
        self._stream_task: Optional[asyncio.Task] = None
        self._sent = False
        self._cancel_requested = False

    @property
    def phase(self) -> TurnPhase:
        return self.state.phase

    @property
    def is_terminal(self) -> bool:
        return self.state.phase.is_terminal

    @property
    def elapsed_ms(self) -> int:
        """Milliseconds since the turn started; frozen once it reaches a terminal phase."""
        if self.state.started_at is None:
            return 0
        end = self.state.finished_at if self.state.finished_at is not None else self._clock()
        return int((end - self.state.started_at) * 1000)

    def _mark_started(self) -> None:
        if self.state.started_at is None:
            self.state.started_at = self._clock()

    def _finish(self, phase: TurnPhase) -> None:
        self._mark_started()
        self.state.phase = phase
        self.state.current_tool = None
        self.state.finished_at = self._clock()

    def apply(self, event: CanonicalEvent) -> bool:
        """Apply one canonical event.

        Returns:
            False if the event was ignored because the turn already ended
        """
        if self.is_terminal:
            logger.debug(f"Ignoring {type(event).__name__} after {self.state.phase.value}")
            return False

        self._mark_started()

        if isinstance(event, SystemEvent):
            self._apply_system(event)
        elif isinstance(event, AssistantEvent):
            self._apply_assistant(event)
        elif isinstance(event, ResultEvent):
            self._apply_result(event)
        elif isinstance(event, ErrorEvent):
            self.state.error = event.message
            self._finish(TurnPhase.ERRORED)
        return True

    def _apply_system(self, event: SystemEvent) -> None:
        if event.session_id:
            self._adopt_session_id(event.session_id)
        if event.model:
            self.state.model = event.model
            if self._on_model:
                self._on_model(event.model)
        if event.available_commands is not None and self._on_slash_commands:
            self._on_slash_commands(event.available_commands)

    def _apply_assistant(self, event: AssistantEvent) -> None:
        # Each assistant event is a snapshot; text and thinking replace what came before
        self.state.text = event.text.strip()
        self.state.thinking = event.thinking

        for tool in event.tool_invocations:
            self.state.tool_calls.append(ToolCall(name=tool.name, input=_format_tool_input(tool.raw_input)))

        if event.tool_invocations:
            self.state.phase = TurnPhase.USING_TOOL
            self.state.current_tool = event.tool_invocations[-1].name
        elif event.thinking and not event.text:
            self.state.phase = TurnPhase.THINKING
            self.state.current_tool = None
        else:
            self.state.phase = TurnPhase.RESPONDING
            self.state.current_tool = None

    def _apply_result(self, event: ResultEvent) -> None:
        if event.session_id:
            self._adopt_session_id(event.session_id)
        self.state.cost_usd = event.cost_usd
        self.state.duration_ms = event.duration_ms
        if not self.state.text and event.final_text:
            self.state.text = event.final_text.strip()
        self._finish(TurnPhase.COMPLETE)

    def _adopt_session_id(self, session_id: str) -> None:
        self.state.session_id = session_id
        if self._on_session_id:
            self._on_session_id(session_id)

    def fail(self, message: str) -> None:
        """Move to ERRORED with a client-side error message."""
        if self.is_terminal:
            return
        self.state.error = message
        self._finish(TurnPhase.ERRORED)

    def cancel(self) -> None:
        """Move to CANCELLED and abort the HTTP request, if one is in flight."""
        if self.is_terminal:
            return
        self._cancel_requested = True
        self._finish(TurnPhase.CANCELLED)
        if self._stream_task is not None and not self._stream_task.done():
            self._stream_task.cancel()

    async def send(
        self,
        message: str,
        *,
        session_id: Optional[str] = None,
        cwd: Optional[str] = None,
        permission_mode: Optional[str] = None,
        allowed_tools: Optional[List[str]] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> TurnState:
        """Send the turn's request and consume the stream until it ends.

        Never raises for gateway or transport failures; they end in ERRORED.

        Returns:
            The final TurnState
        """
        if self._client is None:
            raise RuntimeError("TurnController has no HTTP client")
        if self._sent:
            raise RuntimeError("A TurnController drives exactly one turn")
        self._sent = True

        if self.is_terminal:
            return self.state
        self._mark_started()

        body: Dict[str, Any] = {"message": message}
        optional = {
            "sessionId": session_id,
            "cwd": cwd,
            "permissionMode": permission_mode,
            "allowedTools": allowed_tools,
            "provider": provider,
            "model": model,
        }
        body.update({key: value for key, value in optional.items() if value})

        self._stream_task = asyncio.create_task(self._stream(body))
        try:
            await self._stream_task
        except asyncio.CancelledError:
            if not self._cancel_requested:
                # The caller's own task was cancelled
                self.cancel()
                raise
        finally:
            self._stream_task = None

        return self.state

    async def _stream(self, body: Dict[str, Any]) -> None:
        try:
            async with self._client.stream("POST", CHAT_PATH, json=body) as response:
                if response.status_code >= 400:
                    await response.aread()
                    self.fail(_error_text(response))
                    return

                async for line in response.aiter_lines():
                    payload = parse_data_line(line)
                    if payload is None or is_done(payload):
                        continue
                    event = decode_payload(payload)
                    if event is not None:
                        self.apply(event)
        except httpx.HTTPError as e:
            logger.warning(f"Chat stream failed: {e}")
            self.fail(f"Failed to connect to the gateway: {e}")
            return

        if not self.is_terminal:
            # Stream closed without a Result or Error
            if not self.state.text:
                self.state.text = NO_RESPONSE_TEXT
            self._finish(TurnPhase.COMPLETE)


def _error_text(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return f"Request failed (HTTP {response.status_code})"
