"""
Multi-turn helpers built on TurnController.

ChatSession threads the provider-issued session id from one turn into the
next request. compare() sends the same prompt to several providers at once,
each through its own independent controller.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

import httpx

from .controller import TurnController

logger = logging.getLogger("ChatSession")

# Stream reads may idle while the CLI works; sse_starlette pings keep the connection alive
DEFAULT_TIMEOUT = httpx.Timeout(10.0, read=None)


def create_client(base_url: str = "http://localhost:8000", **kwargs) -> httpx.AsyncClient:
    """Create an AsyncClient configured for streaming chat turns."""
    kwargs.setdefault("timeout", DEFAULT_TIMEOUT)
    return httpx.AsyncClient(base_url=base_url, **kwargs)


class ChatSession:
    """A conversation with one provider across several turns."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        provider: Optional[str] = None,
        cwd: Optional[str] = None,
        permission_mode: Optional[str] = None,
        model: Optional[str] = None,
        allowed_tools: Optional[List[str]] = None,
        session_id: Optional[str] = None,
    ):
        self._client = client
        self.provider = provider
        self.cwd = cwd
        self.permission_mode = permission_mode
        self.model = model
        self.allowed_tools = allowed_tools
        self.session_id = session_id
        self.turns: List[TurnController] = []

    @property
    def current_turn(self) -> Optional[TurnController]:
        return self.turns[-1] if self.turns else None

    def _remember_session_id(self, session_id: str) -> None:
        if session_id != self.session_id:
            logger.debug(f"Session id is now {session_id}")
        self.session_id = session_id

    async def send(self, message: str) -> TurnController:
        """Run one turn, resuming the session established by earlier turns."""
        controller = TurnController(self._client, on_session_id=self._remember_session_id)
        self.turns.append(controller)
        await controller.send(
            message,
            session_id=self.session_id,
            cwd=self.cwd,
            permission_mode=self.permission_mode,
            allowed_tools=self.allowed_tools,
            provider=self.provider,
            model=self.model,
        )
        return controller

    def cancel(self) -> None:
        if self.current_turn is not None:
            self.current_turn.cancel()

    def reset(self) -> None:
        """Forget the session id so the next turn starts a new conversation."""
        self.session_id = None


async def compare(
    client: httpx.AsyncClient,
    message: str,
    providers: Iterable[str],
    *,
    cwd: Optional[str] = None,
    permission_mode: Optional[str] = None,
) -> Dict[str, TurnController]:
    """Send one prompt to several providers concurrently.

    A failure in one provider's turn only affects that provider's controller.

    Returns:
        Controllers keyed by provider name, all in a terminal phase
    """
    controllers = {name: TurnController(client) for name in providers}
    await asyncio.gather(
        *(
            controller.send(message, provider=name, cwd=cwd, permission_mode=permission_mode)
            for name, controller in controllers.items()
        )
    )
    return controllers
