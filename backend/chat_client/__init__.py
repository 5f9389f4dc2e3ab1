"""
Python client for the chat gateway.

Usage:
    from chat_client import ChatSession, create_client

    async with create_client("http://localhost:8000") as client:
        session = ChatSession(client, provider="claude")
        turn = await session.send("hello")
        print(turn.state.text)
"""

from .controller import NO_RESPONSE_TEXT, ToolCall, TurnController, TurnPhase, TurnState
from .frames import decode_payload, parse_data_line
from .session import ChatSession, compare, create_client

__all__ = [
    "TurnController",
    "TurnPhase",
    "TurnState",
    "ToolCall",
    "NO_RESPONSE_TEXT",
    "ChatSession",
    "compare",
    "create_client",
    "decode_payload",
    "parse_data_line",
]
