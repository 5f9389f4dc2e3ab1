"""
Codex provider implementation.

This module provides the provider that drives `codex exec --json`, one
subprocess per turn.
"""

from .events import EventType, ItemType
from .parser import CodexStreamParser
from .provider import CODEX_DESCRIPTOR, CodexProvider

__all__ = [
    "CODEX_DESCRIPTOR",
    "CodexProvider",
    "CodexStreamParser",
    "EventType",
    "ItemType",
]
