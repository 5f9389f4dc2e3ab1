"""
Domain layer for data structures shared across the gateway.

This package contains the canonical event dataclasses that every provider
adapter produces and every client consumes.
"""

from .events import (
    DONE_SENTINEL,
    AssistantEvent,
    CanonicalEvent,
    ErrorEvent,
    ResultEvent,
    SystemEvent,
    ToolInvocation,
    event_from_dict,
)

__all__ = [
    "CanonicalEvent",
    "SystemEvent",
    "AssistantEvent",
    "ResultEvent",
    "ErrorEvent",
    "ToolInvocation",
    "DONE_SENTINEL",
    "event_from_dict",
]
