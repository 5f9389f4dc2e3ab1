"""
Claude Code provider implementation.

This module provides the provider that drives the `claude` CLI in print mode
with stream-json output.
"""

from .parser import ClaudeStreamParser
from .provider import CLAUDE_DESCRIPTOR, READ_ONLY_TOOLS, ClaudeProvider

__all__ = [
    "CLAUDE_DESCRIPTOR",
    "ClaudeProvider",
    "ClaudeStreamParser",
    "READ_ONLY_TOOLS",
]
