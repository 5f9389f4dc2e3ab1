"""
Abstract base classes for CLI provider implementations.

This module defines the provider abstraction layer that lets the gateway
drive several independently developed command-line AI agents (Claude Code,
Codex, etc.) through one uniform interface.

Architecture:
    CliProvider: Capability surface every backing CLI implements
    ProviderDescriptor: Immutable description of a provider's capabilities
    SpawnOptions: Per-request inputs to command construction
    SpawnSpec: Binary, arguments, and environment for one process launch
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from core.exceptions import MalformedEventError, ValidationError
from domain.events import AssistantEvent, CanonicalEvent

logger = logging.getLogger("CliProvider")

# Tool names and session ids forwarded to a CLI must be plain identifiers that
# cannot be read as a flag, so neither may start with "-"
TOOL_NAME_PATTERN = re.compile(r"[A-Za-z0-9_][A-Za-z0-9_-]*")
SESSION_ID_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.:-]*")


class PermissionMode(str, Enum):
    """Abstract autonomy policy, mapped to vendor flags by each adapter."""

    DEFAULT = "default"
    TRUST = "trust"
    ACCEPT_EDITS = "acceptEdits"
    READ_ONLY = "readOnly"
    PLAN = "plan"


@dataclass(frozen=True)
class ProviderDescriptor:
    """Capabilities of a provider. Registered once, never mutated.

    Attributes:
        name: Unique short name used for lookup (e.g. "claude")
        display_name: Human-readable name (e.g. "Claude Code")
        streaming: Whether the CLI streams events while working
        thinking: Whether the CLI surfaces reasoning/thinking text
        tool_use: Whether the CLI reports tool invocations
        models: Models the CLI is known to accept
    """

    name: str
    display_name: str
    streaming: bool = True
    thinking: bool = False
    tool_use: bool = False
    models: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "streaming": self.streaming,
            "thinking": self.thinking,
            "toolUse": self.tool_use,
            "models": list(self.models),
        }


@dataclass
class SpawnOptions:
    """Per-request options passed to build_command().

    Attributes:
        permission_mode: Abstract permission mode for the turn
        session_id: Provider session id to resume (None for a first turn)
        model: Model identifier forwarded as-is
        allowed_tools: Free-form tool allowlist (validated before use)
        cwd: Validated working directory for the process
    """

    permission_mode: PermissionMode = PermissionMode.DEFAULT
    session_id: Optional[str] = None
    model: Optional[str] = None
    allowed_tools: List[str] = field(default_factory=list)
    cwd: Optional[str] = None


@dataclass
class SpawnSpec:
    """Everything needed to launch one provider process.

    Built fresh for every turn and never reused.
    """

    binary: str
    args: List[str]
    env: Dict[str, str]
    cwd: Optional[str] = None

    @property
    def command(self) -> List[str]:
        return [self.binary, *self.args]


def filter_tool_names(tools: Optional[Iterable[Any]]) -> List[str]:
    """Keep only tool names matching TOOL_NAME_PATTERN.

    Anything else could be read by the CLI as an extra flag, so it is dropped.
    """
    safe: List[str] = []
    for tool in tools or []:
        if isinstance(tool, str) and TOOL_NAME_PATTERN.fullmatch(tool):
            safe.append(tool)
        else:
            logger.warning(f"Dropping invalid tool name from allowlist: {tool!r}")
    return safe


def check_session_id(session_id: Optional[str]) -> Optional[str]:
    """Return session_id unchanged if it is safe to place in argv.

    Raises:
        ValidationError: If the id could be read as a flag or carries odd characters
    """
    if session_id is None:
        return None
    if not isinstance(session_id, str) or not SESSION_ID_PATTERN.fullmatch(session_id):
        raise ValidationError(f"Invalid session id: {session_id!r}")
    return session_id


def strip_env(env: Dict[str, str], exact: Iterable[str] = (), prefixes: Iterable[str] = ()) -> Dict[str, str]:
    """Return a copy of env without the named variables or prefixes."""
    exact_set = set(exact)
    prefix_tuple = tuple(prefixes)
    return {
        key: value
        for key, value in env.items()
        if key not in exact_set and not (prefix_tuple and key.startswith(prefix_tuple))
    }


class CliProvider(ABC):
    """Abstract provider interface for one backing CLI tool.

    Subclasses implement binary discovery, command construction and the
    mapping from their vendor's event tags to canonical events. The shared
    parse_event() guarantees that malformed output never raises.
    """

    name: str = ""
    display_name: str = ""

    # Flag that makes the CLI run without asking for confirmations
    skip_confirmations_flag: str = ""

    @abstractmethod
    def find_binary(self) -> Optional[str]:
        """Resolve the CLI executable, or None if it cannot be found."""
        ...

    def is_available(self) -> bool:
        """Check whether the backing binary is resolvable.

        Never spawns the CLI itself.
        """
        return self.find_binary() is not None

    @abstractmethod
    def get_capabilities(self) -> ProviderDescriptor:
        """Return the provider's capability descriptor."""
        ...

    @abstractmethod
    def build_command(self, prompt: str, options: SpawnOptions) -> SpawnSpec:
        """Build the spawn specification for one turn.

        Args:
            prompt: The user message
            options: Permission mode, session id, model, allowlist, cwd

        Returns:
            SpawnSpec with binary, ordered arguments and sanitized environment
        """
        ...

    @abstractmethod
    def map_event(self, payload: Dict[str, Any]) -> Optional[CanonicalEvent]:
        """Map one decoded vendor event to a canonical event.

        Returns None for vendor tags the gateway does not forward.
        """
        ...

    def map_plain_text(self, line: str) -> Optional[CanonicalEvent]:
        """Fallback for lines that are not JSON. Default: drop them."""
        return None

    def parse_event(self, line: str) -> Optional[CanonicalEvent]:
        """Parse one complete stdout line into a canonical event.

        Returns None when the line should be skipped. Never raises.
        """
        stripped = line.strip()
        if not stripped:
            return None

        try:
            payload = decode_line(stripped)
        except MalformedEventError:
            logger.debug(f"[{self.name}] Non-JSON line: {stripped[:100]}")
            return self.map_plain_text(stripped)

        try:
            return self.map_event(payload)
        except Exception as e:
            logger.warning(f"[{self.name}] Dropping event that could not be mapped: {e}")
            return None


def decode_line(line: str) -> Dict[str, Any]:
    """Decode a line as a JSON object.

    Raises:
        MalformedEventError: If the line is not JSON or not an object
    """
    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        raise MalformedEventError(line)
    if not isinstance(payload, dict):
        raise MalformedEventError(line)
    return payload


def plain_text_event(text: str) -> AssistantEvent:
    """Best-effort assistant event for output that is not JSON."""
    return AssistantEvent(text=text)
