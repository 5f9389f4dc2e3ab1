"""
Codex provider implementation.

This module provides the CodexProvider class that implements CliProvider
for the Codex CLI backend. A new `codex exec` subprocess is spawned per turn.

CLI Commands:
    - New conversation: codex exec --json --skip-git-repo-check -- "prompt"
    - Resume thread:    codex exec resume <thread-id> --json --skip-git-repo-check -- "follow-up"
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from domain.events import CanonicalEvent

from providers.base import (
    CliProvider,
    PermissionMode,
    ProviderDescriptor,
    SpawnOptions,
    SpawnSpec,
    check_session_id,
    filter_tool_names,
    strip_env,
)
from providers.discovery import find_binary

from .parser import CodexStreamParser

logger = logging.getLogger("CodexProvider")

# Markers set by an enclosing Codex session
NESTED_SESSION_VARS = ("CODEX_THREAD_ID",)
NESTED_SESSION_PREFIXES = ("CODEX_SANDBOX",)

CODEX_DESCRIPTOR = ProviderDescriptor(
    name="codex",
    display_name="OpenAI Codex",
    streaming=True,
    thinking=True,
    tool_use=True,
    models=("gpt-5.2", "o4-mini", "o3", "gpt-4.1"),
)


class CodexProvider(CliProvider):
    """Codex provider implementing the CliProvider interface.

    Note: Codex uses threads instead of sessions for conversation state;
    the thread id is the session id threaded between turns.
    """

    name = "codex"
    display_name = "OpenAI Codex"
    skip_confirmations_flag = "--full-auto"

    def __init__(self, binary_override: Optional[str] = None, search_dirs: Optional[Iterable[Path]] = None):
        """Initialize the Codex provider.

        Args:
            binary_override: Explicit path to the codex executable
            search_dirs: Directories checked before PATH (defaults to user install dirs)
        """
        self._binary_override = binary_override
        self._search_dirs = search_dirs

    def find_binary(self) -> Optional[str]:
        return find_binary("codex", override=self._binary_override, search_dirs=self._search_dirs)

    def get_capabilities(self) -> ProviderDescriptor:
        return CODEX_DESCRIPTOR

    def build_command(self, prompt: str, options: SpawnOptions) -> SpawnSpec:
        """Build the codex exec invocation for one turn.

        Permission modes:
            default     -> vendor default sandbox
            trust       -> --full-auto
            acceptEdits -> --sandbox workspace-write
            readOnly    -> --sandbox read-only
            plan        -> --sandbox read-only (Codex has no plan mode)
        """
        binary = self.find_binary() or "codex"
        args: List[str] = ["exec"]

        # Handle thread resume
        if options.session_id:
            args.extend(["resume", check_session_id(options.session_id)])

        args.extend(["--json", "--skip-git-repo-check"])

        mode = options.permission_mode
        if mode == PermissionMode.TRUST:
            args.append(self.skip_confirmations_flag)
        elif mode == PermissionMode.ACCEPT_EDITS:
            args.extend(["--sandbox", "workspace-write"])
        elif mode in (PermissionMode.READ_ONLY, PermissionMode.PLAN):
            args.extend(["--sandbox", "read-only"])

        if options.model:
            args.extend(["--model", options.model])

        if options.allowed_tools:
            safe_tools = filter_tool_names(options.allowed_tools)
            logger.info(f"Codex has no tool allowlist; ignoring {len(safe_tools)} allowed tool(s)")

        # Prompt is the positional argument (must come last)
        args.extend(["--", prompt])

        return SpawnSpec(binary=binary, args=args, env=self.build_env(os.environ), cwd=options.cwd)

    def build_env(self, base_env: Dict[str, str]) -> Dict[str, str]:
        """Copy the environment without an enclosing Codex session's markers."""
        return strip_env(dict(base_env), exact=NESTED_SESSION_VARS, prefixes=NESTED_SESSION_PREFIXES)

    def map_event(self, payload: Dict[str, Any]) -> Optional[CanonicalEvent]:
        return CodexStreamParser.parse_payload(payload)

    def map_plain_text(self, line: str) -> Optional[CanonicalEvent]:
        return CodexStreamParser.parse_plain_text(line)
