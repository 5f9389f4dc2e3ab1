"""
Claude Code provider implementation.

This module provides the ClaudeProvider class that implements CliProvider
for the `claude` command-line tool in non-interactive print mode.

CLI Commands:
    - New conversation: claude -p --output-format stream-json --verbose -- "prompt"
    - Resume session:   claude -p --output-format stream-json --verbose --resume <id> -- "follow-up"
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

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
from providers.discovery import IS_WINDOWS, find_binary, find_git_bash

from .parser import ClaudeStreamParser

logger = logging.getLogger("ClaudeProvider")

# Tools granted in read-only mode
READ_ONLY_TOOLS = ["Read", "Glob", "Grep", "WebSearch", "WebFetch"]

# Variables that bind a child process to a parent Claude Code session
NESTED_SESSION_VARS = ("CLAUDECODE",)
NESTED_SESSION_PREFIXES = ("CLAUDE_CODE",)

CLAUDE_DESCRIPTOR = ProviderDescriptor(
    name="claude",
    display_name="Claude Code",
    streaming=True,
    thinking=True,
    tool_use=True,
    models=("claude-sonnet-4-6", "claude-opus-4-6", "claude-haiku-4-5-20251001"),
)


class ClaudeProvider(CliProvider):
    """Claude Code provider implementing the CliProvider interface."""

    name = "claude"
    display_name = "Claude Code"
    skip_confirmations_flag = "--dangerously-skip-permissions"

    def __init__(self, binary_override: Optional[str] = None, search_dirs: Optional[Iterable[Path]] = None):
        """Initialize the Claude provider.

        Args:
            binary_override: Explicit path to the claude executable
            search_dirs: Directories checked before PATH (defaults to user install dirs)
        """
        self._binary_override = binary_override
        self._search_dirs = search_dirs

    def find_binary(self) -> Optional[str]:
        return find_binary("claude", override=self._binary_override, search_dirs=self._search_dirs)

    def get_capabilities(self) -> ProviderDescriptor:
        return CLAUDE_DESCRIPTOR

    def build_command(self, prompt: str, options: SpawnOptions) -> SpawnSpec:
        """Build the claude CLI invocation for one turn.

        Permission modes:
            default     -> no flags (CLI asks, and in print mode denies, risky tools)
            trust       -> --dangerously-skip-permissions
            acceptEdits -> --permission-mode acceptEdits
            readOnly    -> --allowedTools with a fixed read-only set
            plan        -> --permission-mode plan
        """
        binary = self.find_binary() or "claude"
        args = ["-p", "--output-format", "stream-json", "--verbose"]

        if options.session_id:
            args.extend(["--resume", check_session_id(options.session_id)])

        if options.model:
            args.extend(["--model", options.model])

        mode = options.permission_mode
        if mode == PermissionMode.TRUST:
            args.append(self.skip_confirmations_flag)
        elif mode == PermissionMode.ACCEPT_EDITS:
            args.extend(["--permission-mode", "acceptEdits"])
        elif mode == PermissionMode.READ_ONLY:
            args.extend(["--allowedTools", *READ_ONLY_TOOLS])
        elif mode == PermissionMode.PLAN:
            args.extend(["--permission-mode", "plan"])

        # Custom allowlist would conflict with trust and readOnly
        if options.allowed_tools and mode not in (PermissionMode.TRUST, PermissionMode.READ_ONLY):
            safe_tools = filter_tool_names(options.allowed_tools)
            if safe_tools:
                args.extend(["--allowedTools", *safe_tools])

        # Prompt goes last, after the end-of-options marker
        args.extend(["--", prompt])

        return SpawnSpec(binary=binary, args=args, env=self.build_env(os.environ), cwd=options.cwd)

    def build_env(self, base_env: Dict[str, str]) -> Dict[str, str]:
        """Copy the environment without Claude Code session variables.

        A child that inherits CLAUDECODE / CLAUDE_CODE_* would attach to the
        parent session instead of starting its own.
        """
        env = strip_env(dict(base_env), exact=NESTED_SESSION_VARS, prefixes=NESTED_SESSION_PREFIXES)
        if IS_WINDOWS:
            bash_path = find_git_bash(env)
            if bash_path:
                env["CLAUDE_CODE_GIT_BASH_PATH"] = bash_path
        return env

    def map_event(self, payload: Dict[str, Any]) -> Optional[CanonicalEvent]:
        return ClaudeStreamParser.parse_payload(payload)
