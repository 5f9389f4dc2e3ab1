"""
CLI provider abstraction layer.

Each provider drives one vendor command-line agent: it locates the binary,
builds the argument list and environment for a turn, and maps the CLI's
line-oriented output to canonical events.

Usage:
    from providers import build_registry, PermissionMode, SpawnOptions

    registry = build_registry(settings)
    provider = registry.get_default()

    spec = provider.build_command("hello", SpawnOptions(permission_mode=PermissionMode.DEFAULT))
    # ... spawn spec.binary with spec.args and spec.env ...
    for line in stdout_lines:
        event = provider.parse_event(line)
        if event is not None:
            print(event.to_dict())
"""

from .base import (
    SESSION_ID_PATTERN,
    TOOL_NAME_PATTERN,
    CliProvider,
    PermissionMode,
    ProviderDescriptor,
    SpawnOptions,
    SpawnSpec,
    check_session_id,
    filter_tool_names,
    strip_env,
)
from .registry import PRIMARY_PROVIDER, ProviderRegistry, build_registry

__all__ = [
    # Base classes
    "CliProvider",
    "PermissionMode",
    "ProviderDescriptor",
    "SpawnOptions",
    "SpawnSpec",
    "SESSION_ID_PATTERN",
    "TOOL_NAME_PATTERN",
    "check_session_id",
    "filter_tool_names",
    "strip_env",
    # Registry
    "PRIMARY_PROVIDER",
    "ProviderRegistry",
    "build_registry",
]
