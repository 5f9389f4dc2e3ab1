"""
Core application modules.

This package contains settings, logging, exceptions, the working-directory
policy and the stream gateway.

Uses lazy loading for the gateway and app factory to avoid circular imports
(providers depend on core.exceptions).
"""

from .exceptions import (
    GatewayError,
    MalformedEventError,
    ProviderRuntimeError,
    ProviderUnavailableError,
    SilentSuccessAnomaly,
    SpawnError,
    ValidationError,
)
from .logging import get_logger, set_correlation_id, setup_logging
from .settings import Settings, get_settings, reset_settings

# Lazy-loaded exports (to avoid circular imports)
_lazy_imports = {
    "StreamGateway": "gateway",
    "ChatTurn": "gateway",
    "LineBuffer": "gateway",
    "create_app": "app_factory",
    "resolve_working_dir": "workspace",
}


def __getattr__(name: str):
    """Lazy loading for modules that import providers."""
    if name in _lazy_imports:
        import importlib

        module = importlib.import_module(f".{_lazy_imports[name]}", __name__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "reset_settings",
    # Logging
    "setup_logging",
    "set_correlation_id",
    "get_logger",
    # Exceptions
    "GatewayError",
    "ValidationError",
    "ProviderUnavailableError",
    "SpawnError",
    "ProviderRuntimeError",
    "SilentSuccessAnomaly",
    "MalformedEventError",
    # Lazy-loaded
    "StreamGateway",
    "ChatTurn",
    "LineBuffer",
    "create_app",
    "resolve_working_dir",
]
