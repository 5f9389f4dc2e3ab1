"""
Provider registry for looking up CLI providers by name.

The registry is built once at application startup by build_registry() and
frozen; it is read-only for the lifetime of the process, so request
handlers can share it without locking.
"""

import logging
from typing import Dict, List, Optional

from .base import CliProvider

logger = logging.getLogger("ProviderRegistry")

# Provider used when a request names none
PRIMARY_PROVIDER = "claude"


class ProviderRegistry:
    """Name-keyed collection of CLI providers."""

    def __init__(self, default_name: str = PRIMARY_PROVIDER):
        self._providers: Dict[str, CliProvider] = {}
        self._default_name = default_name
        self._frozen = False

    def register(self, provider: CliProvider) -> None:
        """Register a provider. Registering the same name again replaces the entry.

        Raises:
            RuntimeError: If the registry has been frozen
        """
        if self._frozen:
            raise RuntimeError(f"Cannot register provider '{provider.name}': registry is frozen")
        if provider.name in self._providers:
            logger.debug(f"Replacing provider registration: {provider.name}")
        self._providers[provider.name] = provider

    def freeze(self) -> None:
        """Make the registry read-only."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Optional[CliProvider]:
        return self._providers.get(name)

    def list(self) -> List[CliProvider]:
        return list(self._providers.values())

    def list_available(self) -> List[CliProvider]:
        return [provider for provider in self._providers.values() if provider.is_available()]

    def get_default(self) -> CliProvider:
        """Get the default provider.

        Returns:
            The provider registered under the default name, else the first registered

        Raises:
            LookupError: If no providers are registered
        """
        provider = self._providers.get(self._default_name)
        if provider is not None:
            return provider
        for provider in self._providers.values():
            return provider
        raise LookupError("No providers registered")

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)


def build_registry(settings) -> ProviderRegistry:
    """Create the process-wide registry with the built-in providers.

    New providers are added here by implementing CliProvider and registering
    them explicitly.

    Args:
        settings: Application settings (binary overrides, default provider)

    Returns:
        Frozen ProviderRegistry
    """
    from .claude import ClaudeProvider
    from .codex import CodexProvider

    registry = ProviderRegistry(default_name=settings.default_provider)
    registry.register(ClaudeProvider(binary_override=settings.claude_binary))
    registry.register(CodexProvider(binary_override=settings.codex_binary))
    registry.freeze()

    available = [provider.name for provider in registry.list_available()]
    logger.info(f"Registered providers: {[p.name for p in registry.list()]} (available: {available})")
    return registry
