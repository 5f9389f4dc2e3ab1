"""
Gateway exception hierarchy.

Errors detected before a provider process exists are raised to the caller
and rendered as ordinary HTTP error responses. Errors detected after spawn
are never raised across the streaming boundary; the gateway converts them
into a single in-band error event instead.
"""


class GatewayError(Exception):
    """Base class for all gateway errors."""

    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(GatewayError):
    """Malformed or missing request fields. Raised before any process is spawned."""

    status_code = 400


class ProviderUnavailableError(GatewayError):
    """The requested provider's binary could not be resolved."""

    status_code = 400

    def __init__(self, provider_name: str, message: str | None = None):
        self.provider_name = provider_name
        super().__init__(message or f"Provider '{provider_name}' is not available on this system")


class SpawnError(GatewayError):
    """The operating system refused to start the provider process."""

    def __init__(self, binary: str, reason: str):
        self.binary = binary
        super().__init__(f"Failed to start '{binary}': {reason}")


class ProviderRuntimeError(GatewayError):
    """The provider process exited with a non-zero code."""

    def __init__(self, provider_name: str, exit_code: int, diagnostics: str = ""):
        self.provider_name = provider_name
        self.exit_code = exit_code
        self.diagnostics = diagnostics
        super().__init__(diagnostics or f"{provider_name} exited with code {exit_code}")


class SilentSuccessAnomaly(GatewayError):
    """The provider exited cleanly but produced no events at all.

    Heuristic safety net: most often seen when resuming a session id the CLI
    no longer knows about.
    """

    def __init__(self, provider_name: str, session_id: str | None = None):
        self.provider_name = provider_name
        self.session_id = session_id
        message = f"{provider_name} exited without producing any output."
        if session_id:
            message += f" The session '{session_id}' may no longer exist; try starting a new conversation."
        super().__init__(message)


class MalformedEventError(GatewayError):
    """A stdout line could not be decoded as a JSON object.

    Internal to the provider adapters: parse_event() catches it and applies
    the adapter's plain-text fallback, so it never reaches the gateway.
    """

    def __init__(self, line: str):
        self.line = line
        super().__init__(f"Malformed event line: {line[:100]}")
