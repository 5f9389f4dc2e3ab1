"""
Centralized application settings using Pydantic BaseSettings.

This module provides type-safe access to environment variables with validation.
All settings are loaded once at application startup.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Roots a request's working directory may live under when ALLOWED_ROOTS is unset
DEFAULT_ALLOWED_ROOTS = ["/home", "/Users", "/mnt", "/opt"]


def _get_work_dir() -> Path:
    """Get the working directory for user data (.env)."""
    return Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults and are validated on startup.
    """

    # Provider selection
    default_provider: str = "claude"
    claude_binary: Optional[str] = None  # Explicit path to the claude executable
    codex_binary: Optional[str] = None  # Explicit path to the codex executable

    # Working directory policy (comma-separated list of roots)
    allowed_roots: str = ""

    # Process lifecycle
    termination_grace_seconds: float = 5.0  # SIGTERM -> SIGKILL window
    max_turn_seconds: float = 300.0  # Overall ceiling for one turn
    stderr_tail_chars: int = 2000  # Diagnostic text kept for error events

    # Server binding (used when main.py is run directly)
    host: str = "127.0.0.1"
    port: int = 8000

    # CORS configuration
    frontend_url: Optional[str] = None

    # Debug configuration
    debug: bool = False
    log_json: bool = False

    @field_validator("debug", "log_json", mode="before")
    @classmethod
    def validate_bool_flags(cls, v: Optional[str]) -> bool:
        """Parse boolean flags from strings."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() == "true"
        return False

    @field_validator("termination_grace_seconds", "max_turn_seconds")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    def get_allowed_roots(self) -> List[Path]:
        """
        Get the list of directories a request's cwd must resolve under.

        Returns:
            Resolved root paths (home directory plus DEFAULT_ALLOWED_ROOTS when unset)
        """
        if self.allowed_roots.strip():
            raw = [part.strip() for part in self.allowed_roots.split(",") if part.strip()]
        else:
            raw = [str(Path.home()), *DEFAULT_ALLOWED_ROOTS]
        return [Path(root).expanduser().resolve() for root in raw]

    def get_cors_origins(self) -> List[str]:
        """
        Get the list of allowed CORS origins.

        Returns:
            List of allowed origin URLs
        """
        origins = [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
        if self.frontend_url:
            origins.append(self.frontend_url)
        return origins

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        # Allow extra fields for forward compatibility
        extra = "ignore"


# Singleton instance - load settings once
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        env_path = _get_work_dir() / ".env"
        if env_path.exists():
            _settings = Settings(_env_file=str(env_path))
        else:
            _settings = Settings()
    return _settings


def reset_settings() -> None:
    """
    Reset the settings singleton (useful for testing).
    """
    global _settings
    _settings = None
