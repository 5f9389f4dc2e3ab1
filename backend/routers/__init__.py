"""FastAPI routers for modular endpoint organization."""

from . import chat, providers

__all__ = [
    "chat",
    "providers",
]
