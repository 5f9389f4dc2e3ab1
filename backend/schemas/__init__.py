"""
Pydantic schemas for API request/response models.

Usage:
    from schemas import ChatRequest
    # or
    from schemas.chat import ChatRequest
"""

from .chat import ChatRequest, ProviderCapabilities, ProviderInfo, ProviderListResponse

__all__ = [
    "ChatRequest",
    "ProviderCapabilities",
    "ProviderInfo",
    "ProviderListResponse",
]
