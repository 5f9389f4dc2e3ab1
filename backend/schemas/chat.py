"""Request and response models for the chat gateway API."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """One chat turn request.

    Field names follow the wire format (camelCase aliases); values are only
    type-checked here. Semantic validation happens in the gateway so that
    non-HTTP callers get the same rules.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    cwd: Optional[str] = None
    permission_mode: Optional[str] = Field(default=None, alias="permissionMode")
    allowed_tools: Optional[List[str]] = Field(default=None, alias="allowedTools")
    provider: Optional[str] = None
    model: Optional[str] = None


class ProviderCapabilities(BaseModel):
    """Capability flags of a provider."""

    streaming: bool
    thinking: bool
    toolUse: bool
    models: List[str]


class ProviderInfo(BaseModel):
    """One entry of the provider listing."""

    name: str
    displayName: str
    available: bool
    capabilities: ProviderCapabilities


class ProviderListResponse(BaseModel):
    """Response for the provider listing endpoint."""

    providers: List[ProviderInfo]
    default: Optional[str] = None
