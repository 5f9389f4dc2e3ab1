"""
Providers API endpoints.

Provides endpoints for listing the registered CLI providers and checking their status.
"""

from fastapi import APIRouter, Depends
from providers.registry import ProviderRegistry
from schemas.chat import ProviderListResponse

from routers.chat import get_gateway

router = APIRouter()


def get_registry(gateway=Depends(get_gateway)) -> ProviderRegistry:
    return gateway.registry


@router.get("/providers", response_model=ProviderListResponse)
async def get_providers(registry: ProviderRegistry = Depends(get_registry)):
    """Get list of registered providers and their status.

    Returns:
        dict containing:
        - providers: name, displayName, availability and capabilities of each provider
        - default: The default provider name (None if nothing is registered)
    """
    providers = []
    for provider in registry.list():
        descriptor = provider.get_capabilities()
        providers.append(
            {
                "name": descriptor.name,
                "displayName": descriptor.display_name,
                "available": provider.is_available(),
                "capabilities": descriptor.to_dict(),
            }
        )

    default = registry.get_default().name if len(registry) else None
    return {"providers": providers, "default": default}
