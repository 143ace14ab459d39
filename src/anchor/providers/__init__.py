"""Resource providers for anchor."""

from anchor.providers.base import BaseProvider, ProviderStatus
from anchor.providers.container import ContainerProvider
from anchor.providers.image import ImageProvider
from anchor.providers.registry import ProviderRegistry, create_provider_registry

__all__ = [
    "BaseProvider",
    "ProviderStatus",
    "ContainerProvider",
    "ImageProvider",
    "ProviderRegistry",
    "create_provider_registry",
]
