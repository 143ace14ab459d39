"""Provider registry for managing resource providers."""

import logging
from typing import Dict, Optional, Type

from anchor.providers.base import BaseProvider
from anchor.providers.container import ContainerProvider
from anchor.providers.image import ImageProvider


logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Registry for managing providers."""

    def __init__(self):
        """Initialize provider registry."""
        self._providers: Dict[str, BaseProvider] = {}
        self._provider_classes: Dict[str, Type[BaseProvider]] = {
            "image": ImageProvider,
            "container": ContainerProvider,
        }

    async def initialize(self, client):
        """Initialize all providers with two-pass injection."""
        # Phase 1: Instantiate all providers
        for name, provider_class in self._provider_classes.items():
            try:
                self._providers[name] = provider_class()
            except Exception as e:
                logger.error(f"Failed to instantiate provider {name}: {e}")
                raise

        # Phase 2: Initialize and inject registry
        for name, provider in self._providers.items():
            try:
                await provider.initialize(client, self)
                logger.debug(f"Initialized provider: {name}")
            except Exception as e:
                logger.error(f"Failed to initialize provider {name}: {e}")
                raise

    def get_provider(self, name: str) -> Optional[BaseProvider]:
        """Get a provider by name."""
        return self._providers.get(name)


async def create_provider_registry(client) -> ProviderRegistry:
    """Build a registry whose providers are bound to ``client``."""
    registry = ProviderRegistry()
    await registry.initialize(client)
    return registry
