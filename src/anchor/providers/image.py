"""Image provider for managing container images."""

import logging
from typing import Optional, TYPE_CHECKING

from anchor.errors import AnchorError, DockerConnectionError, ImageError
from anchor.models.container import ContainerSpec
from anchor.providers.base import BaseProvider, ProviderStatus

if TYPE_CHECKING:
    from anchor.providers.registry import ProviderRegistry
    from anchor.utils.docker import DockerClient


logger = logging.getLogger(__name__)


class ImageProvider(BaseProvider):
    """Provider for the image a manifest entry is created from."""

    def __init__(self):
        """Initialize image provider."""
        self.client: Optional["DockerClient"] = None

    async def initialize(self, client: "DockerClient", registry: "ProviderRegistry") -> None:
        """Initialize provider with the runtime client."""
        self.client = client

    async def status(self, name: str, spec: ContainerSpec) -> ProviderStatus:
        """Check whether the image is available locally."""
        try:
            exists = await self.client.image_exists(spec.uri)
        except DockerConnectionError:
            raise
        except AnchorError as e:
            raise ImageError(spec.uri, f"Failed to check image status: {e}", container=name) from e
        return ProviderStatus.PRESENT if exists else ProviderStatus.ABSENT

    async def present(self, name: str, spec: ContainerSpec) -> bool:
        """Pull the image unless it is already present."""
        if await self.status(name, spec) == ProviderStatus.PRESENT:
            logger.debug(f"Image {spec.uri} already present")
            return False

        try:
            await self.client.pull_image(spec.uri)
        except ImageError as e:
            raise ImageError(e.image, e.message, container=name) from e
        except DockerConnectionError:
            raise
        except AnchorError as e:
            raise ImageError(spec.uri, f"Failed to pull image '{spec.uri}': {e}", container=name) from e
        return True
