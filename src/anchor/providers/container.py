"""Container provider for managing Docker containers."""

import logging
from typing import Optional, TYPE_CHECKING

from anchor.errors import AnchorError, ContainerError, DockerConnectionError
from anchor.models.container import ContainerSpec
from anchor.providers.base import BaseProvider, ProviderStatus

if TYPE_CHECKING:
    from anchor.providers.registry import ProviderRegistry
    from anchor.utils.docker import DockerClient

logger = logging.getLogger(__name__)


class ContainerProvider(BaseProvider):
    """Provider for managing Docker containers."""

    def __init__(self):
        """Initialize container provider."""
        self.client: Optional["DockerClient"] = None

    async def initialize(self, client: "DockerClient", registry: "ProviderRegistry") -> None:
        """Initialize provider with the runtime client."""
        self.client = client

    async def status(self, name: str, spec: ContainerSpec) -> ProviderStatus:
        """Check if container exists."""
        try:
            exists = await self.client.container_exists(name)
        except (ContainerError, DockerConnectionError):
            raise
        except AnchorError as e:
            raise ContainerError(name, f"Failed to check container status: {e}") from e
        return ProviderStatus.PRESENT if exists else ProviderStatus.ABSENT

    async def is_running(self, name: str, spec: ContainerSpec) -> bool:
        """Check if container is running."""
        try:
            return await self.client.container_running(name)
        except (ContainerError, DockerConnectionError):
            raise
        except AnchorError as e:
            raise ContainerError(name, f"Failed to check container status: {e}") from e

    async def present(self, name: str, spec: ContainerSpec) -> bool:
        """Create the container unless it already exists."""
        if await self.status(name, spec) == ProviderStatus.PRESENT:
            logger.debug(f"Container {name} already exists")
            return False

        try:
            await self.client.create_container(
                spec.uri,
                name,
                port_mappings=spec.port_mappings,
                env=spec.env,
                mounts=spec.mounts,
            )
        except (ContainerError, DockerConnectionError):
            raise
        except AnchorError as e:
            raise ContainerError(name, f"Failed to create container from image '{spec.uri}': {e}") from e
        return True

    async def start(self, name: str, spec: ContainerSpec) -> bool:
        """Start the container unless it is already running."""
        if await self.is_running(name, spec):
            logger.debug(f"Container {name} already running")
            return False

        await self.client.start_container(name)
        return True

    async def stop(self, name: str, spec: ContainerSpec) -> bool:
        """Stop the container if it is running."""
        if not await self.is_running(name, spec):
            logger.debug(f"Container {name} already stopped")
            return False

        await self.client.stop_container(name)
        return True
