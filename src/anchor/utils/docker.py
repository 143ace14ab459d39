"""Docker daemon client built on the docker SDK."""

import asyncio
import logging
import shutil
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import docker
import requests
from docker.errors import APIError, DockerException, NotFound
from docker.types import Mount

from anchor.errors import ContainerError, DockerConnectionError, DockerNotInstalledError, ImageError
from anchor.models.container import MountSpec
from anchor.models.status import ResourceStatus
from anchor.utils.credentials import RegistryCredentials


logger = logging.getLogger(__name__)

ARCH_ALIASES = {
    "x86_64": "amd64",
    "aarch64": "arm64",
}

DEFAULT_STOP_TIMEOUT = 10


def build_port_bindings(port_mappings: Sequence[Tuple[int, int]]) -> Dict[str, Any]:
    """Convert (container_port, host_port) pairs into docker SDK ``ports``."""
    bindings: "OrderedDict[str, List[int]]" = OrderedDict()
    for container_port, host_port in port_mappings:
        bindings.setdefault(f"{container_port}/tcp", []).append(host_port)
    return {
        port: hosts[0] if len(hosts) == 1 else hosts
        for port, hosts in bindings.items()
    }


def build_mounts(mounts: Sequence[MountSpec]) -> List[Mount]:
    """Convert mount specs into docker SDK mounts."""
    return [
        Mount(
            target=mount.target,
            source=mount.source,
            type=mount.type,
            read_only=mount.read_only,
        )
        for mount in mounts
    ]


def normalize_reference(image_reference: str) -> str:
    """Add the implicit ``latest`` tag to an untagged reference."""
    if "@" in image_reference:
        return image_reference
    if ":" in image_reference.rsplit("/", 1)[-1]:
        return image_reference
    return f"{image_reference}:latest"


def _short_tag(image_reference: str) -> str:
    return image_reference.rsplit("/", 1)[-1]


class DockerClient:
    """Async facade over the docker SDK.

    SDK calls block, so each one is run in a worker thread. Only one call is
    issued at a time by the cluster; the client itself holds no mutable state
    beyond the connection.
    """

    def __init__(
        self,
        credentials: Optional[RegistryCredentials] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        platform: Optional[str] = None,
        stop_timeout: int = DEFAULT_STOP_TIMEOUT,
    ):
        """Initialize client settings; call :meth:`connect` before use."""
        self.credentials = credentials
        self.base_url = base_url
        self.timeout = timeout
        self.stop_timeout = stop_timeout
        self._platform = platform
        self.docker: Optional[docker.DockerClient] = None

    @property
    def platform(self) -> Optional[str]:
        """Platform used for pulls, e.g. ``linux/amd64``."""
        return self._platform

    async def connect(self) -> "DockerClient":
        """Connect to the Docker daemon and detect its platform."""
        kwargs: Dict[str, Any] = {}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        try:
            if self.base_url:
                self.docker = await asyncio.to_thread(docker.DockerClient, base_url=self.base_url, **kwargs)
            else:
                self.docker = await asyncio.to_thread(docker.from_env, **kwargs)
            info = await asyncio.to_thread(self.docker.info)
        except (DockerException, requests.exceptions.RequestException) as e:
            if shutil.which("docker") is None:
                raise DockerNotInstalledError() from e
            raise DockerConnectionError(str(e)) from e

        if not self._platform:
            os_type = info.get("OSType") or "linux"
            arch = info.get("Architecture") or "amd64"
            self._platform = f"{os_type}/{ARCH_ALIASES.get(arch, arch)}"
        logger.debug(f"Connected to Docker daemon ({self._platform})")
        return self

    async def close(self):
        """Close the underlying HTTP session."""
        if self.docker:
            await asyncio.to_thread(self.docker.close)
            self.docker = None

    @property
    def _sdk(self) -> docker.DockerClient:
        if self.docker is None:
            raise DockerConnectionError("Client is not connected")
        return self.docker

    async def _call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a blocking SDK call, mapping transport failures.

        ``APIError`` means the daemon answered, so it is left for the caller
        to report with its own context. Any other SDK or transport failure,
        such as a read timeout, becomes :class:`DockerConnectionError`.
        """
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except APIError:
            raise
        except (DockerException, requests.exceptions.RequestException) as e:
            raise DockerConnectionError(str(e) or type(e).__name__) from e

    async def is_alive(self) -> bool:
        """Check whether the daemon responds."""
        if self.docker is None:
            return False
        try:
            return bool(await asyncio.to_thread(self.docker.ping))
        except (DockerException, requests.exceptions.RequestException) as e:
            logger.debug(f"Docker ping failed: {e}")
            return False

    # Images

    async def list_images(self) -> List[str]:
        """List the tags of all local images."""
        try:
            images = await self._call(self._sdk.images.list, all=True)
        except APIError as e:
            raise ImageError("*", f"Failed to list images: {e}") from e
        return [tag for image in images for tag in image.tags]

    async def image_exists(self, image_reference: str) -> bool:
        """Check whether an image is available locally.

        Matches either the full reference or its last path component, so a
        registry URI also matches a retagged short name. An untagged
        reference matches its ``latest`` tag.
        """
        reference = normalize_reference(image_reference)
        short_tag = _short_tag(reference)
        try:
            tags = await self.list_images()
        except ImageError as e:
            raise ImageError(image_reference, e.message) from e
        for tag in tags:
            if tag == reference or tag == short_tag:
                return True
        return False

    async def pull_image(self, image_reference: str) -> None:
        """Pull an image using the configured platform and credentials."""
        auth_config = self.credentials.to_auth_config() if self.credentials else None
        logger.info(f"Pulling image {image_reference}")

        def _pull():
            stream = self._sdk.api.pull(
                image_reference,
                stream=True,
                decode=True,
                platform=self._platform,
                auth_config=auth_config,
            )
            for event in stream:
                if "error" in event:
                    raise ImageError(image_reference, f"Failed to pull image: {event['error']}")
                logger.debug(
                    f"[{event.get('id', '')}] {event.get('status', '')} {event.get('progress', '')}".rstrip()
                )

        try:
            await self._call(_pull)
        except APIError as e:
            raise ImageError(image_reference, f"Failed to pull image: {e}") from e
        logger.info(f"Image {image_reference} pulled successfully")

    async def remove_image(self, image_reference: str) -> None:
        """Force-remove a local image."""
        try:
            await self._call(self._sdk.images.remove, image=image_reference, force=True)
        except APIError as e:
            raise ImageError(image_reference, f"Failed to remove image: {e}") from e
        logger.info(f"Removed image {image_reference}")

    # Containers

    async def list_containers(self) -> List[str]:
        """List the names of all containers, running or not."""
        try:
            containers = await self._call(self._sdk.containers.list, all=True)
        except APIError as e:
            raise ContainerError("*", f"Failed to list containers: {e}") from e
        return [container.name for container in containers]

    async def _get_container(self, name: str):
        try:
            return await self._call(self._sdk.containers.get, name)
        except NotFound:
            return None
        except APIError as e:
            raise ContainerError(name, f"Failed to inspect container: {e}") from e

    async def container_exists(self, name: str) -> bool:
        """Check whether a container with this name exists."""
        return await self._get_container(name) is not None

    async def container_running(self, name: str) -> bool:
        """Check whether the named container is running."""
        container = await self._get_container(name)
        return container is not None and container.status == "running"

    async def create_container(
        self,
        image_reference: str,
        name: str,
        port_mappings: Sequence[Tuple[int, int]] = (),
        env: Optional[Dict[str, str]] = None,
        mounts: Sequence[MountSpec] = (),
    ) -> str:
        """Create (but do not start) a container and return its ID."""
        if not await self.image_exists(image_reference):
            raise ContainerError(name, f"Cannot build container: image '{image_reference}' not found")

        logger.info(f"Creating container {name} from {image_reference}")
        try:
            container = await self._call(
                self._sdk.containers.create,
                image_reference,
                name=name,
                ports=build_port_bindings(port_mappings),
                environment=dict(env or {}),
                mounts=build_mounts(mounts),
            )
        except APIError as e:
            raise ContainerError(
                name, f"Failed to create container from image '{image_reference}': {e}"
            ) from e
        return container.id

    async def start_container(self, name: str) -> None:
        """Start an existing container."""
        container = await self._get_container(name)
        if container is None:
            raise ContainerError(name, "Failed to start container: no such container")
        logger.info(f"Starting container {name}")
        try:
            await self._call(container.start)
        except APIError as e:
            raise ContainerError(name, f"Failed to start container: {e}") from e

    async def stop_container(self, name: str, timeout: Optional[int] = None) -> None:
        """Stop a container, forcing it after the grace period."""
        container = await self._get_container(name)
        if container is None:
            raise ContainerError(name, "Failed to stop container: no such container")
        grace = self.stop_timeout if timeout is None else timeout
        logger.info(f"Stopping container {name}")
        try:
            await self._call(container.stop, timeout=grace)
        except APIError as e:
            raise ContainerError(name, f"Failed to stop container: {e}") from e

    async def remove_container(self, name: str) -> None:
        """Force-remove a container, even if it is running."""
        container = await self._get_container(name)
        if container is None:
            raise ContainerError(name, "Failed to remove container: no such container")
        logger.info(f"Removing container {name}")
        try:
            await self._call(container.remove, force=True)
        except APIError as e:
            raise ContainerError(name, f"Failed to remove container: {e}") from e

    async def get_resource_status(self, image_reference: str, name: str) -> ResourceStatus:
        """Report how far an image/container pair has progressed."""
        container = await self._get_container(name)
        if container is not None:
            return ResourceStatus.RUNNING if container.status == "running" else ResourceStatus.BUILT
        if await self.image_exists(image_reference):
            return ResourceStatus.DOWNLOADED
        return ResourceStatus.MISSING
