"""Shared fixtures."""

from typing import Dict, List, Optional, Set, Tuple

import pytest

from anchor.errors import ContainerError, DockerConnectionError, ImageError
from anchor.models.container import Command, ContainerSpec
from anchor.models.manifest import Manifest
from anchor.models.status import ResourceStatus


class FakeDockerClient:
    """In-memory stand-in for DockerClient that records every mutation."""

    def __init__(self):
        self.alive = True
        self.images: Set[str] = set()
        # name -> (image, running)
        self.containers: Dict[str, Tuple[str, bool]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.failures: Dict[str, Exception] = {}
        self.closed = False

    def _maybe_fail(self, op: str):
        if op in self.failures:
            raise self.failures[op]

    async def is_alive(self) -> bool:
        return self.alive

    async def close(self):
        self.closed = True

    async def list_images(self) -> List[str]:
        self._maybe_fail("list_images")
        return sorted(self.images)

    async def image_exists(self, image_reference: str) -> bool:
        self._maybe_fail("image_exists")
        short = image_reference.rsplit("/", 1)[-1]
        return image_reference in self.images or short in self.images

    async def pull_image(self, image_reference: str) -> None:
        self._maybe_fail("pull_image")
        self.calls.append(("pull", image_reference))
        self.images.add(image_reference)

    async def remove_image(self, image_reference: str) -> None:
        self._maybe_fail("remove_image")
        self.calls.append(("remove_image", image_reference))
        self.images.discard(image_reference)

    async def list_containers(self) -> List[str]:
        return sorted(self.containers)

    async def container_exists(self, name: str) -> bool:
        self._maybe_fail("container_exists")
        return name in self.containers

    async def container_running(self, name: str) -> bool:
        self._maybe_fail("container_running")
        return name in self.containers and self.containers[name][1]

    async def create_container(self, image_reference, name, port_mappings=(), env=None, mounts=()) -> str:
        self._maybe_fail("create_container")
        if not await self.image_exists(image_reference):
            raise ContainerError(name, f"Cannot build container: image '{image_reference}' not found")
        self.calls.append(("create", name))
        self.containers[name] = (image_reference, False)
        return f"id-{name}"

    async def start_container(self, name: str) -> None:
        self._maybe_fail("start_container")
        self.calls.append(("start", name))
        image, _ = self.containers[name]
        self.containers[name] = (image, True)

    async def stop_container(self, name: str, timeout: Optional[int] = None) -> None:
        self._maybe_fail("stop_container")
        self.calls.append(("stop", name))
        image, _ = self.containers[name]
        self.containers[name] = (image, False)

    async def remove_container(self, name: str) -> None:
        self._maybe_fail("remove_container")
        self.calls.append(("remove_container", name))
        del self.containers[name]

    async def get_resource_status(self, image_reference: str, name: str) -> ResourceStatus:
        if name in self.containers:
            return ResourceStatus.RUNNING if self.containers[name][1] else ResourceStatus.BUILT
        if await self.image_exists(image_reference):
            return ResourceStatus.DOWNLOADED
        return ResourceStatus.MISSING

    # Out-of-band helpers for tests

    def add_image(self, image_reference: str):
        self.images.add(image_reference)

    def add_container(self, name: str, image_reference: str, running: bool = False):
        self.images.add(image_reference)
        self.containers[name] = (image_reference, running)

    def kill(self, name: str):
        image, _ = self.containers[name]
        self.containers[name] = (image, False)


@pytest.fixture
def fake_client():
    """A fresh daemon with no images or containers."""
    return FakeDockerClient()


@pytest.fixture
def web_spec():
    return ContainerSpec(uri="nginx:latest", port_mappings=[(80, 8080)], command=Command.RUN)


@pytest.fixture
def web_manifest(web_spec):
    return Manifest({"web": web_spec})


@pytest.fixture
def connection_error():
    return DockerConnectionError("daemon went away")


@pytest.fixture
def image_error():
    return ImageError("nginx:latest", "manifest unknown")
