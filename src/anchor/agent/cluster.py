"""Cluster reconciliation: drive every manifest entry to its target state."""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Union

from anchor.errors import DockerConnectionError
from anchor.models.container import Command, ContainerSpec
from anchor.models.manifest import Manifest
from anchor.models.status import ClusterStatus, ContainerState
from anchor.providers import ProviderRegistry, ProviderStatus, create_provider_registry
from anchor.providers.container import ContainerProvider
from anchor.providers.image import ImageProvider


logger = logging.getLogger(__name__)

StatusCallback = Callable[[ClusterStatus], Union[None, Awaitable[None]]]


class Cluster:
    """Tracks the lifecycle state of each container in a manifest.

    Containers whose command is ``Ignore`` are never tracked. Progress is
    made one action at a time through :meth:`step`, which walks the
    Waiting -> Downloaded -> Built -> Running phases in order. Tracked state
    only changes once the runtime call that justifies it has succeeded.
    """

    def __init__(self, client, manifest: Manifest, registry: ProviderRegistry):
        """Use :meth:`create` instead; it also syncs with the daemon."""
        self.client = client
        self._manifest = manifest
        self._registry = registry
        self._states: Dict[str, ContainerState] = {
            name: ContainerState.WAITING
            for name, spec in manifest.items()
            if spec.command is not Command.IGNORE
        }
        self._lock = asyncio.Lock()

    @classmethod
    async def create(
        cls,
        client,
        manifest: Manifest,
        registry: Optional[ProviderRegistry] = None,
    ) -> "Cluster":
        """Build a cluster for ``manifest`` and sync it with the runtime."""
        if registry is None:
            registry = await create_provider_registry(client)
        cluster = cls(client, manifest, registry)
        await cluster.sync()
        return cluster

    @property
    def manifest(self) -> Manifest:
        return self._manifest

    @property
    def states(self) -> Dict[str, ContainerState]:
        """Copy of the tracked name -> state map."""
        return dict(self._states)

    def state(self, name: str) -> Optional[ContainerState]:
        """Tracked state of ``name``, or None if it is not tracked."""
        return self._states.get(name)

    def is_ready(self) -> bool:
        """Whether every tracked container has reached its target state."""
        return all(
            state >= self._manifest[name].command.target_state
            for name, state in self._states.items()
        )

    @property
    def _images(self) -> ImageProvider:
        return self._registry.get_provider("image")

    @property
    def _containers(self) -> ContainerProvider:
        return self._registry.get_provider("container")

    async def sync(self):
        """Overwrite tracked states with what the runtime reports.

        States may move backward, e.g. after a container was stopped by
        hand. Nothing is committed unless every container was checked.
        """
        async with self._lock:
            await self._sync()

    async def _sync(self):
        if not await self.client.is_alive():
            raise DockerConnectionError("Docker daemon is not responding")

        observed: Dict[str, ContainerState] = {}
        for name in self._states:
            observed[name] = await self._observe(name, self._manifest[name])

        for name, state in observed.items():
            if self._states[name] != state:
                logger.info(f"Container {name} synced: {self._states[name]} -> {state}")
        self._states.update(observed)

    async def _observe(self, name: str, spec: ContainerSpec) -> ContainerState:
        if await self._containers.is_running(name, spec):
            return ContainerState.RUNNING
        if await self._containers.status(name, spec) == ProviderStatus.PRESENT:
            return ContainerState.BUILT
        if await self._images.status(name, spec) == ProviderStatus.PRESENT:
            return ContainerState.DOWNLOADED
        return ContainerState.WAITING

    async def step(self) -> ClusterStatus:
        """Perform at most one corrective action and report it."""
        async with self._lock:
            return await self._step()

    async def _step(self) -> ClusterStatus:
        for name, state in self._states.items():
            if state == ContainerState.WAITING:
                spec = self._manifest[name]
                if await self._images.present(name, spec):
                    logger.info(f"Downloaded image {spec.uri} for {name}")
                else:
                    logger.debug(f"Image {spec.uri} for {name} already present")
                self._states[name] = ContainerState.DOWNLOADED
                return ClusterStatus.downloaded(name)

        for name, state in self._states.items():
            spec = self._manifest[name]
            if state == ContainerState.DOWNLOADED and spec.command in (Command.BUILD, Command.RUN):
                if await self._containers.present(name, spec):
                    logger.info(f"Built container {name}")
                else:
                    logger.debug(f"Container {name} already built")
                self._states[name] = ContainerState.BUILT
                return ClusterStatus.built(name)

        for name, state in self._states.items():
            spec = self._manifest[name]
            if state == ContainerState.BUILT and spec.command is Command.RUN:
                if await self._containers.start(name, spec):
                    logger.info(f"Started container {name}")
                else:
                    logger.debug(f"Container {name} already running")
                self._states[name] = ContainerState.RUNNING
                return ClusterStatus.running(name)

        return ClusterStatus.ready()

    async def run(self, callback: Optional[StatusCallback] = None):
        """Step until ready, reporting every action to ``callback``.

        ``callback`` may be a plain function or a coroutine function.
        """
        async with self._lock:
            while True:
                status = await self._step()
                if status.is_ready:
                    return
                if callback is not None:
                    result = callback(status)
                    if asyncio.iscoroutine(result):
                        await result

    async def stop(self):
        """Stop every running container, leaving it built."""
        async with self._lock:
            await self._sync()
            for name, state in self._states.items():
                if state == ContainerState.RUNNING:
                    await self._containers.stop(name, self._manifest[name])
                    logger.info(f"Stopped container {name}")
                    self._states[name] = ContainerState.BUILT

    def __str__(self) -> str:
        lines = [f"Cluster with {len(self._states)} containers:"]
        for name, state in self._states.items():
            spec = self._manifest[name]
            lines.append(f"  {name}: {state} (target: {spec.command.target_state}, image: {spec.uri})")
        return "\n".join(lines)
