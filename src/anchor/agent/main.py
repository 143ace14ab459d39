"""Main agent implementation."""

import asyncio
import logging
import signal
from pathlib import Path
from typing import List, Optional

from watchfiles import awatch

from anchor.agent.cluster import Cluster
from anchor.agent.config import ConfigManager
from anchor.errors import AnchorError
from anchor.models.status import ClusterStatus
from anchor.providers import ProviderRegistry, create_provider_registry
from anchor.utils.docker import DockerClient
from anchor.utils.logging import setup_logging


logger = logging.getLogger(__name__)


class AnchorAgent:
    """Keeps the cluster converged on the manifest."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize the agent."""
        self.config_manager = ConfigManager(config_path)
        self.client: Optional[DockerClient] = None
        self.registry: Optional[ProviderRegistry] = None
        self.cluster: Optional[Cluster] = None
        self.shutdown_event = asyncio.Event()
        self._reconcile_lock = asyncio.Lock()
        self._tasks: List[asyncio.Task] = []

    async def initialize(self):
        """Initialize agent components."""
        config = await self.config_manager.load()
        setup_logging(config.agent.log_level)

        self.client = await self.config_manager.create_client()
        self.registry = await create_provider_registry(self.client)

        manifest = await self.config_manager.load_manifest()
        self.cluster = await Cluster.create(self.client, manifest, self.registry)

        logger.info(f"Agent initialized with {len(self.cluster.states)} tracked containers")

    async def run(self):
        """Run the agent main loop."""
        await self.initialize()

        # Setup signal handlers
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.shutdown)

        try:
            reconcile_task = asyncio.create_task(self._reconciliation_loop())
            self._tasks.append(reconcile_task)

            watch_task = asyncio.create_task(self._manifest_watch_loop())
            self._tasks.append(watch_task)

            logger.info("Agent started, waiting for shutdown signal")
            await self.shutdown_event.wait()

        finally:
            await self._cleanup()

    async def reconcile(self):
        """Sync with the daemon, then step the cluster until it is ready."""
        async with self._reconcile_lock:
            await self.cluster.sync()
            await self.cluster.run(self._report)

    @staticmethod
    def _report(status: ClusterStatus):
        logger.info(f"Cluster progress: {status}")

    async def _reconciliation_loop(self):
        """Run periodic reconciliation."""
        interval = self.config_manager.config.agent.reconciliation_interval

        while not self.shutdown_event.is_set():
            try:
                logger.debug("Starting reconciliation cycle")
                await self.reconcile()
                logger.debug("Reconciliation cycle completed")
            except AnchorError as e:
                logger.error(f"Reconciliation error: {e}")
            except Exception as e:
                logger.error(f"Unexpected reconciliation error: {e}", exc_info=True)

            try:
                await asyncio.wait_for(
                    self.shutdown_event.wait(),
                    timeout=interval
                )
            except asyncio.TimeoutError:
                continue

    async def reload_manifest(self):
        """Rebuild the cluster from the manifest file."""
        manifest = await self.config_manager.load_manifest()
        async with self._reconcile_lock:
            self.cluster = await Cluster.create(self.client, manifest, self.registry)
        logger.info(f"Manifest reloaded with {len(manifest)} containers")

    async def _manifest_watch_loop(self):
        """Watch the manifest file and reconcile when it changes."""
        manifest_path = self.config_manager.manifest_path.resolve()
        logger.info(f"Starting manifest watcher on {manifest_path}")

        def _is_manifest(change, path: str) -> bool:
            return Path(path).resolve() == manifest_path

        try:
            async for changes in awatch(
                manifest_path.parent,
                watch_filter=_is_manifest,
                stop_event=self.shutdown_event,
            ):
                logger.info("Manifest changed, reloading")
                try:
                    await self.reload_manifest()
                    self._schedule_reconcile()
                except AnchorError as e:
                    logger.error(f"Failed to reload manifest, keeping previous one: {e}")
        except Exception as e:
            # Handle cancellation gracefully
            if not self.shutdown_event.is_set():
                logger.error(f"Manifest watch error: {e}", exc_info=True)

    def _schedule_reconcile(self) -> asyncio.Task:
        """Reconcile now in the background; the task is dropped once done."""
        task = asyncio.create_task(self._safe_reconcile())
        self._tasks.append(task)
        task.add_done_callback(self._tasks.remove)
        return task

    async def _safe_reconcile(self):
        try:
            await self.reconcile()
        except AnchorError as e:
            logger.error(f"Reconciliation error: {e}")
        except Exception as e:
            logger.error(f"Unexpected reconciliation error: {e}", exc_info=True)

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self.shutdown_event.set()

    async def _cleanup(self):
        """Clean up resources."""
        logger.info("Cleaning up agent resources")

        # Cancel all tasks
        for task in self._tasks:
            if not task.done():
                task.cancel()

        # Wait for tasks to complete
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self.cluster and self.config_manager.config.agent.stop_on_exit:
            try:
                await self.cluster.stop()
            except AnchorError as e:
                logger.error(f"Failed to stop containers on exit: {e}")

        if self.client:
            await self.client.close()

        logger.info("Agent cleanup completed")


async def run_agent(config_path: Optional[Path] = None):
    """Run the agent."""
    agent = AnchorAgent(config_path=config_path)
    await agent.run()
