"""Configuration management for the agent."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from anchor.models.config import AnchorConfig
from anchor.models.manifest import Manifest
from anchor.utils.credentials import get_registry_credentials
from anchor.utils.docker import DockerClient


logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ANCHOR_CONFIG"
DEFAULT_CONFIG_FILE = "anchor.yaml"


def default_config_path() -> Path:
    """Config file location, honouring ``ANCHOR_CONFIG``."""
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE))


class ConfigManager:
    """Loads the agent configuration and the manifest it points to."""

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        manifest_path: Optional[Union[str, Path]] = None,
    ):
        """Initialize configuration manager.

        ``manifest_path`` overrides the manifest named in the config file.
        """
        self.config_path = Path(config_path) if config_path else default_config_path()
        self._manifest_override = Path(manifest_path) if manifest_path else None
        self.yaml = YAML(typ="safe")
        self.config: Optional[AnchorConfig] = None

    async def load(self) -> AnchorConfig:
        """Load the configuration file, falling back to defaults."""
        if not await asyncio.to_thread(self.config_path.exists):
            logger.info(f"No config at {self.config_path}, using defaults")
            self.config = AnchorConfig()
            return self.config

        logger.info(f"Loading configuration from {self.config_path}")
        try:
            data = await self._read_yaml(self.config_path)
            self.config = AnchorConfig(**(data or {}))
        except (ValidationError, YAMLError) as e:
            logger.error(f"Invalid config {self.config_path}: {e}")
            raise
        logger.debug(f"Loaded config: {self.config}")
        return self.config

    async def _read_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse YAML file."""
        content = await asyncio.to_thread(file_path.read_text)
        return self.yaml.load(content)

    @property
    def manifest_path(self) -> Path:
        """Manifest location; relative paths resolve against the config file."""
        if self._manifest_override is not None:
            return self._manifest_override
        path = Path(self._require_config().agent.manifest_path)
        if not path.is_absolute():
            path = self.config_path.parent / path
        return path

    async def load_manifest(self) -> Manifest:
        """Read and validate the configured manifest."""
        return await asyncio.to_thread(Manifest.load, self.manifest_path)

    async def create_client(self) -> DockerClient:
        """Connect a runtime client using the docker settings and env credentials."""
        docker_config = self._require_config().docker
        client = DockerClient(
            credentials=get_registry_credentials(),
            base_url=docker_config.base_url,
            timeout=docker_config.timeout,
            platform=docker_config.platform,
            stop_timeout=docker_config.stop_timeout,
        )
        return await client.connect()

    def _require_config(self) -> AnchorConfig:
        if self.config is None:
            raise RuntimeError("Configuration has not been loaded")
        return self.config
