"""Pydantic models for configuration and validation."""

from anchor.models.config import AnchorConfig, AgentConfig, DockerConfig
from anchor.models.container import Command, ContainerSpec, MountSpec
from anchor.models.manifest import Manifest, ManifestFile
from anchor.models.status import ClusterStatus, ContainerState, ResourceStatus, StatusKind

__all__ = [
    "AnchorConfig",
    "AgentConfig",
    "DockerConfig",
    "Command",
    "ContainerSpec",
    "MountSpec",
    "Manifest",
    "ManifestFile",
    "ClusterStatus",
    "ContainerState",
    "ResourceStatus",
    "StatusKind",
]
