"""
Anchor - declarative orchestration for a small set of Docker containers.

A manifest names each container, its image, port mappings and how far it
should be taken (download, build or run); the cluster drives every container
there one step at a time.
"""

__version__ = "0.1.0"

# Re-export key components for easier access
from anchor.errors import AnchorError
from anchor.models.container import Command, ContainerSpec
from anchor.models.manifest import Manifest
from anchor.models.status import ClusterStatus, ContainerState

__all__ = [
    "AnchorError",
    "ClusterStatus",
    "Command",
    "ContainerSpec",
    "ContainerState",
    "Manifest",
]
