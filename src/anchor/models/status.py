"""Lifecycle states and status events."""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional


class ContainerState(IntEnum):
    """Tracked lifecycle stage of a container.

    Stages are ordered, so ``ContainerState.BUILT > ContainerState.DOWNLOADED``.
    """
    WAITING = 0
    DOWNLOADED = 1
    BUILT = 2
    RUNNING = 3

    def __str__(self) -> str:
        return self.name.capitalize()


class ResourceStatus(Enum):
    """Observed depth of an image/container pair in the runtime."""
    MISSING = "Missing"
    DOWNLOADED = "Downloaded"
    BUILT = "Built"
    RUNNING = "Running"

    @property
    def is_available(self) -> bool:
        return self is not ResourceStatus.MISSING

    @property
    def is_running(self) -> bool:
        return self is ResourceStatus.RUNNING


class StatusKind(Enum):
    """Kind of progress event emitted by a cluster step."""
    DOWNLOADED = "Downloaded"
    BUILT = "Built"
    RUNNING = "Running"
    READY = "Ready"


@dataclass(frozen=True)
class ClusterStatus:
    """Result of one cluster step."""
    kind: StatusKind
    name: Optional[str] = None

    @classmethod
    def downloaded(cls, name: str) -> "ClusterStatus":
        return cls(StatusKind.DOWNLOADED, name)

    @classmethod
    def built(cls, name: str) -> "ClusterStatus":
        return cls(StatusKind.BUILT, name)

    @classmethod
    def running(cls, name: str) -> "ClusterStatus":
        return cls(StatusKind.RUNNING, name)

    @classmethod
    def ready(cls) -> "ClusterStatus":
        return cls(StatusKind.READY)

    @property
    def is_ready(self) -> bool:
        return self.kind is StatusKind.READY

    def __str__(self) -> str:
        if self.name is None:
            return self.kind.value
        return f"{self.kind.value}({self.name})"
