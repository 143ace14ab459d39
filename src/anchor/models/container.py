"""Container specification models."""

from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from anchor.models.status import ContainerState


Port = Annotated[int, Field(ge=0, le=65535)]


class Command(str, Enum):
    """How far a container should be taken through its lifecycle."""
    IGNORE = "Ignore"
    DOWNLOAD = "Download"
    BUILD = "Build"
    RUN = "Run"

    @property
    def target_state(self) -> Optional[ContainerState]:
        """Lifecycle state at which progression stops, None for Ignore."""
        return _TARGET_STATES[self]

    def __str__(self) -> str:
        return self.value


_TARGET_STATES = {
    Command.IGNORE: None,
    Command.DOWNLOAD: ContainerState.DOWNLOADED,
    Command.BUILD: ContainerState.BUILT,
    Command.RUN: ContainerState.RUNNING,
}


class MountSpec(BaseModel):
    """Bind mount or (possibly anonymous) volume attached to a container."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["bind", "volume"] = Field(default="volume")
    source: Optional[str] = Field(None, description="Host path or volume name")
    target: str = Field(..., description="Path inside the container")
    read_only: bool = Field(default=False)

    @model_validator(mode="after")
    def check_source(self):
        """Bind mounts need a host path."""
        if self.type == "bind" and not self.source:
            raise ValueError("bind mount requires a source path")
        return self

    def __str__(self) -> str:
        mode = "ro" if self.read_only else "rw"
        if self.source:
            return f"{self.source}:{self.target}:{mode}"
        return f"{self.target}:{mode}"


class ContainerSpec(BaseModel):
    """One manifest entry."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    uri: str = Field(..., min_length=1, description="Image reference")
    port_mappings: List[Tuple[Port, Port]] = Field(
        default_factory=list, description="(container_port, host_port) pairs"
    )
    command: Command = Field(..., description="Target lifecycle depth")
    env: Dict[str, str] = Field(default_factory=dict)
    mounts: List[MountSpec] = Field(default_factory=list)

    @property
    def host_ports(self) -> List[int]:
        """Host side of every port mapping, in declaration order."""
        return [host_port for _, host_port in self.port_mappings]
