"""Manifest of named container specifications."""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from anchor.errors import ManifestIOError, ManifestSerializationError, ManifestValidationError
from anchor.models.container import Command, ContainerSpec


logger = logging.getLogger(__name__)


class ManifestFile(BaseModel):
    """On-disk shape of a manifest."""
    model_config = ConfigDict(extra="forbid")

    containers: Dict[str, ContainerSpec] = Field(default_factory=dict)


def validate_containers(containers: Mapping[str, ContainerSpec]) -> None:
    """Check that no host port is bound twice by non-ignored containers."""
    seen_ports: Dict[int, str] = {}
    for name, spec in containers.items():
        if spec.command is Command.IGNORE:
            continue
        for host_port in spec.host_ports:
            if host_port in seen_ports:
                raise ManifestValidationError(
                    f"Host port {host_port} for container '{name}' is used multiple times"
                    f" (already bound by '{seen_ports[host_port]}')",
                    container=name,
                    port=host_port,
                )
            seen_ports[host_port] = name


class Manifest:
    """Validated collection of container specifications keyed by name.

    A ``Manifest`` is never observable in an invalid state: construction,
    :meth:`add` and :meth:`load` all validate before anything is committed.
    """

    def __init__(self, containers: Optional[Mapping[str, ContainerSpec]] = None):
        candidate = dict(containers or {})
        validate_containers(candidate)
        self._containers: Dict[str, ContainerSpec] = candidate

    @classmethod
    def empty(cls) -> "Manifest":
        """Create a manifest with no containers."""
        return cls()

    @property
    def containers(self) -> Mapping[str, ContainerSpec]:
        """Read-only view of the container specifications."""
        return MappingProxyType(self._containers)

    def __getitem__(self, name: str) -> ContainerSpec:
        return self._containers[name]

    def __contains__(self, name: object) -> bool:
        return name in self._containers

    def __iter__(self) -> Iterator[str]:
        return iter(self._containers)

    def __len__(self) -> int:
        return len(self._containers)

    def items(self) -> Iterator[Tuple[str, ContainerSpec]]:
        return iter(self._containers.items())

    def add(self, name: str, spec: ContainerSpec) -> None:
        """Add a container, rejecting duplicate names and host ports.

        The manifest is left unchanged when the addition is rejected.
        """
        if name in self._containers:
            raise ManifestValidationError(
                f"Container with ID '{name}' already exists", container=name
            )
        candidate = dict(self._containers)
        candidate[name] = spec
        validate_containers(candidate)
        self._containers = candidate
        logger.debug(f"Added container {name} to manifest")

    def to_json(self) -> str:
        """Serialize to a pretty-printed JSON string."""
        data = ManifestFile(containers=self._containers).model_dump(mode="json")
        return json.dumps(data, indent=2)

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "Manifest":
        """Parse and validate a manifest from a JSON string."""
        try:
            parsed = ManifestFile.model_validate_json(text)
        except ValidationError as e:
            raise ManifestSerializationError(str(e)) from e
        return cls(parsed.containers)

    def save(self, path: Union[str, Path]) -> None:
        """Write the manifest to ``path``, overwriting any existing file."""
        path = Path(path)
        try:
            path.write_text(self.to_json())
        except OSError as e:
            raise ManifestIOError(f"Failed to write {path}: {e}") from e
        logger.debug(f"Saved manifest to {path}")

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Manifest":
        """Read, parse and validate a manifest file."""
        path = Path(path)
        try:
            content = path.read_text()
        except OSError as e:
            raise ManifestIOError(f"Failed to read {path}: {e}") from e
        manifest = cls.from_json(content)
        logger.debug(f"Loaded manifest with {len(manifest)} containers from {path}")
        return manifest

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Manifest):
            return NotImplemented
        return self._containers == other._containers

    def __repr__(self) -> str:
        return f"Manifest(containers={self._containers!r})"
