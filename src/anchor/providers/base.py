"""Base provider interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from anchor.models.container import ContainerSpec


class ProviderStatus(Enum):
    """Provider resource status."""
    PRESENT = "present"
    ABSENT = "absent"


class BaseProvider(ABC):
    """Base provider interface that all providers must implement.

    Providers operate on a named manifest entry. ``present`` is idempotent
    and reports whether it had to touch the runtime.
    """

    @abstractmethod
    async def initialize(self, client: Any, registry: Any) -> None:
        """Initialize the provider with a runtime client."""
        pass

    @abstractmethod
    async def status(self, name: str, spec: ContainerSpec) -> ProviderStatus:
        """Check the current status of a resource."""
        pass

    @abstractmethod
    async def present(self, name: str, spec: ContainerSpec) -> bool:
        """Ensure the resource is present."""
        pass
