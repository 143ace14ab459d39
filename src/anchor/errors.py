"""Exception hierarchy for anchor.

Every error carries an ``ErrorKind`` so callers can branch on the category
while still printing the full context with ``str(err)``.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Category of an anchor error."""
    NOT_INSTALLED = "not_installed"
    CONNECTION = "connection"
    CREDENTIALS = "credentials"
    IMAGE = "image"
    CONTAINER = "container"
    MANIFEST_VALIDATION = "manifest_validation"
    MANIFEST_SERIALIZATION = "manifest_serialization"
    MANIFEST_IO = "manifest_io"


class AnchorError(Exception):
    """Base class for all anchor errors."""
    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DockerNotInstalledError(AnchorError):
    """Docker is not installed on this host."""
    kind = ErrorKind.NOT_INSTALLED

    def __init__(self, message: str = "Docker is not installed"):
        super().__init__(message)


class DockerConnectionError(AnchorError):
    """The Docker daemon could not be reached."""
    kind = ErrorKind.CONNECTION

    def __str__(self) -> str:
        return f"Docker connection error: {self.message}"


class CredentialsError(AnchorError):
    """Registry credentials could not be resolved."""
    kind = ErrorKind.CREDENTIALS

    def __str__(self) -> str:
        return f"Registry credentials error: {self.message}"


class ImageError(AnchorError):
    """An operation on an image failed."""
    kind = ErrorKind.IMAGE

    def __init__(self, image: str, message: str, container: Optional[str] = None):
        super().__init__(message)
        self.image = image
        self.container = container

    def __str__(self) -> str:
        if self.container:
            return f"Docker image error for '{self.image}' (container '{self.container}'): {self.message}"
        return f"Docker image error for '{self.image}': {self.message}"


class ContainerError(AnchorError):
    """An operation on a container failed."""
    kind = ErrorKind.CONTAINER

    def __init__(self, container: str, message: str):
        super().__init__(message)
        self.container = container

    def __str__(self) -> str:
        return f"Docker container error for '{self.container}': {self.message}"


class ManifestError(AnchorError):
    """Base class for manifest errors."""


class ManifestValidationError(ManifestError):
    """Manifest violates an invariant (duplicate host port or name)."""
    kind = ErrorKind.MANIFEST_VALIDATION

    def __init__(self, message: str, container: Optional[str] = None, port: Optional[int] = None):
        super().__init__(message)
        self.container = container
        self.port = port

    def __str__(self) -> str:
        return f"Manifest validation error: {self.message}"


class ManifestSerializationError(ManifestError):
    """Manifest JSON could not be parsed or has the wrong shape."""
    kind = ErrorKind.MANIFEST_SERIALIZATION

    def __str__(self) -> str:
        return f"Manifest serialization error: {self.message}"


class ManifestIOError(ManifestError):
    """Manifest file could not be read or written."""
    kind = ErrorKind.MANIFEST_IO

    def __str__(self) -> str:
        return f"Manifest IO error: {self.message}"
