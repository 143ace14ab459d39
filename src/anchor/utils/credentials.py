"""Registry credential resolution."""

import base64
import binascii
import logging
import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from anchor.errors import CredentialsError


logger = logging.getLogger(__name__)

TOKEN_ENV = "ANCHOR_REGISTRY_TOKEN"
USERNAME_ENV = "ANCHOR_REGISTRY_USERNAME"
PASSWORD_ENV = "ANCHOR_REGISTRY_PASSWORD"
ADDRESS_ENV = "ANCHOR_REGISTRY_ADDRESS"


@dataclass(frozen=True)
class RegistryCredentials:
    """Username/password pair for a container registry."""
    username: str
    password: str
    registry: Optional[str] = None

    def to_auth_config(self) -> Dict[str, str]:
        """Auth config in the form the Docker API expects."""
        auth = {"username": self.username, "password": self.password}
        if self.registry:
            auth["serveraddress"] = self.registry
        return auth

    def __repr__(self) -> str:
        return f"RegistryCredentials(username={self.username!r}, password='***', registry={self.registry!r})"


def decode_token(token: str, registry: Optional[str] = None) -> RegistryCredentials:
    """Decode a base64 ``username:password`` token.

    Registries such as ECR hand out their authorization token in this form.
    """
    try:
        decoded = base64.b64decode(token.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise CredentialsError(f"Token is not valid base64: {e}") from e

    username, sep, password = decoded.partition(":")
    if not sep:
        raise CredentialsError("No password in token")
    if not username:
        raise CredentialsError("No username in token")
    return RegistryCredentials(username=username, password=password, registry=registry)


def get_registry_credentials(environ: Optional[Mapping[str, str]] = None) -> Optional[RegistryCredentials]:
    """Resolve registry credentials from the environment.

    Returns None when no credentials are configured, in which case pulls
    are anonymous.
    """
    env = os.environ if environ is None else environ
    registry = env.get(ADDRESS_ENV) or None

    token = env.get(TOKEN_ENV)
    if token:
        logger.debug("Using registry credentials from token")
        return decode_token(token, registry)

    username = env.get(USERNAME_ENV)
    password = env.get(PASSWORD_ENV)
    if username or password:
        if not (username and password):
            raise CredentialsError(f"Both {USERNAME_ENV} and {PASSWORD_ENV} must be set")
        logger.debug(f"Using registry credentials for user {username}")
        return RegistryCredentials(username=username, password=password, registry=registry)

    return None
