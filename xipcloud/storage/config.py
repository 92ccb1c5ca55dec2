"""
Client configuration.
"""

import os
from dataclasses import dataclass, replace

from .errors import InvalidParameterError

DEFAULT_AUTH_URL = "https://auth.storage.santa-clara.internapcloud.net:443/"
DEFAULT_API_VERSION = "v1.0"
DEFAULT_TIMEOUT = 30.0
DEFAULT_CHUNK_SIZE = 64 * 1024  # 64KB


@dataclass
class StorageConfig:
    """Configuration for StorageClient."""

    username: str = None
    password: str = None
    auth_url: str = DEFAULT_AUTH_URL
    api_version: str = DEFAULT_API_VERSION
    timeout: float = DEFAULT_TIMEOUT  # seconds, None disables
    debug: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE

    @classmethod
    def from_env(cls, **overrides) -> "StorageConfig":
        """
        Build a config from ``XIPCLOUD_*`` environment variables.

        Never called implicitly; pass the result as ``StorageClient(config=...)``.
        Keyword arguments that are not None take precedence over the environment.

        Raises:
            InvalidParameterError: If ``XIPCLOUD_TIMEOUT`` is not a number
        """
        timeout = os.getenv("XIPCLOUD_TIMEOUT")
        try:
            timeout = float(timeout) if timeout else DEFAULT_TIMEOUT
        except ValueError as exc:
            raise InvalidParameterError(f"XIPCLOUD_TIMEOUT is not a number: {timeout!r}") from exc

        config = cls(
            username=os.getenv("XIPCLOUD_USERNAME"),
            password=os.getenv("XIPCLOUD_PASSWORD"),
            auth_url=os.getenv("XIPCLOUD_AUTH_URL", DEFAULT_AUTH_URL),
            api_version=os.getenv("XIPCLOUD_API_VERSION", DEFAULT_API_VERSION),
            timeout=timeout,
            debug=os.getenv("XIPCLOUD_DEBUG", "").lower() in ("1", "true", "yes", "on"),
        )
        return replace(config, **{key: value for key, value in overrides.items() if value is not None})
