"""
Value types returned by the storage client.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class Session:
    """
    An authenticated session.

    Produced by ``StorageClient.connect()`` and never mutated afterwards, so it
    can be handed to other clients (``StorageClient(session=...)``).
    """

    token: str
    storage_url: str

    def __repr__(self) -> str:
        return f"Session(storage_url={self.storage_url!r})"


@dataclass(frozen=True)
class ObjectInfo:
    """Metadata for a single object, as reported by a HEAD request."""

    container: str
    name: str
    size: Optional[int]
    last_modified: Optional[str]
    etag: Optional[str]
    content_type: Optional[str]


@dataclass(frozen=True)
class UsageStats:
    """Account or container usage snapshot."""

    bytes_used: Optional[int]
    object_count: Optional[int]
    container_count: Optional[int] = None


@runtime_checkable
class Sink(Protocol):
    """Anything that accepts incremental byte writes (binary files, BytesIO, sockets)."""

    def write(self, data: bytes):
        ...
