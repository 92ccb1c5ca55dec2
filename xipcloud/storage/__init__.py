"""
Storage client module for containers and objects in XIPCloud storage.

This module provides a Python client for Swift-compatible (OpenStack) object
storage, supporting basic object operations and streaming for large files.
"""

from .client import StorageClient
from .config import StorageConfig
from .errors import (
    AuthenticationError,
    InvalidParameterError,
    NetworkError,
    NotConnectedError,
    NotFoundError,
    PartialMoveError,
    PermissionError as StoragePermissionError,
    RequestFailedError,
    SinkWriteError,
    StorageError,
)
from .models import ObjectInfo, Session, Sink, UsageStats

__all__ = [
    "StorageClient",
    "StorageConfig",
    "Session",
    "ObjectInfo",
    "UsageStats",
    "Sink",
    "StorageError",
    "NotConnectedError",
    "InvalidParameterError",
    "RequestFailedError",
    "NotFoundError",
    "StoragePermissionError",
    "AuthenticationError",
    "PartialMoveError",
    "NetworkError",
    "SinkWriteError",
]
