import logging

from .storage import StorageClient, StorageConfig, StorageError

__version__ = "0.5.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = ["StorageClient", "StorageConfig", "StorageError", "__version__"]
