"""
Error types for storage operations.
"""


class StorageError(Exception):
    """Base exception for all storage errors."""

    def __init__(self, message: str, code: str = None, container: str = None, name: str = None):
        self.message = message
        self.code = code or "StorageError"
        self.container = container
        self.name = name
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"[{self.code}] {self.message}"
        if self.container and self.name:
            msg += f" (container={self.container}, object={self.name})"
        elif self.container:
            msg += f" (container={self.container})"
        return msg


class NotConnectedError(StorageError):
    """Exception raised when an operation is attempted before connect()."""

    def __init__(self, message: str = "Client is not connected. Call connect() first."):
        super().__init__(message, code="NotConnected")


class InvalidParameterError(StorageError):
    """Exception raised for invalid parameters."""

    def __init__(self, message: str):
        super().__init__(message, code="InvalidParameter")


class RequestFailedError(StorageError):
    """Exception raised when the service answers with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int = None,
        code: str = None,
        container: str = None,
        name: str = None,
    ):
        self.status_code = status_code
        super().__init__(message, code=code or "RequestFailed", container=container, name=name)


class NotFoundError(RequestFailedError):
    """Exception raised when a container or object is not found."""

    def __init__(self, message: str, container: str = None, name: str = None):
        super().__init__(message, status_code=404, code="NotFound", container=container, name=name)


class PermissionError(RequestFailedError):
    """Exception raised when access is denied."""

    def __init__(self, message: str, status_code: int = 403, container: str = None, name: str = None):
        super().__init__(
            message, status_code=status_code, code="PermissionDenied", container=container, name=name
        )


class AuthenticationError(RequestFailedError):
    """Exception raised when the auth endpoint rejects the credentials."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message, status_code=status_code, code="AuthenticationFailed")


class PartialMoveError(RequestFailedError):
    """
    Exception raised when a move copied the object but could not delete the source.

    The copy at the destination is left in place and the source still exists.
    """

    def __init__(self, message: str, container: str, name: str, destination: str, status_code: int = None):
        self.destination = destination
        super().__init__(
            message, status_code=status_code, code="PartialMove", container=container, name=name
        )


class NetworkError(StorageError):
    """Exception raised for network-related errors."""

    def __init__(self, message: str):
        super().__init__(message, code="NetworkError")


class SinkWriteError(StorageError):
    """Exception raised when a download sink rejects a chunk."""

    def __init__(self, message: str, container: str = None, name: str = None):
        super().__init__(message, code="SinkWriteFailed", container=container, name=name)
