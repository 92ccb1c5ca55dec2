"""
Storage client for interacting with a Swift-style object storage service.
"""

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, List, Optional, Union
from urllib.parse import quote

import httpx

from .config import DEFAULT_API_VERSION, DEFAULT_AUTH_URL, DEFAULT_TIMEOUT, StorageConfig
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

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-STORAGE-TOKEN"
DEFAULT_CONTENT_TYPE = "text/plain"


def _quote(value: str) -> str:
    return quote(value, safe="/")


def _int_header(headers: httpx.Headers, key: str) -> Optional[int]:
    value = headers.get(key)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _iter_file(fh: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    while True:
        chunk = fh.read(chunk_size)
        if not chunk:
            return
        yield chunk


class StorageClient:
    """
    Client for containers and objects in XIPCloud (Swift-compatible) storage.

    Every operation except ``connect()`` needs an authenticated
    :class:`Session`. Failures raise a :class:`StorageError` subclass; nothing
    is retried.

    Example:
        ```python
        from xipcloud.storage import StorageClient

        with StorageClient(username="myuser", password="mykey") as client:
            client.connect()

            client.create_container("backups")
            client.put_file("backups", "db.tar.gz", "/tmp/db.tar.gz", "application/gzip")

            for name in client.list_entries("backups"):
                print(name, client.stat_object("backups", name).size)

            client.move_object("backups", "db.tar.gz", "archive", "db-old.tar.gz")
        ```
    """

    def __init__(
        self,
        username: str = None,
        password: str = None,
        auth_url: str = None,
        api_version: str = None,
        timeout: float = None,
        debug: bool = None,
        config: StorageConfig = None,
        session: Session = None,
        transport: httpx.BaseTransport = None,
    ):
        """
        Initialize storage client.

        Args:
            username: Account user name (``X-AUTH-USER``)
            password: Account key (``X-AUTH-KEY``)
            auth_url: Authentication endpoint, defaults to the XIPCloud one
            api_version: Appended to ``auth_url`` for the auth request
            timeout: Per-request timeout in seconds
            debug: Log a trace line for every operation
            config: Full configuration; when omitted it is built from the
                    arguments above. Environment variables are only read when
                    asked for, with ``config=StorageConfig.from_env()``
            session: An existing session, to skip ``connect()``
            transport: httpx transport override (mostly for tests)
        """
        if config is None:
            config = StorageConfig(
                username=username,
                password=password,
                auth_url=auth_url or DEFAULT_AUTH_URL,
                api_version=api_version or DEFAULT_API_VERSION,
                timeout=DEFAULT_TIMEOUT if timeout is None else timeout,
                debug=bool(debug),
            )
        self.config = config
        self.session = session
        self._http = httpx.Client(
            timeout=httpx.Timeout(config.timeout),
            transport=transport,
            follow_redirects=False,
        )

    @property
    def connected(self) -> bool:
        return self.session is not None

    @property
    def debug(self) -> bool:
        return self.config.debug

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def connect(self) -> Session:
        """
        Authenticate with the configured username and password.

        On success the new session replaces the current one; on failure the
        client state is left untouched.

        Returns:
            Session: token and storage URL issued by the auth endpoint

        Raises:
            InvalidParameterError: If the username or password is empty (no request is sent)
            AuthenticationError: If the credentials are rejected
            NetworkError: If the auth endpoint cannot be reached
        """
        if not self.config.username or not self.config.password:
            raise InvalidParameterError("Username and password are required to connect")

        request = self._http.build_request(
            "GET",
            f"{self.config.auth_url}{self.config.api_version}",
            headers={"X-AUTH-USER": self.config.username, "X-AUTH-KEY": self.config.password},
        )
        response = self._send(request, "connect", check=False)

        token = response.headers.get("x-storage-token")
        storage_url = response.headers.get("x-storage-url")
        if not response.is_success:
            self._trace("connection failed with HTTP %d", response.status_code)
            raise AuthenticationError(
                f"Authentication failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if not token or not storage_url:
            self._trace("connection failed: token or storage url missing from response")
            raise AuthenticationError(
                "Authentication response is missing x-storage-token or x-storage-url",
                status_code=response.status_code,
            )

        self.session = Session(token=token, storage_url=storage_url)
        self._trace("connected: url [%s]", self.session.storage_url)
        return self.session

    # ------------------------------------------------------------------
    # Listing and metadata
    # ------------------------------------------------------------------

    def list_entries(
        self, container: str = None, limit: int = None, marker: str = None
    ) -> List[str]:
        """
        List containers of the account, or objects of a container.

        Args:
            container: Container to list; the account is listed when omitted
            limit: Maximum number of names to return
            marker: Only return names after this one

        Returns:
            list: Names in the order the service returned them
        """
        session = self._require_session()

        url = self._url(session, container)
        if limit or marker:
            url += "?limit={}&marker={}".format(
                "" if limit is None else limit, quote(marker or "", safe="")
            )

        response = self._request(session, "GET", url, "ls", container)
        entries = [line for line in response.text.split("\n") if line]

        self._trace("ls: success - got [%d] elements", len(entries))
        return entries

    def stat_object(self, container: str, name: str) -> ObjectInfo:
        """
        Get object metadata without downloading content.

        Raises:
            NotFoundError: If the object doesn't exist
            StorageError: If the request fails
        """
        session = self._require_session()
        self._validate_names(container, name)
        return self._stat(session, container, name)

    def object_exists(self, container: str, name: str) -> bool:
        """Check whether an object exists."""
        try:
            self.stat_object(container, name)
        except NotFoundError:
            return False
        return True

    def usage_stats(self, container: str = None) -> UsageStats:
        """
        Get account-level statistics, or container-level ones when a container is given.

        Only account statistics carry ``container_count``.
        """
        session = self._require_session()
        response = self._request(session, "HEAD", self._url(session, container), "du", container)

        headers = response.headers
        if container:
            stats = UsageStats(
                bytes_used=_int_header(headers, "x-container-bytes-used"),
                object_count=_int_header(headers, "x-container-object-count"),
            )
        else:
            stats = UsageStats(
                bytes_used=_int_header(headers, "x-account-bytes-used"),
                object_count=_int_header(headers, "x-account-object-count"),
                container_count=_int_header(headers, "x-account-container-count"),
            )

        self._trace("du: success")
        return stats

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def create_container(self, container: str) -> None:
        """Create a container. Creating an existing container succeeds."""
        session = self._require_session()
        self._validate_names(container)

        self._request(
            session, "PUT", self._url(session, container), "mkdir", container,
            headers={"Content-Length": "0"},
        )
        self._trace("mkdir: success [%s]", container)

    def remove_container(self, container: str) -> None:
        """Remove a container together with its contents."""
        session = self._require_session()
        self._validate_names(container)

        self._request(
            session, "DELETE", self._url(session, container), "rmdir", container,
            headers={"Content-Length": "0"},
        )
        self._trace("rmdir: success [%s]", container)

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    def copy_object(
        self, src_container: str, src_name: str, dst_container: str, dst_name: str
    ) -> None:
        """
        Copy the contents of one object to another, server-side.

        The source's content type is looked up first, since the COPY request
        must carry it. If that lookup fails nothing is copied.
        """
        session = self._require_session()
        self._validate_names(src_container, src_name, dst_container, dst_name)

        self._copy(session, src_container, src_name, dst_container, dst_name, "cp")
        self._trace(
            "cp: success [%s/%s]=>[%s/%s]", src_container, src_name, dst_container, dst_name
        )

    def move_object(
        self, src_container: str, src_name: str, dst_container: str, dst_name: str
    ) -> None:
        """
        Rename an object, clobbering any existing object at the destination.

        Moving an object onto itself is a no-op and sends no request.

        Raises:
            PartialMoveError: If the copy succeeded but the source could not be
                              deleted. Both objects exist afterwards.
            StorageError: If the copy itself fails (nothing changed)
        """
        session = self._require_session()
        self._validate_names(src_container, src_name, dst_container, dst_name)

        if (src_container, src_name) == (dst_container, dst_name):
            self._trace("mv: skipped, [%s/%s] is both source and destination", src_container, src_name)
            return None

        self._copy(session, src_container, src_name, dst_container, dst_name, "mv")
        try:
            self._remove(session, src_container, src_name, "mv")
        except StorageError as exc:
            raise PartialMoveError(
                f"Copied to {dst_container}/{dst_name} but could not delete the source: {exc.message}",
                container=src_container,
                name=src_name,
                destination=f"{dst_container}/{dst_name}",
                status_code=getattr(exc, "status_code", None),
            ) from exc

        self._trace(
            "mv: success [%s/%s]=>[%s/%s]", src_container, src_name, dst_container, dst_name
        )
        return None

    def remove_object(self, container: str, name: str) -> None:
        """Delete an object."""
        session = self._require_session()
        self._validate_names(container, name)

        self._remove(session, container, name, "rm")
        self._trace("rm: success for [%s/%s]", container, name)

    def get_value(self, container: str, name: str) -> bytes:
        """
        Download an object into memory.

        Returns:
            bytes: Object data (possibly empty)
        """
        session = self._require_session()
        self._validate_names(container, name)

        response = self._request(
            session, "GET", self._url(session, container, name), "get_value", container, name
        )
        self._trace("get_value: success for [%s/%s]", container, name)
        return response.content

    def put_value(
        self,
        container: str,
        name: str,
        data: Union[bytes, str],
        content_type: str = None,
    ) -> None:
        """
        Upload an in-memory value to an object.

        Args:
            container: Container name
            name: Object name
            data: Object data, ``str`` is sent UTF-8 encoded. Must not be empty.
            content_type: MIME type, defaults to ``text/plain``
        """
        session = self._require_session()
        self._validate_names(container, name)
        if not data:
            raise InvalidParameterError("No data to upload")
        if isinstance(data, str):
            data = data.encode("utf-8")

        self._request(
            session, "PUT", self._url(session, container, name), "put_value", container, name,
            headers={"Content-Type": content_type or DEFAULT_CONTENT_TYPE},
            content=data,
        )
        self._trace("put_value: success for [%s/%s]", container, name)

    def get_file(self, container: str, name: str, file_path: str) -> int:
        """
        Download an object to the local filesystem.

        The body is written as it arrives, so memory use does not grow with
        the object size. It goes to a temporary file in the same directory,
        created only once the service has answered with a success status,
        which replaces ``file_path`` when the transfer completes. A failed
        transfer removes the temporary file and leaves any existing
        ``file_path`` untouched.

        Returns:
            int: Number of bytes written

        Raises:
            SinkWriteError: If the destination directory is not writable
        """
        session = self._require_session()
        self._validate_names(container, name)
        if not file_path:
            raise InvalidParameterError("Destination path cannot be empty")

        file_path = Path(file_path)
        response = self._open_stream(session, container, name, "get_file")
        try:
            try:
                fd, part_path = tempfile.mkstemp(
                    dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".part"
                )
                fh = open(fd, "wb")
            except OSError as exc:
                raise SinkWriteError(
                    f"Cannot open {file_path} for writing: {exc}", container=container, name=name
                ) from exc
            try:
                with fh:
                    written = self._drain(response, fh.write, "get_file", container, name)
                os.replace(part_path, file_path)
            except OSError as exc:
                self._discard(part_path)
                raise SinkWriteError(
                    f"Cannot move download into {file_path}: {exc}", container=container, name=name
                ) from exc
            except StorageError:
                self._discard(part_path)
                raise
        finally:
            response.close()

        self._trace("get_file: success for [%s/%s]", container, name)
        return written

    def put_file(
        self, container: str, name: str, file_path: str, content_type: str = None
    ) -> None:
        """
        Upload a local file to an object.

        The file is streamed in ``config.chunk_size`` pieces (64KB by default)
        with an explicit Content-Length taken from the filesystem.

        Raises:
            InvalidParameterError: If ``file_path`` is not a readable file
            StorageError: If the upload fails, or reading the file fails
                          part way (code ``SourceReadFailed``)
        """
        session = self._require_session()
        self._validate_names(container, name)
        if not file_path or not os.path.isfile(file_path):
            raise InvalidParameterError(f"Not a file: {file_path}")

        try:
            fh = open(file_path, "rb")
        except OSError as exc:
            raise InvalidParameterError(f"Cannot read {file_path}: {exc}") from exc

        with fh:
            try:
                size = os.fstat(fh.fileno()).st_size
            except OSError as exc:
                raise InvalidParameterError(f"Cannot read {file_path}: {exc}") from exc
            try:
                self._request(
                    session, "PUT", self._url(session, container, name), "put_file", container, name,
                    headers={
                        "Content-Type": content_type or DEFAULT_CONTENT_TYPE,
                        "Content-Length": str(size),
                    },
                    content=_iter_file(fh, self.config.chunk_size),
                )
            except OSError as exc:
                self._trace("put_file: reading source failed for [%s/%s]", container, name)
                raise StorageError(
                    f"Reading {file_path} failed during upload: {exc}",
                    code="SourceReadFailed",
                    container=container,
                    name=name,
                ) from exc
        self._trace("put_file: success for [%s/%s]", container, name)

    def stream_to_sink(self, container: str, name: str, sink: Sink) -> int:
        """
        Download an object, writing each chunk to ``sink`` as it is received.

        Args:
            container: Container name
            name: Object name
            sink: Binary writable object, e.g. an open file or ``sys.stdout.buffer``

        Returns:
            int: Number of bytes written

        Raises:
            InvalidParameterError: If ``sink`` is not writable
            SinkWriteError: If ``sink`` rejects a chunk; the transfer is aborted
        """
        session = self._require_session()
        self._validate_names(container, name)
        self._validate_sink(sink)

        response = self._open_stream(session, container, name, "get_fhstream")
        try:
            written = self._drain(response, sink.write, "get_fhstream", container, name)
        finally:
            response.close()

        self._trace("get_fhstream: success for [%s/%s]", container, name)
        return written

    # Short names, as in the Net::XIPCloud API.
    ls = list_entries
    file = stat_object
    cp = copy_object
    mv = move_object
    mkdir = create_container
    rmdir = remove_container
    du = usage_stats
    rm = remove_object
    get_fhstream = stream_to_sink

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _stat(self, session: Session, container: str, name: str) -> ObjectInfo:
        response = self._request(
            session, "HEAD", self._url(session, container, name), "file", container, name
        )
        headers = response.headers
        info = ObjectInfo(
            container=container,
            name=name,
            size=_int_header(headers, "content-length"),
            last_modified=headers.get("last-modified"),
            etag=headers.get("etag"),
            content_type=headers.get("content-type"),
        )
        self._trace("file: success [%s/%s]", container, name)
        return info

    def _copy(
        self,
        session: Session,
        src_container: str,
        src_name: str,
        dst_container: str,
        dst_name: str,
        op: str,
    ) -> None:
        source = self._stat(session, src_container, src_name)

        headers = {"Destination": _quote(f"{dst_container}/{dst_name}")}
        if source.content_type:
            headers["Content-Type"] = source.content_type
        self._request(
            session, "COPY", self._url(session, src_container, src_name), op,
            src_container, src_name, headers=headers,
        )

    def _remove(self, session: Session, container: str, name: str, op: str) -> None:
        self._request(
            session, "DELETE", self._url(session, container, name), op, container, name,
            headers={"Content-Length": "0"},
        )

    def _open_stream(self, session: Session, container: str, name: str, op: str) -> httpx.Response:
        request = self._http.build_request(
            "GET", self._url(session, container, name), headers={TOKEN_HEADER: session.token}
        )
        return self._send(request, op, container, name, stream=True)

    def _drain(
        self,
        response: httpx.Response,
        write: Callable[[bytes], Optional[int]],
        op: str,
        container: str,
        name: str,
    ) -> int:
        """Copy a streaming response body into ``write`` chunk by chunk."""
        written = 0
        try:
            for chunk in response.iter_bytes():
                try:
                    result = write(chunk)
                except (OSError, TypeError, ValueError) as exc:
                    self._trace("%s: sink write failed for [%s/%s]", op, container, name)
                    raise SinkWriteError(
                        f"Sink rejected write after {written} bytes: {exc}",
                        container=container,
                        name=name,
                    ) from exc
                if result is not None and result != len(chunk):
                    self._trace("%s: short write for [%s/%s]", op, container, name)
                    raise SinkWriteError(
                        f"Sink accepted {result} of {len(chunk)} bytes after {written} bytes",
                        container=container,
                        name=name,
                    )
                written += len(chunk)
        except httpx.HTTPError as exc:
            self._trace("%s: transfer interrupted for [%s/%s]", op, container, name)
            raise NetworkError(f"{op}: transfer interrupted after {written} bytes: {exc}") from exc
        return written

    def _request(
        self,
        session: Session,
        method: str,
        url: str,
        op: str,
        container: str = None,
        name: str = None,
        headers: dict = None,
        content=None,
    ) -> httpx.Response:
        request_headers = {TOKEN_HEADER: session.token}
        if headers:
            request_headers.update(headers)
        request = self._http.build_request(method, url, headers=request_headers, content=content)
        return self._send(request, op, container, name)

    def _send(
        self,
        request: httpx.Request,
        op: str,
        container: str = None,
        name: str = None,
        stream: bool = False,
        check: bool = True,
    ) -> httpx.Response:
        """Send a request, turning transport and status failures into StorageErrors."""
        target = "/".join(part for part in (container, name) if part)
        try:
            response = self._http.send(request, stream=stream)
        except httpx.HTTPError as exc:
            self._trace("%s: failed for [%s] (%s)", op, target, exc.__class__.__name__)
            raise NetworkError(f"{op}: {request.method} {request.url} failed: {exc}") from exc

        if check and not response.is_success:
            if stream:
                response.close()
            self._trace("%s: failed for [%s] (HTTP %d)", op, target, response.status_code)
            raise self._status_error(response, op, container, name)
        return response

    @staticmethod
    def _status_error(
        response: httpx.Response, op: str, container: str = None, name: str = None
    ) -> RequestFailedError:
        status = response.status_code
        message = f"{op} failed with HTTP {status}"
        if status == 404:
            return NotFoundError(message, container=container, name=name)
        if status in (401, 403):
            return StoragePermissionError(message, status_code=status, container=container, name=name)
        return RequestFailedError(message, status_code=status, container=container, name=name)

    @staticmethod
    def _url(session: Session, container: str = None, name: str = None) -> str:
        url = session.storage_url
        if container:
            url += "/" + _quote(container)
            if name:
                url += "/" + _quote(name)
        return url

    def _require_session(self) -> Session:
        session = self.session
        if session is None:
            raise NotConnectedError()
        return session

    @staticmethod
    def _validate_names(*names: str) -> None:
        for value in names:
            if not value:
                raise InvalidParameterError("Container and object names cannot be empty")

    @staticmethod
    def _validate_sink(sink) -> None:
        if not isinstance(sink, Sink) or not callable(sink.write):
            raise InvalidParameterError("Sink must provide a write() method")
        if getattr(sink, "closed", False):
            raise InvalidParameterError("Sink is closed")
        writable = getattr(sink, "writable", None)
        if callable(writable):
            try:
                ok = writable()
            except ValueError:
                ok = False
            if not ok:
                raise InvalidParameterError("Sink is not open for writing")

    @staticmethod
    def _discard(path) -> None:
        with contextlib.suppress(OSError):
            os.unlink(path)

    def _trace(self, message: str, *args) -> None:
        if self.debug:
            logger.debug(message, *args)

    def close(self):
        """Close the underlying HTTP connection pool."""
        self._http.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def __repr__(self) -> str:
        return (
            f"StorageClient(auth_url={self.config.auth_url!r}, "
            f"connected={self.connected})"
        )
