"""
Test doubles for the storage client: a recording httpx transport and an
in-memory Swift service.
"""

import hashlib
from urllib.parse import unquote

import httpx

from xipcloud.storage import Session, StorageClient, StorageConfig

AUTH_URL = "https://auth.example.com/"
STORAGE_URL = "https://storage.example.com/v1/AUTH_test"
STORAGE_PATH = "/v1/AUTH_test"
TOKEN = "AUTH_tk0123456789"
USERNAME = "user"
PASSWORD = "secret"
LAST_MODIFIED = "Wed, 01 Jan 2025 00:00:00 GMT"


class RecordingTransport(httpx.BaseTransport):
    """Records every request and the body chunks exactly as the client produced them."""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []
        self.chunks = []

    def handle_request(self, request):
        chunks = [chunk for chunk in request.stream if chunk]
        self.requests.append(request)
        self.chunks.append(chunks)
        return self.handler(request, b"".join(chunks))

    def reset(self):
        self.requests.clear()
        self.chunks.clear()


class FakeSwift:
    """Just enough of the Swift API to exercise the client end to end."""

    def __init__(self):
        self.containers = {}
        self.failures = {}

    def put(self, container, name, data, content_type="application/octet-stream"):
        self.containers.setdefault(container, {})[name] = (data, content_type)

    def fail(self, method, path, status=500):
        self.failures[(method, STORAGE_PATH + path)] = status

    def __call__(self, request, body):
        status = self.failures.get((request.method, request.url.path))
        if status is not None:
            return httpx.Response(status)
        if request.url.host == "auth.example.com":
            return self._auth(request)
        if request.headers.get("x-storage-token") != TOKEN:
            return httpx.Response(401)

        container, _, name = request.url.path[len(STORAGE_PATH):].strip("/").partition("/")
        if not container:
            return self._account(request)
        if not name:
            return self._container(request, container)
        return self._object(request, container, name, body)

    def _auth(self, request):
        credentials = (request.headers.get("x-auth-user"), request.headers.get("x-auth-key"))
        if request.url.path != "/v1.0" or credentials != (USERNAME, PASSWORD):
            return httpx.Response(401)
        return httpx.Response(
            204, headers={"X-Storage-Token": TOKEN, "X-Storage-Url": STORAGE_URL}
        )

    def _account(self, request):
        if request.method == "GET":
            return httpx.Response(200, text="".join(f"{c}\n" for c in sorted(self.containers)))
        if request.method == "HEAD":
            objects = [obj for c in self.containers.values() for obj in c.values()]
            return httpx.Response(
                204,
                headers={
                    "X-Account-Bytes-Used": str(sum(len(data) for data, _ in objects)),
                    "X-Account-Object-Count": str(len(objects)),
                    "X-Account-Container-Count": str(len(self.containers)),
                },
            )
        return httpx.Response(405)

    def _container(self, request, container):
        if request.method == "PUT":
            status = 202 if container in self.containers else 201
            self.containers.setdefault(container, {})
            return httpx.Response(status)

        objects = self.containers.get(container)
        if objects is None:
            return httpx.Response(404)
        if request.method == "DELETE":
            del self.containers[container]
            return httpx.Response(204)
        if request.method == "GET":
            names = sorted(objects)
            marker = request.url.params.get("marker")
            if marker:
                names = [n for n in names if n > marker]
            limit = request.url.params.get("limit")
            if limit:
                names = names[: int(limit)]
            return httpx.Response(200, text="".join(f"{n}\n" for n in names))
        if request.method == "HEAD":
            return httpx.Response(
                204,
                headers={
                    "X-Container-Bytes-Used": str(sum(len(data) for data, _ in objects.values())),
                    "X-Container-Object-Count": str(len(objects)),
                },
            )
        return httpx.Response(405)

    def _object(self, request, container, name, body):
        objects = self.containers.get(container)
        if objects is None:
            return httpx.Response(404)

        if request.method == "PUT":
            content_type = request.headers.get("content-type", "application/octet-stream")
            objects[name] = (body, content_type)
            return httpx.Response(201, headers={"ETag": hashlib.md5(body).hexdigest()})

        if name not in objects:
            return httpx.Response(404)
        data, content_type = objects[name]

        if request.method == "GET":
            return httpx.Response(200, content=data, headers={"Content-Type": content_type})
        if request.method == "HEAD":
            return httpx.Response(
                200,
                headers={
                    "Content-Length": str(len(data)),
                    "Content-Type": content_type,
                    "ETag": hashlib.md5(data).hexdigest(),
                    "Last-Modified": LAST_MODIFIED,
                },
            )
        if request.method == "DELETE":
            del objects[name]
            return httpx.Response(204)
        if request.method == "COPY":
            dst_container, _, dst_name = unquote(request.headers["destination"]).partition("/")
            if dst_container not in self.containers:
                return httpx.Response(404)
            copied_type = request.headers.get("content-type", content_type)
            self.containers[dst_container][dst_name] = (data, copied_type)
            return httpx.Response(201)
        return httpx.Response(405)


def make_client(transport, session=None, **options):
    settings = {"username": USERNAME, "password": PASSWORD, "auth_url": AUTH_URL}
    settings.update(options)
    config = StorageConfig(**settings)
    return StorageClient(config=config, session=session, transport=transport)


def session_client(handler, **options):
    """A client that already holds a session and answers every request with ``handler``."""
    transport = RecordingTransport(handler)
    client = make_client(transport, session=Session(token=TOKEN, storage_url=STORAGE_URL), **options)
    return client, transport


