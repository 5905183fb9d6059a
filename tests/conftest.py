# Shared fixtures: an in-memory Cloudflare API behind httpx.MockTransport.
# Created: 2026-10-18

from __future__ import annotations

import json
import os
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from urllib.parse import parse_qs, unquote

import httpx
import pytest

from kvdesk.cloudflare.credentials import UserAuthToken

API_URL = "https://api.test/client/v4"
ACCOUNT_ID = "account_id"
NAMESPACE_ID = "namespace_id"

Handler = Callable[[httpx.Request], httpx.Response]


def envelope(result: Any, result_info: dict | None = None, status: int = 200) -> httpx.Response:
    body: dict[str, Any] = {"success": True, "errors": [], "messages": [], "result": result}
    if result_info is not None:
        body["result_info"] = result_info
    return httpx.Response(status, json=body)


def error_response(*errors: tuple[int, str], status: int = 400) -> httpx.Response:
    return httpx.Response(
        status,
        json={
            "success": False,
            "errors": [{"code": code, "message": message} for code, message in errors],
            "messages": [],
            "result": None,
        },
    )


def request_path(request: httpx.Request) -> str:
    """Raw (still percent-encoded) path relative to the API root."""
    path = request.url.raw_path.decode("ascii").split("?", 1)[0]
    return path.removeprefix("/client/v4")


def parse_multipart(request: httpx.Request) -> dict[str, bytes]:
    """Split a multipart/form-data body into ``{name: payload}``."""
    content_type = request.headers["content-type"]
    boundary = content_type.split("boundary=", 1)[1].encode("ascii")
    parts: dict[str, bytes] = {}
    for chunk in request.content.split(b"--" + boundary):
        if not chunk.strip() or chunk.strip() == b"--":
            continue
        head, _, body = chunk.lstrip(b"\r\n").partition(b"\r\n\r\n")
        name = head.split(b'name="', 1)[1].split(b'"', 1)[0].decode()
        parts[name] = body.removesuffix(b"\r\n")
    return parts


class FakeCloudflare:
    """Routes requests to canned responses and records every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], httpx.Response | Handler] = {}
        self._prefix_routes: list[tuple[str, str, Handler]] = []

    def route(self, method: str, path: str, response: httpx.Response | Handler) -> None:
        self._routes[(method, path)] = response

    def route_prefix(self, method: str, prefix: str, handler: Handler) -> None:
        self._prefix_routes.append((method, prefix, handler))

    def requests_to(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and request_path(r) == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request_path(request)

        response = self._routes.get((request.method, path))
        if response is None:
            for method, prefix, handler in self._prefix_routes:
                if request.method == method and path.startswith(prefix):
                    response = handler
                    break
        if response is None:
            return error_response((7000, "No route for that URI"), status=404)
        if callable(response):
            return response(request)
        return response

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class FakeKvNamespace:
    """Stateful KV namespace: values, expirations and metadata by key."""

    def __init__(self, account_id: str = ACCOUNT_ID, namespace_id: str = NAMESPACE_ID):
        self.base = f"/accounts/{account_id}/storage/kv/namespaces/{namespace_id}"
        self.values: dict[str, bytes] = {}
        self.expirations: dict[str, int] = {}
        self.metadata: dict[str, Any] = {}

    def put(self, key: str, value: bytes, metadata: Any = None, expiration: int | None = None):
        self.values[key] = value
        self.metadata[key] = metadata
        if expiration is not None:
            self.expirations[key] = expiration

    def mount(self, fake: FakeCloudflare) -> None:
        fake.route_prefix("GET", f"{self.base}/values/", self._get_value)
        fake.route_prefix("PUT", f"{self.base}/values/", self._put_value)
        fake.route_prefix("GET", f"{self.base}/metadata/", self._get_metadata)
        fake.route("POST", f"{self.base}/bulk/get", self._bulk_get)
        fake.route("POST", f"{self.base}/bulk/delete", self._bulk_delete)

    @staticmethod
    def _key(request: httpx.Request, segment: str) -> str:
        return unquote(request_path(request).split(f"/{segment}/", 1)[1])

    @staticmethod
    def _not_found() -> httpx.Response:
        return error_response((10009, "get: 'key not found'"), status=404)

    def _get_value(self, request: httpx.Request) -> httpx.Response:
        key = self._key(request, "values")
        if key not in self.values:
            return self._not_found()
        headers = {"content-type": "application/octet-stream"}
        if key in self.expirations:
            headers["expiration"] = str(self.expirations[key])
        return httpx.Response(200, content=self.values[key], headers=headers)

    def _get_metadata(self, request: httpx.Request) -> httpx.Response:
        key = self._key(request, "metadata")
        if key not in self.values:
            return self._not_found()
        return envelope(self.metadata.get(key))

    def _put_value(self, request: httpx.Request) -> httpx.Response:
        key = self._key(request, "values")
        parts = parse_multipart(request)
        query = parse_qs(request.url.query.decode())
        expiration = int(query["expiration"][0]) if "expiration" in query else None
        self.put(key, parts["value"], json.loads(parts["metadata"]), expiration)
        return envelope(None)

    def _bulk_get(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        values: dict[str, Any] = {}
        for key in body["keys"]:
            if key not in self.values:
                values[key] = None
                continue
            try:
                text = self.values[key].decode("utf-8")
            except UnicodeDecodeError:
                return error_response((10029, "bulk get: 'value is not valid utf-8'"))
            if body.get("withMetadata"):
                expiration = self.expirations.get(key)
                values[key] = {
                    "value": text,
                    "metadata": self.metadata.get(key),
                    "expiration": expiration,
                }
            else:
                values[key] = text
        return envelope({"values": values})

    def _bulk_delete(self, request: httpx.Request) -> httpx.Response:
        keys = json.loads(request.content)
        for key in keys:
            self.values.pop(key, None)
            self.metadata.pop(key, None)
            self.expirations.pop(key, None)
        return envelope({"successful_key_count": len(keys), "unsuccessful_keys": []})


def ts(year: int, month: int = 1, day: int = 1) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


@pytest.fixture
def fake() -> FakeCloudflare:
    return FakeCloudflare()


@pytest.fixture
def credentials() -> UserAuthToken:
    return UserAuthToken(token="test-token")


@pytest.fixture
async def http_client(fake):
    client = fake.client()
    yield client
    await client.aclose()


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    """Point the config directory at a temp dir and drop KVDESK_* env vars."""
    for key in list(os.environ):
        if key.startswith("KVDESK_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("KVDESK_HOME", str(tmp_path))
    return tmp_path
