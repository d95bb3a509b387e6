"""Test fixtures for form-relay unit tests."""

import asyncio
from dataclasses import dataclass, field

import httpx
import pytest

from form_relay.models.core import RelayConfig

WEBHOOK_URL = "http://n8n.test/webhook/intake"


# -----------------------------------------------------------------------------
# Mock classes for Robyn Request
# -----------------------------------------------------------------------------


@dataclass
class MockHeaders:
    """Mock Headers object for Robyn Request, case-insensitive like Robyn's."""

    _data: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._data = {key.lower(): value for key, value in self._data.items()}

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._data.get(key.lower(), default)

    def set(self, key: str, value: str) -> None:
        self._data[key.lower()] = value

    def __getitem__(self, key: str) -> str:
        return self._data[key.lower()]

    def __setitem__(self, key: str, value: str) -> None:
        self._data[key.lower()] = value


@dataclass
class MockRequest:
    """Mock Request object for Robyn."""

    body: bytes | str = b""
    headers: MockHeaders = field(default_factory=MockHeaders)
    form_data: dict = field(default_factory=dict)
    files: dict = field(default_factory=dict)
    method: str = "POST"
    path: str = "/request"


# -----------------------------------------------------------------------------
# Downstream webhook double
# -----------------------------------------------------------------------------


class RecordingTransport(httpx.MockTransport):
    """MockTransport that records requests and whether the client closed it."""

    def __init__(
        self,
        reply: httpx.Response | None = None,
        *,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.reply = reply if reply is not None else httpx.Response(200, json={"ok": True})
        self.delay = delay
        self.error = error
        self.requests: list[httpx.Request] = []
        self.closed = False
        super().__init__(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply

    async def aclose(self) -> None:
        self.closed = True


# -----------------------------------------------------------------------------
# Multipart helpers
# -----------------------------------------------------------------------------


def encode_multipart(parts: list[tuple[str, tuple]]) -> tuple[bytes, str]:
    """Encode httpx-style ``files`` parts; ``(None, value)`` gives a plain field."""
    request = httpx.Request("POST", "http://relay.test/request", files=parts)
    return request.read(), request.headers["content-type"]


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def relay_config(tmp_path) -> RelayConfig:
    """Relay configuration spooling uploads into a per-test directory."""
    return RelayConfig(webhook_url=WEBHOOK_URL, timeout_seconds=5.0, upload_dir=tmp_path)


@pytest.fixture
def make_form_request():
    """Factory fixture building multipart mock requests."""

    def _make(parts: list[tuple[str, tuple]], headers: dict | None = None) -> MockRequest:
        body, content_type = encode_multipart(parts)
        return MockRequest(body=body, headers=MockHeaders({"content-type": content_type, **(headers or {})}))

    return _make


@pytest.fixture
def encode_form():
    """Expose the multipart encoder to tests."""
    return encode_multipart


@pytest.fixture
def make_transport():
    """Factory fixture building recording webhook transports."""
    return RecordingTransport


@pytest.fixture
def make_raw_request():
    """Factory fixture building mock requests from a raw body."""

    def _make(body: bytes | str, content_type: str | None = None, headers: dict | None = None) -> MockRequest:
        all_headers = dict(headers or {})
        if content_type is not None:
            all_headers["content-type"] = content_type
        return MockRequest(body=body, headers=MockHeaders(all_headers))

    return _make
