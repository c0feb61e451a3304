"""Shared pytest fixtures for CAPI client tests.

Fixture Organization:
    - Transport fixtures: httpx.AsyncClient mounted on httpx.MockTransport,
      driven by a RecordingHandler that serves queued responses in order
    - Payload helpers: list envelopes, tasks and closable response streams
    - Config fixtures: environment isolation for pydantic-settings
"""

from collections.abc import AsyncIterator

import httpx
import pytest

from capi.client import CapiClient
from capi.config import reset_config

API = "https://api.example.com"
PLAIN_API = "http://api.example.com"


# =============================================================================
# Transport
# =============================================================================


class RecordingHandler:
    """MockTransport handler returning queued responses and recording requests.

    Queue entries are httpx.Response objects, or exceptions to raise from the
    transport. A request arriving with an empty queue fails the test.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._queue: list = []

    def add(self, *responses) -> "RecordingHandler":
        self._queue.extend(responses)
        return self

    @property
    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._queue:
            raise AssertionError(f"unexpected request {request.method} {request.url}")
        item = self._queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class TrackingStream(httpx.AsyncByteStream):
    """Response body that remembers whether it was closed."""

    def __init__(self, body: bytes) -> None:
        self.body = body
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield self.body

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def handler():
    """Fresh RecordingHandler per test."""
    return RecordingHandler()


@pytest.fixture
def transport(handler):
    """httpx.AsyncClient whose requests are served by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def client(transport):
    """CapiClient bound to app-1 / space-1 with a zero poll interval."""
    return CapiClient(API, "app-1", "space-1", transport, poll_interval=0)


# =============================================================================
# Payload helpers
# =============================================================================


def json_response(status_code: int = 200, data=None) -> httpx.Response:
    return httpx.Response(status_code, json=data if data is not None else {})


def raw_response(status_code: int = 200, body: bytes = b"") -> httpx.Response:
    return httpx.Response(status_code, content=body)


def tracked_response(status_code: int, body: bytes) -> tuple[httpx.Response, TrackingStream]:
    stream = TrackingStream(body)
    return httpx.Response(status_code, stream=stream), stream


def page(resources: list[dict], next_href: str | None = None) -> dict:
    """List envelope; ``next`` is null on the last page, as the API sends it."""
    return {
        "pagination": {"next": {"href": next_href} if next_href else None},
        "resources": resources,
    }


def task_payload(state: str, guid: str = "task-1", **extra) -> dict:
    payload = {
        "guid": guid,
        "sequence_id": 1,
        "name": "migrate",
        "command": "rake db:migrate",
        "state": state,
        "droplet_guid": "droplet-1",
        "links": {"self": {"href": f"{API}/v3/tasks/{guid}"}},
    }
    payload.update(extra)
    return payload


# =============================================================================
# Config isolation
# =============================================================================


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove CAPI_* and VCAP_APPLICATION variables and run outside any .env."""
    import os

    for key in list(os.environ):
        if key.upper().startswith(("CAPI_", "LOG_")) or key.upper() == "VCAP_APPLICATION":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield monkeypatch
    reset_config()
