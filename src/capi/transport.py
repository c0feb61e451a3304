"""Request construction and scoped response handling.

The transport is injected by the caller and is expected to look like an
``httpx.AsyncClient`` (``build_request`` + ``send``). The client never opens
or closes it. Proxy, TLS and authentication live on the transport.

Every response is opened through :func:`open_response`, which reads the body
fully and closes the response on exit. The connection goes back to the pool
whether the caller returns, raises or is cancelled.
"""

import logging
import time
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any, Protocol, Union

import httpx

from . import metrics
from .__version__ import __version__
from .exceptions import CapiTransportError, InvalidURLError, UnexpectedStatusError

logger = logging.getLogger("capi.transport")

__all__ = [
    "DEFAULT_HEADERS",
    "QueryParams",
    "Transport",
    "build_request",
    "build_url",
    "open_response",
    "parse_url",
    "require_status",
]

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": f"capi-client/{__version__}",
}

QueryParams = Mapping[str, Union[str, Sequence[str]]]


class Transport(Protocol):
    """The slice of ``httpx.AsyncClient`` this package relies on."""

    def build_request(self, method: str, url: Any, **kwargs: Any) -> httpx.Request: ...

    async def send(self, request: httpx.Request, *, stream: bool = False) -> httpx.Response: ...


def parse_url(url: str) -> httpx.URL:
    """Parse an absolute http(s) URL.

    Raises:
        InvalidURLError: Unparsable, relative, or missing a host
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidURLError(url, str(e)) from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise InvalidURLError(url, "expected an absolute http(s) address")
    return parsed


def build_url(base: str, path: str) -> str:
    """Replace the path of ``base`` with ``path``.

    Example:
        >>> build_url("http://api.example.com", "/v3/tasks/t-1")
        'http://api.example.com/v3/tasks/t-1'
    """
    try:
        return str(parse_url(base).copy_with(path=path))
    except httpx.InvalidURL as e:
        raise InvalidURLError(base, str(e)) from e


def build_request(
    transport: Transport,
    method: str,
    url: str,
    *,
    params: QueryParams | None = None,
    json: Any = None,
) -> httpx.Request:
    """Assemble an outbound request.

    Args:
        transport: Injected client; its default headers and timeout apply
        method: HTTP method
        url: Absolute URL (already normalized)
        params: Query parameters merged into the URL; lists repeat the key
        json: Optional JSON body, sent with Content-Type application/json

    Raises:
        InvalidURLError: If ``url`` is not an absolute http(s) address
    """
    parse_url(url)
    try:
        return transport.build_request(
            method,
            url,
            params=params,
            json=json,
            headers=DEFAULT_HEADERS,
        )
    except httpx.InvalidURL as e:
        raise InvalidURLError(url, str(e)) from e


@asynccontextmanager
async def open_response(
    transport: Transport, request: httpx.Request
) -> AsyncIterator[httpx.Response]:
    """Send ``request`` and yield its response with the body already read.

    The response is closed when the block exits, however it exits.

    Raises:
        CapiTransportError: The transport raised instead of responding,
            or the body could not be read
    """
    start = time.perf_counter()
    try:
        response = await transport.send(request, stream=True)
    except httpx.HTTPError as e:
        metrics.requests_total.labels(method=request.method, status="error").inc()
        metrics.failure_events_total.labels(
            component="transport", error_code="TRANSPORT_ERROR"
        ).inc()
        logger.debug(
            "capi_transport_error",
            extra={"method": request.method, "url": str(request.url), "error": str(e)},
        )
        raise CapiTransportError(f"{request.method} {request.url}: {e}") from e

    try:
        try:
            await response.aread()
        except httpx.HTTPError as e:
            metrics.failure_events_total.labels(
                component="transport", error_code="TRANSPORT_ERROR"
            ).inc()
            raise CapiTransportError(
                f"{request.method} {request.url}: reading body: {e}"
            ) from e

        duration = time.perf_counter() - start
        metrics.requests_total.labels(
            method=request.method, status=str(response.status_code)
        ).inc()
        metrics.request_duration_seconds.labels(method=request.method).observe(duration)
        logger.debug(
            "capi_response",
            extra={
                "method": request.method,
                "url": str(request.url),
                "status_code": response.status_code,
                "duration_ms": round(duration * 1000, 2),
            },
        )
        yield response
    finally:
        await response.aclose()


def require_status(response: httpx.Response, expected: int) -> None:
    """Raise unless the response status is exactly ``expected``.

    Raises:
        UnexpectedStatusError: Carrying the observed status and raw body text
    """
    if response.status_code == expected:
        return
    metrics.failure_events_total.labels(
        component="transport", error_code="UNEXPECTED_STATUS"
    ).inc()
    logger.debug(
        "capi_unexpected_status",
        extra={
            "method": response.request.method,
            "url": str(response.request.url),
            "status_code": response.status_code,
            "expected": expected,
        },
    )
    raise UnexpectedStatusError(response.status_code, response.text)
