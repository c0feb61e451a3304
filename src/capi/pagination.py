"""Cursor pagination for Cloud Controller list endpoints.

List responses look like::

    {"pagination": {"next": {"href": "https://..."}}, "resources": [...]}

The paginator follows ``pagination.next.href`` (normalized to http) until it
is empty or null. Caller supplied query parameters apply to the first request
only; later requests use the server's link verbatim, which already carries
its own query state.
"""

import logging
from collections.abc import AsyncIterator
from typing import Generic

from pydantic import BaseModel

from . import metrics
from .models import Page, ResourceT, decode_body
from .transport import QueryParams, Transport, build_request, open_response, require_status

logger = logging.getLogger("capi.pagination")

__all__ = ["Paginator"]


class Paginator(Generic[ResourceT]):
    """Drives one list endpoint for one resource type.

    Holds no per-call state, so a single instance may serve concurrent calls.

    Example:
        >>> paginator = Paginator(transport, Process)
        >>> async for page in paginator.pages("http://api/v3/apps/a-1/processes"):
        ...     print(len(page.resources))
        >>> processes = await paginator.collect("http://api/v3/apps/a-1/processes")
    """

    def __init__(self, transport: Transport, model: type[ResourceT]) -> None:
        self._transport = transport
        self.model = model
        self._page_model: type[BaseModel] = Page[model]

    async def pages(
        self,
        url: str,
        params: QueryParams | None = None,
    ) -> AsyncIterator[Page[ResourceT]]:
        """Yield pages lazily, one request per page.

        The generator is finite and cannot be restarted: every step issues a
        request. Each response is closed before its page is yielded.

        Raises:
            InvalidURLError: ``url`` or a next link is not an absolute address
            CapiTransportError: Transport failure on any page
            UnexpectedStatusError: Any page answered with a status other than 200
            DecodeError: Any page body is not a list envelope
        """
        current = url
        query = params
        number = 0

        while True:
            request = build_request(self._transport, "GET", current, params=query)
            async with open_response(self._transport, request) as response:
                require_status(response, 200)
                page = decode_body(self._page_model, response.content)

            number += 1
            metrics.pages_fetched_total.labels(resource=self.model.__name__).inc()
            logger.debug(
                "capi_page_fetched",
                extra={
                    "resource": self.model.__name__,
                    "page": number,
                    "page_resources": len(page.resources),
                    "has_next": bool(page.pagination.next_href),
                },
            )
            yield page

            current = page.pagination.next_href
            if not current:
                return
            query = None

    async def collect(
        self,
        url: str,
        params: QueryParams | None = None,
    ) -> list[ResourceT]:
        """Fetch every page and return all resources in response order.

        On error nothing is returned; resources from earlier pages are
        discarded with the exception.
        """
        resources: list[ResourceT] = []
        async for page in self.pages(url, params):
            resources.extend(page.resources)

        logger.info(
            "capi_pagination_complete",
            extra={"resource": self.model.__name__, "total_resources": len(resources)},
        )
        return resources
