"""Cloud Controller (CAPI) client.

Async client for the subset of the Cloud Controller v2/v3 API used to inspect
an app's processes and run one-off tasks against it. Requests go through a
caller supplied ``httpx.AsyncClient``; all https addresses are rewritten to
http so that a forwarding proxy (HTTP_PROXY) can carry the traffic.

Reference: https://v3-apidocs.cloudfoundry.org/
"""

import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from . import metrics
from .exceptions import EmptyResultsError
from .links import normalize_link
from .models import (
    AppEnvironmentVariables,
    GuidResource,
    Page,
    Process,
    ProcessStats,
    ResourceT,
    Task,
    V2AppList,
    decode_body,
)
from .pagination import Paginator
from .tasks import DEFAULT_POLL_INTERVAL, TaskPoller
from .transport import (
    QueryParams,
    Transport,
    build_request,
    build_url,
    open_response,
    require_status,
)

if TYPE_CHECKING:
    from .config import CapiConfig

logger = logging.getLogger("capi.client")

__all__ = ["CapiClient"]


class CapiClient:
    """Cloud Controller API client bound to one app and space.

    Holds configuration only; per-call state lives in each call, so one
    instance can be shared by concurrent tasks. The transport is borrowed:
    closing it is the caller's job.

    Attributes:
        address: Base address, scheme rewritten to http
        app_guid: Default app for app scoped operations
        space_guid: Space used by :meth:`get_app_guid`
        poll_interval: Default seconds between task status checks

    Example:
        >>> async with httpx.AsyncClient() as transport:
        ...     client = CapiClient("https://api.sys.example.com", "app-1", "space-1", transport)
        ...     for process in await client.processes():
        ...         print(process.type, process.instances)
    """

    def __init__(
        self,
        address: str,
        app_guid: str,
        space_guid: str,
        transport: Transport,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.address = normalize_link(address.rstrip("/"))
        self.app_guid = app_guid
        self.space_guid = space_guid
        self.poll_interval = poll_interval
        self._transport = transport
        self._tasks = TaskPoller(transport, interval=poll_interval)

    @classmethod
    def from_config(cls, config: "CapiConfig", transport: Transport) -> "CapiClient":
        """Build a client from :class:`~capi.config.CapiConfig` values."""
        return cls(
            config.capi_address,
            config.capi_app_guid,
            config.capi_space_guid,
            transport,
            poll_interval=config.capi_task_poll_interval,
        )

    # --- Processes ---

    async def processes(self, app_guid: str | None = None) -> list[Process]:
        """List every process of an app across all pages.

        Args:
            app_guid: App to inspect (default: the client's app)
        """
        return await Paginator(self._transport, Process).collect(
            self._url(f"/v3/apps/{self._app(app_guid)}/processes")
        )

    async def process_stats(self, process_guid: str) -> list[ProcessStats]:
        """List per-instance statistics for a process across all pages."""
        return await Paginator(self._transport, ProcessStats).collect(
            self._url(f"/v3/processes/{process_guid}/stats")
        )

    # --- Identifier resolution ---

    async def get_app_guid(self, app_name: str) -> str:
        """Resolve an app name to its guid within the client's space.

        Uses the v2 search endpoint and returns the first match.

        Raises:
            EmptyResultsError: No app by that name in the space
        """
        result = await self._get(
            self._url("/v2/apps"),
            V2AppList,
            params={"q": [f"name:{app_name}", f"space_guid:{self.space_guid}"]},
        )
        if not result.resources or not result.resources[0].metadata.guid:
            raise self._empty("get_app_guid", app_name=app_name)
        return result.resources[0].metadata.guid

    async def get_droplet_guid(self, app_guid: str | None = None) -> str:
        """Return the guid of an app's current droplet.

        Raises:
            EmptyResultsError: The app has no current droplet
        """
        droplet = await self._current_droplet(app_guid)
        if not droplet.guid:
            raise self._empty("get_droplet_guid", app_guid=self._app(app_guid))
        return droplet.guid

    async def get_package_guid(self, app_guid: str | None = None) -> tuple[str, str]:
        """Return the package guid and download link behind the current droplet.

        Follows the droplet's ``package`` link, then reads the package.

        Returns:
            (package guid, normalized download href)

        Raises:
            EmptyResultsError: No package link, package guid or download link
        """
        app = self._app(app_guid)
        droplet = await self._current_droplet(app)
        package_href = droplet.link("package")
        if not package_href:
            raise self._empty("get_package_guid", app_guid=app, missing="package_link")

        package = await self._get(package_href, GuidResource)
        download_href = package.link("download")
        if not package.guid or not download_href:
            raise self._empty("get_package_guid", app_guid=app, missing="package")
        return package.guid, download_href

    async def get_environment_variables(self, app_guid: str | None = None) -> dict[str, str]:
        """Return the user-provided environment variables of an app.

        An app with no variables returns {}; a body without ``var`` at all
        raises EmptyResultsError.
        """
        app = self._app(app_guid)
        result = await self._get(
            self._url(f"/v3/apps/{app}/environment_variables"),
            AppEnvironmentVariables,
        )
        if result.var is None:
            raise self._empty("get_environment_variables", app_guid=app)
        return dict(result.var)

    # --- Tasks ---

    async def create_task(self, command: str, interval: float | None = None) -> Task:
        """Run ``command`` as a task on the client's app and wait for it.

        Args:
            command: Command line executed in the app's droplet
            interval: Poll interval override in seconds

        Returns:
            The task in its terminal state

        Raises:
            UnexpectedStatusError: Creation not answered with 202
            TaskFailedError: The task reached FAILED
        """
        request = build_request(
            self._transport,
            "POST",
            self._url(f"/v3/apps/{self.app_guid}/tasks"),
            json={"command": command},
        )
        logger.info("capi_create_task", extra={"app_guid": self.app_guid})
        return await self._tasks.run(request, self._interval(interval))

    async def run_task(
        self,
        command: str,
        name: str = "",
        droplet_guid: str = "",
        app_guid: str | None = None,
        wait: bool = False,
        interval: float | None = None,
    ) -> Task:
        """Create a task with an optional name and droplet.

        Args:
            command: Command line to execute
            name: Task name (server generates one when empty)
            droplet_guid: Droplet to run against (default: app's current droplet)
            app_guid: App to run on (default: the client's app)
            wait: Poll until the task leaves RUNNING before returning
            interval: Poll interval override in seconds

        Returns:
            The accepted task, or its terminal state when ``wait`` is set
        """
        body: dict[str, Any] = {"command": command}
        if name:
            body["name"] = name
        if droplet_guid:
            body["droplet_guid"] = droplet_guid

        app = self._app(app_guid)
        request = build_request(
            self._transport,
            "POST",
            self._url(f"/v3/apps/{app}/tasks"),
            json=body,
        )
        logger.info("capi_run_task", extra={"app_guid": app, "task_name": name, "wait": wait})

        task = await self._tasks.submit(request)
        if wait:
            return await self._tasks.wait(task, self._interval(interval))
        return task

    async def get_task(self, task_guid: str) -> Task:
        """Fetch a single task by guid."""
        return await self._get(self._url(f"/v3/tasks/{task_guid}"), Task)

    async def list_tasks(
        self,
        app_guid: str | None = None,
        query: QueryParams | None = None,
    ) -> list[Task]:
        """List an app's tasks across all pages.

        Args:
            app_guid: App whose tasks to list (default: the client's app)
            query: Filters for the first request, e.g. {"states": "FAILED"}
                or {"names": ["a", "b"]}
        """
        return await Paginator(self._transport, Task).collect(
            self._url(f"/v3/apps/{self._app(app_guid)}/tasks"),
            params=query,
        )

    # --- Generic ---

    def iter_pages(
        self,
        path: str,
        model: type[ResourceT],
        params: QueryParams | None = None,
    ) -> AsyncIterator[Page[ResourceT]]:
        """Lazily iterate the pages of any list endpoint under the base address.

        Example:
            >>> async for page in client.iter_pages("/v3/apps/a-1/tasks", Task):
            ...     handle(page.resources)
        """
        return Paginator(self._transport, model).pages(self._url(path), params)

    # --- Internals ---

    def _app(self, app_guid: str | None) -> str:
        return app_guid or self.app_guid

    def _interval(self, interval: float | None) -> float:
        return self.poll_interval if interval is None else interval

    def _url(self, path: str) -> str:
        return build_url(self.address, path)

    async def _get(
        self,
        url: str,
        model: type[ResourceT],
        params: QueryParams | None = None,
    ) -> ResourceT:
        request = build_request(self._transport, "GET", url, params=params)
        async with open_response(self._transport, request) as response:
            require_status(response, 200)
            return decode_body(model, response.content)

    async def _current_droplet(self, app_guid: str | None) -> GuidResource:
        return await self._get(
            self._url(f"/v3/apps/{self._app(app_guid)}/droplets/current"),
            GuidResource,
        )

    @staticmethod
    def _empty(operation: str, **context: str) -> EmptyResultsError:
        metrics.failure_events_total.labels(
            component="client", error_code="EMPTY_RESULTS"
        ).inc()
        logger.debug("capi_empty_results", extra={"operation": operation, **context})
        return EmptyResultsError()
