"""Task submission and status polling.

A task is created with a POST that must answer 202. While the reported state
is RUNNING the poller sleeps a fixed interval and re-reads the task's self
link. FAILED raises TaskFailedError; every other state ends the wait as
success, PENDING and CANCELING included.

Cancelling the awaiting asyncio task aborts both an in-flight request and the
sleep between polls. Nothing is retried.
"""

import asyncio
import logging

import httpx

from . import metrics
from .exceptions import TaskFailedError
from .models import Task, TaskState, decode_body
from .transport import Transport, build_request, open_response, require_status

logger = logging.getLogger("capi.tasks")

__all__ = ["DEFAULT_POLL_INTERVAL", "TaskPoller"]

DEFAULT_POLL_INTERVAL = 1.0  # seconds


class TaskPoller:
    """Submits task requests and waits for them to reach a terminal state.

    Attributes:
        interval: Default seconds between status checks (constant, no backoff)
    """

    def __init__(
        self,
        transport: Transport,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        if interval < 0:
            raise ValueError(f"poll interval must be >= 0, got {interval}")
        self._transport = transport
        self.interval = interval

    async def submit(self, request: httpx.Request) -> Task:
        """Send a task creation request.

        Returns:
            The task as accepted by the API, links normalized

        Raises:
            UnexpectedStatusError: Status other than 202
            DecodeError: Body is not a task
        """
        async with open_response(self._transport, request) as response:
            require_status(response, 202)
            task = decode_body(Task, response.content)

        self._observe(task, "submitted")
        return task

    async def wait(self, task: Task, interval: float | None = None) -> Task:
        """Poll ``task`` through its self link until it leaves RUNNING.

        Args:
            task: Task as returned by :meth:`submit` or a previous read
            interval: Override for the poll interval in seconds

        Returns:
            The first task observation whose state is not RUNNING

        Raises:
            TaskFailedError: The task reached FAILED
            InvalidURLError: A RUNNING task has no usable self link
            UnexpectedStatusError: A status read answered other than 200
            DecodeError: A status read is not a task
        """
        delay = self.interval if interval is None else interval
        polls = 0

        while task.state == TaskState.RUNNING:
            await asyncio.sleep(delay)
            task = await self._refresh(task)
            polls += 1
            self._observe(task, "polled")

        if task.state == TaskState.FAILED:
            metrics.failure_events_total.labels(
                component="tasks", error_code="TASK_FAILED"
            ).inc()
            logger.debug(
                "capi_task_failed",
                extra={"task_guid": task.guid, "task_name": task.name, "polls": polls},
            )
            raise TaskFailedError(task)

        logger.info(
            "capi_task_finished",
            extra={"task_guid": task.guid, "state": task.state, "polls": polls},
        )
        return task

    async def run(self, request: httpx.Request, interval: float | None = None) -> Task:
        """Submit ``request`` and wait for the task it creates."""
        task = await self.submit(request)
        return await self.wait(task, interval)

    async def _refresh(self, task: Task) -> Task:
        request = build_request(self._transport, "GET", task.self_link)
        async with open_response(self._transport, request) as response:
            require_status(response, 200)
            return decode_body(Task, response.content)

    @staticmethod
    def _observe(task: Task, event: str) -> None:
        metrics.task_polls_total.labels(state=task.state or "UNKNOWN").inc()
        logger.debug(
            "capi_task_state",
            extra={"task_guid": task.guid, "state": task.state, "event": event},
        )
