"""Resource and envelope models for Cloud Controller responses.

Only the fields this client consumes are declared; anything else in a payload
is ignored. Fields the API may send as null are Optional, everything else
falls back to an empty value so that a sparse payload still decodes.

Every Link is normalized while it is validated (https -> http, method
defaulted to GET), so callers never see an un-normalized href.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import metrics
from .exceptions import DecodeError
from .links import normalize_link

logger = logging.getLogger("capi.models")

__all__ = [
    "AppEnvironmentVariables",
    "GuidResource",
    "HealthCheck",
    "HealthCheckData",
    "Link",
    "Page",
    "Pagination",
    "Process",
    "ProcessStats",
    "ProcessUsage",
    "Task",
    "TaskState",
    "V2AppList",
    "decode_body",
]

ResourceT = TypeVar("ResourceT", bound=BaseModel)


class TaskState(str, Enum):
    """Task lifecycle states reported by the API.

    Only RUNNING and FAILED affect polling. Every other value, including
    states not listed here, ends the wait as success.
    """

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELING = "CANCELING"


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class Link(_Model):
    """A relation to another resource or action."""

    href: str = ""
    method: str = "GET"

    @field_validator("href", mode="before")
    @classmethod
    def normalize_href(cls, v):
        if v is None or isinstance(v, str):
            return normalize_link(v)
        return v

    @field_validator("method", mode="before")
    @classmethod
    def default_method(cls, v):
        return v or "GET"


class _Linked(_Model):
    """Base for resources carrying a relation link map."""

    links: dict[str, Link] = Field(default_factory=dict)

    @field_validator("links", mode="before")
    @classmethod
    def links_or_empty(cls, v):
        # The API sends "links": null on some embedded resources, and null
        # entries for relations that do not exist
        if v is None:
            return {}
        if isinstance(v, dict):
            return {k: link for k, link in v.items() if link is not None}
        return v


class HealthCheckData(_Model):
    timeout: int | None = None
    invocation_timeout: int | None = None
    endpoint: str | None = None


class HealthCheck(_Model):
    type: str = ""
    data: HealthCheckData = Field(default_factory=HealthCheckData)


class Process(_Linked):
    """A process definition belonging to an app (web, worker, ...)."""

    type: str = ""
    command: str | None = None
    instances: int = 0
    memory_in_mb: int = 0
    disk_in_mb: int = 0
    health_check: HealthCheck = Field(default_factory=HealthCheck)
    guid: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProcessUsage(_Model):
    time: datetime | None = None
    cpu: float = 0.0
    mem: float = 0.0
    disk: int = 0


class ProcessStats(_Model):
    """Point in time statistics for one process instance."""

    type: str = ""
    index: int = 0
    state: str = ""
    usage: ProcessUsage = Field(default_factory=ProcessUsage)
    host: str = ""
    uptime: int = 0
    mem_quota: int | None = None
    disk_quota: int | None = None
    fds_quota: int | None = None

    @field_validator("usage", mode="before")
    @classmethod
    def usage_or_empty(cls, v):
        return {} if v is None else v


class Task(_Linked):
    """A one-off command run against an app's droplet.

    Also serves as the status envelope while polling: only ``state`` and
    ``links.self`` are needed there, and every other field has a default.
    """

    sequence_id: int = 0
    name: str = ""
    command: str = ""
    disk_in_mb: int = 0
    memory_in_mb: int = 0
    state: str = ""
    droplet_guid: str = ""
    guid: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def self_link(self) -> str:
        """Normalized href of the task's self link, or "" when absent."""
        link = self.links.get("self")
        return link.href if link else ""

    @property
    def is_running(self) -> bool:
        return self.state == TaskState.RUNNING

    @property
    def is_failed(self) -> bool:
        return self.state == TaskState.FAILED


# =============================================================================
# Envelopes
# =============================================================================


class Pagination(_Model):
    next: Link | None = None

    @property
    def next_href(self) -> str:
        """Normalized cursor for the following page; "" on the last page."""
        return self.next.href if self.next else ""


class Page(_Model, Generic[ResourceT]):
    """One page of a list endpoint."""

    pagination: Pagination = Field(default_factory=Pagination)
    resources: list[ResourceT] = Field(default_factory=list)

    @field_validator("pagination", mode="before")
    @classmethod
    def pagination_or_empty(cls, v):
        return {} if v is None else v

    @field_validator("resources", mode="before")
    @classmethod
    def resources_or_empty(cls, v):
        return [] if v is None else v


class GuidResource(_Linked):
    """Any v3 resource read only for its guid and relation links."""

    guid: str = ""

    @field_validator("guid", mode="before")
    @classmethod
    def guid_or_empty(cls, v):
        return "" if v is None else v

    def link(self, name: str) -> str:
        found = self.links.get(name)
        return found.href if found else ""


class V2Metadata(_Model):
    guid: str = ""

    @field_validator("guid", mode="before")
    @classmethod
    def guid_or_empty(cls, v):
        return "" if v is None else v


class V2Resource(_Model):
    metadata: V2Metadata = Field(default_factory=V2Metadata)

    @field_validator("metadata", mode="before")
    @classmethod
    def metadata_or_empty(cls, v):
        return {} if v is None else v


class V2AppList(_Model):
    """Legacy /v2/apps search result."""

    resources: list[V2Resource] = Field(default_factory=list)

    @field_validator("resources", mode="before")
    @classmethod
    def resources_or_empty(cls, v):
        return [] if v is None else v


class AppEnvironmentVariables(_Model):
    var: dict[str, str] | None = None


def decode_body(model: type[ResourceT], content: bytes) -> ResourceT:
    """Decode a response body into ``model``.

    An empty body decodes as ``{}`` so that a bodiless 200 surfaces as a
    missing field to the caller rather than as a decode failure.

    Raises:
        DecodeError: Body is not JSON, or does not match the model's types
    """
    if not content.strip():
        content = b"{}"
    try:
        return model.model_validate_json(content)
    except ValidationError as e:
        metrics.failure_events_total.labels(
            component="decoder", error_code="DECODE_ERROR"
        ).inc()
        logger.debug(
            "capi_decode_failed",
            extra={"model": model.__name__, "errors": e.error_count()},
        )
        raise DecodeError(f"cannot decode {model.__name__}: {e}") from e
