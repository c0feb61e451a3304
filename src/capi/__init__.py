"""CAPI client - Cloud Controller API access through a forwarding proxy.

Provides:
- CapiClient for processes, stats, identifier resolution, env vars and tasks
- Paginator for cursor-following list endpoints
- TaskPoller for fixed-interval task status polling
- Link normalization (https -> http) for proxy interception
- Configuration with pydantic-settings and structured logging

Python Version: 3.10+ required
"""

from .__version__ import __version__
from .client import CapiClient
from .config import CapiConfig, get_config, reset_config
from .exceptions import (
    CapiClientError,
    CapiTransportError,
    DecodeError,
    EmptyResultsError,
    InvalidURLError,
    TaskFailedError,
    UnexpectedStatusError,
)
from .links import normalize_link
from .logging_config import StructuredFormatter, TextFormatter, configure_logging
from .models import (
    HealthCheck,
    Link,
    Page,
    Pagination,
    Process,
    ProcessStats,
    ProcessUsage,
    Task,
    TaskState,
)
from .pagination import Paginator
from .tasks import DEFAULT_POLL_INTERVAL, TaskPoller

__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "CapiClient",
    "CapiClientError",
    "CapiConfig",
    "CapiTransportError",
    "DecodeError",
    "EmptyResultsError",
    "HealthCheck",
    "InvalidURLError",
    "Link",
    "Page",
    "Pagination",
    "Paginator",
    "Process",
    "ProcessStats",
    "ProcessUsage",
    "StructuredFormatter",
    "Task",
    "TaskFailedError",
    "TaskPoller",
    "TaskState",
    "TextFormatter",
    "UnexpectedStatusError",
    "__version__",
    "configure_logging",
    "get_config",
    "normalize_link",
    "reset_config",
]
