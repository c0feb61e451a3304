"""
Prometheus metrics definitions for the CAPI client.

Naming conventions: snake_case, capi_ prefix. Metrics are recorded as a side
effect of requests and never influence control flow.
"""

from prometheus_client import Counter, Histogram

# ==============================================================================
# COUNTERS
# ==============================================================================

requests_total = Counter(
    "capi_requests_total",
    "Total requests issued through the injected transport",
    ["method", "status"],
    # status: HTTP status code as string, or "error" when no response arrived
)

pages_fetched_total = Counter(
    "capi_pages_fetched_total",
    "Pages decoded by the paginator",
    ["resource"],
    # resource: model name (Process, ProcessStats, Task)
)

task_polls_total = Counter(
    "capi_task_polls_total",
    "Task state observations made by the poller",
    ["state"],
    # state: PENDING, RUNNING, SUCCEEDED, FAILED, CANCELING (or whatever the API reports)
)

failure_events_total = Counter(
    "capi_failure_events_total",
    "Total failure events for alerting",
    ["component", "error_code"],
    # component: transport, decoder, tasks, client
    # error_code: TRANSPORT_ERROR, UNEXPECTED_STATUS, DECODE_ERROR, EMPTY_RESULTS, TASK_FAILED
)

# ==============================================================================
# HISTOGRAMS
# ==============================================================================

request_duration_seconds = Histogram(
    "capi_request_duration_seconds",
    "Round-trip time of a single request including body read",
    ["method"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)
