"""Prometheus metrics for HTTP traffic and the upload pipelines.

Upload outcomes are labelled with the stage that failed (``validate``,
``stage``, ``transcode``, ``probe``, ``publish``, ``update``, ...) or
``success``, which is enough to tell client mistakes from broken
dependencies on a dashboard.
"""

import os
import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    multiprocess,
)

REGISTRY = CollectorRegistry()

# Aggregate across workers when running under gunicorn
if "PROMETHEUS_MULTIPROC_DIR" in os.environ or "prometheus_multiproc_dir" in os.environ:
    multiprocess.MultiProcessCollector(REGISTRY)

APP_INFO = Info("tubely_app", "Build and deployment information", registry=REGISTRY)

# HTTP
HTTP_REQUESTS_TOTAL = Counter(
    "tubely_http_requests_total",
    "HTTP requests by route and status",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)
HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "tubely_http_request_duration_seconds",
    "HTTP request latency; video uploads include ffmpeg and the object store write",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 180.0, 600.0],
    registry=REGISTRY,
)
HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "tubely_http_requests_in_progress",
    "HTTP requests currently being served",
    ["method", "endpoint"],
    registry=REGISTRY,
)

# Upload pipelines
UPLOADS_TOTAL = Counter(
    "tubely_uploads_total",
    "Upload requests by kind and outcome (success or failing stage)",
    ["kind", "outcome"],
    registry=REGISTRY,
)
UPLOAD_SIZE_BYTES = Histogram(
    "tubely_upload_size_bytes",
    "Size of accepted uploads",
    ["kind"],
    buckets=[64 << 10, 1 << 20, 10 << 20, 100 << 20, 500 << 20, 1 << 30],
    registry=REGISTRY,
)
MEDIA_TOOL_DURATION_SECONDS = Histogram(
    "tubely_media_tool_duration_seconds",
    "Wall time of ffmpeg/ffprobe invocations",
    ["tool"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
    registry=REGISTRY,
)
OBJECT_STORE_REQUESTS_TOTAL = Counter(
    "tubely_object_store_requests_total",
    "Object store calls by operation and status",
    ["operation", "status"],
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Render the registry in Prometheus exposition format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    APP_INFO.info({"version": version, "environment": environment})


def record_upload(kind: str, outcome: str, size: int = 0) -> None:
    """Count one finished upload; accepted sizes feed the size histogram."""
    UPLOADS_TOTAL.labels(kind=kind, outcome=outcome).inc()
    if outcome == "success" and size:
        UPLOAD_SIZE_BYTES.labels(kind=kind).observe(size)


def record_object_store_request(operation: str, success: bool) -> None:
    OBJECT_STORE_REQUESTS_TOTAL.labels(
        operation=operation, status="success" if success else "error"
    ).inc()


@contextmanager
def time_media_tool(tool: str) -> Iterator[None]:
    """Observe the duration of a tool run, including failed and killed runs."""
    start = time.perf_counter()
    try:
        yield
    finally:
        MEDIA_TOOL_DURATION_SECONDS.labels(tool=tool).observe(time.perf_counter() - start)
