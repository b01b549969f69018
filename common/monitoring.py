"""
Prometheus metrics for Zenly Platform Service

All series live in a private registry served by ``GET /metrics`` and are
prefixed ``zenly_``. Request series are labelled by route template so raw
ids never become label values.
"""

from typing import Dict, Any
import time
import psutil
import asyncio

from prometheus_client import (
    Counter, Histogram, Gauge,
    generate_latest, CONTENT_TYPE_LATEST,
    CollectorRegistry
)

from common.config import get_settings
from common.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

registry = CollectorRegistry()

PREFIX = "zenly_"
SLOW_REQUEST_SECONDS = 1.0


def _counter(name: str, doc: str, labels=()):
    return Counter(PREFIX + name, doc, list(labels), registry=registry)


def _gauge(name: str, doc: str):
    return Gauge(PREFIX + name, doc, registry=registry)


http_requests_total = _counter("http_requests_total", "HTTP requests by route and status", ("method", "endpoint", "status"))
http_request_duration_seconds = Histogram(
    PREFIX + "http_request_duration_seconds",
    "HTTP request latency by route",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    registry=registry
)
active_requests = _gauge("active_requests", "Requests currently in flight")

memory_usage_bytes = _gauge("memory_usage_bytes", "Resident memory of the API process")
cpu_usage_percent = _gauge("cpu_usage_percent", "CPU usage of the API process")

rate_limit_rejections_total = _counter("rate_limit_rejections_total", "Requests answered 429 by a fixed-window policy", ("policy",))
realtime_broadcasts_total = _counter("realtime_broadcasts_total", "Socket.IO events broadcast to a room", ("event", "room"))
realtime_connections = _gauge("realtime_connections", "Connected Socket.IO clients")
error_total = _counter("error_total", "Error responses by exception type", ("error_type", "status"))


class MetricsMiddleware:
    """Pure ASGI middleware timing every HTTP request except the scrape itself"""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope["path"] == "/metrics":
            await self.app(scope, receive, send)
            return

        method = scope["method"]
        status_code = 500
        started = time.perf_counter()
        active_requests.inc()

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            active_requests.dec()
            elapsed = time.perf_counter() - started
            # Set by the router once a route matched
            endpoint = getattr(scope.get("route"), "path", "unmatched")

            http_requests_total.labels(method=method, endpoint=endpoint, status=status_code).inc()
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(elapsed)

            if elapsed > SLOW_REQUEST_SECONDS:
                logger.warning(
                    f"Slow request: {method} {endpoint} took {elapsed:.2f}s",
                    extra={"endpoint": endpoint, "duration_s": round(elapsed, 3), "status_code": status_code}
                )


async def collect_system_metrics():
    """Background task sampling process memory and CPU"""
    process = psutil.Process()
    interval = settings.SYSTEM_METRICS_INTERVAL_SECONDS
    while True:
        try:
            memory_usage_bytes.set(process.memory_info().rss)
            cpu_usage_percent.set(process.cpu_percent(interval=None))
        except psutil.Error as e:
            logger.error(f"Error collecting system metrics: {e}")
        await asyncio.sleep(interval)


def get_metrics() -> bytes:
    return generate_latest(registry)


def record_rate_limit_rejection(policy: str):
    rate_limit_rejections_total.labels(policy=policy).inc()


def record_broadcast(event: str, room: str):
    realtime_broadcasts_total.labels(event=event, room=room).inc()


def increment_error(error_type: str, status: int):
    error_total.labels(error_type=error_type, status=str(status)).inc()


def get_metrics_summary() -> Dict[str, Any]:
    """Snapshot of the in-process gauges for the debug summary route"""
    return {
        "active_requests": active_requests._value.get(),
        "realtime_connections": realtime_connections._value.get(),
        "memory_usage_mb": round(memory_usage_bytes._value.get() / 1024 / 1024, 1),
        "cpu_usage_percent": cpu_usage_percent._value.get(),
    }


__all__ = [
    "MetricsMiddleware",
    "CONTENT_TYPE_LATEST",
    "collect_system_metrics",
    "get_metrics",
    "get_metrics_summary",
    "increment_error",
    "record_broadcast",
    "record_rate_limit_rejection",
    "realtime_connections",
]
