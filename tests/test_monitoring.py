"""
Test cases for monitoring and metrics collection
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from common.monitoring import (
    increment_error,
    record_broadcast,
    record_rate_limit_rejection,
    get_metrics,
    get_metrics_summary,
    MetricsMiddleware
)


class TestDomainMetrics:
    """Counters exposed next to the request metrics"""

    def test_rate_limit_rejections_exported(self):
        record_rate_limit_rejection("auth_login")

        assert b'rate_limit_rejections_total{policy="auth_login"}' in get_metrics()

    def test_broadcasts_exported(self):
        record_broadcast("resource:viewUpdate", "resources")

        assert b'event="resource:viewUpdate"' in get_metrics()

    def test_increment_error(self):
        increment_error("NotFoundError", 404)

        assert b'error_type="NotFoundError"' in get_metrics()

    def test_metrics_summary(self):
        summary = get_metrics_summary()

        assert set(summary) == {"active_requests", "realtime_connections", "memory_usage_mb", "cpu_usage_percent"}


class TestMetricsMiddleware:
    """Test metrics middleware"""

    @pytest.mark.asyncio
    async def test_middleware_http_request(self):
        messages = []

        async def send(message):
            messages.append(message)

        async def app(scope, receive, send):
            await send({"type": "http.response.start", "status": 200, "headers": []})
            await send({"type": "http.response.body", "body": b"ok"})

        middleware = MetricsMiddleware(app)
        scope = {"type": "http", "method": "GET", "path": "/resources/all", "headers": []}

        await middleware(scope, MagicMock(), send)

        assert len(messages) == 2
        assert messages[0]["status"] == 200
        assert b'endpoint="unmatched"' in get_metrics()

    @pytest.mark.asyncio
    async def test_middleware_skip_metrics_endpoint(self):
        app = AsyncMock()
        middleware = MetricsMiddleware(app)
        scope = {"type": "http", "method": "GET", "path": "/metrics", "headers": []}
        receive, send = MagicMock(), MagicMock()

        await middleware(scope, receive, send)

        app.assert_awaited_once_with(scope, receive, send)

    @pytest.mark.asyncio
    async def test_middleware_non_http(self):
        app = AsyncMock()
        middleware = MetricsMiddleware(app)
        scope = {"type": "websocket", "path": "/socket.io/"}
        receive, send = MagicMock(), MagicMock()

        await middleware(scope, receive, send)

        app.assert_awaited_once_with(scope, receive, send)


def test_metrics_endpoint(client):
    client.get("/")
    response = client.get("/metrics")

    assert response.status_code == 200
    assert b"http_requests_total" in response.content


def _fake_check(result):
    async def check():
        return result
    return check


def test_health_with_memory_rate_limit_store(client, monkeypatch):
    monkeypatch.setattr("api.main.check_mongodb_health", _fake_check(True))
    monkeypatch.setattr("api.main.check_redis_health", _fake_check(None))

    data = client.get("/health").json()["data"]

    assert data["status"] == "healthy"
    assert data["checks"] == {"api": "ok", "database": "ok", "rate_limit_store": "memory"}


def test_health_degraded_when_redis_is_down(client, monkeypatch):
    monkeypatch.setattr("api.main.check_mongodb_health", _fake_check(True))
    monkeypatch.setattr("api.main.check_redis_health", _fake_check(False))

    data = client.get("/health").json()["data"]

    assert data["status"] == "degraded"
    assert data["checks"]["rate_limit_store"] == "error"
