"""
Test cases for the token-refresh aware API client
"""

import asyncio
import json

import httpx
import pytest

from client import (
    ZenlyAPIClient,
    ClientSession,
    MemorySessionStore,
    APIError,
    SessionExpiredError
)
from client.session import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY

BASE_URL = "http://zenly.test"


class FakeServer:
    """
    Minimal stand-in for the backend: ``valid_token`` is accepted on every
    route, anything else is answered with 401 TOKEN_EXPIRED.
    """

    def __init__(self, valid_token="fresh-access", refresh_ok=True, refresh_delay=0.0):
        self.valid_token = valid_token
        self.refresh_ok = refresh_ok
        self.refresh_delay = refresh_delay
        self.refresh_calls = 0
        self.refresh_bodies = []
        self.requests = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/auth/refresh":
            self.refresh_calls += 1
            self.refresh_bodies.append(json.loads(request.content))
            await asyncio.sleep(self.refresh_delay)
            if not self.refresh_ok:
                return httpx.Response(401, json={"success": False, "error": "Invalid refresh token"})
            return httpx.Response(200, json={"success": True, "data": {"accessToken": self.valid_token}})

        if request.url.path == "/auth/login":
            return httpx.Response(200, json={"success": True, "data": {
                "accessToken": "login-access",
                "refreshToken": "login-refresh",
                "user": {"id": "u1", "email": "a@b.co", "name": "A", "role": "user"},
            }})

        if request.url.path == "/resources/missing":
            return httpx.Response(404, json={"success": False, "error": "Resource not found", "code": "NOT_FOUND"})

        if request.url.path == "/broken":
            return httpx.Response(500, text="upstream exploded")

        if request.headers.get("Authorization") != f"Bearer {self.valid_token}":
            return httpx.Response(401, json={"success": False, "error": "Token expired", "code": "TOKEN_EXPIRED"})
        return httpx.Response(200, json={"success": True, "data": {"path": request.url.path}})


def make_client(server, tokens=None, redirects=None):
    store = MemorySessionStore(tokens or {
        ACCESS_TOKEN_KEY: "stale-access",
        REFRESH_TOKEN_KEY: "refresh-1",
        USER_KEY: {"id": "u1"},
    })

    def on_login_redirect(path):
        if redirects is not None:
            redirects.append(path)

    return ZenlyAPIClient(
        BASE_URL,
        session=ClientSession(store),
        on_login_redirect=on_login_redirect,
        transport=httpx.MockTransport(server)
    )


@pytest.mark.asyncio
async def test_expired_token_refreshes_once_and_retries():
    server = FakeServer()
    client = make_client(server)

    body = await client.journals.list()

    assert body["data"] == {"path": "/journals"}
    assert server.refresh_calls == 1
    assert server.refresh_bodies == [{"refreshToken": "refresh-1"}]
    assert server.requests[-1].headers["Authorization"] == "Bearer fresh-access"
    assert client.session.access_token == "fresh-access"
    # Refresh token is not rotated
    assert client.session.refresh_token == "refresh-1"
    await client.aclose()


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_refresh():
    server = FakeServer(refresh_delay=0.05)
    client = make_client(server)

    results = await asyncio.gather(
        client.journals.list(),
        client.moods.list(),
        client.activity.list_recent(),
        client.users.get_profile(),
    )

    assert [r["data"]["path"] for r in results] == ["/journals", "/moods", "/activity", "/users/me"]
    assert server.refresh_calls == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_failed_refresh_clears_session_and_redirects():
    server = FakeServer(refresh_ok=False)
    redirects = []
    client = make_client(server, redirects=redirects)
    client.session.set_liked("r1", True)

    with pytest.raises(SessionExpiredError):
        await client.journals.list()

    assert redirects == ["/auth/login"]
    assert client.session.access_token is None
    assert client.session.refresh_token is None
    assert client.session.user is None
    assert client.session.liked_resources == {"r1"}
    await client.aclose()


@pytest.mark.asyncio
async def test_concurrent_failed_refresh_redirects_once():
    server = FakeServer(refresh_ok=False, refresh_delay=0.05)
    redirects = []
    client = make_client(server, redirects=redirects)

    results = await asyncio.gather(
        client.journals.list(),
        client.moods.list(),
        client.activity.list_recent(),
        return_exceptions=True
    )

    assert all(isinstance(r, SessionExpiredError) for r in results)
    assert server.refresh_calls == 1
    assert redirects == ["/auth/login"]
    await client.aclose()


@pytest.mark.asyncio
async def test_missing_refresh_token_redirects_without_refresh_call():
    server = FakeServer()
    redirects = []
    client = make_client(server, tokens={ACCESS_TOKEN_KEY: "stale-access"}, redirects=redirects)

    with pytest.raises(SessionExpiredError):
        await client.journals.list()

    assert server.refresh_calls == 0
    assert redirects == ["/auth/login"]
    await client.aclose()


@pytest.mark.asyncio
async def test_async_redirect_hook_is_awaited():
    server = FakeServer(refresh_ok=False)
    redirects = []

    async def on_login_redirect(path):
        redirects.append(path)

    client = ZenlyAPIClient(
        BASE_URL,
        session=ClientSession(MemorySessionStore({ACCESS_TOKEN_KEY: "stale", REFRESH_TOKEN_KEY: "r"})),
        on_login_redirect=on_login_redirect,
        transport=httpx.MockTransport(server)
    )

    with pytest.raises(SessionExpiredError):
        await client.moods.list()
    assert redirects == ["/auth/login"]
    await client.aclose()


@pytest.mark.asyncio
async def test_skip_auth_never_refreshes():
    server = FakeServer()
    client = make_client(server)

    with pytest.raises(APIError) as exc_info:
        await client.request("GET", "/journals", skip_auth=True)

    assert exc_info.value.status_code == 401
    assert exc_info.value.code == "TOKEN_EXPIRED"
    assert server.refresh_calls == 0
    assert "Authorization" not in server.requests[0].headers
    await client.aclose()


@pytest.mark.asyncio
async def test_error_message_from_body():
    client = make_client(FakeServer(valid_token="stale-access"))

    with pytest.raises(APIError) as exc_info:
        await client.resources.get("missing")

    assert str(exc_info.value) == "Resource not found"
    assert exc_info.value.status_code == 404
    assert exc_info.value.code == "NOT_FOUND"
    await client.aclose()


@pytest.mark.asyncio
async def test_generic_error_message_without_body():
    client = make_client(FakeServer(valid_token="stale-access"))

    with pytest.raises(APIError) as exc_info:
        await client.request("GET", "/broken")

    assert exc_info.value.message == "API request failed"
    assert exc_info.value.status_code == 500
    await client.aclose()


@pytest.mark.asyncio
async def test_login_stores_session_and_logout_clears_it():
    server = FakeServer(valid_token="login-access")
    async with make_client(server, tokens={}) as client:
        await client.auth.login("a@b.co", "password123")

        assert client.session.access_token == "login-access"
        assert client.session.refresh_token == "login-refresh"
        assert client.session.user["email"] == "a@b.co"

        await client.auth.logout()

        assert not client.session.is_authenticated
        assert client.session.user is None


@pytest.mark.asyncio
async def test_logout_clears_session_even_when_server_fails():
    server = FakeServer(refresh_ok=False)
    client = make_client(server)

    with pytest.raises(SessionExpiredError):
        await client.auth.logout()

    assert client.session.access_token is None
    await client.aclose()
