"""
Async API client for the Zenly Platform Service

Every call goes through ``ZenlyAPIClient.request``, which attaches the
bearer token and, when the server answers 401 with ``code: TOKEN_EXPIRED``,
refreshes the access token once and replays the request. Concurrent calls
that hit the same expiry share one refresh. When refreshing is impossible
the session is cleared and the login redirect hook is called.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx

from common.logger import get_logger
from client.session import ClientSession

logger = get_logger(__name__)

LOGIN_PATH = "/auth/login"
REFRESH_PATH = "/auth/refresh"
TOKEN_EXPIRED = "TOKEN_EXPIRED"

RedirectHook = Callable[[str], Union[None, Awaitable[None]]]


class APIError(Exception):
    """A non-success response from the API"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        body: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.body = body or {}
        super().__init__(message)


class SessionExpiredError(APIError):
    """The session could not be renewed; the user has to log in again"""

    def __init__(self, message: str = "Session expired"):
        super().__init__(message, status_code=401, code=TOKEN_EXPIRED)


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {"data": body}


class ZenlyAPIClient:
    """
    Token-refresh aware HTTP client

    Args:
        base_url: API root, e.g. ``http://localhost:5001``
        session: where tokens, user and liked set live
        on_login_redirect: called with ``/auth/login`` when the session ends
        transport: optional httpx transport (tests use ``httpx.MockTransport``)
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[ClientSession] = None,
        on_login_redirect: Optional[RedirectHook] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0
    ):
        self.session = session or ClientSession()
        self.on_login_redirect = on_login_redirect
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)
        self._refresh_task: Optional[asyncio.Task] = None
        self._ended_token: Optional[str] = None

        self.auth = AuthAPI(self)
        self.users = UserAPI(self)
        self.journals = JournalAPI(self)
        self.moods = MoodAPI(self)
        self.forum = ForumAPI(self)
        self.resources = ResourceAPI(self)
        self.admin = AdminAPI(self)
        self.activity = ActivityAPI(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._http.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        token: Optional[str],
        json: Any = None,
        params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        return await self._http.request(method, path, json=json, params=params or None, headers=headers)

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        skip_auth: bool = False
    ) -> Dict[str, Any]:
        """
        Send a request and return the decoded JSON body.

        Raises:
            SessionExpiredError: the access token expired and could not be renewed
            APIError: any other non-2xx response
        """
        token = None if skip_auth else self.session.access_token
        response = await self._send(method, path, token, json=json, params=params)

        if response.status_code == 401 and not skip_auth:
            body = _json_body(response)
            if body.get("code") == TOKEN_EXPIRED:
                if not await self._refresh_access_token(token):
                    raise SessionExpiredError()
                response = await self._send(method, path, self.session.access_token, json=json, params=params)

        body = _json_body(response)
        if not response.is_success:
            raise APIError(
                body.get("error") or "API request failed",
                status_code=response.status_code,
                code=body.get("code"),
                body=body
            )
        return body

    async def _refresh_access_token(self, stale_token: Optional[str]) -> bool:
        """Single-flight refresh. Returns True when a fresh access token is stored."""
        current = self.session.access_token
        if current and current != stale_token:
            # Another caller already renewed the token
            return True
        if stale_token is not None and stale_token == self._ended_token:
            # Refresh already failed for this token and the session was ended once
            return False

        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.ensure_future(self._refresh_or_end_session(stale_token))
        return await asyncio.shield(self._refresh_task)

    async def _refresh_or_end_session(self, stale_token: Optional[str]) -> bool:
        if await self._do_refresh():
            return True
        self._ended_token = stale_token
        await self._end_session()
        return False

    async def _do_refresh(self) -> bool:
        refresh_token = self.session.refresh_token
        if not refresh_token:
            logger.info("Access token expired and no refresh token is stored")
            return False
        try:
            response = await self._send("POST", REFRESH_PATH, None, json={"refreshToken": refresh_token})
        except httpx.HTTPError as e:
            logger.warning(f"Token refresh request failed: {e}")
            return False

        if not response.is_success:
            logger.info(f"Token refresh rejected with {response.status_code}")
            return False

        access_token = (_json_body(response).get("data") or {}).get("accessToken")
        if not access_token:
            return False
        self.session.set_tokens(access_token, refresh_token)
        logger.debug("Access token refreshed")
        return True

    async def _end_session(self):
        self.session.invalidate()
        if self.on_login_redirect is not None:
            result = self.on_login_redirect(LOGIN_PATH)
            if inspect.isawaitable(result):
                await result


class _EndpointGroup:
    def __init__(self, client: ZenlyAPIClient):
        self.client = client

    async def _call(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        return await self.client.request(method, path, **kwargs)


class AuthAPI(_EndpointGroup):
    async def _store_session(self, result: Dict[str, Any]) -> Dict[str, Any]:
        data = result.get("data") or {}
        if result.get("success") and data.get("accessToken"):
            self.client.session.set_tokens(data["accessToken"], data.get("refreshToken"))
            self.client.session.set_user(data.get("user"))
        return result

    async def signup(self, email: str, password: str, name: str, **profile) -> Dict[str, Any]:
        payload = {"email": email, "password": password, "name": name, **profile}
        return await self._store_session(await self._call("POST", "/auth/signup", json=payload, skip_auth=True))

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        payload = {"email": email, "password": password}
        return await self._store_session(await self._call("POST", "/auth/login", json=payload, skip_auth=True))

    async def logout(self):
        """Tell the server, then clear the session whatever it answered"""
        try:
            await self._call("POST", "/auth/logout")
        finally:
            self.client.session.invalidate()

    async def me(self) -> Dict[str, Any]:
        result = await self._call("GET", "/auth/me")
        if result.get("success"):
            self.client.session.set_user(result.get("data"))
        return result

    async def admin_elevate(self, password: str) -> Dict[str, Any]:
        return await self._store_session(await self._call("POST", "/auth/admin-elevate", json={"password": password}))


class UserAPI(_EndpointGroup):
    async def get_profile(self):
        return await self._call("GET", "/users/me")

    async def update_profile(self, **fields):
        return await self._call("PATCH", "/users/me", json=fields)

    async def update_avatar(self, avatar_url: str):
        return await self._call("PUT", "/users/me/avatar", json={"avatarUrl": avatar_url})

    async def change_password(self, current_password: str, new_password: str):
        return await self._call(
            "POST", "/users/me/password",
            json={"currentPassword": current_password, "newPassword": new_password}
        )


class JournalAPI(_EndpointGroup):
    async def create(self, content: str, mood: Optional[int] = None, tags: Optional[List[str]] = None):
        return await self._call("POST", "/journals", json={"content": content, "mood": mood, "tags": tags or []})

    async def list(self, limit: Optional[int] = None, cursor: Optional[str] = None):
        return await self._call("GET", "/journals", params={"limit": limit, "cursor": cursor})

    async def stats(self, time_range: str = "30d"):
        return await self._call("GET", "/journals/stats", params={"timeRange": time_range})

    async def get(self, journal_id: str):
        return await self._call("GET", f"/journals/{journal_id}")

    async def update(self, journal_id: str, **fields):
        return await self._call("PATCH", f"/journals/{journal_id}", json=fields)

    async def delete(self, journal_id: str):
        return await self._call("DELETE", f"/journals/{journal_id}")


class MoodAPI(_EndpointGroup):
    async def update_today(self, mood: int, notes: Optional[str] = None):
        return await self._call("PUT", "/moods/today", json={"mood": mood, "notes": notes})

    async def list(self, start: Optional[str] = None, end: Optional[str] = None):
        return await self._call("GET", "/moods", params={"from": start, "to": end})


class ForumAPI(_EndpointGroup):
    async def list_posts(self, **params):
        return await self._call("GET", "/forum/posts", params=params, skip_auth=True)

    async def get_post(self, post_id: str):
        return await self._call("GET", f"/forum/posts/{post_id}", skip_auth=True)

    async def list_comments(self, post_id: str, parent_id: Optional[str] = None):
        return await self._call("GET", f"/forum/posts/{post_id}/comments", params={"parentId": parent_id}, skip_auth=True)

    async def create_post(self, title: str, content: str, **fields):
        return await self._call("POST", "/forum/posts", json={"title": title, "content": content, **fields})

    async def add_comment(self, post_id: str, content: str, parent_comment_id: Optional[str] = None, is_anonymous: bool = False):
        payload = {"content": content, "parentCommentId": parent_comment_id, "isAnonymous": is_anonymous}
        return await self._call("POST", f"/forum/posts/{post_id}/comments", json=payload)

    async def like_post(self, post_id: str):
        return await self._call("POST", f"/forum/posts/{post_id}/like")

    async def report_post(self, post_id: str, reason: Optional[str] = None):
        return await self._call("POST", f"/forum/posts/{post_id}/report", json={"reason": reason})

    async def like_comment(self, comment_id: str):
        return await self._call("POST", f"/forum/comments/{comment_id}/like")


class ResourceAPI(_EndpointGroup):
    async def featured(self):
        return await self._call("GET", "/resources/featured")

    async def all(self):
        return await self._call("GET", "/resources/all")

    async def search(self, query: str):
        return await self._call("GET", "/resources/search", params={"query": query})

    async def get(self, resource_id: str):
        return await self._call("GET", f"/resources/{resource_id}")

    async def view(self, resource_id: str):
        return await self._call("POST", f"/resources/{resource_id}/view")

    async def mark_helpful(self, resource_id: str, action: str = "like"):
        return await self._call("POST", f"/resources/{resource_id}/helpful", json={"action": action})

    async def create(self, **fields):
        return await self._call("POST", "/resources/admin/create", json=fields)

    async def update(self, resource_id: str, **fields):
        return await self._call("PATCH", f"/resources/admin/{resource_id}", json=fields)

    async def delete(self, resource_id: str):
        return await self._call("DELETE", f"/resources/admin/{resource_id}")


class AdminAPI(_EndpointGroup):
    async def list_users(self, q: Optional[str] = None, limit: Optional[int] = None):
        return await self._call("GET", "/admin/users", params={"q": q, "limit": limit})

    async def reported_posts(self):
        return await self._call("GET", "/admin/forum/reported-posts")

    async def all_posts(self, **params):
        return await self._call("GET", "/admin/forum/all-posts", params=params)

    async def delete_post(self, post_id: str):
        return await self._call("DELETE", f"/admin/forum/posts/{post_id}")

    async def dismiss_reports(self, post_id: str):
        return await self._call("POST", f"/admin/forum/posts/{post_id}/dismiss-reports")

    async def toggle_pin(self, post_id: str):
        return await self._call("POST", f"/admin/forum/posts/{post_id}/pin")


class ActivityAPI(_EndpointGroup):
    async def list_recent(self, limit: int = 2):
        return await self._call("GET", "/activity", params={"limit": limit})
