"""
Test cases for the optimistic like/unlike toggle
"""

import json

import httpx
import pytest

from client import (
    ZenlyAPIClient,
    ClientSession,
    MemorySessionStore,
    APIError,
    LikeToggler,
    LikeState,
    ResourceListState
)
from client.session import ACCESS_TOKEN_KEY, LIKED_RESOURCES_KEY


class HelpfulEndpoint:
    def __init__(self, helpful_count=4, fail=False):
        self.helpful_count = helpful_count
        self.fail = fail
        self.actions = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        action = json.loads(request.content or b"{}").get("action")
        self.actions.append(action)
        if self.fail:
            return httpx.Response(429, json={"error": "Too many helpful votes. Please try again later."})
        self.helpful_count += -1 if action == "unlike" else 1
        resource_id = request.url.path.split("/")[2]
        return httpx.Response(200, json={"success": True, "data": {"_id": resource_id, "helpfulCount": self.helpful_count}})


def make_toggler(endpoint, state=None, liked=None):
    store = MemorySessionStore({ACCESS_TOKEN_KEY: "token", LIKED_RESOURCES_KEY: liked or []})
    client = ZenlyAPIClient("http://zenly.test", session=ClientSession(store), transport=httpx.MockTransport(endpoint))
    return LikeToggler(client, state), store


@pytest.mark.asyncio
async def test_like_is_confirmed_and_count_merged():
    endpoint = HelpfulEndpoint(helpful_count=4)
    state = ResourceListState({"videos": [{"_id": "r1", "title": "Breathing", "helpfulCount": 4}]})
    toggler, store = make_toggler(endpoint, state)

    transition = await toggler.toggle("r1")

    assert transition.state == LikeState.CONFIRMED
    assert transition.liked is True
    assert transition.helpful_count == 5
    assert endpoint.actions == ["like"]
    assert store.get(LIKED_RESOURCES_KEY) == ["r1"]
    assert state.groups["videos"][0] == {"_id": "r1", "title": "Breathing", "helpfulCount": 5}


@pytest.mark.asyncio
async def test_toggle_then_untoggle_restores_membership():
    endpoint = HelpfulEndpoint()
    toggler, _ = make_toggler(endpoint, liked=["r9"])
    before = toggler.session.liked_resources

    await toggler.toggle("r1")
    await toggler.toggle("r1")

    assert toggler.session.liked_resources == before
    assert endpoint.actions == ["like", "unlike"]


@pytest.mark.asyncio
async def test_unlike_sends_unlike_action():
    endpoint = HelpfulEndpoint(helpful_count=3)
    toggler, _ = make_toggler(endpoint, liked=["r1"])

    transition = await toggler.toggle("r1")

    assert transition.liked is False
    assert transition.helpful_count == 2
    assert not toggler.is_liked("r1")


@pytest.mark.asyncio
async def test_failure_rolls_back_and_reraises():
    endpoint = HelpfulEndpoint(fail=True)
    state = ResourceListState({"articles": [{"_id": "r1", "helpfulCount": 7}]})
    toggler, store = make_toggler(endpoint, state)

    with pytest.raises(APIError) as exc_info:
        await toggler.toggle("r1")

    transition = toggler.history[-1]
    assert exc_info.value.status_code == 429
    assert transition.state == LikeState.ROLLED_BACK
    assert transition.error is exc_info.value
    assert not toggler.is_liked("r1")
    assert store.get(LIKED_RESOURCES_KEY) == []
    assert state.groups["articles"][0]["helpfulCount"] == 7


@pytest.mark.asyncio
async def test_membership_flips_before_server_answers():
    seen = []

    def endpoint(request):
        seen.append(toggler.is_liked("r1"))
        return httpx.Response(200, json={"success": True, "data": {"helpfulCount": 1}})

    toggler, _ = make_toggler(endpoint)
    await toggler.toggle("r1")

    assert seen == [True]
