"""
Test the resource library endpoints and their realtime broadcasts
"""

import pytest

from common.auth import UserRole


def video(**overrides):
    payload = {
        "title": "Box Breathing",
        "description": "Four counts in, four counts out",
        "url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "type": "video",
        "tags": ["Breathing", "Anxiety "],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def admin_headers(make_user):
    _, headers = make_user(email="admin@example.com", role=UserRole.ADMIN)
    return headers


@pytest.fixture
def resource(client, admin_headers):
    return client.post("/resources/admin/create", json=video(), headers=admin_headers).json()["data"]


class TestResourceAdmin:
    def test_create_computes_embed_data(self, resource):
        assert resource["embedData"] == {"platform": "youtube", "embedId": "dQw4w9WgXcQ"}
        assert resource["tags"] == ["breathing", "anxiety"]
        assert resource["viewCount"] == 0
        assert resource["helpfulCount"] == 0

    def test_create_requires_admin(self, client, make_user):
        _, headers = make_user()

        response = client.post("/resources/admin/create", json=video(), headers=headers)

        assert response.status_code == 403

    def test_update_without_url_keeps_embed(self, client, admin_headers, resource):
        response = client.patch(
            f"/resources/admin/{resource['_id']}",
            json={"title": "Square Breathing"},
            headers=admin_headers
        )

        data = response.json()["data"]
        assert data["title"] == "Square Breathing"
        assert data["embedData"] == resource["embedData"]

    def test_update_with_new_url_recomputes_embed(self, client, admin_headers, resource):
        response = client.patch(
            f"/resources/admin/{resource['_id']}",
            json={"url": "https://open.spotify.com/episode/abc123XYZ", "type": "audio"},
            headers=admin_headers
        )

        assert response.json()["data"]["embedData"] == {"platform": "spotify", "embedId": "abc123XYZ"}

    def test_delete(self, client, admin_headers, resource):
        response = client.delete(f"/resources/admin/{resource['_id']}", headers=admin_headers)

        assert response.status_code == 200
        assert client.get(f"/resources/{resource['_id']}").status_code == 404


class TestResourceListing:
    def test_all_groups_by_type(self, client, admin_headers, resource):
        client.post(
            "/resources/admin/create",
            json=video(title="Rain sounds", type="audio", url="https://example.org/rain"),
            headers=admin_headers
        )

        data = client.get("/resources/all").json()["data"]

        assert [r["title"] for r in data["videos"]] == ["Box Breathing"]
        assert [r["title"] for r in data["audios"]] == ["Rain sounds"]
        assert data["articles"] == []

    def test_featured_only_lists_featured(self, client, admin_headers, resource):
        client.post("/resources/admin/create", json=video(title="Featured", isFeatured=True), headers=admin_headers)

        data = client.get("/resources/featured").json()["data"]

        assert [r["title"] for r in data["videos"]] == ["Featured"]

    def test_search_matches_title_and_tags(self, client, resource):
        by_title = client.get("/resources/search", params={"query": "BOX"}).json()["data"]
        by_tag = client.get("/resources/search", params={"query": "anxi"}).json()["data"]

        assert [r["_id"] for r in by_title] == [resource["_id"]]
        assert [r["_id"] for r in by_tag] == [resource["_id"]]

    def test_search_escapes_regex(self, client, resource):
        response = client.get("/resources/search", params={"query": ".*"})

        assert response.status_code == 200
        assert response.json()["data"] == []

    def test_search_requires_query(self, client):
        response = client.get("/resources/search")

        assert response.status_code == 400
        assert response.json()["error"] == "Query parameter required"

    def test_search_sets_rate_limit_headers(self, client):
        response = client.get("/resources/search", params={"query": "calm"})

        assert response.headers["RateLimit-Limit"] == "30"
        assert response.headers["RateLimit-Remaining"] == "29"
        assert response.headers["RateLimit-Policy"] == "30;w=60"


class TestEngagement:
    def test_view_increments_and_broadcasts(self, client, broadcaster, resource):
        client.post(f"/resources/{resource['_id']}/view")
        response = client.post(f"/resources/{resource['_id']}/view")

        assert response.json()["data"]["viewCount"] == 2
        assert broadcaster.of("resource:viewUpdate") == [
            {"resourceId": resource["_id"], "viewCount": 1},
            {"resourceId": resource["_id"], "viewCount": 2},
        ]

    def test_view_by_signed_in_user_is_recorded_as_activity(self, client, make_user, resource):
        _, headers = make_user()

        client.post(f"/resources/{resource['_id']}/view", headers=headers)
        activity = client.get("/activity", headers=headers).json()["data"]

        assert activity[0]["kind"] == "resource"
        assert activity[0]["resourceId"] == resource["_id"]
        assert activity[0]["title"] == "Box Breathing"

    def test_helpful_like_and_unlike(self, client, broadcaster, resource):
        liked = client.post(f"/resources/{resource['_id']}/helpful", json={"action": "like"})
        unliked = client.post(f"/resources/{resource['_id']}/helpful", json={"action": "unlike"})

        assert liked.json()["data"]["helpfulCount"] == 1
        assert unliked.json()["data"]["helpfulCount"] == 0
        assert broadcaster.of("resource:likeUpdate") == [
            {"resourceId": resource["_id"], "helpfulCount": 1, "action": "like"},
            {"resourceId": resource["_id"], "helpfulCount": 0, "action": "unlike"},
        ]

    def test_helpful_without_action_increments(self, client, resource):
        response = client.post(f"/resources/{resource['_id']}/helpful")

        assert response.json()["data"]["helpfulCount"] == 1

    def test_helpful_rate_limit_is_per_resource(self, client, admin_headers, resource):
        other = client.post("/resources/admin/create", json=video(title="Other"), headers=admin_headers).json()["data"]
        for _ in range(10):
            assert client.post(f"/resources/{resource['_id']}/helpful").status_code == 200

        rejected = client.post(f"/resources/{resource['_id']}/helpful")

        assert rejected.status_code == 429
        assert rejected.json() == {"error": "Too many helpful votes. Please try again later."}
        assert "Retry-After" in rejected.headers
        assert client.post(f"/resources/{other['_id']}/helpful").status_code == 200

    def test_view_unknown_resource(self, client):
        response = client.post("/resources/665f1c2e8a1b2c3d4e5f6a7b/view")

        assert response.status_code == 404
