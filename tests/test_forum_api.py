"""
Test the forum endpoints: posts, threaded comments, likes and reports
"""

import pytest

from services.forum import MAX_COMMENT_DEPTH


@pytest.fixture
def member(make_user):
    return make_user(email="member@example.com", firstName="Riley", lastName="Stone")


@pytest.fixture
def post(client, member):
    _, headers = member
    response = client.post(
        "/forum/posts",
        json={"title": "First week", "content": "How do you all cope?", "category": "support", "tags": ["Stress"]},
        headers=headers
    )
    assert response.status_code == 201
    return response.json()["data"]


class TestPosts:
    def test_create_post_populates_author_and_broadcasts(self, post, broadcaster):
        assert post["userId"]["firstName"] == "Riley"
        assert post["tags"] == ["stress"]
        assert post["likesCount"] == 0
        assert broadcaster.of("forum:newPost")[0]["_id"] == post["_id"]

    def test_create_post_validation(self, client, member):
        _, headers = member

        response = client.post("/forum/posts", json={"title": " "}, headers=headers)

        assert response.status_code == 400
        assert response.json()["errors"] == ["Title is required", "Content is required"]

    def test_create_post_requires_login(self, client):
        response = client.post("/forum/posts", json={"title": "t", "content": "c"})

        assert response.status_code == 401

    def test_list_posts_filters(self, client, member, post):
        _, headers = member
        client.post("/forum/posts", json={"title": "Exams", "content": "Tips?", "category": "study"}, headers=headers)

        by_category = client.get("/forum/posts", params={"category": "support"}).json()["data"]
        by_tag = client.get("/forum/posts", params={"tag": "STRESS"}).json()["data"]
        by_query = client.get("/forum/posts", params={"q": "tips"}).json()["data"]
        everything = client.get("/forum/posts", params={"category": "all"}).json()["data"]

        assert [p["title"] for p in by_category] == ["First week"]
        assert [p["title"] for p in by_tag] == ["First week"]
        assert [p["title"] for p in by_query] == ["Exams"]
        assert len(everything) == 2

    def test_get_post_counts_views(self, client, post):
        client.get(f"/forum/posts/{post['_id']}")
        response = client.get(f"/forum/posts/{post['_id']}")

        assert response.json()["data"]["views"] == 2

    def test_invalid_sort(self, client):
        response = client.get("/forum/posts", params={"sort": "$where"})

        assert response.status_code == 400


class TestLikes:
    def test_like_toggle(self, client, member, post, broadcaster):
        _, headers = member

        first = client.post(f"/forum/posts/{post['_id']}/like", headers=headers).json()["data"]
        second = client.post(f"/forum/posts/{post['_id']}/like", headers=headers).json()["data"]

        assert first == {"liked": True, "likesCount": 1}
        assert second == {"liked": False, "likesCount": 0}
        assert broadcaster.of("forum:postUpdate") == [
            {"postId": post["_id"], "updates": {"likesCount": 1}},
            {"postId": post["_id"], "updates": {"likesCount": 0}},
        ]

    def test_likes_from_two_users(self, client, make_user, member, post):
        _, first = member
        _, second = make_user(email="other@example.com")

        client.post(f"/forum/posts/{post['_id']}/like", headers=first)
        response = client.post(f"/forum/posts/{post['_id']}/like", headers=second)

        assert response.json()["data"]["likesCount"] == 2

    def test_comment_like_toggle(self, client, member, post):
        _, headers = member
        comment = client.post(
            f"/forum/posts/{post['_id']}/comments", json={"content": "Same here"}, headers=headers
        ).json()["data"]

        liked = client.post(f"/forum/comments/{comment['_id']}/like", headers=headers).json()["data"]

        assert liked == {"liked": True, "likesCount": 1}


class TestComments:
    def test_reply_thread_and_counts(self, client, member, post):
        _, headers = member
        url = f"/forum/posts/{post['_id']}/comments"

        top = client.post(url, json={"content": "Welcome!"}, headers=headers).json()["data"]
        reply = client.post(url, json={"content": "Thanks", "parentCommentId": top["_id"]}, headers=headers).json()["data"]

        assert reply["depth"] == 1
        assert [c["_id"] for c in client.get(url).json()["data"]] == [top["_id"]]
        assert [c["_id"] for c in client.get(url, params={"parentId": top["_id"]}).json()["data"]] == [reply["_id"]]

        parent = client.get(url).json()["data"][0]
        assert parent["repliesCount"] == 1
        assert client.get(f"/forum/posts/{post['_id']}").json()["data"]["commentsCount"] == 2

    def test_max_reply_depth(self, client, member, post):
        _, headers = member
        url = f"/forum/posts/{post['_id']}/comments"

        parent_id = None
        for _ in range(MAX_COMMENT_DEPTH + 1):
            body = {"content": "deeper"}
            if parent_id:
                body["parentCommentId"] = parent_id
            response = client.post(url, json=body, headers=headers)
            assert response.status_code == 201
            parent_id = response.json()["data"]["_id"]

        response = client.post(url, json={"content": "too deep", "parentCommentId": parent_id}, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "Maximum reply depth exceeded"

    def test_empty_comment(self, client, member, post):
        _, headers = member

        response = client.post(f"/forum/posts/{post['_id']}/comments", json={"content": "  "}, headers=headers)

        assert response.status_code == 400


class TestReports:
    def test_report_once_per_user(self, client, member, post):
        _, headers = member

        assert client.post(f"/forum/posts/{post['_id']}/report", json={"reason": "spam"}, headers=headers).status_code == 200
        again = client.post(f"/forum/posts/{post['_id']}/report", json={"reason": "spam"}, headers=headers)

        assert again.status_code == 400
        assert again.json()["error"] == "You have already reported this post"

    def test_three_reports_flag_post(self, client, make_user, post):
        for n in range(3):
            _, headers = make_user(email=f"reporter{n}@example.com")
            client.post(f"/forum/posts/{post['_id']}/report", headers=headers)

        data = client.get(f"/forum/posts/{post['_id']}").json()["data"]

        assert data["reportCount"] == 3
        assert data["isFlagged"] is True
