"""Tests for the GitHub comment client."""

from __future__ import annotations

import json

import httpx
import pytest

from renderdiff.errors import GitHubError
from renderdiff.github import CommentClient

MARKER = "<!-- render-diff-comment -->"


class FakeGitHub:
    """Minimal in-memory issue comments API."""

    def __init__(self, pages: list[list[dict]] | None = None, fail_status: int = 0):
        self.pages = pages or [[]]
        self.fail_status = fail_status
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_status:
            return httpx.Response(self.fail_status, text="Bad credentials")

        if request.method == "GET":
            page = int(request.url.params.get("page", "1"))
            headers = {}
            if page < len(self.pages):
                next_url = (
                    f"{request.url.scheme}://{request.url.host}{request.url.path}"
                    f"?page={page + 1}"
                )
                headers["link"] = f'<{next_url}>; rel="next"'
            return httpx.Response(200, json=self.pages[page - 1], headers=headers)

        if request.method == "PATCH":
            return httpx.Response(200, json={"id": 1})
        return httpx.Response(201, json={"id": 99})

    def client(self, **kwargs) -> CommentClient:
        return CommentClient(
            token="secret",
            repository="org/repo",
            transport=httpx.MockTransport(self.handler),
            **kwargs,
        )


class TestCommentClient:
    @pytest.mark.parametrize("repository", ["", "org", "org/", "/repo", "a/b/c"])
    def test_invalid_repository(self, repository: str):
        with pytest.raises(GitHubError, match="owner/repo"):
            CommentClient(token="t", repository=repository)

    def test_missing_token(self):
        with pytest.raises(GitHubError, match="token"):
            CommentClient(token="", repository="org/repo")

    def test_creates_comment(self):
        api = FakeGitHub(pages=[[{"id": 5, "body": "unrelated"}]])

        with api.client() as client:
            client.upsert_comment(7, "hello")

        post = api.requests[-1]
        assert post.method == "POST"
        assert post.url.path == "/repos/org/repo/issues/7/comments"
        assert post.headers["authorization"] == "Bearer secret"
        assert json.loads(post.content)["body"] == f"{MARKER}\nhello"

    def test_updates_existing_comment_on_later_page(self):
        api = FakeGitHub(
            pages=[
                [{"id": 1, "body": "first"}],
                [{"id": 42, "body": f"{MARKER}\nold diff"}],
            ]
        )

        with api.client() as client:
            client.upsert_comment(7, f"{MARKER}\nnew diff")

        methods = [r.method for r in api.requests]
        assert methods == ["GET", "GET", "PATCH"]
        patch = api.requests[-1]
        assert patch.url.path == "/repos/org/repo/issues/comments/42"
        assert json.loads(patch.content)["body"] == f"{MARKER}\nnew diff"

    def test_find_comment_none(self):
        api = FakeGitHub(pages=[[]])

        with api.client() as client:
            assert client.find_comment(7) is None

    def test_custom_marker(self):
        api = FakeGitHub(pages=[[{"id": 3, "body": "<!-- mine -->"}]])

        with api.client(marker="<!-- mine -->") as client:
            assert client.find_comment(7)["id"] == 3

    def test_http_error(self):
        api = FakeGitHub(fail_status=401)

        with api.client() as client, pytest.raises(GitHubError, match="401"):
            client.upsert_comment(7, "body")

    def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = CommentClient(
            token="t", repository="org/repo", transport=httpx.MockTransport(handler)
        )

        with client, pytest.raises(GitHubError, match="connection refused"):
            client.find_comment(1)
