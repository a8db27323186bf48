"""GitHub pull request comment client."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from renderdiff.errors import GitHubError

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_MARKER = "<!-- render-diff-comment -->"


class CommentClient:
    """Creates or updates a single marker-tagged comment on a pull request."""

    def __init__(
        self,
        token: str,
        repository: str,
        api_url: str = DEFAULT_API_URL,
        marker: str = DEFAULT_MARKER,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        owner, sep, name = repository.partition("/")
        if not sep or not owner or not name or "/" in name:
            raise GitHubError(
                f"invalid repository {repository!r}: expected 'owner/repo'"
            )
        if not token:
            raise GitHubError("a GitHub token is required")

        self.repository: str = repository
        self.marker: str = marker
        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> CommentClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response: httpx.Response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise GitHubError(
                f"{method} {url} returned {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise GitHubError(f"{method} {url} failed: {e}") from e
        return response

    def find_comment(self, pr_number: int) -> dict[str, Any] | None:
        """Return the existing render-diff comment on a PR, if any."""
        url: str | None = f"/repos/{self.repository}/issues/{pr_number}/comments"
        params: dict[str, Any] | None = {"per_page": 100}

        while url:
            response: httpx.Response = self._request("GET", url, params=params)
            for comment in response.json():
                if self.marker in (comment.get("body") or ""):
                    return comment
            next_link: dict[str, str] | None = response.links.get("next")
            url = next_link["url"] if next_link else None
            params = None
        return None

    def upsert_comment(self, pr_number: int, body: str) -> None:
        """Update the render-diff comment if it exists, otherwise create it."""
        if self.marker not in body:
            body = f"{self.marker}\n{body}"

        existing: dict[str, Any] | None = self.find_comment(pr_number)
        if existing is not None:
            self._request(
                "PATCH",
                f"/repos/{self.repository}/issues/comments/{existing['id']}",
                json={"body": body},
            )
            logger.debug("Updated comment {} on PR #{}", existing["id"], pr_number)
            return

        self._request(
            "POST",
            f"/repos/{self.repository}/issues/{pr_number}/comments",
            json={"body": body},
        )
        logger.debug("Created comment on PR #{}", pr_number)
