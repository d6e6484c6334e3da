from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from .cache import ResponseCache
from .config import DEFAULT_GITHUB_API_URL
from .models import Commit
from .utils import format_w3c, parse_iso_datetime

logger = logging.getLogger(__name__)


class GitHubError(Exception):
    """Raised when listing commits fails."""


class GitHubConnectionError(GitHubError):
    """Raised when GitHub is unreachable (network/timeout)."""


class GitHubApiError(GitHubError):
    """Raised when GitHub returns an error response or an unexpected payload."""


class GitHubClient:
    def __init__(
        self,
        token: str | None = None,
        base_url: str = DEFAULT_GITHUB_API_URL,
        cache: ResponseCache | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "github-commit-alert",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(base_url=base_url, headers=headers, timeout=20.0, transport=transport)
        self._cache = cache

    def close(self) -> None:
        self._client.close()

    def list_commits(
        self,
        owner: str,
        name: str,
        since: Optional[datetime] = None,
        per_page: int = 100,
        max_pages: int = 10,
    ) -> List[Commit]:
        """List commits newest first, restricted to those dated at or after since."""
        params: Dict[str, Any] = {"per_page": per_page}
        if since is not None:
            params["since"] = format_w3c(since)

        url: Optional[str] = f"/repos/{owner}/{name}/commits"
        commits: List[Commit] = []
        for page in range(max_pages):
            if url is None:
                break
            body, next_url = self._get(url, params if page == 0 else None)
            if body is None:
                break
            if not isinstance(body, list):
                raise GitHubApiError(f"Unexpected commit listing payload for {owner}/{name}")
            commits.extend(self._to_model(raw) for raw in body)
            url = next_url
        else:
            if url is not None:
                logger.warning("Stopped listing %s/%s after %s pages", owner, name, max_pages)
        logger.info("Fetched %s commits for %s/%s", len(commits), owner, name)
        return commits

    def _get(self, url: str, params: Optional[Dict[str, Any]]) -> tuple[Any, Optional[str]]:
        key = ResponseCache.key_for(url, params)
        cached = self._cache.get(key) if self._cache else None
        headers = {"If-None-Match": cached.etag} if cached else {}
        try:
            response = self._client.get(url, params=params, headers=headers)
        except httpx.RequestError as exc:
            raise GitHubConnectionError(f"GitHub request failed: {exc}") from exc

        if response.status_code == 304 and cached is not None:
            logger.debug("Not modified: %s", url)
            self._cache.touch(key)
            # 304 responses may omit Link; paging follows the cached one
            return cached.body, cached.next_url
        if response.status_code == 409:
            # GitHub answers 409 for repositories without any commits
            logger.info("Repository at %s is empty", url)
            return None, None
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise GitHubApiError(f"GitHub returned {response.status_code}: {_error_message(response)}") from exc
        try:
            body = response.json()
        except ValueError as exc:
            raise GitHubApiError(f"GitHub returned invalid JSON for {url}") from exc

        next_url = response.links.get("next", {}).get("url")
        etag = response.headers.get("ETag")
        if self._cache and etag:
            self._cache.put(key, etag, body, next_url)
        return body, next_url

    @staticmethod
    def _to_model(raw: dict) -> Commit:
        try:
            commit = raw["commit"]
            return Commit(
                sha=raw["sha"],
                message=commit.get("message") or "",
                committed_at=parse_iso_datetime(commit["committer"]["date"]),
                author=(commit.get("author") or {}).get("name"),
                url=raw.get("html_url"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GitHubApiError(f"Malformed commit record: {exc}") from exc


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase
