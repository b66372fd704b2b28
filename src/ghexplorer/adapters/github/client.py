"""GitHub REST API client."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import BaseModel

from ghexplorer.adapters.http_resilience import QuotaSnapshot, ResilientClient
from ghexplorer.domain.ports.github import (
    GitHubAPIError,
    GitHubNotFoundError,
    GitHubRateLimitError,
)

from .schema import (
    GitHubCommit,
    GitHubPullRequest,
    GitHubRateLimit,
    GitHubRepository,
    GitHubUser,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from ghexplorer.config.github import GitHubConfig
    from ghexplorer.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

LOW_QUOTA_THRESHOLD = 10
_NOT_FOUND_STATUSES = frozenset({404, 410})
_RATE_LIMIT_STATUSES = frozenset({403, 429})


class GitHubClient:
    """Async client for the GitHub REST API.

    The underlying ``ResilientClient`` is opened on first use and kept until
    ``aclose``, so the rate limiter and cache span every call made through this
    instance. Use it as an async context manager.
    """

    def __init__(
        self,
        *,
        config: GitHubConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._http: ResilientClient | None = None
        self.quota: QuotaSnapshot | None = None

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    # Single resources ------------------------------------------------------------

    async def get_repository(self, owner: str, repo: str) -> GitHubRepository:
        return await self._get_model(f"/repos/{owner}/{repo}", GitHubRepository)

    async def get_user_by_id(self, github_id: int) -> GitHubUser:
        return await self._get_model(f"/user/{github_id}", GitHubUser)

    async def get_user(self, login: str) -> GitHubUser:
        return await self._get_model(f"/users/{login}", GitHubUser)

    async def get_pull_request(self, owner: str, repo: str, number: int) -> GitHubPullRequest:
        return await self._get_model(f"/repos/{owner}/{repo}/pulls/{number}", GitHubPullRequest)

    async def get_commit(self, owner: str, repo: str, sha: str) -> GitHubCommit:
        return await self._get_model(f"/repos/{owner}/{repo}/commits/{sha}", GitHubCommit)

    async def get_rate_limit(self) -> GitHubRateLimit:
        rate_limit = await self._get_model("/rate_limit", GitHubRateLimit)
        core = rate_limit.resources.get("core") or rate_limit.rate
        if core is not None:
            log.info("GitHub core quota: %d/%d remaining", core.remaining, core.limit)
        return rate_limit

    # Collections -------------------------------------------------------------------

    async def list_contributors(
        self,
        owner: str,
        repo: str,
        *,
        per_page: int | None = None,
        max_items: int | None = None,
    ) -> list[GitHubUser]:
        return await self._paginate(
            f"/repos/{owner}/{repo}/contributors",
            GitHubUser,
            per_page=per_page,
            max_items=max_items,
        )

    async def list_pull_requests(
        self,
        owner: str,
        repo: str,
        *,
        state: str = "closed",
        per_page: int | None = None,
        max_items: int | None = None,
    ) -> list[GitHubPullRequest]:
        return await self._paginate(
            f"/repos/{owner}/{repo}/pulls",
            GitHubPullRequest,
            params={"state": state, "sort": "updated", "direction": "desc"},
            per_page=per_page,
            max_items=max_items,
        )

    async def list_commits(
        self,
        owner: str,
        repo: str,
        *,
        per_page: int | None = None,
        max_items: int | None = None,
    ) -> list[GitHubCommit]:
        return await self._paginate(
            f"/repos/{owner}/{repo}/commits",
            GitHubCommit,
            per_page=per_page,
            max_items=max_items,
        )

    async def list_pull_request_commits(
        self,
        owner: str,
        repo: str,
        number: int,
        *,
        per_page: int | None = None,
        max_items: int | None = None,
    ) -> list[GitHubCommit]:
        return await self._paginate(
            f"/repos/{owner}/{repo}/pulls/{number}/commits",
            GitHubCommit,
            per_page=per_page,
            max_items=max_items,
        )

    # Plumbing -------------------------------------------------------------------

    def _client(self) -> ResilientClient:
        if self._http is None:
            if self._resilience.base_url is None:
                raise GitHubAPIError("Missing GitHub base_url in resilience configuration")
            self._http = self._client_factory(self._resilience)
        return self._http

    async def _get_model[TModel: BaseModel](
        self,
        path: str,
        model: type[TModel],
        params: dict[str, str] | None = None,
    ) -> TModel:
        response = await self._request(path, params)
        payload = response.json()
        if not isinstance(payload, dict):
            raise GitHubAPIError(f"Unexpected GitHub payload for {path}", status=200)
        return model.model_validate(payload)

    async def _paginate[TModel: BaseModel](
        self,
        path: str,
        model: type[TModel],
        *,
        params: dict[str, str] | None = None,
        per_page: int | None = None,
        max_items: int | None = None,
    ) -> list[TModel]:
        page_size = per_page or self._config.per_page
        query = {**(params or {}), "per_page": str(page_size)}
        items: list[TModel] = []
        url: str | None = path

        while url is not None:
            response = await self._request(url, query)
            # 204: repositories without history have no contributors
            if response.status_code == httpx.codes.NO_CONTENT:
                break
            payload = response.json()
            if not isinstance(payload, list):
                raise GitHubAPIError(f"Expected a list from {path}", status=response.status_code)
            for entry in payload:
                items.append(model.model_validate(entry))
                if max_items is not None and len(items) >= max_items:
                    return items
            next_link = response.links.get("next")
            url = next_link.get("url") if next_link else None
            # the next link already carries the query string
            query = None

        return items

    async def _request(self, url: str, params: dict[str, str] | None) -> httpx.Response:
        client = self._client()
        response = await client.get(url, params=params)
        self._track_quota(client.quota)
        if response.is_error:
            raise _error_for(response)
        return response

    def _track_quota(self, quota: QuotaSnapshot | None) -> None:
        if quota is None:
            return
        self.quota = quota
        if quota.remaining is not None and quota.remaining < LOW_QUOTA_THRESHOLD:
            log.warning(
                "GitHub quota nearly exhausted: %d/%s remaining, resets at %s",
                quota.remaining,
                quota.limit,
                _epoch_to_datetime(quota.reset_epoch),
            )


def _error_for(response: httpx.Response) -> GitHubAPIError:
    status = response.status_code
    message = _error_message(response)
    headers = dict(response.headers)

    if status in _NOT_FOUND_STATUSES:
        return GitHubNotFoundError(message, status=status, headers=headers)
    if status in _RATE_LIMIT_STATUSES and _is_rate_limited(response, message):
        return GitHubRateLimitError(
            message,
            status=status,
            headers=headers,
            reset_at=_rate_limit_reset(response.headers),
        )
    return GitHubAPIError(message, status=status, headers=headers)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        detail = payload["message"]
    else:
        detail = response.reason_phrase or "GitHub API error"
    return f"GitHub API {response.status_code} for {response.request.url.path}: {detail}"


def _is_rate_limited(response: httpx.Response, message: str) -> bool:
    if response.headers.get("x-ratelimit-remaining") == "0":
        return True
    return "rate limit" in message.lower()


def _rate_limit_reset(headers: httpx.Headers) -> datetime | None:
    reset = headers.get("x-ratelimit-reset")
    if reset is not None:
        try:
            return _epoch_to_datetime(int(reset))
        except ValueError:
            log.debug("Unparseable x-ratelimit-reset header: %s", reset)
    retry_after = headers.get("retry-after")
    if retry_after is not None:
        try:
            return datetime.now(UTC) + timedelta(seconds=int(retry_after))
        except ValueError:
            log.debug("Unparseable retry-after header: %s", retry_after)
    return None


def _epoch_to_datetime(epoch: int | None) -> datetime | None:
    if epoch is None:
        return None
    return datetime.fromtimestamp(epoch, tz=UTC)
