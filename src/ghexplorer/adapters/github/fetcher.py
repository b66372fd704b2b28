"""GitHub source that hands out domain entities instead of payload models."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ghexplorer.config.github import get_github_config

from .client import GitHubClient
from .translator import to_commit, to_contributor, to_merge_request, to_repository

if TYPE_CHECKING:
    from types import TracebackType

    from ghexplorer.config.github import GitHubConfig
    from ghexplorer.domain.model import Commit, Contributor, MergeRequest, Repository


class GitHubFetcher:
    """``GitHubSource`` implementation backed by ``GitHubClient``."""

    def __init__(self, client: GitHubClient) -> None:
        self._client = client
        self._repository_ids: dict[str, int] = {}

    async def __aenter__(self) -> GitHubFetcher:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def client(self) -> GitHubClient:
        return self._client

    async def get_repository(self, owner: str, repo: str) -> Repository:
        payload = await self._client.get_repository(owner, repo)
        self._repository_ids[_key(owner, repo)] = payload.id
        return to_repository(payload)

    async def get_user_by_id(self, github_id: int) -> Contributor:
        return to_contributor(await self._client.get_user_by_id(github_id))

    async def get_pull_request(self, owner: str, repo: str, number: int) -> MergeRequest:
        payload = await self._client.get_pull_request(owner, repo, number)
        return to_merge_request(payload, self._repository_ids.get(_key(owner, repo)))

    async def list_contributors(
        self, owner: str, repo: str, *, max_items: int | None = None
    ) -> list[Contributor]:
        users = await self._client.list_contributors(owner, repo, max_items=max_items)
        return [to_contributor(user) for user in users]

    async def list_pull_requests(
        self, owner: str, repo: str, *, state: str = "closed", max_items: int | None = None
    ) -> list[MergeRequest]:
        pulls = await self._client.list_pull_requests(
            owner, repo, state=state, max_items=max_items
        )
        repository_id = self._repository_ids.get(_key(owner, repo))
        return [to_merge_request(pull, repository_id) for pull in pulls]

    async def list_commits(
        self, owner: str, repo: str, *, max_items: int | None = None
    ) -> list[Commit]:
        repository_id = await self._repository_id(owner, repo)
        commits = await self._client.list_commits(owner, repo, max_items=max_items)
        return [to_commit(commit, repository_id) for commit in commits]

    async def _repository_id(self, owner: str, repo: str) -> int:
        key = _key(owner, repo)
        if key not in self._repository_ids:
            # commit payloads do not reference their repository
            await self.get_repository(owner, repo)
        return self._repository_ids[key]


def _key(owner: str, repo: str) -> str:
    return f"{owner}/{repo}".lower()


def build_github_fetcher(config: GitHubConfig | None = None) -> GitHubFetcher:
    """Create a fetcher with a fresh client from environment configuration."""

    return GitHubFetcher(GitHubClient(config=config or get_github_config()))
