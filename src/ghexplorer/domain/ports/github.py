"""Port for reading GitHub data, plus the provider error taxonomy."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from ghexplorer.domain.model import Commit, Contributor, MergeRequest, Repository


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub API answers with an error status."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.headers: dict[str, str] = {
            key.lower(): value for key, value in (headers or {}).items()
        }


class GitHubNotFoundError(GitHubAPIError):
    """The requested entity no longer exists upstream (404/410)."""


class GitHubRateLimitError(GitHubAPIError):
    """Quota exhausted; ``reset_at`` is when the provider accepts calls again."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        headers: Mapping[str, str] | None = None,
        reset_at: datetime | None = None,
    ) -> None:
        super().__init__(message, status=status, headers=headers)
        self.reset_at = reset_at


@runtime_checkable
class GitHubSource(Protocol):
    """Async read access to GitHub, translated into domain entities."""

    async def get_repository(self, owner: str, repo: str) -> Repository: ...

    async def get_user_by_id(self, github_id: int) -> Contributor: ...

    async def get_pull_request(self, owner: str, repo: str, number: int) -> MergeRequest: ...

    async def list_contributors(
        self, owner: str, repo: str, *, max_items: int | None = None
    ) -> list[Contributor]: ...

    async def list_pull_requests(
        self, owner: str, repo: str, *, state: str = "closed", max_items: int | None = None
    ) -> list[MergeRequest]: ...

    async def list_commits(
        self, owner: str, repo: str, *, max_items: int | None = None
    ) -> list[Commit]: ...


@dataclass(slots=True, frozen=True)
class ExtractedEntities:
    """Entities found in one raw GitHub payload."""

    repositories: tuple[Repository, ...] = ()
    contributors: tuple[Contributor, ...] = ()
    merge_requests: tuple[MergeRequest, ...] = ()
    commits: tuple[Commit, ...] = ()


type EntityExtractor = Callable[[Mapping[str, object]], ExtractedEntities]
