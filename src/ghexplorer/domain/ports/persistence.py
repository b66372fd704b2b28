"""Repository ports for persisting ingested GitHub entities."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ghexplorer.domain.model import Commit, Contributor, MergeRequest, Repository


class RepositoryRepository(Protocol):
    def upsert(self, entity: Repository) -> Repository: ...

    def get_by_github_id(self, github_id: int) -> Repository | None: ...


class ContributorRepository(Protocol):
    def upsert(self, entity: Contributor) -> Contributor: ...

    def get_by_github_id(self, github_id: int) -> Contributor | None: ...


class MergeRequestRepository(Protocol):
    def upsert(self, entity: MergeRequest) -> MergeRequest: ...

    def get(self, *, repository_github_id: int, github_id: int) -> MergeRequest | None: ...


class CommitRepository(Protocol):
    def upsert(self, entity: Commit) -> Commit: ...

    def get(self, *, repository_github_id: int, sha: str) -> Commit | None: ...
