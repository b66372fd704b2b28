"""GitHub entities ingested and enriched by the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID

from ghexplorer.domain.model.entity import EnrichableEntity
from ghexplorer.domain.model.enums import ContributorRole, EntityType, MergeRequestStatus

if TYPE_CHECKING:
    from datetime import datetime


class InvalidFullNameError(ValueError):
    """Raised when a repository name is not of the form ``owner/name``."""


def split_full_name(full_name: str) -> tuple[str, str]:
    owner, sep, name = full_name.strip().partition("/")
    if not sep or not owner or not name or "/" in name:
        raise InvalidFullNameError(f"Invalid repository full name: {full_name!r}")
    return owner, name


@dataclass(eq=False, kw_only=True)
class Repository(EnrichableEntity):
    ENTITY_TYPE: ClassVar[EntityType] = EntityType.REPOSITORY

    github_id: int
    name: str
    full_name: str
    owner_login: str | None = None
    description: str | None = None
    url: str | None = None
    api_url: str | None = None
    stars: int = 0
    forks: int = 0
    watchers_count: int = 0
    open_issues_count: int = 0
    size_kb: int = 0
    primary_language: str | None = None
    license: str | None = None
    default_branch: str | None = None
    is_fork: bool = False
    is_archived: bool = False
    topics: list[str] = field(default_factory=list[str])
    github_created_at: datetime | None = None
    last_updated: datetime | None = None
    pushed_at: datetime | None = None

    @property
    def natural_key(self) -> tuple[object, ...]:
        return (self.github_id,)

    @property
    def owner_and_name(self) -> tuple[str, str]:
        return split_full_name(self.full_name)


@dataclass(eq=False, kw_only=True)
class Contributor(EnrichableEntity):
    ENTITY_TYPE: ClassVar[EntityType] = EntityType.CONTRIBUTOR

    github_id: int
    username: str
    name: str | None = None
    avatar_url: str | None = None
    bio: str | None = None
    company: str | None = None
    blog: str | None = None
    twitter_username: str | None = None
    location: str | None = None
    followers: int = 0
    following: int = 0
    public_repos: int = 0
    account_created_at: datetime | None = None
    impact_score: int | None = None
    role_classification: ContributorRole | None = None
    top_languages: list[str] = field(default_factory=list[str])
    organizations: list[str] = field(default_factory=list[str])

    @property
    def natural_key(self) -> tuple[object, ...]:
        return (self.github_id,)


@dataclass(eq=False, kw_only=True)
class MergeRequest(EnrichableEntity):
    """A pull request; unique per repository by ``github_id``."""

    ENTITY_TYPE: ClassVar[EntityType] = EntityType.MERGE_REQUEST

    github_id: int
    repository_github_id: int
    number: int
    title: str = ""
    description: str | None = None
    state: str = "open"
    status: MergeRequestStatus = MergeRequestStatus.OPEN
    is_draft: bool = False
    author_github_id: int | None = None
    author_login: str | None = None
    base_branch: str | None = None
    head_branch: str | None = None
    url: str | None = None
    github_created_at: datetime | None = None
    github_updated_at: datetime | None = None
    closed_at: datetime | None = None
    merged_at: datetime | None = None
    commits_count: int = 0
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    comments: int = 0
    review_comments: int = 0
    labels: list[str] = field(default_factory=list[str])
    requested_reviewers: list[str] = field(default_factory=list[str])
    cycle_time_hours: float | None = None
    review_time_hours: float | None = None
    complexity_score: int | None = None
    repository_id: UUID | None = None

    @property
    def natural_key(self) -> tuple[object, ...]:
        return (self.repository_github_id, self.github_id)


@dataclass(slots=True, frozen=True)
class FileChange:
    filename: str
    status: str | None = None
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    patch: str | None = None


@dataclass(eq=False, kw_only=True)
class Commit(EnrichableEntity):
    """A commit; unique per repository by ``sha``."""

    ENTITY_TYPE: ClassVar[EntityType] = EntityType.COMMIT

    sha: str
    repository_github_id: int
    message: str = ""
    author_name: str | None = None
    author_email: str | None = None
    author_github_id: int | None = None
    committed_at: datetime | None = None
    merge_request_github_id: int | None = None
    additions: int = 0
    deletions: int = 0
    files: list[FileChange] = field(default_factory=list[FileChange])
    repository_id: UUID | None = None

    @property
    def natural_key(self) -> tuple[object, ...]:
        return (self.repository_github_id, self.sha)
