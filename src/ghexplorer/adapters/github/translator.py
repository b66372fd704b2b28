"""Translate GitHub payloads into domain entities."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import ValidationError

from ghexplorer.domain.model import (
    Commit,
    Contributor,
    FileChange,
    MergeRequest,
    MergeRequestStatus,
    Repository,
)
from ghexplorer.domain.ports.github import ExtractedEntities

from .schema import (
    GitHubCommit,
    GitHubEvent,
    GitHubPullRequest,
    GitHubPushCommit,
    GitHubRepository,
    GitHubUser,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from pydantic import BaseModel


class PayloadValidationError(ValueError):
    """Raised when a raw payload cannot be translated."""


# domain field -> payload field it is read from
_REPOSITORY_SOURCES = {
    "github_id": "id",
    "name": "name",
    "full_name": "full_name",
    "owner_login": "owner",
    "description": "description",
    "url": "html_url",
    "api_url": "url",
    "stars": "stargazers_count",
    "forks": "forks_count",
    "watchers_count": "watchers_count",
    "open_issues_count": "open_issues_count",
    "size_kb": "size",
    "primary_language": "language",
    "license": "license",
    "default_branch": "default_branch",
    "is_fork": "fork",
    "is_archived": "archived",
    "topics": "topics",
    "github_created_at": "created_at",
    "last_updated": "updated_at",
    "pushed_at": "pushed_at",
}

_CONTRIBUTOR_SOURCES = {
    "github_id": "id",
    "username": "login",
    "name": "name",
    "avatar_url": "avatar_url",
    "bio": "bio",
    "company": "company",
    "blog": "blog",
    "twitter_username": "twitter_username",
    "location": "location",
    "followers": "followers",
    "following": "following",
    "public_repos": "public_repos",
    "account_created_at": "created_at",
}

_MERGE_REQUEST_SOURCES = {
    "github_id": "id",
    "number": "number",
    "title": "title",
    "description": "body",
    "state": "state",
    "status": "state",
    "is_draft": "draft",
    "author_github_id": "user",
    "author_login": "user",
    "base_branch": "base",
    "head_branch": "head",
    "url": "html_url",
    "github_created_at": "created_at",
    "github_updated_at": "updated_at",
    "closed_at": "closed_at",
    "merged_at": "merged_at",
    "commits_count": "commits",
    "additions": "additions",
    "deletions": "deletions",
    "changed_files": "changed_files",
    "comments": "comments",
    "review_comments": "review_comments",
    "labels": "labels",
    "requested_reviewers": "requested_reviewers",
}

_COMMIT_SOURCES = {
    "sha": "sha",
    "message": "commit",
    "author_name": "commit",
    "author_email": "commit",
    "committed_at": "commit",
    "author_github_id": "author",
    "additions": "stats",
    "deletions": "stats",
    "files": "files",
}

_PUSH_COMMIT_SOURCES = {
    "sha": "id",
    "message": "message",
    "author_name": "author",
    "author_email": "author",
    "committed_at": "timestamp",
    "files": ("added", "removed", "modified"),
}


def supplied_fields(
    payload: BaseModel, sources: Mapping[str, str | tuple[str, ...]]
) -> frozenset[str]:
    """Domain fields backed by a key that was actually present in ``payload``."""

    present = payload.model_fields_set
    return frozenset(
        name
        for name, source in sources.items()
        if (source in present if isinstance(source, str) else not present.isdisjoint(source))
    )


def to_repository(payload: GitHubRepository) -> Repository:
    return Repository(
        github_id=payload.id,
        name=payload.name,
        full_name=payload.full_name,
        owner_login=payload.owner.login if payload.owner else None,
        description=payload.description,
        url=payload.html_url,
        api_url=payload.url,
        stars=payload.stargazers_count,
        forks=payload.forks_count,
        watchers_count=payload.watchers_count,
        open_issues_count=payload.open_issues_count,
        size_kb=payload.size,
        primary_language=payload.language,
        license=payload.license.spdx_id if payload.license else None,
        default_branch=payload.default_branch,
        is_fork=payload.fork,
        is_archived=payload.archived,
        topics=list(payload.topics),
        github_created_at=payload.created_at,
        last_updated=payload.updated_at,
        pushed_at=payload.pushed_at,
        supplied_fields=supplied_fields(payload, _REPOSITORY_SOURCES),
    )


def to_contributor(payload: GitHubUser) -> Contributor:
    return Contributor(
        github_id=payload.id,
        username=payload.login,
        name=payload.name,
        avatar_url=payload.avatar_url,
        bio=payload.bio,
        company=payload.company,
        blog=payload.blog or None,
        twitter_username=payload.twitter_username,
        location=payload.location,
        followers=payload.followers,
        following=payload.following,
        public_repos=payload.public_repos,
        account_created_at=payload.created_at,
        supplied_fields=supplied_fields(payload, _CONTRIBUTOR_SOURCES),
    )


def merge_request_status(payload: GitHubPullRequest) -> MergeRequestStatus:
    if payload.merged_at is not None:
        return MergeRequestStatus.MERGED
    if payload.closed_at is not None or payload.state == "closed":
        return MergeRequestStatus.CLOSED
    return MergeRequestStatus.OPEN


def to_merge_request(
    payload: GitHubPullRequest,
    repository_github_id: int | None = None,
) -> MergeRequest:
    repo_id = repository_github_id
    if repo_id is None and payload.base is not None and payload.base.repo is not None:
        repo_id = payload.base.repo.id
    if repo_id is None:
        raise PayloadValidationError(f"Pull request {payload.id} has no repository reference")

    return MergeRequest(
        github_id=payload.id,
        repository_github_id=repo_id,
        number=payload.number,
        title=payload.title,
        description=payload.body,
        state=payload.state,
        status=merge_request_status(payload),
        is_draft=payload.draft,
        author_github_id=payload.user.id if payload.user else None,
        author_login=payload.user.login if payload.user else None,
        base_branch=payload.base.ref if payload.base else None,
        head_branch=payload.head.ref if payload.head else None,
        url=payload.html_url,
        github_created_at=payload.created_at,
        github_updated_at=payload.updated_at,
        closed_at=payload.closed_at,
        merged_at=payload.merged_at,
        commits_count=payload.commits,
        additions=payload.additions,
        deletions=payload.deletions,
        changed_files=payload.changed_files,
        comments=payload.comments,
        review_comments=payload.review_comments,
        labels=[label.name for label in payload.labels],
        requested_reviewers=[reviewer.login for reviewer in payload.requested_reviewers],
        supplied_fields=supplied_fields(payload, _MERGE_REQUEST_SOURCES),
    )


def to_commit(
    payload: GitHubCommit,
    repository_github_id: int,
    merge_request_github_id: int | None = None,
) -> Commit:
    supplied = supplied_fields(payload, _COMMIT_SOURCES)
    if merge_request_github_id is not None:
        supplied |= {"merge_request_github_id"}
    git_author = payload.commit.author
    git_committer = payload.commit.committer
    committed_at = (git_committer.date if git_committer else None) or (
        git_author.date if git_author else None
    )
    return Commit(
        sha=payload.sha,
        repository_github_id=repository_github_id,
        merge_request_github_id=merge_request_github_id,
        message=payload.commit.message,
        author_name=git_author.name if git_author else None,
        author_email=git_author.email if git_author else None,
        author_github_id=payload.author.id if payload.author else None,
        committed_at=committed_at,
        additions=payload.stats.additions if payload.stats else 0,
        deletions=payload.stats.deletions if payload.stats else 0,
        files=[
            FileChange(
                filename=item.filename,
                status=item.status,
                additions=item.additions,
                deletions=item.deletions,
                changes=item.changes,
                patch=item.patch,
            )
            for item in payload.files
        ],
        supplied_fields=supplied,
    )


def push_commit_to_commit(payload: GitHubPushCommit, repository_github_id: int) -> Commit:
    files = [
        *(FileChange(filename=name, status="added") for name in payload.added),
        *(FileChange(filename=name, status="removed") for name in payload.removed),
        *(FileChange(filename=name, status="modified") for name in payload.modified),
    ]
    author = payload.author
    return Commit(
        sha=payload.id,
        repository_github_id=repository_github_id,
        message=payload.message,
        author_name=author.name if author else None,
        author_email=author.email if author else None,
        committed_at=payload.timestamp,
        files=files,
        supplied_fields=supplied_fields(payload, _PUSH_COMMIT_SOURCES),
    )


def extract_entities_from_event(raw: Mapping[str, object]) -> ExtractedEntities:
    """Collect every entity present in a webhook-style payload.

    Recognised sections are ``repository``, ``pull_request`` (its author becomes
    a contributor), ``sender`` and ``commits``. Commits need the repository
    section to be scoped.
    """

    try:
        event = GitHubEvent.model_validate(raw)
    except ValidationError as exc:
        raise PayloadValidationError(f"Invalid GitHub payload: {exc}") from exc

    repositories: list[Repository] = []
    if event.repository is not None:
        repositories.append(to_repository(event.repository))
    repository_github_id = event.repository.id if event.repository else None

    merge_requests: list[MergeRequest] = []
    if event.pull_request is not None:
        merge_requests.append(to_merge_request(event.pull_request, repository_github_id))

    contributors: dict[int, Contributor] = {}
    for user in (event.pull_request.user if event.pull_request else None, event.sender):
        if user is not None and user.id not in contributors:
            contributors[user.id] = to_contributor(user)

    commits: list[Commit] = []
    if event.commits:
        if repository_github_id is None:
            raise PayloadValidationError("Commits in payload without a repository section")
        merge_request_id = event.pull_request.id if event.pull_request else None
        for item in event.commits:
            if isinstance(item, GitHubPushCommit):
                commits.append(push_commit_to_commit(item, repository_github_id))
            else:
                commits.append(to_commit(item, repository_github_id, merge_request_id))

    return ExtractedEntities(
        repositories=tuple(repositories),
        contributors=tuple(contributors.values()),
        merge_requests=tuple(merge_requests),
        commits=tuple(commits),
    )
