"""GitHub REST v3 and webhook payload schemas."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field


class GitHubBaseModel(BaseModel):
    # GitHub payloads carry dozens of keys we never read
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class GitHubUser(GitHubBaseModel):
    id: int
    login: str
    avatar_url: str | None = None
    html_url: str | None = None
    type: str | None = None
    name: str | None = None
    company: str | None = None
    blog: str | None = None
    location: str | None = None
    bio: str | None = None
    twitter_username: str | None = None
    public_repos: int = 0
    followers: int = 0
    following: int = 0
    created_at: datetime | None = None
    contributions: int | None = None


class GitHubLicense(GitHubBaseModel):
    key: str | None = None
    name: str | None = None
    spdx_id: str | None = None


class GitHubRepository(GitHubBaseModel):
    id: int
    name: str
    full_name: str
    owner: GitHubUser | None = None
    description: str | None = None
    html_url: str | None = None
    url: str | None = None
    stargazers_count: int = 0
    forks_count: int = 0
    watchers_count: int = 0
    open_issues_count: int = 0
    size: int = 0
    language: str | None = None
    license: GitHubLicense | None = None
    default_branch: str | None = None
    fork: bool = False
    archived: bool = False
    topics: list[str] = Field(default_factory=list[str])
    created_at: datetime | None = None
    updated_at: datetime | None = None
    pushed_at: datetime | None = None


class GitHubRepositoryRef(GitHubBaseModel):
    id: int
    full_name: str | None = None


class GitHubBranchRef(GitHubBaseModel):
    ref: str | None = None
    sha: str | None = None
    repo: GitHubRepositoryRef | None = None


class GitHubLabel(GitHubBaseModel):
    name: str


class GitHubPullRequest(GitHubBaseModel):
    """Pull request as returned by both the list and the detail endpoint.

    Size and discussion counters are only present on the detail endpoint.
    """

    id: int
    number: int
    title: str = ""
    body: str | None = None
    state: str = "open"
    draft: bool = False
    user: GitHubUser | None = None
    html_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None
    merged_at: datetime | None = None
    base: GitHubBranchRef | None = None
    head: GitHubBranchRef | None = None
    commits: int = 0
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    comments: int = 0
    review_comments: int = 0
    labels: list[GitHubLabel] = Field(default_factory=list[GitHubLabel])
    requested_reviewers: list[GitHubUser] = Field(default_factory=list[GitHubUser])


class GitHubGitActor(GitHubBaseModel):
    name: str | None = None
    email: str | None = None
    date: datetime | None = None


class GitHubCommitDetail(GitHubBaseModel):
    message: str = ""
    author: GitHubGitActor | None = None
    committer: GitHubGitActor | None = None


class GitHubCommitStats(GitHubBaseModel):
    additions: int = 0
    deletions: int = 0
    total: int = 0


class GitHubCommitFile(GitHubBaseModel):
    filename: str
    status: str | None = None
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    patch: str | None = None


class GitHubCommit(GitHubBaseModel):
    """Commit from ``/repos/{owner}/{repo}/commits``; ``files`` only on the detail call."""

    sha: str
    commit: GitHubCommitDetail
    author: GitHubUser | None = None
    html_url: str | None = None
    stats: GitHubCommitStats | None = None
    files: list[GitHubCommitFile] = Field(default_factory=list[GitHubCommitFile])


class GitHubPushAuthor(GitHubBaseModel):
    name: str | None = None
    email: str | None = None
    username: str | None = None


class GitHubPushCommit(GitHubBaseModel):
    """Commit as embedded in a ``push`` webhook event."""

    id: str
    message: str = ""
    timestamp: datetime | None = None
    author: GitHubPushAuthor | None = None
    added: list[str] = Field(default_factory=list[str])
    removed: list[str] = Field(default_factory=list[str])
    modified: list[str] = Field(default_factory=list[str])


class GitHubEvent(GitHubBaseModel):
    """Webhook-style envelope; every section is optional."""

    action: str | None = None
    repository: GitHubRepository | None = None
    pull_request: GitHubPullRequest | None = None
    sender: GitHubUser | None = None
    commits: list[GitHubCommit | GitHubPushCommit] = Field(default_factory=list)


class GitHubRateLimitResource(GitHubBaseModel):
    limit: int
    remaining: int
    reset: int
    used: int = 0


class GitHubRateLimit(GitHubBaseModel):
    resources: dict[str, GitHubRateLimitResource] = Field(
        default_factory=dict[str, GitHubRateLimitResource]
    )
    rate: GitHubRateLimitResource | None = None
