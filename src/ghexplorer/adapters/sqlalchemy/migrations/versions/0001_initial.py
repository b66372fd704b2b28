"""Initial schema: repositories, contributors, merge requests and commits.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

_CONTRIBUTOR_ROLES = (
    "project_lead",
    "maintainer",
    "regular_contributor",
    "occasional_contributor",
    "first_time_contributor",
)
_MERGE_REQUEST_STATUSES = ("open", "closed", "merged")


def _bookkeeping_columns() -> list[sa.Column[object]]:
    return [
        sa.Column("is_enriched", sa.Boolean(), nullable=False),
        sa.Column("enrichment_attempts", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "repositories",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("github_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("owner_login", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("url", sa.String(), nullable=True),
        sa.Column("api_url", sa.String(), nullable=True),
        sa.Column("stars", sa.Integer(), nullable=False),
        sa.Column("forks", sa.Integer(), nullable=False),
        sa.Column("watchers_count", sa.Integer(), nullable=False),
        sa.Column("open_issues_count", sa.Integer(), nullable=False),
        sa.Column("size_kb", sa.Integer(), nullable=False),
        sa.Column("primary_language", sa.String(), nullable=True),
        sa.Column("license", sa.String(), nullable=True),
        sa.Column("default_branch", sa.String(), nullable=True),
        sa.Column("is_fork", sa.Boolean(), nullable=False),
        sa.Column("is_archived", sa.Boolean(), nullable=False),
        sa.Column("topics", sa.Text(), nullable=True),
        sa.Column("github_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pushed_at", sa.DateTime(timezone=True), nullable=True),
        *_bookkeeping_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_repositories"),
        sa.UniqueConstraint("github_id", name="uq_repositories_github_id"),
    )
    op.create_index("ix_repositories_is_enriched", "repositories", ["is_enriched"])

    op.create_table(
        "contributors",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("github_id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("avatar_url", sa.String(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("company", sa.String(), nullable=True),
        sa.Column("blog", sa.String(), nullable=True),
        sa.Column("twitter_username", sa.String(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("followers", sa.Integer(), nullable=False),
        sa.Column("following", sa.Integer(), nullable=False),
        sa.Column("public_repos", sa.Integer(), nullable=False),
        sa.Column("account_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("impact_score", sa.Integer(), nullable=True),
        sa.Column(
            "role_classification",
            sa.Enum(*_CONTRIBUTOR_ROLES, name="contributorrole", native_enum=False, length=32),
            nullable=True,
        ),
        sa.Column("top_languages", sa.Text(), nullable=True),
        sa.Column("organizations", sa.Text(), nullable=True),
        *_bookkeeping_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_contributors"),
        sa.UniqueConstraint("github_id", name="uq_contributors_github_id"),
    )
    op.create_index("ix_contributors_is_enriched", "contributors", ["is_enriched"])

    op.create_table(
        "merge_requests",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("github_id", sa.Integer(), nullable=False),
        sa.Column("repository_github_id", sa.Integer(), nullable=False),
        sa.Column("repository_id", sa.Uuid(), nullable=True),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("state", sa.String(length=16), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                *_MERGE_REQUEST_STATUSES,
                name="mergerequeststatus",
                native_enum=False,
                length=32,
            ),
            nullable=False,
        ),
        sa.Column("is_draft", sa.Boolean(), nullable=False),
        sa.Column("author_github_id", sa.Integer(), nullable=True),
        sa.Column("author_login", sa.String(), nullable=True),
        sa.Column("base_branch", sa.String(), nullable=True),
        sa.Column("head_branch", sa.String(), nullable=True),
        sa.Column("url", sa.String(), nullable=True),
        sa.Column("github_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("github_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("merged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("commits_count", sa.Integer(), nullable=False),
        sa.Column("additions", sa.Integer(), nullable=False),
        sa.Column("deletions", sa.Integer(), nullable=False),
        sa.Column("changed_files", sa.Integer(), nullable=False),
        sa.Column("comments", sa.Integer(), nullable=False),
        sa.Column("review_comments", sa.Integer(), nullable=False),
        sa.Column("labels", sa.Text(), nullable=True),
        sa.Column("requested_reviewers", sa.Text(), nullable=True),
        sa.Column("cycle_time_hours", sa.Float(), nullable=True),
        sa.Column("review_time_hours", sa.Float(), nullable=True),
        sa.Column("complexity_score", sa.Integer(), nullable=True),
        *_bookkeeping_columns(),
        sa.ForeignKeyConstraint(
            ["repository_id"],
            ["repositories.id"],
            name="fk_merge_requests_merge_requests_repository_id_repositories",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_merge_requests"),
        sa.UniqueConstraint(
            "repository_github_id",
            "github_id",
            name="uq_merge_requests_repository_github_id_github_id",
        ),
    )
    op.create_index("ix_merge_requests_is_enriched", "merge_requests", ["is_enriched"])
    op.create_index(
        "ix_merge_requests_repository_github_id", "merge_requests", ["repository_github_id"]
    )

    op.create_table(
        "commits",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sha", sa.String(length=40), nullable=False),
        sa.Column("repository_github_id", sa.Integer(), nullable=False),
        sa.Column("repository_id", sa.Uuid(), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("author_name", sa.String(), nullable=True),
        sa.Column("author_email", sa.String(), nullable=True),
        sa.Column("author_github_id", sa.Integer(), nullable=True),
        sa.Column("committed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("merge_request_github_id", sa.Integer(), nullable=True),
        sa.Column("additions", sa.Integer(), nullable=False),
        sa.Column("deletions", sa.Integer(), nullable=False),
        sa.Column("files", sa.Text(), nullable=True),
        *_bookkeeping_columns(),
        sa.ForeignKeyConstraint(
            ["repository_id"],
            ["repositories.id"],
            name="fk_commits_commits_repository_id_repositories",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_commits"),
        sa.UniqueConstraint(
            "repository_github_id", "sha", name="uq_commits_repository_github_id_sha"
        ),
    )
    op.create_index("ix_commits_is_enriched", "commits", ["is_enriched"])
    op.create_index("ix_commits_repository_github_id", "commits", ["repository_github_id"])


def downgrade() -> None:
    op.drop_index("ix_commits_repository_github_id", table_name="commits")
    op.drop_index("ix_commits_is_enriched", table_name="commits")
    op.drop_table("commits")
    op.drop_index("ix_merge_requests_repository_github_id", table_name="merge_requests")
    op.drop_index("ix_merge_requests_is_enriched", table_name="merge_requests")
    op.drop_table("merge_requests")
    op.drop_index("ix_contributors_is_enriched", table_name="contributors")
    op.drop_table("contributors")
    op.drop_index("ix_repositories_is_enriched", table_name="repositories")
    op.drop_table("repositories")
