"""SQLAlchemy mapping metadata for the GitHub entity model."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from ghexplorer.domain.model import (
    Commit,
    Contributor,
    ContributorRole,
    EnrichableEntity,
    EntityType,
    FileChange,
    MergeRequest,
    MergeRequestStatus,
    Repository,
)

if TYPE_CHECKING:
    from enum import StrEnum

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class StringListType(TypeDecorator[list[str]]):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: list[str] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(list(value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> list[str]:
        _ = dialect
        if value is None:
            return []
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return []
        return [str(item) for item in cast(list[Any], loaded)]


class FileChangeListType(TypeDecorator[list[FileChange]]):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: list[FileChange] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        payload = [
            {
                "filename": change.filename,
                "status": change.status,
                "additions": change.additions,
                "deletions": change.deletions,
                "changes": change.changes,
                "patch": change.patch,
            }
            for change in value
        ]
        return json.dumps(payload)

    def process_result_value(self, value: str | None, dialect: Dialect) -> list[FileChange]:
        _ = dialect
        if value is None:
            return []
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return []
        changes: list[FileChange] = []
        for item in cast(list[Any], loaded):
            if isinstance(item, dict):
                changes.append(FileChange(**cast(dict[str, Any], item)))
        return changes


def _enum_column_type(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda members: [member.value for member in members],
        length=32,
    )


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def _bookkeeping_columns() -> list[Column[Any]]:
    return [
        Column("is_enriched", Boolean, nullable=False, default=False, index=True),
        Column("enrichment_attempts", Integer, nullable=False, default=0),
        Column("created_at", UTCDateTime, nullable=True),
        Column("updated_at", UTCDateTime, nullable=True),
    ]


# Entity tables ---------------------------------------------------------------

repository_table = Table(
    "repositories",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("github_id", Integer, nullable=False, unique=True),
    Column("name", String, nullable=False),
    Column("full_name", String, nullable=False),
    Column("owner_login", String, nullable=True),
    Column("description", Text, nullable=True),
    Column("url", String, nullable=True),
    Column("api_url", String, nullable=True),
    Column("stars", Integer, nullable=False, default=0),
    Column("forks", Integer, nullable=False, default=0),
    Column("watchers_count", Integer, nullable=False, default=0),
    Column("open_issues_count", Integer, nullable=False, default=0),
    Column("size_kb", Integer, nullable=False, default=0),
    Column("primary_language", String, nullable=True),
    Column("license", String, nullable=True),
    Column("default_branch", String, nullable=True),
    Column("is_fork", Boolean, nullable=False, default=False),
    Column("is_archived", Boolean, nullable=False, default=False),
    Column("topics", StringListType, nullable=True),
    Column("github_created_at", UTCDateTime, nullable=True),
    Column("last_updated", UTCDateTime, nullable=True),
    Column("pushed_at", UTCDateTime, nullable=True),
    *_bookkeeping_columns(),
)

contributor_table = Table(
    "contributors",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("github_id", Integer, nullable=False, unique=True),
    Column("username", String, nullable=False),
    Column("name", String, nullable=True),
    Column("avatar_url", String, nullable=True),
    Column("bio", Text, nullable=True),
    Column("company", String, nullable=True),
    Column("blog", String, nullable=True),
    Column("twitter_username", String, nullable=True),
    Column("location", String, nullable=True),
    Column("followers", Integer, nullable=False, default=0),
    Column("following", Integer, nullable=False, default=0),
    Column("public_repos", Integer, nullable=False, default=0),
    Column("account_created_at", UTCDateTime, nullable=True),
    Column("impact_score", Integer, nullable=True),
    Column("role_classification", _enum_column_type(ContributorRole), nullable=True),
    Column("top_languages", StringListType, nullable=True),
    Column("organizations", StringListType, nullable=True),
    *_bookkeeping_columns(),
)

merge_request_table = Table(
    "merge_requests",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("github_id", Integer, nullable=False),
    Column("repository_github_id", Integer, nullable=False, index=True),
    Column(
        "repository_id",
        UUIDColumnType,
        ForeignKey("repositories.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("number", Integer, nullable=False),
    Column("title", String, nullable=False, default=""),
    Column("description", Text, nullable=True),
    Column("state", String(16), nullable=False, default="open"),
    Column("status", _enum_column_type(MergeRequestStatus), nullable=False),
    Column("is_draft", Boolean, nullable=False, default=False),
    Column("author_github_id", Integer, nullable=True),
    Column("author_login", String, nullable=True),
    Column("base_branch", String, nullable=True),
    Column("head_branch", String, nullable=True),
    Column("url", String, nullable=True),
    Column("github_created_at", UTCDateTime, nullable=True),
    Column("github_updated_at", UTCDateTime, nullable=True),
    Column("closed_at", UTCDateTime, nullable=True),
    Column("merged_at", UTCDateTime, nullable=True),
    Column("commits_count", Integer, nullable=False, default=0),
    Column("additions", Integer, nullable=False, default=0),
    Column("deletions", Integer, nullable=False, default=0),
    Column("changed_files", Integer, nullable=False, default=0),
    Column("comments", Integer, nullable=False, default=0),
    Column("review_comments", Integer, nullable=False, default=0),
    Column("labels", StringListType, nullable=True),
    Column("requested_reviewers", StringListType, nullable=True),
    Column("cycle_time_hours", Float, nullable=True),
    Column("review_time_hours", Float, nullable=True),
    Column("complexity_score", Integer, nullable=True),
    *_bookkeeping_columns(),
    UniqueConstraint("repository_github_id", "github_id"),
)

commit_table = Table(
    "commits",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("sha", String(40), nullable=False),
    Column("repository_github_id", Integer, nullable=False, index=True),
    Column(
        "repository_id",
        UUIDColumnType,
        ForeignKey("repositories.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("message", Text, nullable=False, default=""),
    Column("author_name", String, nullable=True),
    Column("author_email", String, nullable=True),
    Column("author_github_id", Integer, nullable=True),
    Column("committed_at", UTCDateTime, nullable=True),
    Column("merge_request_github_id", Integer, nullable=True),
    Column("additions", Integer, nullable=False, default=0),
    Column("deletions", Integer, nullable=False, default=0),
    Column("files", FileChangeListType, nullable=True),
    *_bookkeeping_columns(),
    UniqueConstraint("repository_github_id", "sha"),
)

TABLE_BY_ENTITY_TYPE: dict[EntityType, Table] = {
    EntityType.REPOSITORY: repository_table,
    EntityType.CONTRIBUTOR: contributor_table,
    EntityType.MERGE_REQUEST: merge_request_table,
    EntityType.COMMIT: commit_table,
}

CLASS_BY_ENTITY_TYPE: dict[EntityType, type[EnrichableEntity]] = {
    EntityType.REPOSITORY: Repository,
    EntityType.CONTRIBUTOR: Contributor,
    EntityType.MERGE_REQUEST: MergeRequest,
    EntityType.COMMIT: Commit,
}


@cache
def start_mappers() -> orm.registry:
    """Map the domain entities onto their tables (idempotent)."""

    for entity_type, entity_cls in CLASS_BY_ENTITY_TYPE.items():
        mapper_registry.map_imperatively(entity_cls, TABLE_BY_ENTITY_TYPE[entity_type])

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
