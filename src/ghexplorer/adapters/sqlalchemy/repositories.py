"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime
from typing import TYPE_CHECKING, cast

from sqlalchemy import select

from ghexplorer.adapters.sqlalchemy.mappings import (
    commit_table,
    contributor_table,
    merge_request_table,
    repository_table,
)
from ghexplorer.domain.model import Commit, Contributor, MergeRequest, Repository

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from sqlalchemy import ColumnElement
    from sqlalchemy.orm import Session

    from ghexplorer.domain.model import EnrichableEntity

# owned by the enrichment bookkeeping, never overwritten by an ingest
_PRESERVED_FIELDS = frozenset(
    {
        "id",
        "is_enriched",
        "enrichment_attempts",
        "created_at",
        "updated_at",
        "repository_id",
        "supplied_fields",
    }
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SqlAlchemyEntityRepository[TEntity: EnrichableEntity]:
    """Upsert-by-natural-key helper shared by all entity repositories.

    On a natural-key hit the stored row keeps its surrogate id and enrichment
    bookkeeping. Only the incoming ``supplied_fields`` are copied over, so a
    sparse list payload never wipes values written by an earlier enrichment,
    while a value the payload does carry wins even when it is None, 0 or False.
    """

    def __init__(
        self,
        session: Session,
        entity_cls: type[TEntity],
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.session = session
        self._entity_cls = entity_cls
        self._clock = clock

    def upsert(self, entity: TEntity) -> TEntity:
        existing = self._find(entity)
        now = self._clock()
        if existing is None:
            entity.created_at = entity.created_at or now
            entity.updated_at = now
            self.session.add(entity)
            self.session.flush()
            return entity

        supplied = entity.supplied_fields
        for item in dataclasses.fields(self._entity_cls):
            if item.name in _PRESERVED_FIELDS:
                continue
            if supplied is None or item.name in supplied:
                setattr(existing, item.name, getattr(entity, item.name))
        existing.updated_at = now
        self.session.flush()
        return existing

    def _find(self, entity: TEntity) -> TEntity | None:
        stmt = select(self._entity_cls).where(*self._natural_key_clause(entity)).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()

    def _natural_key_clause(self, entity: TEntity) -> tuple[ColumnElement[bool], ...]:
        raise NotImplementedError

    def _repository_uuid(self, repository_github_id: int) -> UUID | None:
        stmt = select(repository_table.c.id).where(
            repository_table.c.github_id == repository_github_id
        )
        return cast("UUID | None", self.session.execute(stmt).scalar_one_or_none())


class SqlAlchemyRepositoryRepository(SqlAlchemyEntityRepository[Repository]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Repository)

    def get_by_github_id(self, github_id: int) -> Repository | None:
        stmt = select(Repository).where(repository_table.c.github_id == github_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def _natural_key_clause(self, entity: Repository) -> tuple[ColumnElement[bool], ...]:
        return (repository_table.c.github_id == entity.github_id,)


class SqlAlchemyContributorRepository(SqlAlchemyEntityRepository[Contributor]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Contributor)

    def get_by_github_id(self, github_id: int) -> Contributor | None:
        stmt = select(Contributor).where(contributor_table.c.github_id == github_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def _natural_key_clause(self, entity: Contributor) -> tuple[ColumnElement[bool], ...]:
        return (contributor_table.c.github_id == entity.github_id,)


class SqlAlchemyMergeRequestRepository(SqlAlchemyEntityRepository[MergeRequest]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, MergeRequest)

    def get(self, *, repository_github_id: int, github_id: int) -> MergeRequest | None:
        stmt = (
            select(MergeRequest)
            .where(merge_request_table.c.repository_github_id == repository_github_id)
            .where(merge_request_table.c.github_id == github_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert(self, entity: MergeRequest) -> MergeRequest:
        stored = super().upsert(entity)
        if stored.repository_id is None:
            stored.repository_id = self._repository_uuid(stored.repository_github_id)
        return stored

    def _natural_key_clause(self, entity: MergeRequest) -> tuple[ColumnElement[bool], ...]:
        return (
            merge_request_table.c.repository_github_id == entity.repository_github_id,
            merge_request_table.c.github_id == entity.github_id,
        )


class SqlAlchemyCommitRepository(SqlAlchemyEntityRepository[Commit]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Commit)

    def get(self, *, repository_github_id: int, sha: str) -> Commit | None:
        stmt = (
            select(Commit)
            .where(commit_table.c.repository_github_id == repository_github_id)
            .where(commit_table.c.sha == sha)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert(self, entity: Commit) -> Commit:
        stored = super().upsert(entity)
        if stored.repository_id is None:
            stored.repository_id = self._repository_uuid(stored.repository_github_id)
        return stored

    def _natural_key_clause(self, entity: Commit) -> tuple[ColumnElement[bool], ...]:
        return (
            commit_table.c.repository_github_id == entity.repository_github_id,
            commit_table.c.sha == entity.sha,
        )


if TYPE_CHECKING:
    from ghexplorer.domain.ports.persistence import (
        CommitRepository,
        ContributorRepository,
        MergeRequestRepository,
        RepositoryRepository,
    )

    _session_stub = cast("Session", object())
    _repository_check: RepositoryRepository = SqlAlchemyRepositoryRepository(_session_stub)
    _contributor_check: ContributorRepository = SqlAlchemyContributorRepository(_session_stub)
    _merge_request_check: MergeRequestRepository = SqlAlchemyMergeRequestRepository(_session_stub)
    _commit_check: CommitRepository = SqlAlchemyCommitRepository(_session_stub)
