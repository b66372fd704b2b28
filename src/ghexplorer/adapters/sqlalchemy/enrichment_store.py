"""SQL implementation of the enrichment bookkeeping port."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update

from ghexplorer.adapters.sqlalchemy.mappings import (
    TABLE_BY_ENTITY_TYPE,
    commit_table,
    contributor_table,
    merge_request_table,
    repository_table,
)
from ghexplorer.domain.model import MAX_ENRICHMENT_ATTEMPTS, EntityType
from ghexplorer.domain.ports.enrichment import EnrichmentCandidate

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from uuid import UUID

    from sqlalchemy import Row, Select, Table
    from sqlalchemy.orm import Session, sessionmaker


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SqlAlchemyEnrichmentStore:
    """Each method runs in its own short transaction."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        *,
        max_attempts: int = MAX_ENRICHMENT_ATTEMPTS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if session_factory is None:
            from ghexplorer.adapters.sqlalchemy.unit_of_work import (  # noqa: PLC0415
                session_factory as configured_session_factory,
            )

            session_factory = configured_session_factory()
        self._session_factory = session_factory
        self._max_attempts = max_attempts
        self._clock = clock

    def select_unenriched_batch(
        self, entity_type: EntityType, limit: int, offset: int = 0
    ) -> list[EnrichmentCandidate]:
        stmt = self._candidate_query(entity_type).limit(limit).offset(offset)
        with self._session_factory() as session:
            rows = session.execute(stmt).all()
        return [_to_candidate(entity_type, row) for row in rows]

    def increment_attempts(self, entity_type: EntityType, entity_id: UUID) -> None:
        table = TABLE_BY_ENTITY_TYPE[entity_type]
        self._execute(
            update(table)
            .where(table.c.id == entity_id)
            .values(enrichment_attempts=table.c.enrichment_attempts + 1)
        )

    def decrement_attempts(self, entity_type: EntityType, entity_id: UUID) -> None:
        table = TABLE_BY_ENTITY_TYPE[entity_type]
        self._execute(
            update(table)
            .where(table.c.id == entity_id)
            .where(table.c.enrichment_attempts > 0)
            .values(enrichment_attempts=table.c.enrichment_attempts - 1)
        )

    def update_enriched_fields(
        self,
        entity_type: EntityType,
        entity_id: UUID,
        fields: Mapping[str, object],
        *,
        is_enriched: bool,
    ) -> None:
        table = TABLE_BY_ENTITY_TYPE[entity_type]
        unknown = set(fields).difference(table.c.keys())
        if unknown:
            raise KeyError(f"Unknown {entity_type} column(s): {sorted(unknown)}")
        values: dict[str, Any] = {
            **fields,
            "is_enriched": is_enriched,
            "updated_at": self._clock(),
        }
        self._execute(update(table).where(table.c.id == entity_id).values(**values))

    def count_unenriched(self, entity_type: EntityType) -> int:
        table = TABLE_BY_ENTITY_TYPE[entity_type]
        stmt = select(func.count()).select_from(table).where(*self._pending_clause(table))
        with self._session_factory() as session:
            return int(session.execute(stmt).scalar_one())

    def _execute(self, stmt: Any) -> None:
        with self._session_factory.begin() as session:
            session.execute(stmt)

    def _pending_clause(self, table: Table) -> tuple[Any, ...]:
        return (
            table.c.is_enriched.is_(False),
            table.c.enrichment_attempts < self._max_attempts,
        )

    def _candidate_query(self, entity_type: EntityType) -> Select[Any]:
        pending = self._pending_clause(TABLE_BY_ENTITY_TYPE[entity_type])
        match entity_type:
            case EntityType.REPOSITORY:
                return (
                    select(
                        repository_table.c.id,
                        repository_table.c.github_id,
                        repository_table.c.full_name.label("label"),
                        repository_table.c.enrichment_attempts,
                    )
                    .where(*pending)
                    .order_by(repository_table.c.enrichment_attempts, repository_table.c.github_id)
                )
            case EntityType.CONTRIBUTOR:
                return (
                    select(
                        contributor_table.c.id,
                        contributor_table.c.github_id,
                        contributor_table.c.username.label("label"),
                        contributor_table.c.enrichment_attempts,
                    )
                    .where(*pending)
                    .order_by(
                        contributor_table.c.enrichment_attempts, contributor_table.c.github_id
                    )
                )
            case EntityType.MERGE_REQUEST:
                return (
                    select(
                        merge_request_table.c.id,
                        merge_request_table.c.github_id,
                        merge_request_table.c.number,
                        merge_request_table.c.enrichment_attempts,
                        repository_table.c.full_name.label("repository_full_name"),
                    )
                    .select_from(
                        merge_request_table.outerjoin(
                            repository_table,
                            repository_table.c.github_id
                            == merge_request_table.c.repository_github_id,
                        )
                    )
                    .where(*pending)
                    .order_by(
                        merge_request_table.c.enrichment_attempts,
                        merge_request_table.c.repository_github_id,
                        merge_request_table.c.github_id,
                    )
                )
            case EntityType.COMMIT:
                return (
                    select(
                        commit_table.c.id,
                        commit_table.c.sha.label("github_id"),
                        commit_table.c.sha.label("label"),
                        commit_table.c.enrichment_attempts,
                    )
                    .where(*pending)
                    .order_by(
                        commit_table.c.enrichment_attempts,
                        commit_table.c.repository_github_id,
                        commit_table.c.sha,
                    )
                )


def _to_candidate(entity_type: EntityType, row: Row[Any]) -> EnrichmentCandidate:
    if entity_type is EntityType.MERGE_REQUEST:
        full_name = row.repository_full_name
        label = f"{full_name or row.github_id}#{row.number}"
        return EnrichmentCandidate(
            id=row.id,
            github_id=row.github_id,
            label=label,
            enrichment_attempts=row.enrichment_attempts,
            repository_full_name=full_name,
            number=row.number,
        )
    return EnrichmentCandidate(
        id=row.id,
        github_id=row.github_id,
        label=row.label,
        enrichment_attempts=row.enrichment_attempts,
    )


if TYPE_CHECKING:
    from typing import cast

    from ghexplorer.domain.ports.enrichment import EnrichmentStore

    _store_check: EnrichmentStore = SqlAlchemyEnrichmentStore(
        cast("sessionmaker[Session]", object())
    )
