"""In-memory enrichment store used by the enricher and stage tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from ghexplorer.domain.model import MAX_ENRICHMENT_ATTEMPTS, EntityType
from ghexplorer.domain.ports.enrichment import EnrichmentCandidate, EnrichmentStore

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass
class StoredRow:
    github_id: int | str
    label: str
    enrichment_attempts: int = 0
    is_enriched: bool = False
    repository_full_name: str | None = None
    number: int | None = None
    fields: dict[str, object] = field(default_factory=dict)
    id: UUID = field(default_factory=uuid4)


class InMemoryEnrichmentStore(EnrichmentStore):
    def __init__(self, *, max_attempts: int = MAX_ENRICHMENT_ATTEMPTS) -> None:
        self.rows: dict[EntityType, list[StoredRow]] = {kind: [] for kind in EntityType}
        self.max_attempts = max_attempts
        self.selections: list[tuple[EntityType, int, int]] = []

    def add(self, entity_type: EntityType, row: StoredRow) -> StoredRow:
        self.rows[entity_type].append(row)
        return row

    def row(self, entity_type: EntityType, entity_id: UUID) -> StoredRow:
        return next(row for row in self.rows[entity_type] if row.id == entity_id)

    def select_unenriched_batch(
        self, entity_type: EntityType, limit: int, offset: int = 0
    ) -> list[EnrichmentCandidate]:
        self.selections.append((entity_type, limit, offset))
        pending = sorted(
            (row for row in self.rows[entity_type] if self._pending(row)),
            key=lambda row: (row.enrichment_attempts, row.github_id),
        )
        return [
            EnrichmentCandidate(
                id=row.id,
                github_id=row.github_id,
                label=row.label,
                enrichment_attempts=row.enrichment_attempts,
                repository_full_name=row.repository_full_name,
                number=row.number,
            )
            for row in pending[offset : offset + limit]
        ]

    def increment_attempts(self, entity_type: EntityType, entity_id: UUID) -> None:
        self.row(entity_type, entity_id).enrichment_attempts += 1

    def decrement_attempts(self, entity_type: EntityType, entity_id: UUID) -> None:
        row = self.row(entity_type, entity_id)
        row.enrichment_attempts = max(0, row.enrichment_attempts - 1)

    def update_enriched_fields(
        self,
        entity_type: EntityType,
        entity_id: UUID,
        fields: Mapping[str, object],
        *,
        is_enriched: bool,
    ) -> None:
        row = self.row(entity_type, entity_id)
        row.fields.update(fields)
        row.is_enriched = is_enriched

    def count_unenriched(self, entity_type: EntityType) -> int:
        return sum(1 for row in self.rows[entity_type] if self._pending(row))

    def _pending(self, row: StoredRow) -> bool:
        return not row.is_enriched and row.enrichment_attempts < self.max_attempts
