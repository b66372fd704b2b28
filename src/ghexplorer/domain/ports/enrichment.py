"""Storage port consumed by the enrichment workers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from ghexplorer.domain.model import EntityType


@dataclass(slots=True, frozen=True)
class EnrichmentCandidate:
    """Projection of an unenriched row with just enough data to look it up upstream."""

    id: UUID
    github_id: int | str
    label: str
    enrichment_attempts: int
    repository_full_name: str | None = None
    number: int | None = None


@runtime_checkable
class EnrichmentStore(Protocol):
    """Single-writer store contract; each call is atomic on its own."""

    def select_unenriched_batch(
        self, entity_type: EntityType, limit: int, offset: int = 0
    ) -> list[EnrichmentCandidate]:
        """Rows with ``is_enriched`` false and attempts below the cap.

        Ordered by ``(enrichment_attempts, natural key)``.
        """
        ...

    def increment_attempts(self, entity_type: EntityType, entity_id: UUID) -> None: ...

    def decrement_attempts(self, entity_type: EntityType, entity_id: UUID) -> None: ...

    def update_enriched_fields(
        self,
        entity_type: EntityType,
        entity_id: UUID,
        fields: Mapping[str, object],
        *,
        is_enriched: bool,
    ) -> None: ...

    def count_unenriched(self, entity_type: EntityType) -> int: ...
