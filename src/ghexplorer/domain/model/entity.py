"""
Base building blocks:
surrogate identity, natural keys and enrichment bookkeeping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from datetime import datetime

    from ghexplorer.domain.model.enums import EntityType


MAX_ENRICHMENT_ATTEMPTS = 3


def new_id() -> UUID:
    return uuid4()


@dataclass(eq=False, kw_only=True)
class Entity:
    """Surrogate identity exists immediately in the domain and never changes."""

    id: UUID = field(default_factory=new_id)

    # class-level discriminator; subclasses must override
    ENTITY_TYPE: ClassVar[EntityType]

    @property
    def entity_type(self) -> EntityType:
        return self.ENTITY_TYPE


@dataclass(eq=False, kw_only=True)
class EnrichableEntity(Entity):
    """Entity row that the enrichers drive towards ``is_enriched``.

    ``enrichment_attempts`` is spent before each provider call; once it reaches
    ``MAX_ENRICHMENT_ATTEMPTS`` the row is marked enriched even on failure.
    """

    is_enriched: bool = False
    enrichment_attempts: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # fields the source payload actually carried; None means all of them
    supplied_fields: frozenset[str] | None = field(default=None, repr=False, compare=False)

    @property
    def natural_key(self) -> tuple[object, ...]:
        raise NotImplementedError

    @property
    def attempts_exhausted(self) -> bool:
        return self.enrichment_attempts >= MAX_ENRICHMENT_ATTEMPTS
