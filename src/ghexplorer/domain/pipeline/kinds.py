"""Typed definitions for the closed set of application pipelines."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from ghexplorer.domain.model import EntityType, PipelineKind
from ghexplorer.domain.pipeline.stage import PipelineConfig
from ghexplorer.domain.pipeline.stages import (
    ENRICH_ENTITIES,
    EXTRACT_ENTITIES,
    FETCH_REPOSITORY_ACTIVITY,
    PERSIST_ENTITIES,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ghexplorer.domain.pipeline.registry import PipelineRegistry
    from ghexplorer.domain.ports.enrichment import EnrichmentStore


@dataclass(slots=True, frozen=True)
class PipelineKindSpec:
    stage_names: tuple[str, ...]
    # entity types whose unenriched backlog describes this pipeline's pending work
    pending_entity_types: tuple[EntityType, ...] = ()
    config: PipelineConfig = field(default_factory=PipelineConfig)


PIPELINE_KINDS: Mapping[PipelineKind, PipelineKindSpec] = {
    PipelineKind.INGESTION: PipelineKindSpec(
        stage_names=(EXTRACT_ENTITIES, PERSIST_ENTITIES),
    ),
    PipelineKind.REPOSITORY_SYNC: PipelineKindSpec(
        stage_names=(FETCH_REPOSITORY_ACTIVITY, PERSIST_ENTITIES),
    ),
    PipelineKind.ENRICHMENT: PipelineKindSpec(
        stage_names=(ENRICH_ENTITIES,),
        pending_entity_types=(
            EntityType.REPOSITORY,
            EntityType.CONTRIBUTOR,
            EntityType.MERGE_REQUEST,
        ),
        config=PipelineConfig(timeout=None),
    ),
}

_missing = set(PipelineKind).difference(PIPELINE_KINDS)
if _missing:
    raise RuntimeError(f"Pipeline kinds without a definition: {sorted(_missing)}")


def register_pipeline_kinds(
    registry: PipelineRegistry, *, batch_size: int | None = None
) -> None:
    """Register every ``PipelineKind`` on ``registry``; stages must already exist.

    ``batch_size`` overrides the batching default of every registered kind.
    """

    for kind, spec in PIPELINE_KINDS.items():
        config = spec.config if batch_size is None else replace(spec.config, batch_size=batch_size)
        registry.register_pipeline(kind, spec.stage_names, config=config)


def pending_counts(kind: PipelineKind, store: EnrichmentStore) -> dict[EntityType, int]:
    return {
        entity_type: store.count_unenriched(entity_type)
        for entity_type in PIPELINE_KINDS[kind].pending_entity_types
    }
