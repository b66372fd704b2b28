"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING, cast

from ghexplorer.adapters.github import build_github_fetcher, extract_entities_from_event
from ghexplorer.adapters.sqlalchemy import (
    SqlAlchemyEnrichmentStore,
    SqlAlchemyEntityUnitOfWork,
    is_started,
    startup,
)
from ghexplorer.adapters.sqlalchemy.migrations import current_revision
from ghexplorer.adapters.sqlalchemy.unit_of_work import configured_engine
from ghexplorer.config import ConfigurationError, get_pipeline_settings
from ghexplorer.domain.enrichment import ENRICHER_TYPES, EnricherConfig, EnrichmentStats
from ghexplorer.domain.model import EntityType, PipelineKind
from ghexplorer.domain.pipeline import (
    ENRICH_ENTITIES,
    EXTRACT_ENTITIES,
    FETCH_REPOSITORY_ACTIVITY,
    PERSIST_ENTITIES,
    EnrichEntitiesStage,
    ExtractEntitiesStage,
    FetchRepositoryActivityStage,
    PersistEntitiesStage,
    PipelineContext,
    PipelineInput,
    PipelineRegistry,
    pending_counts,
    register_pipeline_kinds,
)
from ghexplorer.domain.pipeline.stages import ENRICHMENT_STATS_KEY
from ghexplorer.domain.ports.unit_of_work import EntityUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Awaitable, Mapping, Sequence

    from ghexplorer.domain.pipeline.context import RawItem
    from ghexplorer.domain.pipeline.stages import EnricherFactory
    from ghexplorer.domain.ports.enrichment import EnrichmentStore
    from ghexplorer.domain.ports.github import GitHubSource

UnitOfWorkFactory = Callable[[], EntityUnitOfWork]

ENRICHABLE_TYPES: tuple[EntityType, ...] = (
    EntityType.REPOSITORY,
    EntityType.CONTRIBUTOR,
    EntityType.MERGE_REQUEST,
)

log = getLogger(__name__)


def _ensure_started() -> None:
    if not is_started():
        startup()


async def _with_source[T](
    source: GitHubSource | None,
    work: Callable[[GitHubSource], Awaitable[T]],
) -> T:
    if source is not None:
        return await work(source)
    async with build_github_fetcher() as fetcher:
        return await work(fetcher)


def build_default_registry(
    *,
    source: GitHubSource | None = None,
    store: EnrichmentStore | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    enricher_config: EnricherConfig | None = None,
    enrich_entity_types: Sequence[EntityType] = ENRICHABLE_TYPES,
    max_items: int | None = None,
    pipeline_batch_size: int | None = None,
) -> PipelineRegistry:
    """Register every stage and every ``PipelineKind`` against the given adapters.

    Stages that talk to GitHub are only instantiated when a pipeline using them
    is built, so ``source`` may be omitted for ingestion-only registries.
    """

    registry = PipelineRegistry()
    effective_uow = unit_of_work_factory or SqlAlchemyEntityUnitOfWork
    config = enricher_config or EnricherConfig()

    def require_source() -> GitHubSource:
        if source is None:
            raise ConfigurationError("A GitHub source is required for this pipeline")
        return source

    def enricher_factories() -> list[tuple[EntityType, EnricherFactory]]:
        active_source = require_source()
        active_store = store or SqlAlchemyEnrichmentStore()
        return [
            (
                entity_type,
                partial(
                    ENRICHER_TYPES[entity_type],
                    source=active_source,
                    store=active_store,
                    config=config,
                ),
            )
            for entity_type in enrich_entity_types
        ]

    registry.register_stage(
        EXTRACT_ENTITIES, lambda: ExtractEntitiesStage(extract_entities_from_event)
    )
    registry.register_stage(
        FETCH_REPOSITORY_ACTIVITY,
        lambda: FetchRepositoryActivityStage(require_source(), max_items=max_items),
    )
    registry.register_stage(PERSIST_ENTITIES, lambda: PersistEntitiesStage(effective_uow))
    registry.register_stage(
        ENRICH_ENTITIES,
        lambda: EnrichEntitiesStage(enricher_factories()),
    )
    register_pipeline_kinds(registry, batch_size=pipeline_batch_size)
    return registry


def run_ingestion(
    events: Sequence[RawItem],
    *,
    batch_size: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> PipelineContext:
    """Extract and persist entities from raw GitHub payloads.

    Events run in chunks of ``batch_size``, falling back to the configured
    ``GHEXPLORER_PIPELINE_BATCH_SIZE``.
    """

    _ensure_started()
    registry = build_default_registry(
        unit_of_work_factory=unit_of_work_factory,
        pipeline_batch_size=get_pipeline_settings().pipeline_batch_size,
    )
    pipeline = registry.build(PipelineKind.INGESTION)
    effective_size = batch_size or pipeline.config.batch_size
    log.info("Starting ingestion of %d event(s), batch_size=%d", len(events), effective_size)

    context = asyncio.run(pipeline.run_batched(events, effective_size))

    log.info("Finished ingestion: %s", context.summary().as_dict())
    return context


def sync_repositories(
    full_names: Sequence[str],
    *,
    source: GitHubSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    max_items: int | None = None,
) -> PipelineContext:
    """Fetch ``owner/name`` repositories with their activity and persist them."""

    _ensure_started()
    settings = get_pipeline_settings()
    log.info("Starting repository sync for %s", ", ".join(full_names))

    async def run(active_source: GitHubSource) -> PipelineContext:
        registry = build_default_registry(
            source=active_source,
            unit_of_work_factory=unit_of_work_factory,
            max_items=max_items,
            pipeline_batch_size=settings.pipeline_batch_size,
        )
        context = PipelineContext(PipelineInput(targets=full_names))
        return await registry.execute(PipelineKind.REPOSITORY_SYNC, context)

    context = asyncio.run(_with_source(source, run))
    log.info("Finished repository sync: %s", context.summary().as_dict())
    return context


def enrich(
    entity_types: Sequence[EntityType] = ENRICHABLE_TYPES,
    *,
    once: bool = False,
    source: GitHubSource | None = None,
    store: EnrichmentStore | None = None,
    batch_size: int | None = None,
) -> dict[EntityType, EnrichmentStats]:
    """Enrich stored entities; ``once`` processes a single batch per type."""

    _ensure_started()
    settings = get_pipeline_settings()
    config = EnricherConfig(batch_size=batch_size or settings.enrich_batch_size)
    active_store = store or SqlAlchemyEnrichmentStore()

    async def run(active_source: GitHubSource) -> dict[EntityType, EnrichmentStats]:
        if once:
            results: dict[EntityType, EnrichmentStats] = {}
            for entity_type in entity_types:
                enricher = ENRICHER_TYPES[entity_type](
                    source=active_source, store=active_store, config=config
                )
                results[entity_type] = await enricher.run_once()
            return results

        registry = build_default_registry(
            source=active_source,
            store=active_store,
            enricher_config=config,
            enrich_entity_types=entity_types,
        )
        context = await registry.execute(PipelineKind.ENRICHMENT)
        stats = context.get(ENRICHMENT_STATS_KEY)
        return dict(cast("dict[EntityType, EnrichmentStats]", stats or {}))

    results = asyncio.run(_with_source(source, run))
    for entity_type, stats in results.items():
        log.info(
            "Enrichment of %s: processed=%d success=%d failed=%d not_found=%d rate_limited=%s",
            entity_type,
            stats.processed,
            stats.success,
            stats.failed,
            stats.not_found,
            stats.rate_limited,
        )
    return results


def init_database() -> str | None:
    """Migrate the configured database to head and return its revision."""

    _ensure_started()
    engine = configured_engine()
    revision = current_revision(engine) if engine is not None else None
    log.info("Database at revision %s", revision)
    return revision


def pipeline_status(
    *,
    store: EnrichmentStore | None = None,
) -> Mapping[PipelineKind, dict[EntityType, int]]:
    """Pending enrichment backlog per pipeline kind."""

    _ensure_started()
    active_store = store or SqlAlchemyEnrichmentStore()
    return {kind: pending_counts(kind, active_store) for kind in PipelineKind}
