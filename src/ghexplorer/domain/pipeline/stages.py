"""Concrete pipeline stages: extraction, fetching, persistence and enrichment."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ghexplorer.domain.model import split_full_name
from ghexplorer.domain.pipeline.stage import BaseStage

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ghexplorer.domain.enrichment import EnrichmentStats, EntityEnricher
    from ghexplorer.domain.model import (
        Commit,
        Contributor,
        EnrichableEntity,
        EntityType,
        MergeRequest,
        Repository,
    )
    from ghexplorer.domain.pipeline.context import PipelineContext, RawItem
    from ghexplorer.domain.pipeline.stage import PipelineConfig, Sleep, StageConfig
    from ghexplorer.domain.ports.github import (
        EntityExtractor,
        ExtractedEntities,
        GitHubSource,
    )
    from ghexplorer.domain.ports.unit_of_work import EntityUnitOfWork

EXTRACT_ENTITIES = "extract-entities"
FETCH_REPOSITORY_ACTIVITY = "fetch-repository-activity"
PERSIST_ENTITIES = "persist-entities"
ENRICH_ENTITIES = "enrich-entities"

PERSISTED_COUNTS_KEY = "persisted"
ENRICHMENT_STATS_KEY = "enrichment"

type EnricherFactory = Callable[[], EntityEnricher[EnrichableEntity]]


@dataclass(slots=True, frozen=True)
class ExtractionToggles:
    repositories: bool = True
    contributors: bool = True
    merge_requests: bool = True
    commits: bool = True


@dataclass(slots=True)
class _Collected:
    repositories: list[Repository] = field(default_factory=list["Repository"])
    contributors: list[Contributor] = field(default_factory=list["Contributor"])
    merge_requests: list[MergeRequest] = field(default_factory=list["MergeRequest"])
    commits: list[Commit] = field(default_factory=list["Commit"])

    def add(self, extracted: ExtractedEntities, toggles: ExtractionToggles) -> None:
        if toggles.repositories:
            self.repositories.extend(extracted.repositories)
        if toggles.contributors:
            self.contributors.extend(extracted.contributors)
        if toggles.merge_requests:
            self.merge_requests.extend(extracted.merge_requests)
        if toggles.commits:
            self.commits.extend(extracted.commits)

    def flush_into(self, context: PipelineContext) -> None:
        context.add_repositories(self.repositories)
        context.add_contributors(self.contributors)
        context.add_merge_requests(self.merge_requests)
        context.add_commits(self.commits)
        context.increment(
            repositories_extracted=len(self.repositories),
            contributors_extracted=len(self.contributors),
            merge_requests_extracted=len(self.merge_requests),
            commits_extracted=len(self.commits),
        )


class ExtractEntitiesStage(BaseStage):
    """Turn raw GitHub payloads in ``raw_data`` into entity records."""

    def __init__(
        self,
        extractor: EntityExtractor,
        *,
        name: str = EXTRACT_ENTITIES,
        toggles: ExtractionToggles | None = None,
        abort_on_error: bool = False,
        config: StageConfig | None = None,
    ) -> None:
        super().__init__(name, abort_on_error=abort_on_error, config=config)
        self._extractor = extractor
        self._toggles = toggles or ExtractionToggles()

    async def execute(
        self, context: PipelineContext, pipeline_config: PipelineConfig
    ) -> PipelineContext:
        self.validate_context(context, ("raw_data",))
        raw_items = context.raw_data or ()
        self.log(logging.INFO, "Extracting entities from %d raw item(s)", len(raw_items))

        async def extract(item: RawItem) -> ExtractedEntities:
            try:
                return self._extractor(item)
            except Exception as exc:
                context.record_error(f"{self.name}:item", exc)
                raise

        extracted = await self.batch_process(
            raw_items,
            extract,
            batch_size=pipeline_config.batch_size,
            concurrency=pipeline_config.max_concurrency,
        )

        collected = _Collected()
        for entities in extracted:
            collected.add(entities, self._toggles)
        collected.flush_into(context)
        context.increment(raw_data_processed=len(raw_items))

        self.log(
            logging.INFO,
            "Extracted %d repositories, %d contributors, %d merge requests, %d commits",
            len(collected.repositories),
            len(collected.contributors),
            len(collected.merge_requests),
            len(collected.commits),
        )
        return context


@dataclass(slots=True, frozen=True)
class _RepositoryActivity:
    repository: Repository
    contributors: list[Contributor]
    merge_requests: list[MergeRequest]
    commits: list[Commit]


class FetchRepositoryActivityStage(BaseStage):
    """Fetch repositories named in ``targets`` (``owner/name``) with their activity."""

    def __init__(
        self,
        source: GitHubSource,
        *,
        name: str = FETCH_REPOSITORY_ACTIVITY,
        max_items: int | None = None,
        pull_request_state: str = "closed",
        abort_on_error: bool = False,
        config: StageConfig | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        super().__init__(name, abort_on_error=abort_on_error, config=config, sleep=sleep)
        self._source = source
        self._max_items = max_items
        self._pull_request_state = pull_request_state

    async def execute(
        self, context: PipelineContext, pipeline_config: PipelineConfig
    ) -> PipelineContext:
        self.validate_context(context, ("targets",))
        targets: list[tuple[str, str]] = []
        for full_name in context.targets or ():
            try:
                targets.append(split_full_name(full_name))
            except ValueError as exc:
                context.record_error(f"{self.name}:target", exc)

        outcome = await self.process_with_retry(
            targets,
            self._fetch_activity,
            max_retries=pipeline_config.retry_count,
        )
        for failure in outcome.errors:
            context.record_error(f"{self.name}:target", failure.error)

        collected = _Collected()
        for activity in outcome.results:
            collected.repositories.append(activity.repository)
            collected.contributors.extend(activity.contributors)
            collected.merge_requests.extend(activity.merge_requests)
            collected.commits.extend(activity.commits)
        collected.flush_into(context)

        self.log(
            logging.INFO,
            "Fetched %d of %d repositories",
            len(outcome.results),
            len(context.targets or ()),
        )
        return context

    async def _fetch_activity(self, target: tuple[str, str]) -> _RepositoryActivity:
        owner, name = target
        repository = await self._source.get_repository(owner, name)
        contributors = await self._source.list_contributors(owner, name, max_items=self._max_items)
        merge_requests = await self._source.list_pull_requests(
            owner, name, state=self._pull_request_state, max_items=self._max_items
        )
        commits = await self._source.list_commits(owner, name, max_items=self._max_items)
        return _RepositoryActivity(
            repository=repository,
            contributors=contributors,
            merge_requests=merge_requests,
            commits=commits,
        )


class PersistEntitiesStage(BaseStage):
    """Upsert buffered entities by natural key in a single unit of work."""

    def __init__(
        self,
        unit_of_work_factory: Callable[[], EntityUnitOfWork],
        *,
        name: str = PERSIST_ENTITIES,
        abort_on_error: bool = True,
    ) -> None:
        super().__init__(name, abort_on_error=abort_on_error)
        self._unit_of_work_factory = unit_of_work_factory

    async def execute(
        self, context: PipelineContext, pipeline_config: PipelineConfig
    ) -> PipelineContext:
        _ = pipeline_config
        with self._unit_of_work_factory() as uow:
            repos = uow.repositories
            # repositories first: merge requests and commits resolve their foreign key
            for repository in context.repositories:
                repos.repositories.upsert(repository)
            for contributor in context.contributors:
                repos.contributors.upsert(contributor)
            for merge_request in context.merge_requests:
                repos.merge_requests.upsert(merge_request)
            for commit in context.commits:
                repos.commits.upsert(commit)
            uow.commit()

        counts = context.counts()
        context.put(PERSISTED_COUNTS_KEY, counts)
        self.log(
            logging.INFO,
            "Persisted %s",
            ", ".join(f"{count} {kind}" for kind, count in counts.items()),
        )
        return context


class EnrichEntitiesStage(BaseStage):
    """Drain the enrichment backlog of each configured entity type in turn."""

    def __init__(
        self,
        enrichers: Sequence[tuple[EntityType, EnricherFactory]],
        *,
        name: str = ENRICH_ENTITIES,
        abort_on_error: bool = False,
    ) -> None:
        super().__init__(name, abort_on_error=abort_on_error)
        self._enrichers = tuple(enrichers)

    async def execute(
        self, context: PipelineContext, pipeline_config: PipelineConfig
    ) -> PipelineContext:
        _ = pipeline_config
        results: dict[EntityType, EnrichmentStats] = {}
        for entity_type, factory in self._enrichers:
            self.log(logging.INFO, "Enriching %s backlog", entity_type)
            results[entity_type] = await factory().run_until_drained()
            context.put(ENRICHMENT_STATS_KEY, dict(results))
        return context
