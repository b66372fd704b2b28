"""Enrichment workers that drive stored entities towards ``is_enriched``.

Each worker repeatedly asks the store for the next batch of unenriched rows
(fewest attempts first, then natural key), spends one attempt per row before
calling GitHub, and writes the enriched fields back. A rate-limit response
returns the spent attempt, abandons the rest of the batch and makes the
continuous mode sleep until the quota resets.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING, ClassVar

from ghexplorer.domain.model import (
    MAX_ENRICHMENT_ATTEMPTS,
    Contributor,
    EnrichableEntity,
    EntityType,
    MergeRequest,
    Repository,
    calculate_complexity_score,
    calculate_impact_score,
    classify_contributor_role,
    cycle_time_hours,
    review_time_hours,
    split_full_name,
)
from ghexplorer.domain.pipeline.context import utcnow
from ghexplorer.domain.ports.github import GitHubNotFoundError, GitHubRateLimitError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from ghexplorer.domain.pipeline.context import Clock
    from ghexplorer.domain.pipeline.stage import Sleep
    from ghexplorer.domain.ports.enrichment import EnrichmentCandidate, EnrichmentStore
    from ghexplorer.domain.ports.github import GitHubSource

log = getLogger(__name__)

DEFAULT_ENRICH_BATCH_SIZE = 10
DEFAULT_RATE_LIMIT_WAIT_SECONDS = 60 * 60.0


@dataclass(slots=True, frozen=True)
class EnricherConfig:
    batch_size: int = DEFAULT_ENRICH_BATCH_SIZE
    max_attempts: int = MAX_ENRICHMENT_ATTEMPTS
    rate_limit_buffer: float = 1.0
    default_rate_limit_wait: float = DEFAULT_RATE_LIMIT_WAIT_SECONDS


@dataclass(slots=True)
class EnrichmentStats:
    processed: int = 0
    success: int = 0
    failed: int = 0
    not_found: int = 0
    rate_limited: bool = False
    rate_limit_reset: datetime | None = None


class EntityEnricher[TEntity: EnrichableEntity](ABC):
    entity_type: ClassVar[EntityType]

    def __init__(
        self,
        *,
        source: GitHubSource,
        store: EnrichmentStore,
        config: EnricherConfig | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = utcnow,
    ) -> None:
        self._source = source
        self._store = store
        self._config = config or EnricherConfig()
        self._sleep = sleep
        self._clock = clock
        self.stats = EnrichmentStats()

    @abstractmethod
    async def _fetch(self, candidate: EnrichmentCandidate) -> TEntity: ...

    @abstractmethod
    def _enrichment_fields(self, entity: TEntity) -> dict[str, object]: ...

    async def run_once(self) -> EnrichmentStats:
        """Enrich a single batch; statistics start from zero."""

        self.stats = EnrichmentStats()
        batch = self._next_batch()
        if batch:
            await self._process_batch(batch)
        return self.stats

    async def run_until_drained(self) -> EnrichmentStats:
        """Enrich batches until the backlog is empty, waiting out rate limits."""

        self.stats = EnrichmentStats()
        batches = 0
        previous: list[tuple[UUID, int]] | None = None
        while True:
            if self.stats.rate_limited:
                await self._wait_for_rate_limit_reset()

            batch = self._next_batch()
            if not batch:
                break
            signature = [(candidate.id, candidate.enrichment_attempts) for candidate in batch]
            if signature == previous:
                log.error(
                    "%s enrichment made no progress on %d candidate(s); stopping",
                    self.entity_type,
                    len(batch),
                )
                break
            batches += 1
            log.info(
                "Enriching %s batch %d (%d candidate(s))",
                self.entity_type,
                batches,
                len(batch),
            )
            await self._process_batch(batch)
            # A rate-limited batch is expected to come back unchanged.
            previous = None if self.stats.rate_limited else signature

        log.info(
            "%s enrichment drained after %d batch(es): processed=%d success=%d "
            "failed=%d not_found=%d",
            self.entity_type,
            batches,
            self.stats.processed,
            self.stats.success,
            self.stats.failed,
            self.stats.not_found,
        )
        return self.stats

    def _next_batch(self) -> list[EnrichmentCandidate]:
        # Enriched rows leave the selection, so the next batch always starts at offset 0.
        return self._store.select_unenriched_batch(self.entity_type, self._config.batch_size)

    async def _process_batch(self, batch: Sequence[EnrichmentCandidate]) -> None:
        for index, candidate in enumerate(batch):
            try:
                await self._enrich_candidate(candidate)
            except GitHubRateLimitError as exc:
                self._note_rate_limit(exc)
                log.warning(
                    "GitHub rate limit hit on %s %s; skipping %d remaining candidate(s) "
                    "until %s",
                    self.entity_type,
                    candidate.label,
                    len(batch) - index - 1,
                    self.stats.rate_limit_reset,
                )
                return

    async def _enrich_candidate(self, candidate: EnrichmentCandidate) -> None:
        attempt = candidate.enrichment_attempts + 1
        try:
            self._store.increment_attempts(self.entity_type, candidate.id)
            entity = await self._fetch(candidate)
            fields = self._enrichment_fields(entity)
            self._store.update_enriched_fields(
                self.entity_type, candidate.id, fields, is_enriched=True
            )
        except GitHubRateLimitError:
            self._return_attempt(candidate)
            raise
        except GitHubNotFoundError:
            log.info(
                "%s %s not found upstream; marking enriched", self.entity_type, candidate.label
            )
            self.stats.processed += 1
            self.stats.not_found += 1
            self._mark_done(candidate)
            return
        except Exception as exc:
            self.stats.processed += 1
            self.stats.failed += 1
            if attempt >= self._config.max_attempts:
                log.warning(
                    "Giving up on %s %s after %d attempt(s): %s",
                    self.entity_type,
                    candidate.label,
                    attempt,
                    exc,
                )
                self._mark_done(candidate)
            else:
                log.warning("Failed to enrich %s %s: %s", self.entity_type, candidate.label, exc)
            return

        self.stats.processed += 1
        self.stats.success += 1
        log.debug("Enriched %s %s", self.entity_type, candidate.label)

    def _mark_done(self, candidate: EnrichmentCandidate) -> None:
        # A failed write leaves the row queued; the attempt cap still bounds its retries.
        try:
            self._store.update_enriched_fields(
                self.entity_type, candidate.id, {}, is_enriched=True
            )
        except Exception:
            log.exception("Could not mark %s %s as enriched", self.entity_type, candidate.label)

    def _return_attempt(self, candidate: EnrichmentCandidate) -> None:
        try:
            self._store.decrement_attempts(self.entity_type, candidate.id)
        except Exception:
            log.exception(
                "Could not return the attempt spent on %s %s", self.entity_type, candidate.label
            )

    def _note_rate_limit(self, error: GitHubRateLimitError) -> None:
        self.stats.rate_limited = True
        self.stats.rate_limit_reset = error.reset_at or (
            self._clock() + timedelta(seconds=self._config.default_rate_limit_wait)
        )

    async def _wait_for_rate_limit_reset(self) -> None:
        reset = self.stats.rate_limit_reset or self._clock()
        delay = max(0.0, (reset - self._clock()).total_seconds()) + self._config.rate_limit_buffer
        log.info("Waiting %.0fs for the GitHub rate limit to reset", delay)
        await self._sleep(delay)
        self.stats.rate_limited = False


class RepositoryEnricher(EntityEnricher[Repository]):
    entity_type: ClassVar[EntityType] = EntityType.REPOSITORY

    async def enrich_repositories(self) -> EnrichmentStats:
        return await self.run_once()

    async def enrich_all_repositories(self) -> EnrichmentStats:
        return await self.run_until_drained()

    async def _fetch(self, candidate: EnrichmentCandidate) -> Repository:
        owner, name = split_full_name(candidate.label)
        return await self._source.get_repository(owner, name)

    def _enrichment_fields(self, entity: Repository) -> dict[str, object]:
        return {
            "description": entity.description,
            "url": entity.url,
            "api_url": entity.api_url,
            "stars": entity.stars,
            "forks": entity.forks,
            "open_issues_count": entity.open_issues_count,
            "last_updated": entity.last_updated,
            "size_kb": entity.size_kb,
            "watchers_count": entity.watchers_count,
            "primary_language": entity.primary_language,
            "license": entity.license,
            "is_fork": entity.is_fork,
            "is_archived": entity.is_archived,
            "default_branch": entity.default_branch,
            "topics": list(entity.topics),
        }


class ContributorEnricher(EntityEnricher[Contributor]):
    entity_type: ClassVar[EntityType] = EntityType.CONTRIBUTOR

    async def _fetch(self, candidate: EnrichmentCandidate) -> Contributor:
        return await self._source.get_user_by_id(int(candidate.github_id))

    def _enrichment_fields(self, entity: Contributor) -> dict[str, object]:
        return {
            "username": entity.username,
            "name": entity.name,
            "avatar_url": entity.avatar_url,
            "bio": entity.bio,
            "company": entity.company,
            "blog": entity.blog,
            "twitter_username": entity.twitter_username,
            "location": entity.location,
            "followers": entity.followers,
            "following": entity.following,
            "public_repos": entity.public_repos,
            "account_created_at": entity.account_created_at,
            "impact_score": calculate_impact_score(entity, now=self._clock()),
            "role_classification": classify_contributor_role(entity),
        }


class MergeRequestEnricher(EntityEnricher[MergeRequest]):
    entity_type: ClassVar[EntityType] = EntityType.MERGE_REQUEST

    async def _fetch(self, candidate: EnrichmentCandidate) -> MergeRequest:
        if candidate.repository_full_name is None or candidate.number is None:
            raise ValueError(f"Merge request {candidate.label} has no repository/number")
        owner, name = split_full_name(candidate.repository_full_name)
        return await self._source.get_pull_request(owner, name, candidate.number)

    def _enrichment_fields(self, entity: MergeRequest) -> dict[str, object]:
        return {
            "title": entity.title,
            "description": entity.description,
            "state": entity.state,
            "status": entity.status,
            "is_draft": entity.is_draft,
            "closed_at": entity.closed_at,
            "merged_at": entity.merged_at,
            "github_updated_at": entity.github_updated_at,
            "commits_count": entity.commits_count,
            "additions": entity.additions,
            "deletions": entity.deletions,
            "changed_files": entity.changed_files,
            "comments": entity.comments,
            "review_comments": entity.review_comments,
            "labels": list(entity.labels),
            "requested_reviewers": list(entity.requested_reviewers),
            "cycle_time_hours": cycle_time_hours(entity),
            "review_time_hours": review_time_hours(entity),
            "complexity_score": calculate_complexity_score(entity),
        }


ENRICHER_TYPES: dict[EntityType, type[EntityEnricher[EnrichableEntity]]] = {
    EntityType.REPOSITORY: RepositoryEnricher,  # pyright: ignore[reportAssignmentType]
    EntityType.CONTRIBUTOR: ContributorEnricher,  # pyright: ignore[reportAssignmentType]
    EntityType.MERGE_REQUEST: MergeRequestEnricher,  # pyright: ignore[reportAssignmentType]
}
