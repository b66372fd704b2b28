from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING

from ghexplorer.domain.enrichment import (
    ENRICHER_TYPES,
    ContributorEnricher,
    EnricherConfig,
    MergeRequestEnricher,
    RepositoryEnricher,
)
from ghexplorer.domain.model import ContributorRole, EntityType, MergeRequestStatus
from ghexplorer.domain.ports.github import GitHubAPIError, GitHubRateLimitError
from tests.helpers.enrichment import InMemoryEnrichmentStore, StoredRow
from tests.helpers.github import (
    FIXED_NOW,
    FakeGitHubSource,
    RecordingSleep,
    fixed_clock,
    make_contributor,
    make_merge_request,
    make_repository,
)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID


def _repository_rows(store: InMemoryEnrichmentStore, *names: str) -> list[StoredRow]:
    return [
        store.add(EntityType.REPOSITORY, StoredRow(github_id=index, label=f"octocat/{name}"))
        for index, name in enumerate(names, start=1)
    ]


def _source_for(*names: str) -> FakeGitHubSource:
    return FakeGitHubSource(
        repositories={
            ("octocat", name): make_repository(index, f"octocat/{name}", stars=index * 10)
            for index, name in enumerate(names, start=1)
        }
    )


def test_enricher_registry_covers_enrichable_types() -> None:
    assert set(ENRICHER_TYPES) == {
        EntityType.REPOSITORY,
        EntityType.CONTRIBUTOR,
        EntityType.MERGE_REQUEST,
    }


def test_run_once_writes_enriched_fields() -> None:
    store = InMemoryEnrichmentStore()
    (row,) = _repository_rows(store, "alpha")
    enricher = RepositoryEnricher(source=_source_for("alpha"), store=store)

    stats = asyncio.run(enricher.enrich_repositories())

    assert stats.processed == 1
    assert stats.success == 1
    assert row.is_enriched
    assert row.enrichment_attempts == 1
    assert row.fields["stars"] == 10
    assert row.fields["topics"] == []


def test_run_once_processes_a_single_batch() -> None:
    store = InMemoryEnrichmentStore()
    rows = _repository_rows(store, "a", "b", "c")
    enricher = RepositoryEnricher(
        source=_source_for("a", "b", "c"),
        store=store,
        config=EnricherConfig(batch_size=2),
    )

    stats = asyncio.run(enricher.run_once())

    assert stats.success == 2
    assert [row.is_enriched for row in rows] == [True, True, False]


def test_not_found_marks_row_enriched_without_failure() -> None:
    store = InMemoryEnrichmentStore()
    (row,) = _repository_rows(store, "gone")
    enricher = RepositoryEnricher(source=FakeGitHubSource(), store=store)

    stats = asyncio.run(enricher.run_once())

    assert stats.not_found == 1
    assert stats.failed == 0
    assert stats.processed == 1
    assert row.is_enriched
    assert row.fields == {}


def test_failure_keeps_row_pending_until_attempts_run_out() -> None:
    store = InMemoryEnrichmentStore()
    fresh, exhausted = _repository_rows(store, "fresh", "last-try")
    exhausted.enrichment_attempts = 2
    source = FakeGitHubSource(
        failures={
            ("get_repository", "octocat", "fresh"): [GitHubAPIError("boom", status=500)],
            ("get_repository", "octocat", "last-try"): [GitHubAPIError("boom", status=500)],
        }
    )
    enricher = RepositoryEnricher(source=source, store=store)

    stats = asyncio.run(enricher.run_once())

    assert stats.failed == 2
    assert stats.success == 0
    assert not fresh.is_enriched
    assert fresh.enrichment_attempts == 1
    assert exhausted.is_enriched
    assert exhausted.enrichment_attempts == 3


def test_rate_limit_reverts_attempt_and_skips_rest_of_batch() -> None:
    store = InMemoryEnrichmentStore()
    first, limited, untouched = _repository_rows(store, "a", "b", "c")
    reset_at = FIXED_NOW + timedelta(minutes=5)
    source = _source_for("a", "b", "c")
    source.failures[("get_repository", "octocat", "b")] = [
        GitHubRateLimitError("rate limited", status=403, reset_at=reset_at)
    ]
    enricher = RepositoryEnricher(source=source, store=store, clock=fixed_clock())

    stats = asyncio.run(enricher.run_once())

    assert stats.rate_limited
    assert stats.rate_limit_reset == reset_at
    assert stats.processed == 1
    assert first.is_enriched
    assert not limited.is_enriched
    assert limited.enrichment_attempts == 0
    assert untouched.enrichment_attempts == 0
    assert ("get_repository", "octocat", "c") not in source.calls


def test_rate_limit_without_reset_uses_default_wait() -> None:
    store = InMemoryEnrichmentStore()
    _repository_rows(store, "a")
    source = _source_for("a")
    source.failures[("get_repository", "octocat", "a")] = [GitHubRateLimitError("slow down")]
    enricher = RepositoryEnricher(source=source, store=store, clock=fixed_clock())

    stats = asyncio.run(enricher.run_once())

    assert stats.rate_limit_reset == FIXED_NOW + timedelta(hours=1)


def test_run_until_drained_waits_for_reset_and_finishes() -> None:
    store = InMemoryEnrichmentStore()
    rows = _repository_rows(store, "a", "b", "c", "d", "e")
    source = _source_for("a", "b", "c", "d", "e")
    source.failures[("get_repository", "octocat", "c")] = [
        GitHubRateLimitError("rate limited", reset_at=FIXED_NOW + timedelta(seconds=30))
    ]
    sleep = RecordingSleep()
    enricher = RepositoryEnricher(
        source=source,
        store=store,
        config=EnricherConfig(batch_size=2),
        sleep=sleep,
        clock=fixed_clock(),
    )

    stats = asyncio.run(enricher.enrich_all_repositories())

    assert all(row.is_enriched for row in rows)
    assert stats.success == 5
    assert not stats.rate_limited
    assert sleep.delays == [31.0]
    assert {offset for _, _, offset in store.selections} == {0}


def test_run_until_drained_stops_on_empty_backlog() -> None:
    store = InMemoryEnrichmentStore()
    enricher = ContributorEnricher(source=FakeGitHubSource(), store=store)

    stats = asyncio.run(enricher.run_until_drained())

    assert stats.processed == 0
    assert len(store.selections) == 1


def test_contributor_enrichment_scores_profile() -> None:
    store = InMemoryEnrichmentStore()
    row = store.add(EntityType.CONTRIBUTOR, StoredRow(github_id=583231, label="octocat"))
    source = FakeGitHubSource(
        users={
            583231: make_contributor(
                583231,
                "octocat",
                name="The Octocat",
                company="@github",
                followers=1500,
                public_repos=120,
                account_created_at=FIXED_NOW - timedelta(days=365 * 12),
            )
        }
    )
    enricher = ContributorEnricher(source=source, store=store, clock=fixed_clock())

    asyncio.run(enricher.run_once())

    assert row.is_enriched
    assert row.fields["name"] == "The Octocat"
    assert row.fields["impact_score"] == 25 + 25 + 20 + 10
    assert row.fields["role_classification"] is ContributorRole.PROJECT_LEAD


def test_merge_request_enrichment_derives_metrics() -> None:
    store = InMemoryEnrichmentStore()
    row = store.add(
        EntityType.MERGE_REQUEST,
        StoredRow(
            github_id=1347,
            label="octocat/Hello-World#42",
            repository_full_name="octocat/Hello-World",
            number=42,
        ),
    )
    created = FIXED_NOW - timedelta(hours=48)
    source = FakeGitHubSource(
        pull_requests={
            ("octocat", "Hello-World", 42): make_merge_request(
                status=MergeRequestStatus.MERGED,
                state="closed",
                github_created_at=created,
                github_updated_at=created + timedelta(hours=12),
                merged_at=created + timedelta(hours=24),
                additions=600,
                deletions=10,
                changed_files=12,
                commits_count=3,
            )
        }
    )
    enricher = MergeRequestEnricher(source=source, store=store)

    stats = asyncio.run(enricher.run_once())

    assert stats.success == 1
    assert row.fields["status"] is MergeRequestStatus.MERGED
    assert row.fields["cycle_time_hours"] == 24.0
    assert row.fields["review_time_hours"] == 12.0
    assert row.fields["complexity_score"] == 30 + 20 + 5


def test_merge_request_without_repository_counts_as_failure() -> None:
    store = InMemoryEnrichmentStore()
    row = store.add(EntityType.MERGE_REQUEST, StoredRow(github_id=7, label="99#1", number=1))
    enricher = MergeRequestEnricher(source=FakeGitHubSource(), store=store)

    stats = asyncio.run(enricher.run_once())

    assert stats.failed == 1
    assert row.enrichment_attempts == 1
    assert not row.is_enriched


class _LockedRowStore(InMemoryEnrichmentStore):
    """Store whose writes for one row always fail."""

    def __init__(self) -> None:
        super().__init__()
        self.locked: set[UUID] = set()

    def update_enriched_fields(
        self,
        entity_type: EntityType,
        entity_id: UUID,
        fields: Mapping[str, object],
        *,
        is_enriched: bool,
    ) -> None:
        if entity_id in self.locked:
            raise RuntimeError("database is locked")
        super().update_enriched_fields(entity_type, entity_id, fields, is_enriched=is_enriched)


def test_store_write_failure_does_not_abort_batch() -> None:
    store = _LockedRowStore()
    locked, healthy = _repository_rows(store, "a", "b")
    store.locked.add(locked.id)
    enricher = RepositoryEnricher(source=_source_for("a", "b"), store=store)

    stats = asyncio.run(enricher.run_once())

    assert stats.processed == 2
    assert stats.failed == 1
    assert stats.success == 1
    assert healthy.is_enriched
    assert not locked.is_enriched
    assert locked.enrichment_attempts == 1


def test_drain_stops_once_locked_row_spends_its_attempts() -> None:
    store = _LockedRowStore()
    locked, healthy = _repository_rows(store, "a", "b")
    store.locked.add(locked.id)
    source = _source_for("a", "b")
    enricher = RepositoryEnricher(source=source, store=store)

    stats = asyncio.run(enricher.run_until_drained())

    assert healthy.is_enriched
    assert locked.enrichment_attempts == 3
    assert stats.failed == 3
    assert store.count_unenriched(EntityType.REPOSITORY) == 0
    assert source.calls.count(("get_repository", "octocat", "a")) == 3


def test_drain_retries_failing_row_until_forced_enriched() -> None:
    store = InMemoryEnrichmentStore()
    rows = _repository_rows(store, "a", "poison", "c", "d")
    poison = rows[1]
    source = _source_for("a", "c", "d")
    source.failures[("get_repository", "octocat", "poison")] = [
        GitHubAPIError("boom", status=500) for _ in range(5)
    ]
    enricher = RepositoryEnricher(
        source=source,
        store=store,
        config=EnricherConfig(batch_size=2),
    )

    stats = asyncio.run(enricher.enrich_all_repositories())

    assert source.calls.count(("get_repository", "octocat", "poison")) == 3
    assert poison.is_enriched
    assert poison.enrichment_attempts == 3
    assert poison.fields == {}
    assert all(row.is_enriched for row in rows)
    assert stats.success == 3
    assert stats.failed == 3
    assert store.count_unenriched(EntityType.REPOSITORY) == 0


def test_drain_stops_when_attempts_cannot_be_recorded() -> None:
    class FrozenStore(InMemoryEnrichmentStore):
        def increment_attempts(self, entity_type: EntityType, entity_id: UUID) -> None:
            raise RuntimeError("read-only database")

    store = FrozenStore()
    (row,) = _repository_rows(store, "a")
    source = FakeGitHubSource()
    enricher = RepositoryEnricher(source=source, store=store)

    stats = asyncio.run(enricher.run_until_drained())

    assert stats.failed == 1
    assert not row.is_enriched
    assert len(store.selections) == 2
    assert source.calls == []
