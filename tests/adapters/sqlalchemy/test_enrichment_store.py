from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from ghexplorer.adapters.sqlalchemy.enrichment_store import SqlAlchemyEnrichmentStore
from ghexplorer.adapters.sqlalchemy.repositories import (
    SqlAlchemyCommitRepository,
    SqlAlchemyContributorRepository,
    SqlAlchemyMergeRequestRepository,
    SqlAlchemyRepositoryRepository,
)
from ghexplorer.domain.model import Contributor, EntityType
from tests.helpers.github import (
    FIXED_NOW,
    fixed_clock,
    make_commit,
    make_contributor,
    make_merge_request,
    make_repository,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker


@pytest.fixture
def store(sqlite_session_factory: sessionmaker[Session]) -> SqlAlchemyEnrichmentStore:
    return SqlAlchemyEnrichmentStore(sqlite_session_factory, clock=fixed_clock())


def _seed_contributors(session_factory: sessionmaker[Session], *contributors: Contributor) -> None:
    with session_factory.begin() as session:
        repository = SqlAlchemyContributorRepository(session)
        for contributor in contributors:
            repository.upsert(contributor)


def test_select_orders_by_attempts_then_github_id(
    store: SqlAlchemyEnrichmentStore,
    sqlite_session_factory: sessionmaker[Session],
) -> None:
    _seed_contributors(
        sqlite_session_factory,
        make_contributor(30, "carol"),
        make_contributor(10, "alice", enrichment_attempts=1),
        make_contributor(20, "bob"),
        make_contributor(40, "dave", is_enriched=True),
        make_contributor(50, "erin", enrichment_attempts=3),
    )

    batch = store.select_unenriched_batch(EntityType.CONTRIBUTOR, limit=10)

    assert [(c.github_id, c.label, c.enrichment_attempts) for c in batch] == [
        (20, "bob", 0),
        (30, "carol", 0),
        (10, "alice", 1),
    ]
    assert [c.label for c in store.select_unenriched_batch(EntityType.CONTRIBUTOR, 1, 1)] == [
        "carol"
    ]
    assert store.count_unenriched(EntityType.CONTRIBUTOR) == 3


def test_merge_request_candidates_carry_repository_reference(
    store: SqlAlchemyEnrichmentStore,
    sqlite_session_factory: sessionmaker[Session],
) -> None:
    with sqlite_session_factory.begin() as session:
        SqlAlchemyRepositoryRepository(session).upsert(make_repository())
        merge_requests = SqlAlchemyMergeRequestRepository(session)
        merge_requests.upsert(make_merge_request())
        merge_requests.upsert(make_merge_request(github_id=9, repository_github_id=77, number=3))

    orphan, linked = store.select_unenriched_batch(EntityType.MERGE_REQUEST, limit=10)

    assert linked.label == "octocat/Hello-World#42"
    assert linked.repository_full_name == "octocat/Hello-World"
    assert linked.number == 42
    assert orphan.label == "9#3"
    assert orphan.repository_full_name is None


def test_commit_candidates_use_sha(
    store: SqlAlchemyEnrichmentStore,
    sqlite_session_factory: sessionmaker[Session],
) -> None:
    with sqlite_session_factory.begin() as session:
        SqlAlchemyCommitRepository(session).upsert(make_commit("abc123"))

    (candidate,) = store.select_unenriched_batch(EntityType.COMMIT, limit=5)

    assert candidate.github_id == "abc123"
    assert candidate.label == "abc123"


def test_attempt_counters_never_go_negative(
    store: SqlAlchemyEnrichmentStore,
    sqlite_session_factory: sessionmaker[Session],
) -> None:
    contributor = make_contributor()
    _seed_contributors(sqlite_session_factory, contributor)

    store.increment_attempts(EntityType.CONTRIBUTOR, contributor.id)
    store.increment_attempts(EntityType.CONTRIBUTOR, contributor.id)
    store.decrement_attempts(EntityType.CONTRIBUTOR, contributor.id)
    (candidate,) = store.select_unenriched_batch(EntityType.CONTRIBUTOR, limit=1)
    assert candidate.enrichment_attempts == 1

    store.decrement_attempts(EntityType.CONTRIBUTOR, contributor.id)
    store.decrement_attempts(EntityType.CONTRIBUTOR, contributor.id)
    (candidate,) = store.select_unenriched_batch(EntityType.CONTRIBUTOR, limit=1)
    assert candidate.enrichment_attempts == 0


def test_exhausted_rows_leave_the_queue(
    store: SqlAlchemyEnrichmentStore,
    sqlite_session_factory: sessionmaker[Session],
) -> None:
    contributor = make_contributor(enrichment_attempts=2)
    _seed_contributors(sqlite_session_factory, contributor)

    store.increment_attempts(EntityType.CONTRIBUTOR, contributor.id)

    assert store.count_unenriched(EntityType.CONTRIBUTOR) == 0


def test_update_enriched_fields_marks_row(
    store: SqlAlchemyEnrichmentStore,
    sqlite_session_factory: sessionmaker[Session],
) -> None:
    contributor = make_contributor()
    _seed_contributors(sqlite_session_factory, contributor)

    store.update_enriched_fields(
        EntityType.CONTRIBUTOR,
        contributor.id,
        {"followers": 321, "impact_score": 55},
        is_enriched=True,
    )

    with sqlite_session_factory() as session:
        loaded = SqlAlchemyContributorRepository(session).get_by_github_id(1)
    assert loaded is not None
    assert loaded.is_enriched is True
    assert loaded.followers == 321
    assert loaded.impact_score == 55
    assert loaded.updated_at == FIXED_NOW
    assert store.count_unenriched(EntityType.CONTRIBUTOR) == 0


def test_update_rejects_unknown_columns(
    store: SqlAlchemyEnrichmentStore,
    sqlite_session_factory: sessionmaker[Session],
) -> None:
    contributor = make_contributor()
    _seed_contributors(sqlite_session_factory, contributor)

    with pytest.raises(KeyError, match="not_a_column"):
        store.update_enriched_fields(
            EntityType.CONTRIBUTOR, contributor.id, {"not_a_column": 1}, is_enriched=True
        )

    assert store.count_unenriched(EntityType.CONTRIBUTOR) == 1
