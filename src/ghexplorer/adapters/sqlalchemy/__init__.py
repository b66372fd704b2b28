"""SQLAlchemy adapter package for ghexplorer."""

from __future__ import annotations

from .enrichment_store import SqlAlchemyEnrichmentStore
from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyCommitRepository,
    SqlAlchemyContributorRepository,
    SqlAlchemyMergeRequestRepository,
    SqlAlchemyRepositoryRepository,
)
from .unit_of_work import (
    SqlAlchemyEntityUnitOfWork,
    StartupError,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyCommitRepository",
    "SqlAlchemyContributorRepository",
    "SqlAlchemyEnrichmentStore",
    "SqlAlchemyEntityUnitOfWork",
    "SqlAlchemyMergeRequestRepository",
    "SqlAlchemyRepositoryRepository",
    "StartupError",
    "create_all_tables",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
