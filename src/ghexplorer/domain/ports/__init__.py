"""Ports the domain depends on; adapters provide the implementations."""

from __future__ import annotations

from .enrichment import EnrichmentCandidate, EnrichmentStore
from .github import (
    EntityExtractor,
    ExtractedEntities,
    GitHubAPIError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubSource,
)
from .unit_of_work import EntityRepositories, EntityUnitOfWork, RepositoryCollection, UnitOfWork

__all__ = [
    "EnrichmentCandidate",
    "EnrichmentStore",
    "EntityExtractor",
    "EntityRepositories",
    "EntityUnitOfWork",
    "ExtractedEntities",
    "GitHubAPIError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
    "GitHubSource",
    "RepositoryCollection",
    "UnitOfWork",
]
