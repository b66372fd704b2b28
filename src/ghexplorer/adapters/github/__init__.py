"""GitHub REST adapter."""

from __future__ import annotations

from .client import GitHubClient
from .fetcher import GitHubFetcher, build_github_fetcher
from .translator import PayloadValidationError, extract_entities_from_event

__all__ = [
    "GitHubClient",
    "GitHubFetcher",
    "PayloadValidationError",
    "build_github_fetcher",
    "extract_entities_from_event",
]
