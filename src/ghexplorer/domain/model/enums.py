"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityType(StrEnum):
    REPOSITORY = "repository"
    CONTRIBUTOR = "contributor"
    MERGE_REQUEST = "merge_request"
    COMMIT = "commit"


class PipelineState(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class CheckpointStatus(StrEnum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineKind(StrEnum):
    """Closed set of pipelines the application knows how to run."""

    INGESTION = "ingestion"
    REPOSITORY_SYNC = "repository_sync"
    ENRICHMENT = "enrichment"


class MergeRequestStatus(StrEnum):
    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


class ContributorRole(StrEnum):
    PROJECT_LEAD = "project_lead"
    MAINTAINER = "maintainer"
    REGULAR_CONTRIBUTOR = "regular_contributor"
    OCCASIONAL_CONTRIBUTOR = "occasional_contributor"
    FIRST_TIME_CONTRIBUTOR = "first_time_contributor"
