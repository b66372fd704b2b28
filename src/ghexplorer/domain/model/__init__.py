"""Domain model for GitHub entities and pipeline bookkeeping."""

from __future__ import annotations

from .entity import MAX_ENRICHMENT_ATTEMPTS, EnrichableEntity, Entity, new_id
from .enums import (
    CheckpointStatus,
    ContributorRole,
    EntityType,
    MergeRequestStatus,
    PipelineKind,
    PipelineState,
)
from .github import (
    Commit,
    Contributor,
    FileChange,
    InvalidFullNameError,
    MergeRequest,
    Repository,
    split_full_name,
)
from .scoring import (
    calculate_complexity_score,
    calculate_impact_score,
    classify_contributor_role,
    cycle_time_hours,
    review_time_hours,
)

__all__ = [
    "MAX_ENRICHMENT_ATTEMPTS",
    "CheckpointStatus",
    "Commit",
    "Contributor",
    "ContributorRole",
    "EnrichableEntity",
    "Entity",
    "EntityType",
    "FileChange",
    "InvalidFullNameError",
    "MergeRequest",
    "MergeRequestStatus",
    "PipelineKind",
    "PipelineState",
    "Repository",
    "calculate_complexity_score",
    "calculate_impact_score",
    "classify_contributor_role",
    "cycle_time_hours",
    "new_id",
    "review_time_hours",
    "split_full_name",
]
