"""Staged pipeline engine for GitHub entity ingestion and enrichment.

A ``Pipeline`` runs its stages strictly in order over one ``PipelineContext``.
Stages retry individual items themselves and report failures on the context;
only a stage built with ``abort_on_error`` can fail a whole run.
"""

from __future__ import annotations

from .context import (
    Checkpoint,
    PipelineContext,
    PipelineError,
    PipelineInput,
    PipelineStateError,
    PipelineStats,
    PipelineSummary,
)
from .kinds import PIPELINE_KINDS, PipelineKindSpec, pending_counts, register_pipeline_kinds
from .orchestrator import Pipeline, StageTimeoutError
from .registry import PipelineDefinition, PipelineRegistry, PipelineRegistryError
from .stage import (
    BaseStage,
    ItemFailure,
    MissingContextKeyError,
    PipelineConfig,
    RetryOutcome,
    StageConfig,
)
from .stages import (
    ENRICH_ENTITIES,
    EXTRACT_ENTITIES,
    FETCH_REPOSITORY_ACTIVITY,
    PERSIST_ENTITIES,
    EnrichEntitiesStage,
    ExtractEntitiesStage,
    ExtractionToggles,
    FetchRepositoryActivityStage,
    PersistEntitiesStage,
)

__all__ = [
    "ENRICH_ENTITIES",
    "EXTRACT_ENTITIES",
    "FETCH_REPOSITORY_ACTIVITY",
    "PERSIST_ENTITIES",
    "PIPELINE_KINDS",
    "BaseStage",
    "Checkpoint",
    "EnrichEntitiesStage",
    "ExtractEntitiesStage",
    "ExtractionToggles",
    "FetchRepositoryActivityStage",
    "ItemFailure",
    "MissingContextKeyError",
    "PersistEntitiesStage",
    "Pipeline",
    "PipelineConfig",
    "PipelineContext",
    "PipelineDefinition",
    "PipelineError",
    "PipelineInput",
    "PipelineKindSpec",
    "PipelineRegistry",
    "PipelineRegistryError",
    "PipelineStateError",
    "PipelineStats",
    "PipelineSummary",
    "RetryOutcome",
    "StageConfig",
    "StageTimeoutError",
    "pending_counts",
    "register_pipeline_kinds",
]
