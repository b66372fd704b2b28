"""Batching defaults for pipeline runs and enrichment workers."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_positive_int

DEFAULT_PIPELINE_BATCH_SIZE = 100
DEFAULT_ENRICH_BATCH_SIZE = 10


@dataclass(frozen=True, slots=True)
class PipelineSettings:
    pipeline_batch_size: int = DEFAULT_PIPELINE_BATCH_SIZE
    enrich_batch_size: int = DEFAULT_ENRICH_BATCH_SIZE


def get_pipeline_settings() -> PipelineSettings:
    return PipelineSettings(
        pipeline_batch_size=env_positive_int(
            "GHEXPLORER_PIPELINE_BATCH_SIZE", DEFAULT_PIPELINE_BATCH_SIZE
        ),
        enrich_batch_size=env_positive_int(
            "GHEXPLORER_ENRICH_BATCH_SIZE", DEFAULT_ENRICH_BATCH_SIZE
        ),
    )
