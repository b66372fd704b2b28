from __future__ import annotations

import pytest

from ghexplorer.config import ConfigurationError, PipelineSettings, get_pipeline_settings


def test_pipeline_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GHEXPLORER_PIPELINE_BATCH_SIZE", raising=False)
    monkeypatch.delenv("GHEXPLORER_ENRICH_BATCH_SIZE", raising=False)

    assert get_pipeline_settings() == PipelineSettings(
        pipeline_batch_size=100, enrich_batch_size=10
    )


def test_pipeline_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GHEXPLORER_PIPELINE_BATCH_SIZE", "25")
    monkeypatch.setenv("GHEXPLORER_ENRICH_BATCH_SIZE", "5")

    settings = get_pipeline_settings()

    assert settings.pipeline_batch_size == 25
    assert settings.enrich_batch_size == 5


def test_pipeline_settings_reject_non_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GHEXPLORER_ENRICH_BATCH_SIZE", "0")

    with pytest.raises(ConfigurationError, match="GHEXPLORER_ENRICH_BATCH_SIZE"):
        get_pipeline_settings()
