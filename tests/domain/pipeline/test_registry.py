from __future__ import annotations

import asyncio

import pytest

from ghexplorer.domain.model import PipelineState
from ghexplorer.domain.pipeline import (
    BaseStage,
    PipelineConfig,
    PipelineContext,
    PipelineRegistry,
    PipelineRegistryError,
)


class TaggingStage(BaseStage):
    instances = 0

    def __init__(self, name: str, *, fail: bool = False) -> None:
        super().__init__(name, abort_on_error=fail)
        self.fail = fail
        TaggingStage.instances += 1

    async def execute(
        self, context: PipelineContext, pipeline_config: PipelineConfig
    ) -> PipelineContext:
        del pipeline_config
        if self.fail:
            raise RuntimeError(f"{self.name} exploded")
        tags = list(context.get("tags") or [])  # pyright: ignore[reportArgumentType]
        context.put("tags", [*tags, self.name])
        return context


def _registry() -> PipelineRegistry:
    registry = PipelineRegistry()
    registry.register_stage("a", lambda: TaggingStage("a"))
    registry.register_stage("b", lambda: TaggingStage("b"))
    registry.register_stage("boom", lambda: TaggingStage("boom", fail=True))
    return registry


def test_register_pipeline_requires_known_stages() -> None:
    registry = _registry()

    with pytest.raises(PipelineRegistryError, match="unregistered"):
        registry.register_pipeline("broken", ["a", "missing"])
    with pytest.raises(PipelineRegistryError, match="at least one"):
        registry.register_pipeline("empty", [])


def test_register_stage_rejects_non_callable() -> None:
    registry = PipelineRegistry()

    with pytest.raises(PipelineRegistryError):
        registry.register_stage("bad", "not callable")  # pyright: ignore[reportArgumentType]


def test_build_creates_fresh_stages_per_pipeline() -> None:
    registry = _registry()
    definition = registry.register_pipeline("ab", ["a", "b"], config=PipelineConfig(timeout=5))
    before = TaggingStage.instances

    first = registry.build("ab")
    second = registry.build("ab")

    assert TaggingStage.instances - before == 4
    assert first.stages[0] is not second.stages[0]
    assert first.config == definition.config
    assert registry.pipeline_names == ("ab",)
    assert registry.stage_names == ("a", "b", "boom")


def test_unknown_pipeline_is_an_error() -> None:
    with pytest.raises(PipelineRegistryError, match="not registered"):
        _registry().build("nope")


def test_execute_runs_stages_against_given_context() -> None:
    registry = _registry()
    registry.register_pipeline("ab", ["a", "b"])
    context = PipelineContext(run_id="run-given")

    result = asyncio.run(registry.execute("ab", context))

    assert result is context
    assert result.get("tags") == ["a", "b"]
    assert result.state is PipelineState.COMPLETED


def test_execute_swallows_fatal_errors_unless_asked() -> None:
    registry = _registry()
    registry.register_pipeline("explode", ["a", "boom", "b"])

    result = asyncio.run(registry.execute("explode"))

    assert result.state is PipelineState.FAILED
    assert result.get("tags") == ["a"]
    assert result.errors[0].message == "boom exploded"

    with pytest.raises(RuntimeError, match="boom exploded"):
        asyncio.run(registry.execute("explode", abort_on_error=True))
