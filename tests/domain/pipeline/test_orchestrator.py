from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from ghexplorer.domain.model import CheckpointStatus, PipelineState
from ghexplorer.domain.pipeline import (
    BaseStage,
    Pipeline,
    PipelineConfig,
    PipelineContext,
    PipelineInput,
    StageTimeoutError,
)
from tests.helpers.github import make_repository

if TYPE_CHECKING:
    from collections.abc import Callable


class RecordingStage(BaseStage):
    def __init__(
        self,
        name: str,
        journal: list[str],
        *,
        action: Callable[[PipelineContext], None] | None = None,
        abort_on_error: bool = False,
    ) -> None:
        super().__init__(name, abort_on_error=abort_on_error)
        self.journal = journal
        self.action = action

    async def execute(
        self, context: PipelineContext, pipeline_config: PipelineConfig
    ) -> PipelineContext:
        del pipeline_config
        self.journal.append(self.name)
        if self.action is not None:
            self.action(context)
        return context


class CountingStage(BaseStage):
    """Counts raw items and fails on payloads flagged as broken."""

    async def execute(
        self, context: PipelineContext, pipeline_config: PipelineConfig
    ) -> PipelineContext:
        del pipeline_config
        for item in context.raw_data or ():
            if item.get("broken"):
                context.record_error(self.name, ValueError(f"broken item {item['n']}"))
            else:
                number = int(str(item["n"]))
                context.add_repositories([make_repository(number, f"octocat/repo-{number}")])
        context.increment(repositories_extracted=len(context.repositories))
        return context


class SlowStage(BaseStage):
    async def execute(
        self, context: PipelineContext, pipeline_config: PipelineConfig
    ) -> PipelineContext:
        del pipeline_config
        await asyncio.sleep(1)
        return context


def _fail(message: str) -> Callable[[PipelineContext], None]:
    def action(context: PipelineContext) -> None:
        del context
        raise RuntimeError(message)

    return action


def test_stages_run_in_order_and_checkpoint() -> None:
    journal: list[str] = []
    pipeline = Pipeline(
        name="ordered",
        stages=(RecordingStage("first", journal), RecordingStage("second", journal)),
    )

    context = asyncio.run(pipeline.run())

    assert journal == ["first", "second"]
    assert context.state is PipelineState.COMPLETED
    for stage in ("first", "second"):
        checkpoint = context.checkpoint(stage)
        assert checkpoint is not None
        assert checkpoint.status is CheckpointStatus.COMPLETED
        assert checkpoint.stats is not None


def test_duplicate_stage_names_are_rejected() -> None:
    journal: list[str] = []
    with pytest.raises(ValueError, match="Duplicate"):
        Pipeline(stages=(RecordingStage("same", journal), RecordingStage("same", journal)))


def test_failing_stage_is_recorded_and_skipped() -> None:
    journal: list[str] = []
    pipeline = Pipeline(
        stages=(
            RecordingStage("first", journal, action=_fail("nope")),
            RecordingStage("second", journal),
        )
    )

    context = asyncio.run(pipeline.run())

    assert journal == ["first", "second"]
    assert context.state is PipelineState.COMPLETED
    assert [error.stage for error in context.errors] == ["first"]
    checkpoint = context.checkpoint("first")
    assert checkpoint is not None
    assert checkpoint.status is CheckpointStatus.FAILED
    assert checkpoint.error == "nope"


def test_aborting_stage_fails_the_run_and_keeps_side_effects() -> None:
    journal: list[str] = []

    def partial_then_fail(context: PipelineContext) -> None:
        context.add_repositories([make_repository()])
        raise RuntimeError("fatal")

    pipeline = Pipeline(
        stages=(
            RecordingStage("first", journal, action=partial_then_fail, abort_on_error=True),
            RecordingStage("second", journal),
        )
    )
    context = PipelineContext()

    with pytest.raises(RuntimeError, match="fatal"):
        asyncio.run(pipeline.execute(context))

    assert journal == ["first"]
    assert context.state is PipelineState.FAILED
    assert len(context.repositories) == 1
    assert [error.stage for error in context.errors] == ["first", "pipeline"]


def test_stage_timeout_is_reported_as_stage_error() -> None:
    journal: list[str] = []
    pipeline = Pipeline(
        stages=(SlowStage("slow"), RecordingStage("after", journal)),
        config=PipelineConfig(timeout=0.01),
    )

    context = asyncio.run(pipeline.run())

    assert journal == ["after"]
    assert context.errors[0].error_type == StageTimeoutError.__name__
    checkpoint = context.checkpoint("slow")
    assert checkpoint is not None
    assert checkpoint.status is CheckpointStatus.FAILED


def test_timeout_raised_by_stage_keeps_its_message() -> None:
    def time_out(context: PipelineContext) -> None:
        del context
        raise TimeoutError("upstream read timed out")

    pipeline = Pipeline(
        stages=(RecordingStage("fetch", [], action=time_out),),
        config=PipelineConfig(timeout=5),
    )

    context = asyncio.run(pipeline.run())

    (error,) = context.errors
    assert error.error_type == "TimeoutError"
    assert error.message == "upstream read timed out"


def test_add_stage_returns_new_pipeline() -> None:
    journal: list[str] = []
    base = Pipeline(name="base", stages=(RecordingStage("first", journal),))

    extended = base.add_stage(RecordingStage("second", journal))

    assert [stage.name for stage in base.stages] == ["first"]
    assert [stage.name for stage in extended.stages] == ["first", "second"]
    assert extended.name == "base"


def test_run_batched_merges_sub_runs() -> None:
    items = [{"n": 1}, {"n": 2}, {"n": 3, "broken": True}, {"n": 4}, {"n": 5}]
    pipeline = Pipeline(stages=(CountingStage("count"),))

    master = asyncio.run(pipeline.run_batched(items, batch_size=2, run_id="run-master"))

    assert master.state is PipelineState.COMPLETED
    assert master.run_id == "run-master"
    assert master.stats.raw_data_processed == 5
    assert master.stats.repositories_extracted == 4
    assert [repo.github_id for repo in master.repositories] == [1, 2, 4, 5]
    assert [(error.stage, error.batch) for error in master.errors] == [("count", 2)]
    assert master.stats.errors == 1


def test_run_batched_uses_derived_run_ids() -> None:
    seen: list[str] = []

    def remember(context: PipelineContext) -> None:
        seen.append(context.run_id)

    pipeline = Pipeline(stages=(RecordingStage("note", [], action=remember),))

    asyncio.run(pipeline.run_batched([{"n": 1}, {"n": 2}, {"n": 3}], 2, run_id="run-x"))

    assert seen == ["run-x-batch-1", "run-x-batch-2"]


def test_run_batched_rejects_non_positive_size() -> None:
    pipeline = Pipeline(stages=(RecordingStage("noop", []),))

    with pytest.raises(ValueError, match="positive"):
        asyncio.run(pipeline.run_batched([{"n": 1}], batch_size=-1))


def test_run_accepts_initial_entities() -> None:
    repository = make_repository()
    pipeline = Pipeline(stages=(RecordingStage("noop", []),))

    context = asyncio.run(pipeline.run(PipelineInput(repositories=[repository])))

    assert context.repositories == (repository,)
