"""Ordered stage execution over a ``PipelineContext``."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from ghexplorer.domain.model import CheckpointStatus
from ghexplorer.domain.pipeline.context import PipelineContext, PipelineInput, utcnow
from ghexplorer.domain.pipeline.stage import PipelineConfig

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from ghexplorer.domain.pipeline.context import Clock, RawItem
    from ghexplorer.domain.pipeline.stage import BaseStage

log = getLogger(__name__)


class StageTimeoutError(TimeoutError):
    """Raised when a stage exceeds ``PipelineConfig.timeout``."""


@dataclass(slots=True)
class Pipeline:
    """Compose stages and run them strictly in order.

    A failing stage is recorded on the context and skipped unless it was built
    with ``abort_on_error``, in which case the run fails and the error propagates.
    Side effects of a stage that failed part-way are kept.
    """

    name: str = "pipeline"
    stages: Sequence[BaseStage] = field(default_factory=tuple)
    config: PipelineConfig = field(default_factory=PipelineConfig)
    clock: Clock = utcnow

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for stage in self.stages:
            if stage.name in seen:
                raise ValueError(f"Duplicate stage name in pipeline {self.name}: {stage.name}")
            seen.add(stage.name)

    def add_stage(self, stage: BaseStage) -> Pipeline:
        """Return a new pipeline appending ``stage`` at the end."""

        return self.with_stages((stage,))

    def with_stages(self, stages: Iterable[BaseStage]) -> Pipeline:
        return Pipeline(
            name=self.name,
            stages=(*self.stages, *tuple(stages)),
            config=self.config,
            clock=self.clock,
        )

    async def run(
        self,
        initial_data: PipelineInput | None = None,
        *,
        run_id: str | None = None,
    ) -> PipelineContext:
        """Run every stage against a fresh context built from ``initial_data``."""

        context = PipelineContext(initial_data, run_id=run_id, clock=self.clock)
        return await self.execute(context)

    async def execute(self, context: PipelineContext) -> PipelineContext:
        """Run every stage against a caller-provided, still pending context."""

        context.start()
        log.info(
            "Pipeline %s run %s started with %d stage(s)",
            self.name,
            context.run_id,
            len(self.stages),
        )
        try:
            for stage in self.stages:
                await self._run_stage(stage, context)
        except Exception as exc:
            context.fail(exc)
            log.error("Pipeline %s run %s failed: %s", self.name, context.run_id, exc)
            raise

        context.complete()
        log.info(
            "Pipeline %s run %s completed in %.2fs (%d error(s))",
            self.name,
            context.run_id,
            context.duration,
            len(context.errors),
        )
        return context

    async def _run_stage(self, stage: BaseStage, context: PipelineContext) -> None:
        context.set_checkpoint(stage.name, CheckpointStatus.STARTED)
        try:
            timer = asyncio.timeout(self.config.timeout)
            try:
                async with timer:
                    await stage.execute(context, self.config)
            except TimeoutError as exc:
                # a TimeoutError raised by the stage itself keeps its own message
                if not timer.expired():
                    raise
                raise StageTimeoutError(
                    f"Stage {stage.name} exceeded {self.config.timeout}s"
                ) from exc
        except Exception as exc:
            context.record_error(stage.name, exc)
            context.set_checkpoint(stage.name, CheckpointStatus.FAILED, error=str(exc))
            if stage.abort_on_error:
                raise
            log.warning("Stage %s failed, continuing: %s", stage.name, exc)
            return

        context.set_checkpoint(stage.name, CheckpointStatus.COMPLETED, stats=context.stats)

    async def run_batched(
        self,
        items: Sequence[RawItem],
        batch_size: int | None = None,
        *,
        run_id: str | None = None,
    ) -> PipelineContext:
        """Run the pipeline once per chunk of ``items`` and merge the results.

        Chunks run one after another, each against its own context; the returned
        master context holds the merged buffers, stats and batch-stamped errors.
        """

        size = batch_size or self.config.batch_size
        if size <= 0:
            raise ValueError(f"Batch size must be positive, got {size}")

        master = PipelineContext(PipelineInput(raw_data=items), run_id=run_id, clock=self.clock)
        master.start()
        total = (len(items) + size - 1) // size
        log.info(
            "Pipeline %s run %s: %d item(s) in %d batch(es)",
            self.name,
            master.run_id,
            len(items),
            total,
        )

        try:
            for number, start in enumerate(range(0, len(items), size), start=1):
                batch = items[start : start + size]
                sub_context = await self.run(
                    PipelineInput(raw_data=batch),
                    run_id=f"{master.run_id}-batch-{number}",
                )
                master.merge(sub_context, batch=number, processed=len(batch))
        except Exception as exc:
            master.fail(exc)
            raise

        master.complete()
        return master
