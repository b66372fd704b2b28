"""Explicit registry of stage factories and named pipelines."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from ghexplorer.domain.pipeline.context import PipelineContext, utcnow
from ghexplorer.domain.pipeline.orchestrator import Pipeline
from ghexplorer.domain.pipeline.stage import PipelineConfig

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ghexplorer.domain.pipeline.context import Clock
    from ghexplorer.domain.pipeline.stage import BaseStage

log = getLogger(__name__)

type StageFactory = Callable[[], BaseStage]


class PipelineRegistryError(ValueError):
    """Raised for invalid registrations or lookups."""


@dataclass(slots=True, frozen=True)
class PipelineDefinition:
    name: str
    stage_names: tuple[str, ...]
    config: PipelineConfig = field(default_factory=PipelineConfig)


class PipelineRegistry:
    """Maps stage names to factories and pipeline names to ordered stage names.

    Every ``build``/``execute`` instantiates fresh stages, so runs never share
    stage state. Registrations are validated eagerly: a pipeline can only name
    stages that are already registered.
    """

    def __init__(self, *, clock: Clock = utcnow) -> None:
        self._stages: dict[str, StageFactory] = {}
        self._pipelines: dict[str, PipelineDefinition] = {}
        self._clock = clock

    def register_stage(self, name: str, factory: StageFactory) -> None:
        if not name:
            raise PipelineRegistryError("Stage name is required")
        if not callable(factory):
            raise PipelineRegistryError(f"Stage factory for {name} is not callable")
        if name in self._stages:
            log.warning("Stage %s already registered; overwriting", name)
        self._stages[name] = factory

    def register_pipeline(
        self,
        name: str,
        stage_names: Sequence[str],
        *,
        config: PipelineConfig | None = None,
    ) -> PipelineDefinition:
        if not name:
            raise PipelineRegistryError("Pipeline name is required")
        if not stage_names:
            raise PipelineRegistryError(f"Pipeline {name} must contain at least one stage")
        unknown = [stage for stage in stage_names if stage not in self._stages]
        if unknown:
            raise PipelineRegistryError(
                f"Pipeline {name} references unregistered stage(s): {', '.join(unknown)}"
            )
        if name in self._pipelines:
            log.warning("Pipeline %s already registered; overwriting", name)

        definition = PipelineDefinition(
            name=name,
            stage_names=tuple(stage_names),
            config=config or PipelineConfig(),
        )
        self._pipelines[name] = definition
        return definition

    @property
    def stage_names(self) -> tuple[str, ...]:
        return tuple(self._stages)

    @property
    def pipeline_names(self) -> tuple[str, ...]:
        return tuple(self._pipelines)

    def definition(self, name: str) -> PipelineDefinition:
        try:
            return self._pipelines[name]
        except KeyError:
            raise PipelineRegistryError(f"Pipeline {name} is not registered") from None

    def build(self, name: str) -> Pipeline:
        definition = self.definition(name)
        stages = tuple(self._stages[stage_name]() for stage_name in definition.stage_names)
        return Pipeline(name=name, stages=stages, config=definition.config, clock=self._clock)

    async def execute(
        self,
        name: str,
        context: PipelineContext | None = None,
        *,
        abort_on_error: bool = False,
    ) -> PipelineContext:
        """Run the named pipeline against ``context`` (a new one when omitted).

        A stage-fatal error leaves the context failed; it is re-raised only when
        ``abort_on_error`` is set.
        """

        pipeline = self.build(name)
        active = context or PipelineContext(clock=self._clock)
        try:
            return await pipeline.execute(active)
        except Exception:
            if abort_on_error:
                raise
            log.exception("Pipeline %s aborted", name)
            return active
