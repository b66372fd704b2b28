"""Run-scoped state shared by the stages of a single pipeline run.

Stages never assign to the context directly: entity buffers and error lists are
append-only, statistics only grow, and the run state follows
``pending -> running -> completed | failed``. Every change goes through one of
the mutation methods below so those guarantees hold for any stage.
"""

from __future__ import annotations

import time
import traceback
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields, replace
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING
from uuid import uuid4

from ghexplorer.domain.model import CheckpointStatus, EntityType, PipelineState

if TYPE_CHECKING:
    from collections.abc import Callable

    from ghexplorer.domain.model import Commit, Contributor, MergeRequest, Repository

log = getLogger(__name__)

type Clock = Callable[[], datetime]
type RawItem = Mapping[str, object]

PIPELINE_ERROR_STAGE = "pipeline"


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_run_id() -> str:
    return f"run-{time.time_ns() // 1_000_000}-{uuid4().hex[:5]}"


class PipelineStateError(RuntimeError):
    """Raised on an invalid run-state transition."""


@dataclass(slots=True, frozen=True)
class PipelineStats:
    raw_data_processed: int = 0
    repositories_extracted: int = 0
    contributors_extracted: int = 0
    merge_requests_extracted: int = 0
    commits_extracted: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(slots=True, frozen=True)
class PipelineError:
    stage: str
    message: str
    error_type: str
    stack: str | None
    timestamp: datetime
    batch: int | None = None


@dataclass(slots=True, frozen=True)
class Checkpoint:
    status: CheckpointStatus
    timestamp: datetime
    stats: PipelineStats | None = None
    error: str | None = None


@dataclass(slots=True, frozen=True)
class PipelineInput:
    """Initial data handed to ``Pipeline.run``."""

    raw_data: Sequence[RawItem] | RawItem | None = None
    targets: Sequence[str] | None = None
    repositories: Sequence[Repository] = ()
    contributors: Sequence[Contributor] = ()
    merge_requests: Sequence[MergeRequest] = ()
    commits: Sequence[Commit] = ()
    extras: Mapping[str, object] = field(default_factory=dict[str, object])


@dataclass(slots=True, frozen=True)
class PipelineSummary:
    run_id: str
    state: PipelineState
    duration_seconds: float
    stats: PipelineStats
    counts: Mapping[EntityType, int]
    has_errors: bool
    error_count: int

    def as_dict(self) -> dict[str, object]:
        return {
            "run_id": self.run_id,
            "state": str(self.state),
            "duration_seconds": self.duration_seconds,
            "stats": self.stats.as_dict(),
            "counts": {str(kind): count for kind, count in self.counts.items()},
            "errors": self.has_errors,
            "error_count": self.error_count,
        }


class PipelineContext:
    def __init__(
        self,
        initial_data: PipelineInput | None = None,
        *,
        run_id: str | None = None,
        clock: Clock = utcnow,
    ) -> None:
        data = initial_data or PipelineInput()
        self.run_id = run_id or new_run_id()
        self._clock = clock
        self._state = PipelineState.PENDING
        self._started_at: datetime | None = None
        self._ended_at: datetime | None = None
        self._raw_data = _as_items(data.raw_data)
        self._targets: tuple[str, ...] | None = (
            tuple(data.targets) if data.targets is not None else None
        )
        self._repositories: list[Repository] = list(data.repositories)
        self._contributors: list[Contributor] = list(data.contributors)
        self._merge_requests: list[MergeRequest] = list(data.merge_requests)
        self._commits: list[Commit] = list(data.commits)
        self._extras: dict[str, object] = dict(data.extras)
        self._stats = PipelineStats()
        self._errors: list[PipelineError] = []
        self._checkpoints: dict[str, Checkpoint] = {}

    # Lifecycle ---------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def started_at(self) -> datetime | None:
        return self._started_at

    @property
    def ended_at(self) -> datetime | None:
        return self._ended_at

    def start(self) -> None:
        if self._state is not PipelineState.PENDING:
            raise PipelineStateError(f"Cannot start run {self.run_id} in state {self._state}")
        self._state = PipelineState.RUNNING
        self._started_at = self._clock()

    def complete(self) -> None:
        self._require_running("complete")
        self._state = PipelineState.COMPLETED
        self._ended_at = self._clock()

    def fail(self, error: BaseException) -> None:
        self._require_running("fail")
        self._state = PipelineState.FAILED
        self._ended_at = self._clock()
        self.record_error(PIPELINE_ERROR_STAGE, error)

    def _require_running(self, action: str) -> None:
        if self._state is not PipelineState.RUNNING:
            raise PipelineStateError(f"Cannot {action} run {self.run_id} in state {self._state}")

    @property
    def duration(self) -> float:
        """Elapsed seconds; a running context measures against the current time."""

        if self._started_at is None:
            return 0.0
        end = self._ended_at or self._clock()
        return (end - self._started_at).total_seconds()

    # Inputs and shared values -------------------------------------------------

    @property
    def raw_data(self) -> tuple[RawItem, ...] | None:
        return self._raw_data

    @property
    def targets(self) -> tuple[str, ...] | None:
        return self._targets

    def get(self, key: str) -> object | None:
        """Look up a well-known context attribute or a stage-provided extra."""

        if key in _CONTEXT_ATTRIBUTES:
            return getattr(self, key)
        return self._extras.get(key)

    def put(self, key: str, value: object) -> None:
        if key in _CONTEXT_ATTRIBUTES:
            raise KeyError(f"{key!r} is managed by the context and cannot be replaced")
        self._extras[key] = value

    @property
    def extras(self) -> Mapping[str, object]:
        return dict(self._extras)

    # Entity buffers ------------------------------------------------------------

    @property
    def repositories(self) -> tuple[Repository, ...]:
        return tuple(self._repositories)

    @property
    def contributors(self) -> tuple[Contributor, ...]:
        return tuple(self._contributors)

    @property
    def merge_requests(self) -> tuple[MergeRequest, ...]:
        return tuple(self._merge_requests)

    @property
    def commits(self) -> tuple[Commit, ...]:
        return tuple(self._commits)

    def add_repositories(self, items: object) -> None:
        _extend(self._repositories, items)

    def add_contributors(self, items: object) -> None:
        _extend(self._contributors, items)

    def add_merge_requests(self, items: object) -> None:
        _extend(self._merge_requests, items)

    def add_commits(self, items: object) -> None:
        _extend(self._commits, items)

    # Statistics ------------------------------------------------------------------

    @property
    def stats(self) -> PipelineStats:
        return self._stats

    def increment(self, **amounts: int) -> None:
        """Add non-negative ``amounts`` to the named counters."""

        updates: dict[str, int] = {}
        for name, amount in amounts.items():
            if amount < 0:
                raise ValueError(f"Counter {name!r} cannot decrease (got {amount})")
            updates[name] = getattr(self._stats, name) + amount
        self._stats = replace(self._stats, **updates)

    # Errors and checkpoints --------------------------------------------------

    @property
    def errors(self) -> tuple[PipelineError, ...]:
        return tuple(self._errors)

    def record_error(self, stage: str, error: BaseException, *, batch: int | None = None) -> None:
        self._errors.append(
            PipelineError(
                stage=stage,
                message=str(error),
                error_type=type(error).__name__,
                stack=_format_stack(error),
                timestamp=self._clock(),
                batch=batch,
            )
        )
        self.increment(errors=1)

    def set_checkpoint(
        self,
        stage: str,
        status: CheckpointStatus,
        *,
        stats: PipelineStats | None = None,
        error: str | None = None,
    ) -> None:
        self._checkpoints[stage] = Checkpoint(
            status=status,
            timestamp=self._clock(),
            stats=stats,
            error=error,
        )

    def checkpoint(self, stage: str) -> Checkpoint | None:
        return self._checkpoints.get(stage)

    @property
    def checkpoints(self) -> Mapping[str, Checkpoint]:
        return dict(self._checkpoints)

    # Batched runs --------------------------------------------------------------

    def merge(self, other: PipelineContext, *, batch: int, processed: int) -> None:
        """Fold a finished sub-run into this context.

        ``processed`` is the number of raw items the sub-run was given; its errors
        are re-stamped with the 1-based ``batch`` number.
        """

        self._repositories.extend(other.repositories)
        self._contributors.extend(other.contributors)
        self._merge_requests.extend(other.merge_requests)
        self._commits.extend(other.commits)
        self._errors.extend(replace(error, batch=batch) for error in other.errors)
        sub = other.stats
        self.increment(
            raw_data_processed=processed,
            repositories_extracted=sub.repositories_extracted,
            contributors_extracted=sub.contributors_extracted,
            merge_requests_extracted=sub.merge_requests_extracted,
            commits_extracted=sub.commits_extracted,
            errors=sub.errors,
        )

    # Read projections ------------------------------------------------------------

    def counts(self) -> dict[EntityType, int]:
        return {
            EntityType.REPOSITORY: len(self._repositories),
            EntityType.CONTRIBUTOR: len(self._contributors),
            EntityType.MERGE_REQUEST: len(self._merge_requests),
            EntityType.COMMIT: len(self._commits),
        }

    def summary(self) -> PipelineSummary:
        return PipelineSummary(
            run_id=self.run_id,
            state=self._state,
            duration_seconds=self.duration,
            stats=self._stats,
            counts=self.counts(),
            has_errors=bool(self._errors),
            error_count=len(self._errors),
        )


_CONTEXT_ATTRIBUTES = frozenset(
    {"raw_data", "targets", "repositories", "contributors", "merge_requests", "commits"}
)


def _extend[T](buffer: list[T], items: object) -> None:
    if isinstance(items, (str, bytes)) or not isinstance(items, Sequence):
        log.debug("Ignoring non-sequence entity batch of type %s", type(items).__name__)
        return
    buffer.extend(items)  # pyright: ignore[reportUnknownArgumentType]


def _as_items(raw_data: Sequence[RawItem] | RawItem | None) -> tuple[RawItem, ...] | None:
    if raw_data is None:
        return None
    if isinstance(raw_data, Mapping):
        return (raw_data,)
    return tuple(raw_data)


def _format_stack(error: BaseException) -> str | None:
    if error.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(error))
