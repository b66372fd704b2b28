"""Stage contract and the retry/batching helpers shared by concrete stages."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from ghexplorer.domain.pipeline.context import PipelineContext

log = logging.getLogger(__name__)

type Sleep = Callable[[float], Awaitable[None]]

BACKOFF_BASE_SECONDS = 0.1


@dataclass(slots=True, frozen=True)
class StageConfig:
    batch_size: int = 10
    concurrency: int = 1
    max_retries: int = 3


@dataclass(slots=True, frozen=True)
class PipelineConfig:
    """Run-level settings; durations are in seconds.

    ``timeout`` bounds each stage's ``execute`` call; ``None`` disables it.
    """

    max_concurrency: int = 1
    retry_count: int = 3
    retry_delay: float = 1.0
    timeout: float | None = 300.0
    batch_size: int = 100


class MissingContextKeyError(ValueError):
    """Raised when a stage runs without a context value it depends on."""


@dataclass(slots=True, frozen=True)
class ItemFailure[TItem]:
    item: TItem
    error: Exception
    attempts: int


@dataclass(slots=True)
class RetryOutcome[TItem, TResult]:
    results: list[TResult] = field(default_factory=list)
    errors: list[ItemFailure[TItem]] = field(default_factory=list)


class BaseStage(ABC):
    """A named unit of work over a shared ``PipelineContext``.

    Stages swallow per-item failures themselves and report them through the
    context; raising out of ``execute`` is reserved for stage-level failures,
    which abort the run only when ``abort_on_error`` is set.
    """

    def __init__(
        self,
        name: str,
        *,
        abort_on_error: bool = False,
        config: StageConfig | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if not name or not name.strip():
            raise ValueError("Stage name is required")
        self.name = name
        self.abort_on_error = abort_on_error
        self.config = config or StageConfig()
        self._sleep = sleep

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, abort_on_error={self.abort_on_error})"

    @abstractmethod
    async def execute(
        self, context: PipelineContext, pipeline_config: PipelineConfig
    ) -> PipelineContext:
        raise NotImplementedError(f"Stage {self.name} does not implement execute()")

    def log(self, level: int, message: str, *args: object) -> None:
        log.log(level, "[%s] " + message, self.name, *args)

    def validate_context(self, context: PipelineContext, required_keys: Iterable[str]) -> None:
        for key in required_keys:
            if context.get(key) is None:
                raise MissingContextKeyError(f"Missing required context key: {key}")

    async def process_with_retry[TItem, TResult](
        self,
        items: Sequence[TItem],
        process: Callable[[TItem], Awaitable[TResult]],
        *,
        max_retries: int | None = None,
    ) -> RetryOutcome[TItem, TResult]:
        """Process items one at a time, retrying each with exponential back-off.

        An item gets ``max_retries + 1`` attempts; after the n-th failed attempt the
        stage sleeps ``2**n * 0.1`` seconds. Items that never succeed end up in
        ``errors`` and are never raised.
        """

        retries_allowed = self.config.max_retries if max_retries is None else max_retries
        outcome: RetryOutcome[TItem, TResult] = RetryOutcome()

        for item in items:
            failures = 0
            while True:
                try:
                    result = await process(item)
                except Exception as exc:
                    failures += 1
                    if failures > retries_allowed:
                        self.log(
                            logging.WARNING,
                            "Giving up on item after %d attempts: %s",
                            failures,
                            exc,
                        )
                        outcome.errors.append(ItemFailure(item=item, error=exc, attempts=failures))
                        break
                    delay = (2**failures) * BACKOFF_BASE_SECONDS
                    self.log(
                        logging.DEBUG,
                        "Attempt %d failed (%s); retrying in %.1fs",
                        failures,
                        exc,
                        delay,
                    )
                    await self._sleep(delay)
                else:
                    outcome.results.append(result)
                    break

        return outcome

    async def batch_process[TItem, TResult](
        self,
        items: Sequence[TItem],
        process: Callable[[TItem], Awaitable[TResult]],
        *,
        batch_size: int | None = None,
        concurrency: int | None = None,
        throw_on_error: bool = False,
    ) -> list[TResult]:
        """Run ``process`` over ``items`` in batches, ``concurrency`` calls at a time.

        Each window settles completely before the next one starts. Failed items are
        logged and dropped from the results; with ``throw_on_error`` the first failure
        of a batch is raised once that batch has settled.
        """

        size = batch_size or self.config.batch_size
        if size <= 0:
            raise ValueError(f"Batch size must be positive, got {size}")
        window = max(1, concurrency or self.config.concurrency)
        results: list[TResult] = []
        total_batches = (len(items) + size - 1) // size

        for batch_index, start in enumerate(range(0, len(items), size), start=1):
            batch = items[start : start + size]
            self.log(
                logging.DEBUG,
                "Processing batch %d/%d (%d items)",
                batch_index,
                total_batches,
                len(batch),
            )
            failures: list[Exception] = []
            for offset in range(0, len(batch), window):
                chunk = batch[offset : offset + window]
                settled = await asyncio.gather(
                    *(process(item) for item in chunk),
                    return_exceptions=True,
                )
                for outcome in settled:
                    if isinstance(outcome, Exception):
                        self.log(logging.WARNING, "Item failed: %s", outcome)
                        failures.append(outcome)
                    elif isinstance(outcome, BaseException):
                        raise outcome
                    else:
                        results.append(outcome)
            if failures and throw_on_error:
                raise failures[0]

        return results
