"""
Concurrent Review Runner

Reviews many files at once with a hard cap on in-flight LLM calls.

Each file gets its own task. A task must win one of ``max_concurrency``
admission slots before calling the model and gives the slot back as soon
as the call returns. One deadline governs the whole run: it bounds both
the wait for a slot and the call itself (including retry back-off), and a
task stopped by it records a ReviewCancelledError rather than a provider
failure. The runner always waits for every task before returning.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

from .errors import ReviewCancelledError
from .models import AggregateRunResult, FileTask, ReviewResult, RunStats
from .progress import ProgressSink, SafeProgress

logger = structlog.get_logger(__name__)

ReviewOne = Callable[[FileTask], Awaitable[ReviewResult]]
ResultCallback = Callable[[str, ReviewResult], None]
ErrorCallback = Callable[[str, BaseException], None]


class ConcurrentReviewRunner:
    """
    Semaphore-bounded fan-out of per-file reviews.

    Args:
        review_one: Retry-wrapped review of a single file
        max_concurrency: Maximum simultaneous ``review_one`` calls
        deadline: Seconds the whole run may take; None for no limit
        progress: Optional sink for lifecycle events
    """

    def __init__(
        self,
        review_one: ReviewOne,
        max_concurrency: int = 5,
        deadline: float | None = None,
        progress: ProgressSink | None = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if deadline is not None and deadline < 0:
            raise ValueError("deadline must be >= 0")

        self.review_one = review_one
        self.max_concurrency = max_concurrency
        self.deadline = deadline
        self.progress = SafeProgress(progress)

    async def run(self, files: list[FileTask]) -> AggregateRunResult:
        """
        Review every file and collect the outcomes.

        Returns:
            AggregateRunResult with one entry per distinct path, either in
            ``results_by_path`` or in ``errors_by_path``
        """
        aggregate = AggregateRunResult()
        lock = asyncio.Lock()
        start = time.monotonic()

        async def record_result(path: str, result: ReviewResult) -> None:
            async with lock:
                aggregate.results_by_path[path] = result

        async def record_error(path: str, error: BaseException) -> None:
            async with lock:
                aggregate.errors_by_path[path] = error

        unique = _dedupe(files)
        await self._execute(unique, record_result, record_error)

        aggregate.stats = _build_stats(aggregate, len(unique), start)
        logger.info("Review run finished", **aggregate.stats.to_dict())
        return aggregate

    async def run_with_callbacks(
        self,
        files: list[FileTask],
        on_result: ResultCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        """Review every file, handing each outcome to a callback as it lands."""

        async def deliver_result(path: str, result: ReviewResult) -> None:
            if on_result is not None:
                on_result(path, result)

        async def deliver_error(path: str, error: BaseException) -> None:
            if on_error is not None:
                on_error(path, error)

        await self._execute(_dedupe(files), deliver_result, deliver_error)

    async def _execute(
        self,
        files: list[FileTask],
        on_result: Callable[[str, ReviewResult], Awaitable[None]],
        on_error: Callable[[str, BaseException], Awaitable[None]],
    ) -> None:
        self.progress.start(len(files))
        if not files:
            self.progress.finish()
            return

        loop = asyncio.get_running_loop()
        deadline_at = loop.time() + self.deadline if self.deadline is not None else None
        semaphore = asyncio.Semaphore(self.max_concurrency)

        def deadline_passed() -> bool:
            return deadline_at is not None and loop.time() >= deadline_at

        async def fail(task: FileTask, error: BaseException) -> None:
            self.progress.error_file(task.path, str(error))
            await on_error(task.path, error)

        async def process(task: FileTask) -> None:
            # Admission: never take a slot we cannot use.
            if deadline_passed():
                await fail(task, ReviewCancelledError(task.path, stage="admission"))
                return
            try:
                async with asyncio.timeout_at(deadline_at):
                    await semaphore.acquire()
            except TimeoutError:
                await fail(task, ReviewCancelledError(task.path, stage="admission"))
                return

            if deadline_passed():
                semaphore.release()
                await fail(task, ReviewCancelledError(task.path, stage="admission"))
                return

            self.progress.start_file(task.path)
            timeout = asyncio.timeout_at(deadline_at)
            try:
                async with timeout:
                    result = await self.review_one(task)
            except Exception as e:
                semaphore.release()
                if isinstance(e, TimeoutError) and timeout.expired():
                    e = ReviewCancelledError(task.path)
                logger.info("File review failed", file=task.path, error=str(e))
                await fail(task, e)
                return
            except BaseException:
                semaphore.release()
                raise

            semaphore.release()
            self.progress.complete_file(task.path, result.issue_count)
            await on_result(task.path, result)

        outcomes = await asyncio.gather(*(process(f) for f in files), return_exceptions=True)
        for task, outcome in zip(files, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Unhandled error in review task", file=task.path, error=str(outcome))

        self.progress.finish()


def _dedupe(files: list[FileTask]) -> list[FileTask]:
    """Keep the first task per path; a path gets at most one outcome."""
    seen: set[str] = set()
    unique: list[FileTask] = []
    for task in files:
        if task.path in seen:
            logger.warning("Duplicate file task ignored", file=task.path)
            continue
        seen.add(task.path)
        unique.append(task)
    return unique


def _build_stats(aggregate: AggregateRunResult, total: int, start: float) -> RunStats:
    cancelled = sum(
        1 for e in aggregate.errors_by_path.values() if isinstance(e, ReviewCancelledError)
    )
    return RunStats(
        total_files=total,
        succeeded=len(aggregate.results_by_path),
        failed=len(aggregate.errors_by_path) - cancelled,
        cancelled=cancelled,
        total_issues=sum(r.issue_count for r in aggregate.results_by_path.values()),
        duration_ms=int((time.monotonic() - start) * 1000),
    )
