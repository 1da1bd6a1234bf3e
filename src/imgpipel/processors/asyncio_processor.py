"""AsyncIO executor - runs jobs concurrently, bounded by a semaphore."""

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from ..core import ProcessJob, ProcessResult, ToolConfig, get_logger
from ..core.error_handling import BatchOperationContextManager
from ..core.exceptions import JobError
from ..core.protocols import LoggerProtocol, ToolRunnerProtocol
from .common import failed_result, run_job

T = TypeVar("T")


async def bounded(pool: asyncio.Semaphore, work: Callable[[], Awaitable[T]]) -> T:
    """Wait for a free slot in ``pool``, then run ``work``."""
    async with pool:
        return await work()


async def gather_or_cancel(aws: Sequence[Awaitable[T]]) -> List[T]:
    """
    Like ``asyncio.gather`` but the first exception cancels every sibling
    before propagating, so no external program keeps running after a failure.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def execute_jobs(
    jobs: Sequence[ProcessJob],
    runner: ToolRunnerProtocol,
    tools: ToolConfig,
    concurrency: int = 1,
    reprocess_existing: bool = False,
    fail_fast: bool = False,
    pool: Optional[asyncio.Semaphore] = None,
    on_complete: Optional[Callable[[ProcessResult], None]] = None,
    logger: Optional[LoggerProtocol] = None,
) -> List[ProcessResult]:
    """
    Run every job with at most ``concurrency`` in flight.

    Args:
        jobs: Jobs to run; results come back in the same order
        runner: Runs the external programs
        tools: Executable names
        concurrency: Pool size, ignored when ``pool`` is given
        reprocess_existing: Redo jobs whose output already exists
        fail_fast: Abort the batch on the first failed job instead of
            recording it and carrying on
        pool: Semaphore shared with other work in the same run
        on_complete: Called with each result as it finishes
        logger: Logger for the batch summary

    Returns:
        One ProcessResult per job

    Raises:
        JobError: Only with ``fail_fast``
    """
    pool = pool or asyncio.Semaphore(concurrency)
    log = logger or get_logger("executor")

    with BatchOperationContextManager("Image processing", logger=log) as batch:

        async def run_one(job: ProcessJob) -> ProcessResult:
            try:
                result = await bounded(
                    pool, lambda: run_job(job, runner, tools, reprocess_existing)
                )
            except JobError as exc:
                if fail_fast:
                    raise
                batch.add_error(str(exc), item_identifier=str(job.output_path))
                result = failed_result(job, exc)
            if on_complete:
                on_complete(result)
            return result

        return await gather_or_cancel([run_one(job) for job in jobs])

