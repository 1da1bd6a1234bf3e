"""The top-level run: plan, execute, report, display, clean up."""

import asyncio
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from rich.console import Console

from .core import (
    Metadata,
    ProcessedEntry,
    ProcessingConfig,
    ProcessResult,
    RunSummary,
    Target,
    ToolConfig,
    get_logger,
)
from .core.display import ProgressDisplay, render_results
from .core.exceptions import ExtractionError
from .core.metadata import read_metadata
from .core.planner import (
    check_directories,
    delete_unknown_outputs,
    discover_images,
    find_unknown_outputs,
    plan_jobs,
)
from .core.protocols import LoggerProtocol, ToolRunnerProtocol
from .core.report import build_report, reconcile, relative_key, write_report
from .core.tools import ToolRunner
from .processors.asyncio_processor import bounded, execute_jobs, gather_or_cancel
from .processors.common import log_configuration, log_final_statistics, sort_results


async def extract_metadata(
    paths: Dict[str, Path],
    runner: ToolRunnerProtocol,
    tools: ToolConfig,
    pool: asyncio.Semaphore,
    on_complete: Optional[Callable[[], None]] = None,
    logger: Optional[LoggerProtocol] = None,
) -> Dict[str, Metadata]:
    """
    Read metadata for every ``key -> path`` through the shared pool.

    A file whose metadata cannot be read is logged and left out. A missing
    exiftool (ToolNotFoundError) is not caught and ends the run.
    """
    log = logger or get_logger("metadata")

    async def read_one(key: str, path: Path) -> Tuple[str, Optional[Metadata]]:
        try:
            return key, await bounded(pool, lambda: read_metadata(path, runner, tools))
        except ExtractionError as exc:
            log.warning(f"Leaving {key} out of the report: {exc}")
            return key, None
        finally:
            if on_complete:
                on_complete()

    pairs = await gather_or_cancel([read_one(key, path) for key, path in paths.items()])
    return {key: metadata for key, metadata in pairs if metadata is not None}


async def process_many(
    config: ProcessingConfig,
    targets: Sequence[Target],
    runner: Optional[ToolRunnerProtocol] = None,
    logger: Optional[LoggerProtocol] = None,
    console: Optional[Console] = None,
) -> RunSummary:
    """
    Run the whole pipeline for ``targets`` over ``config.in_dir``.

    Raises:
        ConfigurationError: If the output directory is the input directory
        NoImagesFoundError: If the input directory has no images
        PlanningError: If two jobs collide on an output path
        JobError: On the first failed job, with ``config.fail_fast``
        ToolNotFoundError: If an external program is missing
        ReportWriteError: If the report cannot be written
    """
    log = logger or get_logger("pipeline")
    runner = runner or ToolRunner()
    check_directories(config.in_dir, config.out_dir)
    log_configuration(config, targets)
    start_time = time.time()

    input_files = discover_images(config.in_dir, exclude=config.out_dir)
    jobs = plan_jobs(input_files, targets, config)
    pool = asyncio.Semaphore(config.concurrency)
    report_path = config.out_metadata

    originals: Dict[str, Metadata] = {}
    total = len(jobs) + (len(input_files) if report_path else 0)
    with ProgressDisplay(total, "Processing images", enabled=config.show_progress) as progress:
        job_work = execute_jobs(
            jobs,
            runner,
            config.tools,
            reprocess_existing=config.reprocess_existing,
            fail_fast=config.fail_fast,
            pool=pool,
            on_complete=progress.advance,
            logger=log,
        )
        if report_path:
            # Metadata and pixel work are independent; run both through one pool.
            input_keys = {relative_key(path, config.in_dir): path for path in input_files}
            results, originals = await gather_or_cancel(
                [
                    job_work,
                    extract_metadata(
                        input_keys, runner, config.tools, pool, progress.advance, log
                    ),
                ]
            )
        else:
            results = await job_work

    results = sort_results(results, targets)
    summary = RunSummary(results=results)

    if report_path:
        processed = await _processed_entries(results, config, runner, pool, log)
        new_report = build_report(originals, processed)
        merged, pruned = reconcile(
            new_report,
            report_path,
            known_original={relative_key(path, config.in_dir) for path in input_files},
            known_processed={relative_key(job.output_path, config.out_dir) for job in jobs},
            logger=log,
        )
        write_report(merged, report_path)
        summary.report = merged
        summary.pruned = pruned

    render_results(results, config.in_dir, config.out_dir, console)

    keep = [*input_files, report_path] if report_path else list(input_files)
    summary.unknown = find_unknown_outputs(
        config.out_dir, [job.output_path for job in jobs], keep, in_dir=config.in_dir
    )
    if summary.unknown:
        if config.delete_unknown:
            summary.deleted = delete_unknown_outputs(summary.unknown)
        else:
            log.warning(
                f"{len(summary.unknown)} files in {config.out_dir} were not produced "
                "by this run; pass --delete-unknown to remove them"
            )

    log_final_statistics(time.time() - start_time, results)
    return summary


async def _processed_entries(
    results: List[ProcessResult],
    config: ProcessingConfig,
    runner: ToolRunnerProtocol,
    pool: asyncio.Semaphore,
    log: LoggerProtocol,
) -> Dict[str, ProcessedEntry]:
    outputs = {
        relative_key(result.output_path, config.out_dir): result
        for result in results
        if result.success
    }
    with ProgressDisplay(
        len(outputs), "Reading output metadata", enabled=config.show_progress
    ) as progress:
        metadata = await extract_metadata(
            {key: result.output_path for key, result in outputs.items()},
            runner,
            config.tools,
            pool,
            progress.advance,
            log,
        )
    return {
        key: ProcessedEntry(
            original_relative_path=relative_key(outputs[key].input_path, config.in_dir),
            width=meta.width,
            height=meta.height,
        )
        for key, meta in metadata.items()
    }


def run_pipeline(
    config: ProcessingConfig,
    targets: Sequence[Target],
    runner: Optional[ToolRunnerProtocol] = None,
    logger: Optional[LoggerProtocol] = None,
    console: Optional[Console] = None,
) -> RunSummary:
    """Synchronous entry point around :func:`process_many`."""
    return asyncio.run(process_many(config, targets, runner, logger, console))
