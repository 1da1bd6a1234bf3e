"""Single-job processing shared by the batch executors."""

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from ..core import (
    ProcessingConfig,
    ProcessJob,
    ProcessResult,
    Target,
    ToolConfig,
    get_logger,
)
from ..core.exceptions import JobError, ToolInvocationError
from ..core.protocols import ToolRunnerProtocol
from ..core.tools import (
    QUIET,
    compress_command,
    copy_tags_command,
    resize_command,
    strip_tags_command,
)


def resize_geometry(target: Target) -> Optional[str]:
    """
    ImageMagick geometry that only ever shrinks and keeps the aspect ratio.

    Returns ``WxH>``, ``W>``, ``xH>``, or None when the target has no bounds.
    """
    if target.max_width and target.max_height:
        return f"{target.max_width}x{target.max_height}>"
    if target.max_width:
        return f"{target.max_width}>"
    if target.max_height:
        return f"x{target.max_height}>"
    return None


@contextmanager
def scoped_temp_path(suffix: str = "", directory: Optional[Path] = None) -> Iterator[Path]:
    """Yield a fresh temporary file path that is removed however the block exits."""
    fd, name = tempfile.mkstemp(prefix="imgpipel-", suffix=suffix, dir=directory)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


def partial_path(output_path: Path) -> Path:
    """Where a job writes before its output is complete; keeps the .jpg suffix for exiftool."""
    return output_path.with_name(f".{output_path.stem}.partial{output_path.suffix}")


async def process_job(
    job: ProcessJob, runner: ToolRunnerProtocol, tools: ToolConfig
) -> None:
    """
    Resize (if the target is bounded), encode, then copy or strip metadata.

    The output only appears at ``job.output_path`` once every step has
    succeeded, so an interrupted job is never mistaken for a finished one.

    Raises:
        JobError: If any external program fails
    """
    logger = get_logger("executor")
    target = job.target
    staging = partial_path(job.output_path)
    logger.debug(f"[{job.input_path}] Processing target {target.name} -> {job.output_path}")

    try:
        job.output_path.parent.mkdir(parents=True, exist_ok=True)

        geometry = resize_geometry(target)
        if geometry:
            with scoped_temp_path(suffix=".png") as resized:
                await runner.run(
                    resize_command(tools, job.input_path, resized, geometry), QUIET
                )
                await runner.run(_compress(job, resized, staging, tools), QUIET)
        else:
            await runner.run(_compress(job, job.input_path, staging, tools), QUIET)

        if job.preserve_metadata:
            await runner.run(copy_tags_command(tools, job.input_path, staging), QUIET)
        else:
            await runner.run(strip_tags_command(tools, staging), QUIET)

        os.replace(staging, job.output_path)
    except (ToolInvocationError, OSError) as exc:
        raise JobError(job.input_path, target.name, str(exc)) from exc
    finally:
        staging.unlink(missing_ok=True)


def _compress(job: ProcessJob, src: Path, dst: Path, tools: ToolConfig) -> List[str]:
    return compress_command(
        tools,
        src,
        dst,
        job.target.quality,
        job.chroma_subsampling,
        job.progressive_level,
    )


def build_result(job: ProcessJob, skipped: bool) -> ProcessResult:
    """Stat input and output; done for skipped jobs too since their output still counts."""
    input_size = job.input_path.stat().st_size
    output_size = job.output_path.stat().st_size
    return ProcessResult(
        input_path=job.input_path,
        output_path=job.output_path,
        target_name=job.target.name,
        input_size_bytes=input_size,
        output_size_bytes=output_size,
        compression_ratio=output_size / input_size if input_size else 0.0,
        skipped=skipped,
    )


def failed_result(job: ProcessJob, error: Exception) -> ProcessResult:
    input_size = job.input_path.stat().st_size if job.input_path.exists() else 0
    return ProcessResult(
        input_path=job.input_path,
        output_path=job.output_path,
        target_name=job.target.name,
        input_size_bytes=input_size,
        success=False,
        error=str(error),
    )


async def run_job(
    job: ProcessJob,
    runner: ToolRunnerProtocol,
    tools: ToolConfig,
    reprocess_existing: bool = False,
) -> ProcessResult:
    """Process ``job`` unless its output already exists and reprocessing is off."""
    logger = get_logger("executor")
    skipped = not reprocess_existing and job.output_path.exists()
    if skipped:
        logger.debug(f"[{job.input_path}] {job.output_path} exists, skipping")
    else:
        await process_job(job, runner, tools)

    try:
        return build_result(job, skipped)
    except OSError as exc:
        raise JobError(job.input_path, job.target.name, str(exc)) from exc


def sort_results(
    results: Sequence[ProcessResult], targets: Sequence[Target]
) -> List[ProcessResult]:
    """Input path first, then the order the targets were declared in."""
    order: Dict[str, int] = {target.name: index for index, target in enumerate(targets)}
    return sorted(
        results,
        key=lambda result: (str(result.input_path), order.get(result.target_name, len(order))),
    )


def log_configuration(config: ProcessingConfig, targets: Sequence[Target]) -> None:
    """Log processing configuration."""
    logger = get_logger("processor")
    logger.info("=" * 60)
    logger.info("IMGPIPEL")
    logger.info("=" * 60)
    logger.info(f"  Input:              {config.in_dir}")
    logger.info(f"  Output:             {config.out_dir}")
    for target in targets:
        bounds = resize_geometry(target) or "no resize"
        logger.info(f"  Target {target.name}: distance {target.quality}, {bounds}")
    logger.info(f"  Chroma subsampling: {config.chroma_subsampling}")
    logger.info(f"  Progressive level:  {config.progressive_level}")
    logger.info(f"  Metadata:           {'preserved' if config.preserve_metadata else 'stripped'}")
    logger.info(f"  Report:             {config.out_metadata or 'disabled'}")
    logger.info(f"  Concurrency:        {config.concurrency}")
    logger.info("=" * 60)


def log_final_statistics(total_time: float, results: Sequence[ProcessResult]) -> None:
    """Log final processing statistics."""
    logger = get_logger("processor")
    processed = sum(1 for result in results if result.success and not result.skipped)
    skipped = sum(1 for result in results if result.skipped)
    failed = sum(1 for result in results if not result.success)

    logger.info("=" * 60)
    logger.info("PROCESSING COMPLETED")
    logger.info(f"Total execution time: {total_time:.1f}s")
    logger.info(f"Processed: {processed}, skipped: {skipped}, failed: {failed}")
    logger.info("=" * 60)
