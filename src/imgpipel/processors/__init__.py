"""Job executors."""

from .asyncio_processor import execute_jobs
from .common import build_result, process_job, resize_geometry, run_job, sort_results

__all__ = [
    "execute_jobs",
    "build_result",
    "process_job",
    "resize_geometry",
    "run_job",
    "sort_results",
]
