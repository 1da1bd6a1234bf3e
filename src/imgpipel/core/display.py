"""Terminal output: the progress bar while jobs run and the results table after."""

from pathlib import Path
from typing import Any, Optional, Sequence

from rich.console import Console
from rich.filesize import decimal
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .models import ProcessResult


class ProgressDisplay:
    """
    Progress bar over a known number of units.

    ``advance`` is only called from the event loop thread, so the counter
    needs no locking. When disabled it still counts but draws nothing.
    """

    def __init__(
        self,
        total: int,
        description: str = "Processing",
        enabled: bool = True,
        console: Optional[Console] = None,
    ):
        self.total = total
        self.completed = 0
        self._description = description
        self._enabled = enabled
        self._console = console or Console(stderr=True)
        self._progress: Optional[Progress] = None
        self._task: Any = None

    def __enter__(self) -> "ProgressDisplay":
        if self._enabled:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=self._console,
                transient=True,
            )
            self._progress.start()
            self._task = self._progress.add_task(self._description, total=self.total)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        if self._progress is not None:
            self._progress.stop()
        return False

    def advance(self, *_: Any) -> None:
        self.completed += 1
        if self._progress is not None:
            self._progress.advance(self._task)


def _relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def results_table(
    results: Sequence[ProcessResult], in_dir: Path, out_dir: Path
) -> Table:
    """One row per job, in the order given."""
    table = Table(title="Results")
    table.add_column("Input", style="cyan")
    table.add_column("Target")
    table.add_column("Output")
    table.add_column("Size", justify="right")
    table.add_column("Ratio", justify="right")
    table.add_column("Status")

    for result in results:
        if not result.success:
            status = "[red]failed[/]"
            size = ratio = "-"
        else:
            status = "[yellow]skipped[/]" if result.skipped else "[green]processed[/]"
            size = decimal(result.output_size_bytes)
            ratio = f"{result.compression_ratio:.1%}"
        table.add_row(
            _relative(result.input_path, in_dir),
            result.target_name,
            _relative(result.output_path, out_dir),
            size,
            ratio,
            status,
        )
    return table


def render_results(
    results: Sequence[ProcessResult],
    in_dir: Path,
    out_dir: Path,
    console: Optional[Console] = None,
) -> None:
    (console or Console()).print(results_table(results, in_dir, out_dir))
