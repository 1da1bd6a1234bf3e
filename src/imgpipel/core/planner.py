"""Expansion of input files x targets into jobs, and output-directory bookkeeping."""

import hashlib
from pathlib import Path
from typing import Collection, Dict, Iterable, List, Optional, Sequence

from .exceptions import ConfigurationError, NoImagesFoundError, PlanningError
from .logging_config import get_logger
from .models import ProcessingConfig, ProcessJob, Target

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png")
OUTPUT_EXTENSION = ".jpg"
CONTENT_HASH_LENGTH = 8


def check_directories(in_dir: Path, out_dir: Path) -> None:
    """
    Refuse to write outputs into the input directory itself.

    Outputs would be discovered as inputs on the next run, and unknown-file
    cleanup could not tell sources from stale outputs.

    Raises:
        ConfigurationError: If both paths are the same directory
    """
    if in_dir.resolve() == out_dir.resolve():
        raise ConfigurationError(
            f"Output directory `{out_dir}` must differ from the input directory"
        )


def discover_images(in_dir: Path, exclude: Optional[Path] = None) -> List[Path]:
    """
    Recursively list jpg/jpeg/png files under ``in_dir``, sorted.

    Files under ``exclude`` (the output directory, when it is nested inside
    the input directory) are left out.

    Raises:
        NoImagesFoundError: If nothing is found
    """
    logger = get_logger("planner")
    logger.debug(f"Discovering images in {in_dir}")

    root = in_dir.resolve()
    excluded = exclude.resolve() if exclude else None
    if excluded and (excluded == root or not excluded.is_relative_to(root)):
        excluded = None
    files = sorted(
        path
        for path in in_dir.rglob("*")
        if path.is_file()
        and path.suffix.lower() in IMAGE_EXTENSIONS
        and not (excluded and path.resolve().is_relative_to(excluded))
    )
    if not files:
        raise NoImagesFoundError(f"No images found in `{in_dir}`")

    logger.info(f"Found {len(files)} images in {in_dir}")
    return files


def content_hash(path: Path, length: int = CONTENT_HASH_LENGTH) -> str:
    """Truncated SHA-256 of the file contents."""
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 20), b""):
            digest.update(chunk)
    return digest.hexdigest()[:length]


def output_path_for(
    input_path: Path,
    in_dir: Path,
    out_dir: Path,
    target: Target,
    digest: Optional[str] = None,
) -> Path:
    """
    ``out_dir/<relative dir>/<stem>_<target>[_<digest>].jpg``

    The encoder always writes JPEG, so PNG inputs get a ``.jpg`` output too.
    """
    relative = input_path.relative_to(in_dir)
    name = f"{relative.stem}_{target.name}"
    if digest:
        name = f"{name}_{digest}"
    return out_dir / relative.parent / f"{name}{OUTPUT_EXTENSION}"


def plan_jobs(
    input_files: Sequence[Path], targets: Sequence[Target], config: ProcessingConfig
) -> List[ProcessJob]:
    """
    Create one job per (input file, target), in input then target order.

    With ``config.content_hash`` the output name carries a hash of the input,
    so a changed source gets a new output path instead of being skipped.

    Raises:
        NoImagesFoundError: If ``input_files`` is empty
        PlanningError: If two jobs would write the same output path
    """
    logger = get_logger("planner")
    if not input_files:
        raise NoImagesFoundError(f"No images found in `{config.in_dir}`")

    jobs: List[ProcessJob] = []
    owners: Dict[Path, ProcessJob] = {}
    for input_path in input_files:
        digest = content_hash(input_path) if config.content_hash else None
        for target in targets:
            output_path = output_path_for(
                input_path, config.in_dir, config.out_dir, target, digest
            )
            job = ProcessJob(
                input_path=input_path,
                output_path=output_path,
                target=target,
                chroma_subsampling=config.chroma_subsampling,
                progressive_level=config.progressive_level,
                preserve_metadata=config.preserve_metadata,
            )
            if output_path in owners:
                # e.g. photo.jpg and photo.png in the same directory
                raise PlanningError(
                    f"{input_path} and {owners[output_path].input_path} would both "
                    f"be written to {output_path}"
                )
            owners[output_path] = job
            jobs.append(job)

    logger.info(
        f"Planned {len(jobs)} jobs ({len(input_files)} images x {len(targets)} targets)"
    )
    return jobs


def find_unknown_outputs(
    out_dir: Path,
    expected: Iterable[Path],
    keep: Collection[Path] = (),
    in_dir: Optional[Path] = None,
) -> List[Path]:
    """
    Files under ``out_dir`` that this run did not plan.

    Files in ``keep`` and anything under ``in_dir`` (when the input tree is
    nested inside the output directory) are never reported.
    """
    if not out_dir.is_dir():
        return []
    known = {path.resolve() for path in expected} | {path.resolve() for path in keep}
    sources = in_dir.resolve() if in_dir else None
    return sorted(
        path
        for path in out_dir.rglob("*")
        if path.is_file()
        and path.resolve() not in known
        and not (sources and path.resolve().is_relative_to(sources))
    )


def delete_unknown_outputs(paths: Iterable[Path]) -> List[Path]:
    """Delete each file, logging it. Returns what was deleted."""
    logger = get_logger("planner")
    deleted: List[Path] = []
    for path in paths:
        logger.warning(f"Deleting unknown file {path}")
        path.unlink(missing_ok=True)
        deleted.append(path)
    return deleted
