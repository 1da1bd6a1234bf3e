"""The persisted metadata report and its reconciliation across runs."""

import json
import os
from pathlib import Path
from typing import Any, Collection, Dict, List, Mapping, Optional, Tuple

from .exceptions import ReportWriteError, with_error_handling
from .logging_config import get_logger
from .models import Metadata, MetadataReport, ProcessedEntry
from .protocols import LoggerProtocol

SECTIONS = ("original", "processed")

ReportDict = Dict[str, Dict[str, Any]]


def empty_report() -> ReportDict:
    return {section: {} for section in SECTIONS}


def build_report(
    original: Mapping[str, Metadata], processed: Mapping[str, ProcessedEntry]
) -> MetadataReport:
    return MetadataReport(original=dict(original), processed=dict(processed))


def load_report(path: Path, logger: Optional[LoggerProtocol] = None) -> ReportDict:
    """
    Read a previous report. A missing, unreadable or malformed file is
    treated as an empty report, never as an error.
    """
    log = logger or get_logger("report")
    if not path.exists():
        log.debug(f"No existing report at {path}, starting fresh")
        return empty_report()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log.warning(f"Ignoring unreadable report {path}: {exc}")
        return empty_report()

    if not isinstance(data, dict):
        log.warning(f"Ignoring report {path}: top level is not an object")
        return empty_report()

    report = empty_report()
    for section in SECTIONS:
        entries = data.get(section)
        if isinstance(entries, dict):
            report[section] = dict(entries)
        elif entries is not None:
            log.warning(f"Ignoring section `{section}` of {path}: not an object")
    return report


def reconcile(
    new_report: MetadataReport,
    existing_path: Path,
    known_original: Optional[Collection[str]] = None,
    known_processed: Optional[Collection[str]] = None,
    logger: Optional[LoggerProtocol] = None,
) -> Tuple[ReportDict, List[str]]:
    """
    Merge this run's findings over the report stored at ``existing_path``.

    Entries of the old report whose key is not among the known keys of this
    run are pruned and logged. The known keys default to the keys of
    ``new_report``; callers pass the full file set of the run so that an
    entry survives when its file still exists but could not be read this
    time. For every remaining key the new value wins.

    Args:
        new_report: Metadata gathered this run
        existing_path: Previous report, may be missing
        known_original: Relative input paths present this run
        known_processed: Relative output paths planned this run
        logger: Where pruned keys are reported

    Returns:
        The merged report as plain JSON data, and the pruned keys as
        ``section/key`` strings
    """
    log = logger or get_logger("report")
    new = new_report.to_json_dict()
    existing = load_report(existing_path, log)

    known = {
        "original": set(new["original"]) if known_original is None else set(known_original),
        "processed": set(new["processed"]) if known_processed is None else set(known_processed),
    }

    merged = empty_report()
    pruned: List[str] = []
    for section in SECTIONS:
        retained: Dict[str, Any] = {}
        for key, value in existing[section].items():
            if key in known[section]:
                retained[key] = value
            else:
                pruned.append(f"{section}/{key}")
                log.warning(f"Removing {section} entry `{key}` from report: file is gone")
        retained.update(new[section])
        merged[section] = dict(sorted(retained.items()))

    if pruned:
        log.warning(f"Pruned {len(pruned)} stale report entries")
    return merged, pruned


@with_error_handling(ReportWriteError)
def write_report(report: Mapping[str, Any], path: Path) -> None:
    """
    Write ``report`` as indented JSON, creating parent directories.

    Raises:
        ReportWriteError: If the file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_name(f".{path.name}.tmp")
    try:
        staging.write_text(
            json.dumps(report, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )
        os.replace(staging, path)
    finally:
        staging.unlink(missing_ok=True)
    get_logger("report").info(f"Wrote metadata report to {path}")


def relative_key(path: Path, root: Path) -> str:
    """Report key for ``path``: relative to ``root`` with forward slashes."""
    return path.relative_to(root).as_posix()
