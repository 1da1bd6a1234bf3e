#!/usr/bin/env python3
"""
Batch image processor CLI

Input directory → Resize (ImageMagick) → Encode (jpegli) → Copy/strip metadata (exiftool)
Outputs one file per (image, target) and optionally a JSON metadata report.

Usage:
    imgpipel process -i INPUT_DIR -o OUTPUT_DIR [options] TARGET [TARGET ...]
    python -m imgpipel.process_images -i INPUT_DIR -o OUTPUT_DIR [options] TARGET [TARGET ...]
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .core import (
    ConfigurationError,
    ImgpipelError,
    ProcessingConfig,
    TargetParseError,
    ToolConfig,
    get_logger,
    set_debug,
)
from .core.models import default_concurrency
from .core.planner import check_directories
from .core.targets import TARGET_HELP, parse_targets
from .pipeline import run_pipeline

EPILOG = """
Examples:
  # Create thumbnails from ~/input in ~/output
  imgpipel process -i ~/input -o ~/output thumb::200:200

  # Several sizes at different quality, plus a metadata report
  imgpipel process -i ~/input -o ~/output -m ~/output/metadata.json \\
                   thumb:2.0:200:200 medium::800:800 large:0.0:1600:1600
"""


def add_process_arguments(parser: argparse.ArgumentParser) -> None:
    """Register the `process` options on ``parser``."""
    parser.add_argument("targets", nargs="+", metavar="TARGET", help=TARGET_HELP)

    # Required arguments
    parser.add_argument(
        "-i", "--in-dir", required=True, type=Path, help="Input directory containing files"
    )
    parser.add_argument(
        "-o",
        "--out-dir",
        required=True,
        type=Path,
        help="Output directory to write processed files",
    )

    # Optional arguments
    parser.add_argument(
        "-c",
        "--chroma-subsampling",
        default="420",
        choices=["420", "422", "440", "444"],
        help="Jpegli chroma subsampling (default: 420)",
    )
    parser.add_argument(
        "-p",
        "--progressive",
        default="2",
        choices=["0", "1", "2"],
        help="Jpegli progressive level. 0 = sequential, higher value = more scans (default: 2)",
    )
    parser.add_argument(
        "-q",
        "--quality",
        type=float,
        default=1.0,
        help=(
            "Jpegli max butteraugli distance. Lower value = higher quality; 1.0 is "
            "visually lossless. Used for targets that do not set a quality."
        ),
    )
    parser.add_argument(
        "--preserve-metadata",
        action="store_true",
        help=(
            "Keep metadata in output images. By default it is stripped to protect "
            "your privacy when publishing online."
        ),
    )
    parser.add_argument(
        "-m",
        "--out-metadata",
        type=Path,
        default=None,
        help="Gather camera metadata from all files and write it into a report in this JSON file",
    )
    parser.add_argument(
        "--reprocess-existing",
        action="store_true",
        help="Reprocess and overwrite outputs that already exist instead of skipping them",
    )
    parser.add_argument(
        "--delete-unknown",
        action="store_true",
        help=(
            "Delete files in the output directory that would not have been created "
            "by this run. DESTRUCTIVE: use with caution!"
        ),
    )
    parser.add_argument(
        "--content-hash",
        action="store_true",
        help=(
            "Add a hash of the source file to output names, so changed sources are "
            "reprocessed even when an output with the old name exists"
        ),
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Abort the whole run on the first failed job",
    )
    parser.add_argument(
        "-j",
        "--concurrency",
        type=int,
        default=None,
        help="Maximum jobs in flight (default: number of CPUs)",
    )
    parser.add_argument(
        "--no-progress", action="store_true", help="Do not draw a progress bar"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parses command-line arguments for the `process` command.

    Returns:
        An `argparse.Namespace` object containing the parsed arguments.
    """
    parser = argparse.ArgumentParser(
        prog="imgpipel process",
        description="Process large images using an asset pipeline to optimize them for web delivery.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    add_process_arguments(parser)
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> ProcessingConfig:
    """
    Build the validated run configuration from parsed arguments.

    Raises:
        ConfigurationError: If an option is out of range, the input
            directory does not exist or the output directory is the input
            directory
    """
    if not args.in_dir.is_dir():
        raise ConfigurationError(f"Input directory `{args.in_dir}` does not exist")
    check_directories(args.in_dir, args.out_dir)

    try:
        return ProcessingConfig(
            in_dir=args.in_dir,
            out_dir=args.out_dir,
            chroma_subsampling=args.chroma_subsampling,
            progressive_level=int(args.progressive),
            default_quality=args.quality,
            preserve_metadata=args.preserve_metadata,
            out_metadata=args.out_metadata,
            reprocess_existing=args.reprocess_existing,
            delete_unknown=args.delete_unknown,
            content_hash=args.content_hash,
            fail_fast=args.fail_fast,
            concurrency=args.concurrency or default_concurrency(),
            show_progress=not args.no_progress,
            tools=ToolConfig.from_env(),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def run(args: argparse.Namespace) -> int:
    """
    Run the `process` command and return the process exit code.

    Target errors are all reported together before anything is processed.
    """
    logger = get_logger("processor")
    if args.debug:
        set_debug(True)

    try:
        targets = parse_targets(args.targets, args.quality)
    except TargetParseError as e:
        logger.error("Invalid targets:\n" + "\n".join(e.errors))
        return 1

    try:
        config = config_from_args(args)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    try:
        summary = run_pipeline(config, targets)
    except ImgpipelError as e:
        logger.error(f"Processing failed: {e}")
        return 1

    if summary.failed_count:
        logger.error(f"{summary.failed_count} of {len(summary.results)} jobs failed")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """
    Main entry point for the `process` command.

    Handles KeyboardInterrupt and unexpected exceptions gracefully.
    """
    try:
        sys.exit(run(parse_args(argv)))
    except KeyboardInterrupt:
        get_logger("processor").warning("Processing interrupted by user.")
        sys.exit(130)
    except Exception as e:
        get_logger("processor").error(f"Processing failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
