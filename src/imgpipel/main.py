"""Main module for the imgpipel CLI."""

import sys
import argparse
from typing import List, Optional

from . import __version__
from .process_images import EPILOG, add_process_arguments, run as run_process


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the unified command-line interface (CLI) of imgpipel.

    Sets up an `ArgumentParser` with the "process" and "version" commands
    and dispatches to the matching handler.
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="imgpipel",
        description="imgpipel - batch resize and recompress photos for web delivery",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG + "\n  # Show version\n  imgpipel version\n",
    )

    subparsers: argparse._SubParsersAction = parser.add_subparsers(
        dest="command", help="Available commands"
    )

    process_parser: argparse.ArgumentParser = subparsers.add_parser(
        "process",
        help="Process images from an input directory into one or more targets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    add_process_arguments(process_parser)

    subparsers.add_parser("version", help="Show version information")

    args: argparse.Namespace = parser.parse_args(argv)

    if args.command == "process":
        try:
            exit_code = run_process(args)
        except KeyboardInterrupt:
            exit_code = 130
        sys.exit(exit_code)

    elif args.command == "version":
        print("imgpipel")
        print(f"Version {__version__}")
        print("Batch image resizing and recompression with jpegli")
        sys.exit(0)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
