"""Invocation of the external image programs (ImageMagick, jpegli, exiftool)."""

import asyncio
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .exceptions import ToolInvocationError, ToolNotFoundError
from .logging_config import get_logger
from .models import ChromaSubsampling, InvocationOptions, ToolConfig
from .protocols import LoggerProtocol

QUIET = InvocationOptions(quiet=True)

# Tags requested from exiftool when reading metadata. Both location tags are
# asked for because some editors truncate Sub-location.
EXIFTOOL_READ_TAGS: Tuple[str, ...] = (
    "Make",
    "Model",
    "CameraProfile",
    "LensMake",
    "LensModel",
    "ExposureTime",
    "FNumber",
    "ISO",
    "FocalLength",
    "ImageWidth",
    "ImageHeight",
    "DateTimeOriginal",
    "OffsetTimeOriginal",
    "Description",
    "Title",
    "Location",
    "Sub-location",
)


class ToolRunner:
    """
    Runs external programs as asyncio subprocesses.

    Behaviour for each call is driven by the ``InvocationOptions`` passed
    with it; the runner itself holds no per-call state.
    """

    def __init__(self, logger: Optional[LoggerProtocol] = None):
        self._logger = logger or get_logger("tools")

    async def run(self, argv: Sequence[str], options: InvocationOptions = QUIET) -> str:
        """
        Run ``argv`` to completion and return its decoded stdout.

        Raises:
            ToolNotFoundError: If the executable does not exist
            ToolInvocationError: On a non-zero exit status or a timeout
        """
        command = " ".join(str(arg) for arg in argv)
        if options.quiet:
            self._logger.debug(f"$ {command}")
        else:
            self._logger.info(f"$ {command}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *[str(arg) for arg in argv],
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise ToolNotFoundError(
                f"`{argv[0]}` was not found; is it installed and on PATH?"
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), options.timeout)
        except asyncio.TimeoutError:
            await _kill(proc)
            raise ToolInvocationError(argv, None, f"timed out after {options.timeout}s")
        except asyncio.CancelledError:
            await _kill(proc)
            raise

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")
        if not options.quiet and out.strip():
            self._logger.info(out.rstrip())

        if proc.returncode != 0:
            raise ToolInvocationError(argv, proc.returncode, err)
        if err.strip():
            self._logger.debug(f"{argv[0]} stderr: {err.strip()}")
        return out


async def _kill(proc: "asyncio.subprocess.Process") -> None:
    if proc.returncode is None:
        proc.kill()
        await proc.wait()


def resize_command(tools: ToolConfig, src: Path, dst: Path, geometry: str) -> List[str]:
    return [tools.magick, str(src), "-resize", geometry, str(dst)]


def compress_command(
    tools: ToolConfig,
    src: Path,
    dst: Path,
    quality: float,
    chroma_subsampling: ChromaSubsampling,
    progressive_level: int,
) -> List[str]:
    """cjpegli takes the butteraugli distance as its quality knob; lower is better."""
    return [
        tools.cjpegli,
        str(src),
        str(dst),
        f"--distance={quality}",
        f"--chroma_subsampling={chroma_subsampling}",
        f"--progressive_level={progressive_level}",
    ]


def copy_tags_command(tools: ToolConfig, src: Path, dst: Path) -> List[str]:
    return [
        tools.exiftool,
        "-q",
        "-overwrite_original",
        "-TagsFromFile",
        str(src),
        "-all:all",
        str(dst),
    ]


def strip_tags_command(tools: ToolConfig, dst: Path) -> List[str]:
    return [tools.exiftool, "-q", "-overwrite_original", "-all=", str(dst)]


def read_tags_command(tools: ToolConfig, path: Path) -> List[str]:
    return [tools.exiftool, "-s", *[f"-{tag}" for tag in EXIFTOOL_READ_TAGS], str(path)]
