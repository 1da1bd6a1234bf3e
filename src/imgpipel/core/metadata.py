"""Reading and normalizing camera metadata from exiftool output.

Example output of ``exiftool -s -Make -Model ... some-file.jpg``::

    Make                            : FUJIFILM
    Model                           : X-T4
    LensModel                       : XF27mmF2.8 R WR
    ExposureTime                    : 1/1000
    FNumber                         : 8.0
    FocalLength                     : 35.8 mm (35 mm equivalent: 54.0 mm)
    DateTimeOriginal                : 2024:05:25 15:35:05
    OffsetTimeOriginal              : -05:00
    ImageWidth                      : 6000
    ImageHeight                     : 4000

Parsing is split in two steps: :func:`parse_key_values` turns the text into
a plain dict, then :class:`ExiftoolTags` validates the fields we know about.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError

from .exceptions import (
    DateParseError,
    ExtractionError,
    MetadataParseError,
    ToolInvocationError,
    with_error_handling,
)
from .models import LocalDate, Metadata, ToolConfig
from .protocols import ToolRunnerProtocol
from .tools import QUIET, read_tags_command

_LINE_RE = re.compile(r"^\s*(\w[\w\- ]*?)\s*:\s*(\S.*?)\s*$")
_KEY_NOISE_RE = re.compile(r"[\s\-_]")
_DATE_RE = re.compile(r"^(\d{4}):(\d{2}):(\d{2}) (\d{2}):(\d{2}):(\d{2})$")
_FOCAL_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*mm")


class ExiftoolTags(BaseModel):
    """Schema for the normalized exiftool keys; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    Make: Optional[str] = None
    Model: Optional[str] = None
    CameraProfile: Optional[str] = None
    LensMake: Optional[str] = None
    LensModel: Optional[str] = None
    ExposureTime: Optional[str] = None
    FNumber: Optional[str] = None
    ISO: Optional[str] = None
    FocalLength: Optional[str] = None
    ImageWidth: int
    ImageHeight: int
    DateTimeOriginal: Optional[str] = None
    OffsetTimeOriginal: Optional[str] = None
    Description: Optional[str] = None
    Title: Optional[str] = None
    Location: Optional[str] = None
    Sublocation: Optional[str] = None


def normalize_key(key: str) -> str:
    """`Sub-location`, `Sub_location` and `Sub location` all become `Sublocation`."""
    return _KEY_NOISE_RE.sub("", key)


def parse_key_values(raw: str) -> Dict[str, str]:
    """Collect `Key : Value` pairs, silently skipping lines that are not one."""
    pairs: Dict[str, str] = {}
    for line in raw.splitlines():
        match = _LINE_RE.match(line)
        if not match:
            continue
        key, value = match.groups()
        pairs[normalize_key(key)] = value
    return pairs


def to_date(
    date_time_original: str, offset_time_original: Optional[str] = None
) -> Tuple[datetime, LocalDate]:
    """
    Combine exiftool's DateTimeOriginal and OffsetTimeOriginal.

    Args:
        date_time_original: e.g. ``2024:05:25 15:35:05``
        offset_time_original: e.g. ``-05:00``; missing means UTC

    Returns:
        The aware instant and the wall-clock tuple as recorded by the camera

    Raises:
        DateParseError: If the date pattern or the composed timestamp is invalid
    """
    match = _DATE_RE.match(date_time_original)
    if not match:
        raise DateParseError("Could not parse DateTimeOriginal field")

    year, month, day, hour, minute, second = match.groups()
    offset = offset_time_original or "Z"
    # Cameras write 00:00 when no offset was recorded
    if offset in ("Z", "00:00"):
        offset = "+00:00"

    iso8601 = f"{year}-{month}-{day}T{hour}:{minute}:{second}{offset}"
    try:
        date = datetime.fromisoformat(iso8601)
    except ValueError as exc:
        raise DateParseError("Invalid date") from exc
    if date.tzinfo is None:
        raise DateParseError("Invalid date")

    local_date: LocalDate = (
        int(year),
        int(month),
        int(day),
        int(hour),
        int(minute),
        int(second),
    )
    return date, local_date


def parse_focal_length(value: Optional[str]) -> Optional[float]:
    """`35.8 mm (35 mm equivalent: 54.0 mm)` -> 35.8"""
    if not value:
        return None
    match = _FOCAL_RE.match(value)
    return float(match.group(1)) if match else None


def resolve_location(location: Optional[str], sublocation: Optional[str]) -> Optional[str]:
    """
    Pick the better of the two location tags.

    Lightroom sometimes truncates Sub-location, so when both are present the
    longer value is assumed to be the complete one. This is a heuristic.
    """
    if location and sublocation:
        return sublocation if len(sublocation) > len(location) else location
    return location or sublocation


def _format_validation_error(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )


def parse_exiftool_metadata(raw: str) -> Metadata:
    """
    Parse ``exiftool -s`` output into a Metadata record.

    Raises:
        MetadataParseError: If nothing parses, a required field is missing or
            the capture date is malformed
    """
    pairs = parse_key_values(raw)
    if not pairs:
        raise MetadataParseError("Could not parse metadata")

    try:
        tags = ExiftoolTags.model_validate(pairs)
    except ValidationError as exc:
        raise MetadataParseError(_format_validation_error(exc)) from exc

    date: Optional[datetime] = None
    local_date: Optional[LocalDate] = None
    if tags.DateTimeOriginal:
        date, local_date = to_date(tags.DateTimeOriginal, tags.OffsetTimeOriginal)

    return Metadata(
        camera_make=tags.Make,
        camera_model=tags.Model,
        camera_profile=tags.CameraProfile,
        lens_make=tags.LensMake,
        lens_model=tags.LensModel,
        exposure_time=tags.ExposureTime,
        f_number=tags.FNumber,
        iso=tags.ISO,
        focal_length=parse_focal_length(tags.FocalLength),
        width=tags.ImageWidth,
        height=tags.ImageHeight,
        date=date,
        local_date=local_date,
        description=tags.Description,
        title=tags.Title,
        location=resolve_location(tags.Location, tags.Sublocation),
    )


@with_error_handling(ExtractionError)
async def read_metadata(
    path: Path, runner: ToolRunnerProtocol, tools: ToolConfig
) -> Metadata:
    """
    Run exiftool on ``path`` and parse the result.

    Raises:
        ExtractionError: If exiftool fails or its output cannot be parsed
        ToolNotFoundError: If exiftool is not installed
    """
    try:
        raw = await runner.run(read_tags_command(tools, path), QUIET)
    except ToolInvocationError as exc:
        raise ExtractionError(f"Could not read metadata from {path}: {exc}") from exc

    try:
        return parse_exiftool_metadata(raw)
    except MetadataParseError as exc:
        raise ExtractionError(f"Could not parse metadata from {path}: {exc}") from exc
