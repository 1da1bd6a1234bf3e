"""Parsing of `name:quality:maxWidth:maxHeight` target specifications."""

import re
from typing import Any, Dict, List, Sequence

from pydantic import ValidationError

from .exceptions import TargetParseError
from .models import Target

TARGET_FORMAT = "name:quality:maxWidth:maxHeight"

TARGET_HELP = (
    f"Image generation target specifications, in the format `{TARGET_FORMAT}`, "
    "e.g. `large:1.0:1920:1080`. Values other than `name` can be omitted, "
    "e.g. `thumb::100:100`, `full:1.0::`"
)

_TARGET_RE = re.compile(r"^(\w+):(\d+(?:\.\d+)?)?:(\d+)?:(\d+)?$")


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"]) or "target"
        parts.append(f"{field}: {error['msg']}")
    return "; ".join(parts)


def parse_target(raw: str, default_quality: float) -> Target:
    """
    Parse a string such as ``large:1.0:1920:1080`` into a Target.

    Args:
        raw: The raw target string
        default_quality: Quality used when the quality segment is empty

    Returns:
        The validated Target

    Raises:
        TargetParseError: If the string does not match the grammar or a
            field fails validation
    """
    match = _TARGET_RE.match(raw)
    if not match:
        raise TargetParseError(
            [f"Invalid target `{raw}`: must match format `{TARGET_FORMAT}`"]
        )

    name, quality, max_width, max_height = match.groups()
    values: Dict[str, Any] = {
        "name": name,
        "quality": quality or default_quality,
        "max_width": max_width or None,
        "max_height": max_height or None,
    }
    try:
        return Target.model_validate(values)
    except ValidationError as exc:
        raise TargetParseError(
            [f"Invalid target `{raw}`: {_format_validation_error(exc)}"]
        ) from exc


def parse_targets(raws: Sequence[str], default_quality: float) -> List[Target]:
    """
    Parse every target string, collecting all errors before failing.

    Raises:
        TargetParseError: Carrying one message per bad or duplicated target
    """
    targets: List[Target] = []
    errors: List[str] = []
    seen: Dict[str, str] = {}

    for raw in raws:
        try:
            target = parse_target(raw, default_quality)
        except TargetParseError as exc:
            errors.extend(exc.errors)
            continue

        if target.name in seen:
            errors.append(
                f"Invalid target `{raw}`: name `{target.name}` is already used by `{seen[target.name]}`"
            )
            continue
        seen[target.name] = raw
        targets.append(target)

    if not raws:
        errors.append(f"At least one target is required, in the format `{TARGET_FORMAT}`")

    if errors:
        raise TargetParseError(errors)
    return targets
