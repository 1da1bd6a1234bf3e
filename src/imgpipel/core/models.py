"""Shared data models for imgpipel."""

import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ChromaSubsampling = Literal["420", "422", "440", "444"]

# year, month, day, hour, minute, second as written by the camera
LocalDate = Tuple[int, int, int, int, int, int]


def default_concurrency() -> int:
    """One job in flight per logical core."""
    return os.cpu_count() or 1


class Target(BaseModel):
    """A named output profile: jpegli distance plus optional bounding box."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(pattern=r"^\w+$")
    quality: float = Field(ge=0.0, le=25.0)
    max_width: Optional[int] = Field(default=None, ge=1)
    max_height: Optional[int] = Field(default=None, ge=1)


class ProcessJob(BaseModel):
    """One (input file, target) unit of work."""

    model_config = ConfigDict(frozen=True)

    input_path: Path
    output_path: Path
    target: Target
    chroma_subsampling: ChromaSubsampling = "420"
    progressive_level: int = Field(default=2, ge=0, le=2)
    preserve_metadata: bool = False


class ProcessResult(BaseModel):
    """Result of running (or skipping) a single job."""

    input_path: Path
    output_path: Path
    target_name: str
    input_size_bytes: int = 0
    output_size_bytes: int = 0
    compression_ratio: float = 0.0
    skipped: bool = False
    success: bool = True
    error: str = ""


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Metadata(_CamelModel):
    """Normalized camera metadata for one file. Only the dimensions are guaranteed."""

    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    camera_profile: Optional[str] = None
    lens_make: Optional[str] = None
    lens_model: Optional[str] = None
    exposure_time: Optional[str] = None
    f_number: Optional[str] = None
    iso: Optional[str] = None
    focal_length: Optional[float] = None
    width: int
    height: int
    date: Optional[datetime] = None
    local_date: Optional[LocalDate] = None
    description: Optional[str] = None
    title: Optional[str] = None
    location: Optional[str] = None


class ProcessedEntry(_CamelModel):
    """Report entry for one output file."""

    original_relative_path: str
    width: int
    height: int


class MetadataReport(_CamelModel):
    """Report correlating originals and their processed variants, keyed by relative path."""

    original: Dict[str, Metadata] = Field(default_factory=dict)
    processed: Dict[str, ProcessedEntry] = Field(default_factory=dict)

    def to_json_dict(self) -> Dict[str, Dict[str, Any]]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ToolConfig(BaseModel):
    """Executable names for the external programs."""

    magick: str = "magick"
    cjpegli: str = "cjpegli"
    exiftool: str = "exiftool"

    @classmethod
    def from_env(cls) -> "ToolConfig":
        """
        Build from IMGPIPEL_MAGICK, IMGPIPEL_CJPEGLI and IMGPIPEL_EXIFTOOL,
        falling back to the plain program names.
        """
        overrides = {
            field: os.environ[f"IMGPIPEL_{field.upper()}"]
            for field in ("magick", "cjpegli", "exiftool")
            if os.environ.get(f"IMGPIPEL_{field.upper()}")
        }
        return cls(**overrides)


class InvocationOptions(BaseModel):
    """Per-call options for running an external program."""

    model_config = ConfigDict(frozen=True)

    quiet: bool = True
    timeout: Optional[float] = None


class ProcessingConfig(BaseModel):
    """Configuration for a processing run."""

    in_dir: Path
    out_dir: Path
    chroma_subsampling: ChromaSubsampling = "420"
    progressive_level: int = Field(default=2, ge=0, le=2)
    default_quality: float = Field(default=1.0, ge=0.0, le=25.0)
    preserve_metadata: bool = False
    out_metadata: Optional[Path] = None
    reprocess_existing: bool = False
    delete_unknown: bool = False
    content_hash: bool = False
    fail_fast: bool = False
    concurrency: int = Field(default_factory=default_concurrency, ge=1)
    show_progress: bool = True
    tools: ToolConfig = Field(default_factory=ToolConfig.from_env)


class RunSummary(BaseModel):
    """Everything a run produced, for callers and tests."""

    results: List[ProcessResult] = Field(default_factory=list)
    report: Optional[Dict[str, Any]] = None
    pruned: List[str] = Field(default_factory=list)
    unknown: List[Path] = Field(default_factory=list)
    deleted: List[Path] = Field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return sum(1 for result in self.results if not result.success)

    @property
    def skipped_count(self) -> int:
        return sum(1 for result in self.results if result.skipped)
