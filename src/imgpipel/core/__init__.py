"""Core utilities and shared components for imgpipel."""

from .logging_config import (
    get_logger,
    set_debug,
    setup_logger,
)
from .exceptions import (
    ImgpipelError,
    ConfigurationError,
    TargetParseError,
    MetadataParseError,
    DateParseError,
    ExtractionError,
    ToolInvocationError,
    ToolNotFoundError,
    NoImagesFoundError,
    PlanningError,
    JobError,
    ReportWriteError,
    with_error_handling,
)
from .models import (
    InvocationOptions,
    Metadata,
    MetadataReport,
    ProcessedEntry,
    ProcessingConfig,
    ProcessJob,
    ProcessResult,
    RunSummary,
    Target,
    ToolConfig,
)

__all__ = [
    "InvocationOptions",
    "Metadata",
    "MetadataReport",
    "ProcessedEntry",
    "ProcessingConfig",
    "ProcessJob",
    "ProcessResult",
    "RunSummary",
    "Target",
    "ToolConfig",
    "setup_logger",
    "get_logger",
    "set_debug",
    "ImgpipelError",
    "ConfigurationError",
    "TargetParseError",
    "MetadataParseError",
    "DateParseError",
    "ExtractionError",
    "ToolInvocationError",
    "ToolNotFoundError",
    "NoImagesFoundError",
    "PlanningError",
    "JobError",
    "ReportWriteError",
    "with_error_handling",
]
