"""Custom exceptions and error handling utilities for imgpipel."""

from __future__ import annotations

import inspect
from functools import wraps
from typing import Any, Callable, List, Optional, Sequence, Type, TypeVar

from .logging_config import get_logger


class ImgpipelError(Exception):
    """Base exception for all imgpipel errors."""


class ConfigurationError(ImgpipelError):
    """Error raised for invalid configuration options."""


class TargetParseError(ImgpipelError):
    """One or more target specifications could not be parsed."""

    def __init__(self, errors: Sequence[str]):
        self.errors: List[str] = list(errors)
        super().__init__("\n".join(self.errors))


class MetadataParseError(ImgpipelError):
    """exiftool output could not be turned into a Metadata record."""


class DateParseError(MetadataParseError):
    """DateTimeOriginal/OffsetTimeOriginal could not be parsed."""


class ExtractionError(ImgpipelError):
    """Metadata could not be read for a single file."""


class ToolInvocationError(ImgpipelError):
    """An external program exited with a non-zero status."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: Optional[int],
        stderr: str = "",
    ):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        super().__init__(
            f"`{' '.join(self.argv)}` exited with status {returncode}: {detail}"
        )


class ToolNotFoundError(ImgpipelError):
    """An external program is not installed or not on PATH."""


class NoImagesFoundError(ImgpipelError):
    """The input directory holds no recognised image files."""


class PlanningError(ImgpipelError):
    """The job plan is inconsistent, e.g. two jobs share an output path."""


class JobError(ImgpipelError):
    """Processing a single (input, target) job failed."""

    def __init__(self, input_path: Any, target_name: str, message: str):
        self.input_path = input_path
        self.target_name = target_name
        super().__init__(f"[{input_path} -> {target_name}] {message}")


class ReportWriteError(ImgpipelError):
    """The metadata report could not be written."""


F = TypeVar("F", bound=Callable[..., Any])


def with_error_handling(
    error_cls: Type[ImgpipelError] = ImgpipelError,
) -> Callable[[F], F]:
    """
    Wrap a function (sync or async) with standardized error handling.

    imgpipel errors are logged and re-raised untouched; anything else is
    logged with its traceback and re-raised as ``error_cls``.
    """

    def decorator(func: F) -> F:
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    return await func(*args, **kwargs)
                except ImgpipelError:
                    get_logger("errors").debug(
                        f"Pipeline error in {func.__name__}", exc_info=True
                    )
                    raise
                except Exception as exc:  # noqa: BLE001
                    get_logger("errors").error(
                        f"Unhandled error in {func.__name__}: {exc}", exc_info=True
                    )
                    raise error_cls(str(exc)) from exc

            return async_wrapper  # type: ignore[return-value]

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except ImgpipelError:
                get_logger("errors").debug(
                    f"Pipeline error in {func.__name__}", exc_info=True
                )
                raise
            except Exception as exc:  # noqa: BLE001
                get_logger("errors").error(
                    f"Unhandled error in {func.__name__}: {exc}", exc_info=True
                )
                raise error_cls(str(exc)) from exc

        return wrapper  # type: ignore[return-value]

    return decorator
