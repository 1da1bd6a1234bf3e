"""Protocol definitions for dependency injection and testability."""

from typing import Any, Protocol, Sequence

from .models import InvocationOptions


class ToolRunnerProtocol(Protocol):
    """Runs an external program and returns its stdout."""

    async def run(self, argv: Sequence[str], options: InvocationOptions) -> str:
        """Run ``argv``; raise ToolInvocationError on a non-zero exit."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log error message."""
        ...
