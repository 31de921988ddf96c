"""Structured error types with recovery suggestions.

Every failure the tracker reports to a caller is a ``TrackerError``:
categorized, carrying one human-readable message and an optional
suggestion, so the CLI and the HTTP API can surface it uniformly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Categories of tracker errors for organization and handling."""

    FILE_SYSTEM = "file_system"  # Missing roots, unreadable paths
    VALIDATION = "validation"  # Invalid arguments, traversal attempts
    SCAN = "scan"  # Repository-level scan failures
    INGESTION = "ingestion"  # Foreign manifests, credentials, URLs
    STORAGE = "storage"  # Persisted state
    CONFIGURATION = "configuration"  # Invalid settings
    RUNTIME = "runtime"  # Unexpected errors


@dataclass
class TrackerError(Exception):
    """Base class for structured errors with recovery suggestions.

    Attributes:
        category: Error category for grouping.
        message: Human-readable error message.
        suggestion: Optional actionable recovery suggestion.
        details: Optional additional details dict.
        exit_code: Exit code to use when this error causes termination.
    """

    category: ErrorCategory
    message: str
    suggestion: str | None = None
    details: dict[str, Any] | None = field(default_factory=dict)
    exit_code: int = 1

    def __post_init__(self) -> None:
        """Initialize the exception with the message."""
        super().__init__(self.message)

    def format(self, use_color: bool = True) -> str:
        """Format the error for display.

        Args:
            use_color: Whether to include ANSI color codes.

        Returns:
            Formatted error string with suggestion if available.
        """
        red = "\033[91m" if use_color else ""
        cyan = "\033[96m" if use_color else ""
        dim = "\033[2m" if use_color else ""
        reset = "\033[0m" if use_color else ""

        lines = [f"{red}Error:{reset} {self.message}"]

        if self.suggestion:
            lines.append(f"{cyan}Suggestion:{reset} {self.suggestion}")

        if self.details:
            for key, value in self.details.items():
                lines.append(f"{dim}  {key}: {value}{reset}")

        return "\n".join(lines)

    def __str__(self) -> str:
        """Return the plain error message."""
        return self.message


class RepositoryNotFoundError(TrackerError):
    """Error when a repository id is not registered."""

    def __init__(self, repository_id: str):
        super().__init__(
            category=ErrorCategory.VALIDATION,
            message=f"Repository not found: {repository_id}",
            suggestion="Run 'component-tracker list' to see registered repositories",
            details={"repository_id": repository_id},
        )


class RootPathError(TrackerError):
    """Error when a repository root is missing or not a directory."""

    def __init__(self, path: str, reason: str = "does not exist"):
        super().__init__(
            category=ErrorCategory.FILE_SYSTEM,
            message=f"Repository root {reason}: {path}",
            suggestion="Verify the path exists and you have read permissions",
            details={"path": path},
        )


class PathTraversalError(TrackerError):
    """Error when a requested file resolves outside its repository root."""

    def __init__(self, path: str):
        super().__init__(
            category=ErrorCategory.VALIDATION,
            message=f"Invalid file path: {path}",
            suggestion="Use a path relative to the repository root without '..'",
            details={"path": path},
            exit_code=2,
        )


class ScanError(TrackerError):
    """Error scanning one repository."""

    def __init__(
        self,
        message: str,
        repository_id: str | None = None,
        suggestion: str | None = None,
    ):
        super().__init__(
            category=ErrorCategory.SCAN,
            message=message,
            suggestion=suggestion,
            details={"repository_id": repository_id} if repository_id else None,
        )


class ScanCancelledError(ScanError):
    """Raised when a scan is cancelled before it completes."""

    def __init__(self, repository_id: str | None = None):
        super().__init__(
            "Scan cancelled",
            repository_id=repository_id,
            suggestion="The previous component library was kept",
        )


class IngestionError(TrackerError):
    """Error importing components from a foreign manifest."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        suggestion: str | None = None,
    ):
        super().__init__(
            category=ErrorCategory.INGESTION,
            message=message,
            suggestion=suggestion,
            details={"source": source} if source else None,
        )


class MissingCredentialsError(IngestionError):
    """Error when an external source needs credentials that are missing or rejected."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(
            message,
            source=source,
            suggestion="Provide a valid access token and try again",
        )


class InvalidSourceUrlError(IngestionError):
    """Error when a foreign URL has the wrong format."""

    def __init__(self, url: str, expected: str = "a valid URL"):
        super().__init__(
            f"Invalid URL: {url}",
            source=url,
            suggestion=f"Provide {expected}",
        )


class UnsupportedPayloadError(IngestionError):
    """Error when a foreign payload has an unsupported shape."""


class StorageError(TrackerError):
    """Error reading or writing persisted state."""

    def __init__(self, message: str, location: str | None = None):
        super().__init__(
            category=ErrorCategory.STORAGE,
            message=message,
            suggestion="Check the state directory is writable",
            details={"location": location} if location else None,
        )


class ConfigurationError(TrackerError):
    """Error in configuration file or settings."""

    def __init__(
        self,
        message: str,
        config_file: str | None = None,
        suggestion: str | None = None,
    ):
        super().__init__(
            category=ErrorCategory.CONFIGURATION,
            message=message,
            suggestion=suggestion
            or "Check your configuration file syntax and required fields",
            details={"config_file": config_file} if config_file else None,
        )


def handle_exception(
    error: Exception,
    use_color: bool = True,
    verbose: bool = False,
) -> tuple[str, int]:
    """Convert any exception to formatted output and exit code.

    Args:
        error: The exception to handle.
        use_color: Whether to use color in output.
        verbose: Whether to include full traceback.

    Returns:
        Tuple of (formatted_message, exit_code).
    """
    import traceback

    if isinstance(error, TrackerError):
        message = error.format(use_color=use_color)
        exit_code = error.exit_code
    else:
        red = "\033[91m" if use_color else ""
        reset = "\033[0m" if use_color else ""
        message = f"{red}Error:{reset} {error}"
        exit_code = 1

    if verbose:
        message += "\n\nTraceback:\n" + traceback.format_exc()

    return message, exit_code
