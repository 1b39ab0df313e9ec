"""
Exception taxonomy and error handling helpers.

Every failure the engine can report is a subclass of BuildEngineError so
callers can catch the whole family at once, while the concrete subclasses
keep the failure domains apart (a SyncError means "re-sync", a
RemoteExecutionError means "re-run").
"""

import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for error handling."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ValidationError(Exception):
    """
    Exception raised when validation of a request or configuration fails.
    """

    def __init__(self, message: str, field_name: Optional[str] = None,
                 value: Any = None, severity: ErrorSeverity = ErrorSeverity.ERROR):
        super().__init__(message)
        self.field_name = field_name
        self.value = value
        self.severity = severity


class BuildEngineError(Exception):
    """Base class for all build orchestration failures."""


class ProfilingError(BuildEngineError):
    """Host core or memory counts could not be read."""


class AlreadyRunningError(BuildEngineError):
    """A build session is already active; overlapping builds are rejected."""


class ProjectNotFoundError(BuildEngineError):
    """The working directory does not contain a recognizable project."""

    def __init__(self, message: str, working_dir: Optional[Path] = None):
        super().__init__(message)
        self.working_dir = working_dir


class ProcessSpawnError(BuildEngineError):
    """The toolchain (or the launcher hosting it) could not be started."""


class OutputStreamError(BuildEngineError):
    """A child process's output pipe kept failing and was abandoned."""


class SyncError(BuildEngineError):
    """Mirroring the project to the remote host failed; nothing was built."""


class RemoteExecutionError(BuildEngineError):
    """The remote build failed after the project was synchronized."""

    def __init__(self, message: str, exit_status: Optional[int] = None):
        super().__init__(message)
        self.exit_status = exit_status


class ArchiveIOError(BuildEngineError):
    """Copying, listing or clearing archived artifacts failed."""


class BuildCancelledError(BuildEngineError):
    """The build was cancelled by the user. Not a fault."""


def handle_error(
    error: Exception,
    context: str,
    severity: Union[ErrorSeverity, str] = ErrorSeverity.ERROR,
    reraise: bool = True,
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Handle errors with consistent logging and optional re-raising.

    Args:
        error: The exception that occurred
        context: Context description of where the error occurred
        severity: Severity level for logging
        reraise: Whether to re-raise the exception after logging
        logger: Logger instance to use (defaults to module logger)
    """
    effective_logger = logger or globals()['logger']

    error_msg = f"Error in {context}: {error}"

    if isinstance(severity, str):
        severity_str = severity.lower()
    else:
        severity_str = severity.value

    if severity_str == "debug":
        effective_logger.debug(error_msg, exc_info=True)
    elif severity_str == "info":
        effective_logger.info(error_msg)
    elif severity_str == "warning":
        effective_logger.warning(error_msg)
    elif severity_str == "error":
        effective_logger.error(error_msg)
    elif severity_str == "critical":
        effective_logger.critical(error_msg, exc_info=True)

    if reraise:
        raise error


def handle_config_error(error: Exception, context: str, **kwargs) -> None:
    """Handle configuration-related errors."""
    handle_error(error, f"config {context}", **kwargs)


def handle_file_error(error: Exception, context: str, **kwargs) -> None:
    """Handle file-related errors."""
    handle_error(error, f"file {context}", **kwargs)


def handle_cli_error(error: Exception, context: str, **kwargs) -> None:
    """Log a CLI-level error and exit the process."""
    exit_code = kwargs.pop('exit_code', 1)
    include_traceback = kwargs.pop('include_traceback', False)

    severity = kwargs.pop('severity', ErrorSeverity.ERROR)
    if include_traceback:
        severity = ErrorSeverity.CRITICAL
    handle_error(error, f"CLI {context}", severity=severity, reraise=False, **kwargs)

    sys.exit(exit_code)
