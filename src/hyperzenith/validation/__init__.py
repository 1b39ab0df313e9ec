"""
Validation and error handling for the hyperzenith package.

This module provides the engine's exception taxonomy, input validation
and error handling with consistent error reporting across the application.
"""

from .exceptions import (
    AlreadyRunningError,
    ArchiveIOError,
    BuildCancelledError,
    BuildEngineError,
    ErrorSeverity,
    OutputStreamError,
    ProcessSpawnError,
    ProfilingError,
    ProjectNotFoundError,
    RemoteExecutionError,
    SyncError,
    ValidationError,
    handle_cli_error,
    handle_config_error,
    handle_error,
    handle_file_error,
)

from .validators import (
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
    validate_project_dir,
    validate_string_list,
)

__all__ = [
    # Taxonomy
    "BuildEngineError",
    "ProfilingError",
    "AlreadyRunningError",
    "ProjectNotFoundError",
    "ProcessSpawnError",
    "OutputStreamError",
    "SyncError",
    "RemoteExecutionError",
    "ArchiveIOError",
    "BuildCancelledError",
    "ValidationError",
    # Error handling
    "ErrorSeverity",
    "handle_error",
    "handle_config_error",
    "handle_file_error",
    "handle_cli_error",
    # Validators
    "validate_enum_choice",
    "validate_non_empty_string",
    "validate_positive_float",
    "validate_positive_integer",
    "validate_project_dir",
    "validate_string_list",
]
