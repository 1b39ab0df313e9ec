"""
Archive of build outputs and diagnostic logs.
"""

from .artifacts import (
    ANDROID_OUTPUTS,
    ARTIFACT_EXTENSIONS,
    TIMESTAMP_FORMAT,
    ArtifactArchive,
    build_output_path,
)
from .diagnostics import DiagnosticLogManager

__all__ = [
    "ANDROID_OUTPUTS",
    "ARTIFACT_EXTENSIONS",
    "TIMESTAMP_FORMAT",
    "ArtifactArchive",
    "DiagnosticLogManager",
    "build_output_path",
]
