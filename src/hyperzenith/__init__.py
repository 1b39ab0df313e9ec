"""
HyperZenith: hardware-aware build accelerator for React Native / Expo apps.

This package runs local Android (Gradle) builds tuned to the host's cores
and memory, and remote iOS builds on a networked macOS host, with live
output, progress estimation, cancellation and artifact archiving.

The package is organized into specialized modules:
- config: Configuration management and validation
- models: Data structures and type definitions
- validation: Input validation and error handling
- system: Hardware profiling, launchers, process trees, project discovery
- progress: Progress estimation from toolchain output
- archive: Artifact archive and diagnostic logs
- executor: Local build execution
- remote: Remote sync, build and recovery
- orchestration: The build orchestration engine
- cli: Command-line interface

Usage:
    From command line:
        hyperzenith build ./MyApp --target apk

    Programmatically:
        from hyperzenith import BuildOrchestrationEngine, BuildRequest
        engine = BuildOrchestrationEngine()
        handle = await engine.request_build(BuildRequest(working_dir=Path("MyApp")))
        async for line in handle:
            print(line.text)
        result = await handle.wait()
"""

# Main interfaces
from .config import get_config, clear_config_cache, set_config_path
from .orchestration import BuildHandle, BuildOrchestrationEngine
from .cli import main_cli

# Model classes for external use
from .models import (
    ArchivedArtifact,
    BuildRequest,
    BuildResult,
    BuildStatus,
    BuildTarget,
    EngineConfig,
    EngineStatus,
    HardwareProfile,
    OutputLine,
    Platform,
    RecoveryReport,
    RemoteCredential,
    RemoteState,
    RemoteTarget,
)

# Errors
from .validation import (
    AlreadyRunningError,
    ArchiveIOError,
    BuildCancelledError,
    BuildEngineError,
    ProcessSpawnError,
    ProfilingError,
    ProjectNotFoundError,
    RemoteExecutionError,
    SyncError,
    ValidationError,
)

__version__ = "1.0.0"

__all__ = [
    # Main interfaces
    "get_config",
    "clear_config_cache",
    "set_config_path",
    "BuildHandle",
    "BuildOrchestrationEngine",
    "main_cli",
    # Models
    "ArchivedArtifact",
    "BuildRequest",
    "BuildResult",
    "BuildStatus",
    "BuildTarget",
    "EngineConfig",
    "EngineStatus",
    "HardwareProfile",
    "OutputLine",
    "Platform",
    "RecoveryReport",
    "RemoteCredential",
    "RemoteState",
    "RemoteTarget",
    # Errors
    "AlreadyRunningError",
    "ArchiveIOError",
    "BuildCancelledError",
    "BuildEngineError",
    "ProcessSpawnError",
    "ProfilingError",
    "ProjectNotFoundError",
    "RemoteExecutionError",
    "SyncError",
    "ValidationError",
]
