"""
Data models for the build orchestration engine.

Configuration Models:
- Engine tunables loaded from config.toml

Hardware Models:
- Host capacity and the worker/heap plan derived from it

Build Models:
- Requests, remote targets and credentials supplied by the caller
- Output events, results and archived artifacts returned to the caller

Runtime Models:
- The in-flight build session and the engine status snapshot
"""

from .build import (
    ArchivedArtifact,
    BuildRequest,
    BuildResult,
    BuildStatus,
    BuildTarget,
    OutputLine,
    Platform,
    RecoveryReport,
    RemoteCredential,
    RemoteState,
    RemoteTarget,
)
from .config import DEFAULT_SYNC_EXCLUDES, EngineConfig
from .hardware import GIB, MAX_HEAP_BYTES, MIB, MIN_HEAP_BYTES, HardwareProfile
from .runtime import BuildSession, EngineStatus

__all__ = [
    # Configuration
    "EngineConfig",
    "DEFAULT_SYNC_EXCLUDES",
    # Hardware
    "HardwareProfile",
    "GIB",
    "MIB",
    "MIN_HEAP_BYTES",
    "MAX_HEAP_BYTES",
    # Build
    "ArchivedArtifact",
    "BuildRequest",
    "BuildResult",
    "BuildStatus",
    "BuildTarget",
    "OutputLine",
    "Platform",
    "RecoveryReport",
    "RemoteCredential",
    "RemoteState",
    "RemoteTarget",
    # Runtime
    "BuildSession",
    "EngineStatus",
]
