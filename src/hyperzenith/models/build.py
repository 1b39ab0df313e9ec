"""
Build request and result data models.

This module contains the structures that cross the engine boundary: what a
caller asks for (BuildRequest, RemoteTarget), what it receives while the
build runs (OutputLine) and what it receives at the end (BuildResult,
ArchivedArtifact, RecoveryReport).
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple


class BuildTarget(Enum):
    """Artifact kind requested by the caller."""
    APK = "apk"
    AAB = "aab"
    SIMULATOR = "simulator"
    DEVICE = "device"

    @property
    def is_android(self) -> bool:
        return self in (BuildTarget.APK, BuildTarget.AAB)

    @property
    def is_ios(self) -> bool:
        return self in (BuildTarget.SIMULATOR, BuildTarget.DEVICE)


class Platform(Enum):
    """Where the build runs."""
    LOCAL = "local"
    REMOTE = "remote"


class BuildStatus(Enum):
    """Terminal state of a build request."""
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


class RemoteState(Enum):
    """States of the satellite pipeline."""
    IDLE = "idle"
    SYNCING = "syncing"
    EXECUTING = "executing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class RemoteCredential:
    """SSH credential: a private key path, a password, or both (key wins)."""

    key_path: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)

    @property
    def has_key(self) -> bool:
        return bool(self.key_path)

    @property
    def has_password(self) -> bool:
        return bool(self.password)


@dataclass(frozen=True)
class RemoteTarget:
    """
    A network-reachable compute node. Supplied per request and never
    persisted by the engine.
    """

    # "host" or "host:port"
    host: str
    user: str
    credential: RemoteCredential
    remote_project_path: str
    # Xcode scheme (and workspace name) to build.
    scheme: str = ""

    @property
    def hostname(self) -> str:
        return self._split_host()[0]

    @property
    def port(self) -> int:
        return self._split_host()[1]

    def _split_host(self) -> Tuple[str, int]:
        host, sep, port = self.host.partition(":")
        if sep and port.isdigit():
            return host, int(port)
        return self.host, 22

    @property
    def destination(self) -> str:
        """user@host, as understood by ssh and rsync."""
        return f"{self.user}@{self.hostname}"


@dataclass(frozen=True)
class BuildRequest:
    """A single build request from the caller."""

    working_dir: Path
    target: BuildTarget = BuildTarget.APK
    turbo: bool = True
    custom_output_path: Optional[Path] = None
    platform: Platform = Platform.LOCAL
    # Required when platform is REMOTE.
    remote: Optional[RemoteTarget] = None


@dataclass(frozen=True)
class OutputLine:
    """One line on the caller's output stream."""

    text: str
    # Position in the session's stream, starting at 1.
    sequence: int
    # Progress estimate after this line, in [0, 100].
    progress: float
    # "local", "remote" or "engine" (status lines emitted by the engine itself).
    source: str = "local"


@dataclass(frozen=True)
class ArchivedArtifact:
    """A build output copied into the managed archive."""

    source_build_output: Path
    archive_root: Path
    timestamp: str
    final_path: Path
    # False when the toolchain re-emitted an unchanged, cached output.
    fresh: bool = True


@dataclass
class BuildResult:
    """Terminal outcome of one build request. Reported exactly once."""

    status: BuildStatus
    message: str = ""
    # Set on failures: the full untruncated output of the build.
    diagnostic_log_path: Optional[Path] = None
    artifact: Optional[ArchivedArtifact] = None
    # Archiving failures never turn a successful build into a failure.
    archive_error: Optional[Exception] = None
    # The taxonomy error behind a failure or cancellation.
    error: Optional[Exception] = None
    duration_seconds: float = 0.0
    progress: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status is BuildStatus.SUCCESS

    @property
    def cancelled(self) -> bool:
        return self.status is BuildStatus.CANCELLED


@dataclass
class RecoveryReport:
    """Outcome of the remote nuclear reset sequence."""

    steps_run: List[str] = field(default_factory=list)
    steps_failed: List[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.steps_failed
