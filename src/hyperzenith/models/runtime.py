"""
Runtime data models.

This module contains the state of a build while it is in flight and the
read-only snapshot the engine exposes through its status surface.
"""

import itertools
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from .build import BuildRequest, Platform, RemoteState

_session_ids = itertools.count(1)


@dataclass
class BuildSession:
    """
    The single in-flight build.

    Owned exclusively by the orchestrator that created it (the process
    supervisor or the satellite orchestrator). Nothing else mutates it.
    """

    request: BuildRequest
    session_id: int = field(default_factory=lambda: next(_session_ids))
    started_at: float = field(default_factory=time.time)

    # asyncio.subprocess.Process of the toolchain, rsync or ssh client.
    process: Optional[Any] = None
    line_count: int = 0
    progress: float = 0.0
    remote_state: RemoteState = RemoteState.IDLE
    cancelled: bool = False
    finished: bool = False

    # asyncio.Future resolved with the BuildResult exactly once.
    completion: Optional[Any] = field(default=None, repr=False)

    # Full, untruncated output, kept for the diagnostic log.
    captured: List[str] = field(default_factory=list)

    @property
    def platform(self) -> Platform:
        return self.request.platform

    @property
    def timestamp(self) -> str:
        """Start time formatted for file names."""
        return datetime.fromtimestamp(self.started_at).strftime("%Y-%m-%d_%H-%M-%S")

    @property
    def run_stamp(self) -> str:
        """Tells this run apart from any other, across engine restarts."""
        return f"{int(self.started_at * 1000)}-{self.session_id}"

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.started_at

    @property
    def full_output(self) -> str:
        return "".join(f"{line}\n" for line in self.captured)


@dataclass(frozen=True)
class EngineStatus:
    """Snapshot of the engine, safe to hand to any caller."""

    active: bool
    platform: Optional[Platform] = None
    session_id: Optional[int] = None
    started_at: Optional[float] = None
    line_count: int = 0
    progress: float = 0.0
    remote_state: RemoteState = RemoteState.IDLE
