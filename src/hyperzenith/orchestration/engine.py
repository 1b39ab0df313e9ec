"""
Build orchestration engine.

The engine is the single entry point for callers: it profiles the host,
dispatches build requests to the local process supervisor or the remote
satellite orchestrator, threads every output line through a per-session
progress tracker, and exposes archive, recovery and scanning operations.
"""

import asyncio
import itertools
import logging
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional, Sequence, Union

from ..archive import ArtifactArchive, DiagnosticLogManager
from ..config import get_config
from ..executor import ProcessSupervisor, SessionSlot, truncate_line
from ..models.build import BuildRequest, BuildResult, OutputLine, Platform, RecoveryReport, RemoteTarget
from ..models.config import EngineConfig
from ..models.hardware import HardwareProfile
from ..models.runtime import BuildSession, EngineStatus
from ..progress import ProgressTracker
from ..remote import RemoteSatelliteOrchestrator, nuclear_reset
from ..system import HardwareProfiler, scan_for_projects
from ..validation import AlreadyRunningError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class OutputSink:
    """
    Per-session output stream.

    Lines are truncated for display, stamped with a sequence number and the
    current progress estimate, and queued in production order. The stream
    ends once the session's result is resolved.
    """

    def __init__(self, config: EngineConfig, source: str):
        self.max_line_length = config.max_line_length
        self.source = source
        self.tracker = ProgressTracker(config.idle_increment, config.idle_cap)
        self.session: Optional[BuildSession] = None
        self._sequence = itertools.count(1)
        self._queue: "asyncio.Queue[Optional[OutputLine]]" = asyncio.Queue()
        self._closed = False

    @property
    def progress(self) -> float:
        return self.tracker.value

    def line(self, text: str) -> None:
        """A line of toolchain output."""
        self._put(text, self.tracker.update(text), self.source)

    def status(self, text: str) -> None:
        """A status line produced by the engine itself; progress is unchanged."""
        self._put(text, self.tracker.value, "engine")

    def complete(self) -> None:
        self.tracker.complete()
        if self.session is not None:
            self.session.progress = self.tracker.value

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def lines(self) -> AsyncIterator[OutputLine]:
        while True:
            item = await self._queue.get()
            if item is None:
                return
            yield item

    def _put(self, text: str, progress: float, source: str) -> None:
        if self._closed:
            return
        if self.session is not None:
            self.session.progress = progress
        self._queue.put_nowait(
            OutputLine(
                text=truncate_line(text, self.max_line_length),
                sequence=next(self._sequence),
                progress=progress,
                source=source,
            )
        )


class BuildHandle:
    """
    Caller's view of one build request.

    Iterate it (``async for line in handle``) for the output stream, and
    ``await handle.wait()`` for the result.
    """

    def __init__(self, session: BuildSession, sink: OutputSink):
        self.session = session
        self._sink = sink

    @property
    def session_id(self) -> int:
        return self.session.session_id

    @property
    def progress(self) -> float:
        return self._sink.progress

    def __aiter__(self) -> AsyncIterator[OutputLine]:
        return self._sink.lines()

    async def wait(self) -> BuildResult:
        return await asyncio.shield(self.session.completion)


class BuildOrchestrationEngine:
    """
    Entry point for profiling, building, cancelling and archiving.

    Args:
        config: Engine configuration; defaults to the loaded config file
        profiler: Hardware profiler; replaceable for tests
    """

    def __init__(self, config: Optional[EngineConfig] = None, profiler: Optional[HardwareProfiler] = None):
        self.config = config or get_config()
        self.profiler = profiler or HardwareProfiler()

        self.slot = SessionSlot()
        self.archive = ArtifactArchive(self.config.managed_builds_dir, self.config.artifact_fresh_seconds)
        self.log_manager = DiagnosticLogManager(self.config.logs_dir, self.config.write_success_logs)
        self.supervisor = ProcessSupervisor(self.config, self.slot, self.archive, self.log_manager)
        self.satellite = RemoteSatelliteOrchestrator(self.config, self.slot, self.log_manager)

        self._profile: Optional[HardwareProfile] = None
        self._sink: Optional[OutputSink] = None

    def profile(self) -> HardwareProfile:
        """Hardware profile of this host, computed once."""
        if self._profile is None:
            self._profile = self.profiler.profile()
        return self._profile

    def refresh_profile(self) -> HardwareProfile:
        self._profile = None
        return self.profile()

    async def request_build(self, request: BuildRequest) -> BuildHandle:
        """
        Start a build.

        Returns:
            BuildHandle carrying the output stream and the eventual result

        Raises:
            AlreadyRunningError: If a build is already running
            ValidationError: If the request is inconsistent
            ProjectNotFoundError: If the working directory is not a project
            ProcessSpawnError: If the local toolchain could not be started
        """
        sink = OutputSink(self.config, request.platform.value)

        if request.platform is Platform.LOCAL:
            session = await self.supervisor.start(request, self.profile(), sink.line)
        else:
            session = await self.satellite.start(request, sink.line, sink.status)

        sink.session = session
        self._sink = sink
        session.completion.add_done_callback(lambda future: self._on_complete(sink, future))

        logger.info(
            f"Build session {session.session_id} started: {request.platform.value} "
            f"{request.target.value} in {request.working_dir}"
        )
        return BuildHandle(session, sink)

    def abort(self) -> bool:
        """
        Cancel the active build, if any.

        Synchronous and idempotent; returns False when nothing was running.
        """
        session = self.slot.current
        if session is None:
            logger.debug("Abort requested with no active build")
            return False

        logger.info(f"Aborting build session {session.session_id}")
        if session.platform is Platform.LOCAL:
            return self.supervisor.cancel()
        return self.satellite.cancel()

    def status(self) -> EngineStatus:
        session = self.slot.current
        if session is None:
            return EngineStatus(active=False)
        return EngineStatus(
            active=True,
            platform=session.platform,
            session_id=session.session_id,
            started_at=session.started_at,
            line_count=session.line_count,
            progress=session.progress,
            remote_state=session.remote_state,
        )

    def archive_locate(self, project_root: PathLike, custom_root: Optional[PathLike] = None) -> Path:
        return self.archive.resolve_output_dir(project_root, custom_root)

    def archive_clear(self, directory: PathLike) -> int:
        return self.archive.clear(directory)

    def archive_list(self, directory: PathLike) -> List[Path]:
        return self.archive.list_artifacts(directory)

    async def remote_reset(
        self,
        target: RemoteTarget,
        on_line: Optional[Callable[[str], None]] = None,
    ) -> RecoveryReport:
        """
        Run the nuclear reset sequence on a remote build host.

        Raises:
            AlreadyRunningError: If a build is running
            RemoteExecutionError: If the sequence could not run to the end
        """
        if self.slot.is_active:
            raise AlreadyRunningError("Cannot reset the remote environment while a build is running")
        return await nuclear_reset(target, self.config, on_line)

    async def prewarm(self, working_dir: PathLike) -> int:
        return await self.supervisor.prewarm(Path(working_dir))

    def scan_for_projects(
        self,
        start_path: Optional[PathLike] = None,
        extra_roots: Optional[Sequence[PathLike]] = None,
    ) -> List[Path]:
        return scan_for_projects(start_path, extra_roots)

    def _on_complete(self, sink: OutputSink, future: "asyncio.Future[BuildResult]") -> None:
        result = future.result()
        if result.succeeded:
            sink.complete()
            result.progress = sink.progress
        elif result.cancelled:
            logger.info(f"Build session {sink.session.session_id} cancelled")
        sink.close()
        if self._sink is sink:
            self._sink = None
