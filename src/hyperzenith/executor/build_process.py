"""
Local build process supervision.

This module provides the ProcessSupervisor, which spawns one Gradle build,
drains its merged stdout/stderr continuously, and turns its exit into a
BuildResult: archived artifact on success, diagnostic log on failure.
Cancellation kills the whole process tree and resolves the result at once.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, List, Optional, Set

from ..archive import ArtifactArchive, DiagnosticLogManager, build_output_path
from ..models.build import BuildRequest, BuildResult, BuildStatus
from ..models.config import EngineConfig
from ..models.hardware import HardwareProfile
from ..models.runtime import BuildSession
from ..system.commands import (
    LaunchSpec,
    build_launch_spec,
    gradle_wrapper_command,
    resolve_launcher,
    windows_to_wsl_path,
)
from ..system.processes import kill_process_tree
from ..system.projects import ANDROID_PROJECT_MARKERS
from ..validation import (
    ArchiveIOError,
    BuildCancelledError,
    ErrorSeverity,
    ProcessSpawnError,
    ValidationError,
    handle_error,
    validate_project_dir,
)
from .invocation import build_invocation
from .session import SessionSlot, adopt_process
from .streams import drain_process

logger = logging.getLogger(__name__)

LineCallback = Callable[[str], None]


class ProcessSupervisor:
    """
    Owns the lifecycle of a local toolchain process.

    Args:
        config: Engine configuration
        slot: Single-flight slot shared with the remote orchestrator
        archive: Archive that receives successful build outputs
        log_manager: Writer for diagnostic logs
    """

    def __init__(
        self,
        config: EngineConfig,
        slot: SessionSlot,
        archive: Optional[ArtifactArchive] = None,
        log_manager: Optional[DiagnosticLogManager] = None,
    ):
        self.config = config
        self.slot = slot
        self.archive = archive or ArtifactArchive(config.managed_builds_dir, config.artifact_fresh_seconds)
        self.log_manager = log_manager or DiagnosticLogManager(config.logs_dir, config.write_success_logs)

        self._session: Optional[BuildSession] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def session(self) -> Optional[BuildSession]:
        return self._session

    async def start(
        self,
        request: BuildRequest,
        profile: HardwareProfile,
        on_line: LineCallback,
    ) -> BuildSession:
        """
        Spawn the build for ``request`` and start draining its output.

        Every line of output is appended to the session capture and handed
        to ``on_line`` in order, until the process exits or is cancelled.
        The session is cancellable as soon as the slot is claimed; a build
        cancelled while the toolchain was starting comes back already
        resolved as CANCELLED.

        Returns:
            The new BuildSession; await wait(session) for its result

        Raises:
            AlreadyRunningError: If another session holds the slot
            ValidationError: If the target cannot be built locally
            ProjectNotFoundError: If the working directory is not a project
            ProcessSpawnError: If the toolchain could not be started
        """
        session = BuildSession(request=request)
        self.slot.claim(session)
        session.completion = asyncio.get_running_loop().create_future()
        # Visible to cancel() from the moment the slot is taken.
        self._session = session

        try:
            if not request.target.is_android:
                raise ValidationError(
                    f"Target '{request.target.value}' cannot be built locally",
                    field_name="target",
                    value=request.target.value,
                )
            project_root = validate_project_dir(request.working_dir, ANDROID_PROJECT_MARKERS)
            invocation = build_invocation(request, profile)
            spec = self.launch_spec(project_root, invocation.to_args())

            logger.info(
                f"Starting {invocation.task} in {project_root} "
                f"(turbo={request.turbo}, workers={invocation.max_workers}, heap={invocation.heap_mb}MB)"
            )
            logger.debug(f"Build command: {spec.argv}")
            process = await self._spawn(spec)
        except BaseException:
            self.slot.release(session)
            if self._session is session:
                self._session = None
            raise

        if not adopt_process(session, process, "gradle build"):
            return session

        task = asyncio.create_task(self._supervise(session, project_root, on_line))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(f"Build process started with PID {session.process.pid}")
        return session

    async def wait(self, session: BuildSession) -> BuildResult:
        """Wait for the terminal result of ``session``."""
        return await asyncio.shield(session.completion)

    def cancel(self) -> bool:
        """
        Cancel the active build.

        Synchronous and idempotent: the process tree is killed, the result
        resolves as CANCELLED and the slot is free before this returns.

        Returns:
            True if a running build was cancelled
        """
        session = self._session
        if session is None or session.finished:
            return False

        session.cancelled = True
        process = session.process
        if process is not None and process.returncode is None:
            kill_process_tree(process.pid, "gradle build")

        self._finish(
            session,
            BuildResult(
                status=BuildStatus.CANCELLED,
                message="Build cancelled",
                error=BuildCancelledError(f"Build session {session.session_id} was cancelled"),
                progress=session.progress,
            ),
        )
        return True

    def launch_spec(self, project_root: Path, gradle_args: List[str]) -> LaunchSpec:
        """Launch spec that runs the Gradle wrapper of ``project_root`` with ``gradle_args``."""
        android_dir = project_root / "android"
        launcher = resolve_launcher(self.config.launcher)
        command = gradle_wrapper_command(android_dir, launcher) + list(gradle_args)

        env = {}
        if self.config.android_sdk_path:
            sdk_path = self.config.android_sdk_path
            if launcher == "wsl":
                sdk_path = windows_to_wsl_path(sdk_path)
            env["ANDROID_HOME"] = sdk_path
            env["ANDROID_SDK_ROOT"] = sdk_path

        return build_launch_spec(command, android_dir, launcher, env)

    async def prewarm(self, working_dir: Path) -> int:
        """
        Start ``gradlew --version`` in the background to bring the Gradle
        daemon up before the first build. Never touches the build slot.

        Returns:
            PID of the warm-up process

        Raises:
            ProjectNotFoundError: If the working directory is not a project
            ProcessSpawnError: If the wrapper could not be started
        """
        project_root = validate_project_dir(working_dir, ANDROID_PROJECT_MARKERS)
        spec = self.launch_spec(project_root, ["--version"])
        process = await self._spawn(spec, capture_output=False)
        logger.info(f"Gradle daemon warm-up started (PID {process.pid})")

        task = asyncio.create_task(self._reap_prewarm(process))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return process.pid

    async def _reap_prewarm(self, process: asyncio.subprocess.Process) -> None:
        exit_code = await process.wait()
        if exit_code == 0:
            logger.info("Gradle daemon is warm")
        else:
            logger.warning(f"Gradle warm-up exited with code {exit_code}")

    async def _spawn(self, spec: LaunchSpec, capture_output: bool = True) -> asyncio.subprocess.Process:
        kwargs = {}
        if os.name == "posix":
            # Own process group, so the whole tree can be killed at once.
            kwargs["start_new_session"] = True
        output = asyncio.subprocess.PIPE if capture_output else asyncio.subprocess.DEVNULL
        try:
            return await asyncio.create_subprocess_exec(
                *spec.argv,
                cwd=str(spec.cwd),
                env=spec.env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=output,
                stderr=asyncio.subprocess.STDOUT if capture_output else asyncio.subprocess.DEVNULL,
                limit=self.config.read_buffer_limit,
                **kwargs,
            )
        except OSError as e:
            raise ProcessSpawnError(f"Failed to start '{spec.argv[0]}': {e}") from e

    async def _supervise(self, session: BuildSession, project_root: Path, on_line: LineCallback) -> None:
        process = session.process

        def handle_line(line: str) -> None:
            if session.cancelled:
                return
            session.captured.append(line)
            session.line_count += 1
            on_line(line)

        try:
            await drain_process(process, handle_line, "gradle build")
            exit_code = await process.wait()
        except Exception as e:
            handle_error(
                error=e,
                context=f"supervising build session {session.session_id}",
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger,
            )
            if process.returncode is None:
                kill_process_tree(process.pid, "gradle build")
            self._finish(session, self._failure(session, project_root, None, str(e), error=e))
            return

        if session.finished:
            logger.debug(f"Session {session.session_id} exited with {exit_code} after cancellation")
            return

        if exit_code == 0:
            result = await self._success(session, project_root)
        else:
            result = self._failure(session, project_root, exit_code, f"Build failed with exit code {exit_code}")
        self._finish(session, result)

    async def _success(self, session: BuildSession, project_root: Path) -> BuildResult:
        request = session.request
        source = build_output_path(project_root, request.target)
        loop = asyncio.get_running_loop()

        artifact = None
        archive_error = None
        try:
            artifact = await loop.run_in_executor(
                None, self.archive.archive, source, project_root, request.custom_output_path
            )
        except ArchiveIOError as e:
            archive_error = e
            logger.warning(f"Build succeeded but archiving failed: {e}")

        self.log_manager.write_success_log(project_root, session)

        kind = request.target.value.upper()
        if artifact is None:
            message = f"Build completed! ({kind} not archived)"
        elif artifact.fresh:
            message = f"Build completed! (Fresh {kind})"
        else:
            message = f"Build completed! (Cached {kind}, no changes detected)"

        return BuildResult(
            status=BuildStatus.SUCCESS,
            message=message,
            artifact=artifact,
            archive_error=archive_error,
            progress=100.0,
        )

    def _failure(
        self,
        session: BuildSession,
        project_root: Path,
        exit_code: Optional[int],
        message: str,
        error: Optional[Exception] = None,
    ) -> BuildResult:
        log_path = self.log_manager.write_failure_log(project_root, session, exit_code, message)
        return BuildResult(
            status=BuildStatus.FAILURE,
            message=message,
            diagnostic_log_path=log_path,
            error=error,
            progress=session.progress,
        )

    def _finish(self, session: BuildSession, result: BuildResult) -> None:
        if session.finished:
            return
        session.finished = True
        result.duration_seconds = session.elapsed_seconds

        self.slot.release(session)
        if self._session is session:
            self._session = None

        if session.completion is not None and not session.completion.done():
            session.completion.set_result(result)
        logger.info(
            f"Build session {session.session_id} finished: {result.status.value} "
            f"in {result.duration_seconds:.1f}s"
        )
