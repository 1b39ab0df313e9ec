"""
Remote (satellite) iOS builds.

A build on the remote host runs in two phases: SYNCING copies the project
with rsync, EXECUTING runs a build script over ssh and streams its output.
The script reports its outcome with a sentinel line, because the exit
status of a long ssh session is not a reliable signal on its own.
"""

import asyncio
import logging
import shlex
from pathlib import Path
from typing import Callable, Dict, Optional, Set

from ..archive import DiagnosticLogManager
from ..executor.session import SessionSlot, adopt_process
from ..executor.streams import drain_process
from ..models.build import BuildRequest, BuildResult, BuildStatus, BuildTarget, RemoteState, RemoteTarget
from ..models.config import EngineConfig
from ..models.runtime import BuildSession
from ..system.processes import kill_process_tree
from ..system.projects import REMOTE_PROJECT_MARKERS
from ..validation import (
    BuildCancelledError,
    ErrorSeverity,
    ProcessSpawnError,
    RemoteExecutionError,
    SyncError,
    ValidationError,
    handle_error,
    validate_project_dir,
)
from .ssh import auth_env, login_shell_command, spawn_client, ssh_argv, validate_remote_target
from .sync import sync_project

logger = logging.getLogger(__name__)

SUCCESS_SENTINEL = "__HYPERZENITH_BUILD_SUCCESS__"
FAILURE_SENTINEL = "__HYPERZENITH_BUILD_FAILURE__"
XCODE_MISSING_MARKER = "XCODE_NOT_FOUND"
PID_FILE_NAME = ".hyperzenith_build.pid"
# Seconds the ssh session may stay open after the build reported its result.
SENTINEL_GRACE_SECONDS = 2.0

PREFLIGHT_SCRIPT = f"which xcodebuild || echo '{XCODE_MISSING_MARKER}'"

LineCallback = Callable[[str], None]


def xcode_destination(target: BuildTarget, simulator_name: str) -> str:
    if target is BuildTarget.DEVICE:
        return "generic/platform=iOS"
    return f"platform=iOS Simulator,name={simulator_name}"


def pid_file_path(remote_project_path: str) -> str:
    return f"{remote_project_path.rstrip('/')}/{PID_FILE_NAME}"


def build_script(remote_project_path: str, destination: str, scheme: str = "", stamp: str = "") -> str:
    """
    Shell script that hydrates dependencies and runs xcodebuild.

    Every exit path prints exactly one sentinel line. Without an explicit
    scheme, the first ``*.xcworkspace`` under ``ios/`` names it. The PID
    file records the script's PID next to ``stamp``, so a later kill can
    tell this run from a stale one.
    """
    path = shlex.quote(remote_project_path)
    pid_file = shlex.quote(pid_file_path(remote_project_path))
    return f"""exec 2>&1
finish() {{
  rm -f {pid_file}
  if [ "$1" -eq 0 ]; then echo '{SUCCESS_SENTINEL}'; else echo "{FAILURE_SENTINEL} $1"; fi
  exit "$1"
}}
cd {path} || finish 2
echo "$$ "{shlex.quote(stamp)} > {pid_file}
if [ ! -d node_modules ]; then
  if [ -f package-lock.json ]; then
    echo '>> Hydrating with npm ci (strict)...'
    npm ci --prefer-offline || finish $?
  else
    echo '>> Hydrating with npm install (fallback)...'
    npm install || finish $?
  fi
fi
cd ios || finish 2
if [ ! -d Pods ]; then
  echo '>> Initializing Pods...'
  pod install || finish $?
fi
SCHEME={shlex.quote(scheme)}
if [ -z "$SCHEME" ]; then
  WORKSPACE=$(ls -d *.xcworkspace 2>/dev/null | head -n 1)
  SCHEME="${{WORKSPACE%.xcworkspace}}"
fi
if [ -z "$SCHEME" ]; then
  echo '>> No Xcode workspace found in ios/'
  finish 66
fi
xcodebuild -workspace "$SCHEME.xcworkspace" -scheme "$SCHEME" -configuration Debug \\
  -destination {shlex.quote(destination)} \\
  COMPILER_INDEX_STORE_ENABLE=NO DEBUG_INFORMATION_FORMAT=dwarf RCT_NO_LAUNCH_PACKAGER=1
finish $?
"""


def kill_script(remote_project_path: str, stamp: str) -> str:
    """
    Shell script that kills the process tree recorded in the PID file.

    Only a PID written under ``stamp`` by a process that is still alive is
    touched; a PID file left behind by another run is ignored.
    """
    pid_file = shlex.quote(pid_file_path(remote_project_path))
    return f"""killtree() {{
  for child in $(pgrep -P "$1"); do killtree "$child"; done
  kill -TERM "$1" 2>/dev/null
}}
if [ -f {pid_file} ]; then
  read -r pid stamp < {pid_file}
  if [ "$stamp" = {shlex.quote(stamp)} ]; then
    if [ -n "$pid" ] && kill -0 "$pid" 2>/dev/null; then killtree "$pid"; fi
    rm -f {pid_file}
  fi
fi
"""


def parse_sentinel(line: str) -> Optional[int]:
    """Exit status carried by a sentinel line, or None for ordinary output."""
    stripped = line.strip()
    if stripped == SUCCESS_SENTINEL:
        return 0
    if stripped.startswith(FAILURE_SENTINEL):
        status = stripped[len(FAILURE_SENTINEL):].strip()
        try:
            return int(status)
        except ValueError:
            return 1
    return None


class RemoteSatelliteOrchestrator:
    """
    Runs iOS builds on a remote host.

    State machine: IDLE -> SYNCING -> EXECUTING -> SUCCESS | FAILED, with
    SYNCING -> FAILED when the transfer fails. Cancellation and terminal
    states return the orchestrator to IDLE.
    """

    def __init__(
        self,
        config: EngineConfig,
        slot: SessionSlot,
        log_manager: Optional[DiagnosticLogManager] = None,
    ):
        self.config = config
        self.slot = slot
        self.log_manager = log_manager or DiagnosticLogManager(config.logs_dir, config.write_success_logs)

        self._session: Optional[BuildSession] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def session(self) -> Optional[BuildSession]:
        return self._session

    @property
    def state(self) -> RemoteState:
        if self._session is None:
            return RemoteState.IDLE
        return self._session.remote_state

    async def start(
        self,
        request: BuildRequest,
        on_line: LineCallback,
        on_status: LineCallback,
    ) -> BuildSession:
        """
        Validate ``request`` and start the sync-then-build pipeline.

        Raises:
            AlreadyRunningError: If another session holds the slot
            ValidationError: If the target or remote details are unusable
            ProjectNotFoundError: If the working directory is not a project
        """
        session = BuildSession(request=request)
        self.slot.claim(session)

        try:
            if not request.target.is_ios:
                raise ValidationError(
                    f"Target '{request.target.value}' cannot be built remotely",
                    field_name="target",
                    value=request.target.value,
                )
            target = request.remote
            if target is None:
                raise ValidationError("Remote builds need a remote target", field_name="remote")
            validate_remote_target(target)
            project_root = validate_project_dir(request.working_dir, REMOTE_PROJECT_MARKERS)
        except BaseException:
            self.slot.release(session)
            raise

        session.completion = asyncio.get_running_loop().create_future()
        self._session = session
        self._spawn_task(self._run(session, project_root, target, on_line, on_status))

        logger.info(f"Remote build session {session.session_id} started for {target.destination}")
        return session

    async def wait(self, session: BuildSession) -> BuildResult:
        return await asyncio.shield(session.completion)

    def cancel(self) -> bool:
        """
        Cancel the active remote build without waiting on the remote host.

        SYNCING kills the rsync tree. EXECUTING kills the local ssh client and
        fires a separate kill command at the remote process tree. A client
        still being spawned is killed by the pipeline as soon as it exists.
        """
        session = self._session
        if session is None or session.finished:
            return False

        session.cancelled = True
        state = session.remote_state
        process = session.process
        if process is not None and process.returncode is None:
            kill_process_tree(process.pid, f"remote {state.value} client")
        if state is RemoteState.EXECUTING:
            self._fire_remote_kill(session)

        self._finish(
            session,
            BuildResult(
                status=BuildStatus.CANCELLED,
                message="Remote build cancelled",
                error=BuildCancelledError(f"Remote build session {session.session_id} was cancelled"),
                progress=session.progress,
            ),
        )
        return True

    async def _run(
        self,
        session: BuildSession,
        project_root: Path,
        target: RemoteTarget,
        on_line: LineCallback,
        on_status: LineCallback,
    ) -> None:
        if session.cancelled:
            return
        try:
            session.remote_state = RemoteState.SYNCING
            await sync_project(session, project_root, target, self.config, on_status)
            if session.cancelled:
                return

            session.remote_state = RemoteState.EXECUTING
            await self._preflight(session, project_root, target, on_status)
            if session.cancelled:
                return
            await self._execute(session, project_root, target, on_line, on_status)
        except (SyncError, RemoteExecutionError) as e:
            if session.finished:
                return
            result = self._failure(session, project_root, str(e), e)
        except Exception as e:
            if session.finished:
                return
            handle_error(
                error=e,
                context=f"remote build session {session.session_id}",
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger,
            )
            result = self._failure(session, project_root, str(e), e)
        else:
            if session.finished:
                return
            session.remote_state = RemoteState.SUCCESS
            self.log_manager.write_success_log(project_root, session)
            result = BuildResult(
                status=BuildStatus.SUCCESS,
                message=f"iOS build completed on {target.hostname}",
                progress=100.0,
            )
        self._finish(session, result)

    async def _preflight(
        self,
        session: BuildSession,
        project_root: Path,
        target: RemoteTarget,
        on_status: LineCallback,
    ) -> None:
        on_status("Running pre-flight environment check...")
        argv = ssh_argv(target, login_shell_command(PREFLIGHT_SCRIPT), self.config.ssh_connect_timeout)
        process = await self._spawn(argv, project_root, target)
        if not adopt_process(session, process, "pre-flight ssh"):
            return

        output = []
        await drain_process(process, output.append, "pre-flight ssh")
        exit_code = await process.wait()
        session.captured.extend(output)

        if session.cancelled:
            return
        if any(XCODE_MISSING_MARKER in line for line in output):
            raise RemoteExecutionError(
                "Remote environment invalid: 'xcodebuild' not found in PATH. "
                "Check that Xcode and its command line tools are installed.",
                exit_status=exit_code,
            )
        if exit_code != 0:
            raise RemoteExecutionError(f"Pre-flight check failed with ssh exit code {exit_code}", exit_status=exit_code)
        on_status("Pre-flight passed: xcodebuild found")

    async def _execute(
        self,
        session: BuildSession,
        project_root: Path,
        target: RemoteTarget,
        on_line: LineCallback,
        on_status: LineCallback,
    ) -> None:
        destination = xcode_destination(session.request.target, self.config.simulator_name)
        script = build_script(target.remote_project_path, destination, target.scheme, session.run_stamp)
        argv = ssh_argv(target, login_shell_command(script), self.config.ssh_connect_timeout)

        on_status(f"Starting remote build on {target.hostname} ({destination})")
        process = await self._spawn(argv, project_root, target)
        if not adopt_process(session, process, "remote build ssh"):
            # The script may have written its PID file before the client died.
            self._fire_remote_kill(session)
            return

        outcome: Dict[str, int] = {}
        reported = asyncio.Event()

        def handle_line(line: str) -> None:
            if session.cancelled:
                return
            status = parse_sentinel(line)
            if status is not None:
                outcome.setdefault("exit_status", status)
                reported.set()
                return
            session.captured.append(line)
            session.line_count += 1
            on_line(line)

        await self._drain_until_reported(process, handle_line, reported)
        ssh_status = await process.wait()

        if session.cancelled:
            return
        if "exit_status" not in outcome:
            raise RemoteExecutionError(
                f"Remote session ended without reporting a result (ssh exit code {ssh_status})",
                exit_status=ssh_status,
            )
        if outcome["exit_status"] != 0:
            raise RemoteExecutionError(
                f"Remote build failed with exit code {outcome['exit_status']}",
                exit_status=outcome["exit_status"],
            )

    async def _drain_until_reported(
        self,
        process: asyncio.subprocess.Process,
        handle_line: LineCallback,
        reported: asyncio.Event,
    ) -> None:
        """
        Drain the build client until EOF, or until shortly after the sentinel.

        The sentinel decides the outcome. An ssh session still open
        SENTINEL_GRACE_SECONDS after the sentinel is closed from this side.
        """
        drain = asyncio.ensure_future(drain_process(process, handle_line, "remote build ssh"))
        sentinel = asyncio.ensure_future(reported.wait())
        try:
            await asyncio.wait({drain, sentinel}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sentinel.cancel()

        if not drain.done():
            try:
                await asyncio.wait_for(asyncio.shield(drain), timeout=SENTINEL_GRACE_SECONDS)
            except asyncio.TimeoutError:
                logger.warning(
                    f"ssh session still open {SENTINEL_GRACE_SECONDS}s after the build reported, closing it"
                )
                kill_process_tree(process.pid, "remote build ssh")
        await drain

    async def _spawn(self, argv, cwd: Path, target: RemoteTarget) -> asyncio.subprocess.Process:
        try:
            return await spawn_client(argv, cwd, self.config, auth_env(target))
        except ProcessSpawnError as e:
            raise RemoteExecutionError(f"Cannot start ssh: {e}") from e

    def _fire_remote_kill(self, session: BuildSession) -> None:
        target = session.request.remote
        if target is None:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, skipping remote kill command")
            return
        self._spawn_task(self._remote_kill(target, session.run_stamp))

    async def _remote_kill(self, target: RemoteTarget, stamp: str) -> None:
        argv = ssh_argv(
            target,
            login_shell_command(kill_script(target.remote_project_path, stamp)),
            self.config.ssh_connect_timeout,
        )
        try:
            process = await spawn_client(argv, Path.home(), self.config, auth_env(target), capture_output=False)
        except ProcessSpawnError as e:
            logger.warning(f"Remote kill command could not be started: {e}")
            return

        try:
            await asyncio.wait_for(process.wait(), timeout=self.config.cancel_timeout)
            logger.info(f"Remote kill command finished with exit code {process.returncode}")
        except asyncio.TimeoutError:
            logger.warning(f"Remote kill command timed out after {self.config.cancel_timeout}s")
            kill_process_tree(process.pid, "remote kill command")

    def _spawn_task(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _failure(self, session: BuildSession, project_root: Path, message: str, error: Exception) -> BuildResult:
        session.remote_state = RemoteState.FAILED
        logger.error(f"Remote build session {session.session_id} failed: {message}")
        log_path = self.log_manager.write_failure_log(
            project_root, session, getattr(error, "exit_status", None), message
        )
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
            f"Remote build session {session.session_id} finished: {result.status.value} "
            f"in {result.duration_seconds:.1f}s"
        )
