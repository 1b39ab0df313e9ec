"""
Project synchronization to the remote build host with rsync.
"""

import logging
import sys
from pathlib import Path, PureWindowsPath
from typing import Callable, List, Sequence

from ..executor.session import adopt_process
from ..executor.streams import drain_process
from ..models.build import RemoteTarget
from ..models.config import EngineConfig
from ..models.runtime import BuildSession
from ..system.commands import resolve_launcher, windows_to_wsl_path
from ..validation import OutputStreamError, ProcessSpawnError, SyncError
from .ssh import auth_env, auth_prefix, remote_shell, spawn_client

logger = logging.getLogger(__name__)

# Lines of rsync output quoted in a SyncError.
ERROR_TAIL_LINES = 5


def rsync_argv(
    local_dir: str,
    target: RemoteTarget,
    excludes: Sequence[str],
    connect_timeout: int,
    io_timeout: int,
) -> List[str]:
    """
    Build the rsync command that mirrors ``local_dir`` into the remote
    project path. Excluded paths (dependencies, VCS data, build outputs) are
    rebuilt on the remote side instead of transferred.
    """
    argv = [
        *auth_prefix(target),
        "rsync",
        "-az",
        f"--timeout={io_timeout}",
        "-e", remote_shell(target, connect_timeout),
    ]
    for pattern in excludes:
        argv.extend(["--exclude", pattern])
    argv.append(local_dir.rstrip("/") + "/")
    argv.append(f"{target.destination}:{target.remote_project_path.rstrip('/')}/")
    return argv


def local_source_dir(project_root: Path, launcher: str) -> str:
    if launcher != "wsl":
        return str(project_root)
    path = str(PureWindowsPath(project_root)) if sys.platform == "win32" else str(project_root)
    return windows_to_wsl_path(path)


async def sync_project(
    session: BuildSession,
    project_root: Path,
    target: RemoteTarget,
    config: EngineConfig,
    on_status: Callable[[str], None],
) -> None:
    """
    Transfer ``project_root`` to the target.

    The rsync process is stored on the session so cancellation can kill it.
    Its output goes to the session capture only. Nothing is started for a
    session that is already cancelled.

    Raises:
        SyncError: If rsync cannot be started or exits non-zero
    """
    if session.cancelled:
        return

    local_dir = local_source_dir(project_root, resolve_launcher(config.launcher))
    argv = rsync_argv(local_dir, target, config.sync_excludes, config.ssh_connect_timeout, config.rsync_timeout)

    on_status(f"Syncing {project_root.name} to {target.destination}:{target.remote_project_path}")
    logger.info(f"Syncing {project_root} to {target.destination}:{target.remote_project_path}")

    try:
        process = await spawn_client(argv, project_root, config, auth_env(target))
    except ProcessSpawnError as e:
        raise SyncError(f"Cannot start rsync: {e}") from e
    if not adopt_process(session, process, "rsync"):
        return

    output: List[str] = []
    try:
        await drain_process(process, output.append, "rsync")
    except OutputStreamError as e:
        raise SyncError(f"Lost rsync output: {e}") from e
    exit_code = await process.wait()
    session.captured.extend(output)

    if session.cancelled:
        return
    if exit_code != 0:
        tail = " | ".join(line for line in output[-ERROR_TAIL_LINES:] if line.strip())
        raise SyncError(f"rsync exited with code {exit_code}" + (f": {tail}" if tail else ""))

    logger.info("Sync complete")
