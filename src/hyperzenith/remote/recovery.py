"""
Nuclear reset of the remote iOS build environment.

Clears every cache that can wedge an Xcode / CocoaPods / React Native build
and reinstalls pods. Steps are independent: a failed step is reported and
the sequence carries on.
"""

import logging
import shlex
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..executor.streams import drain_process
from ..models.build import RecoveryReport, RemoteTarget
from ..models.config import EngineConfig
from ..validation import OutputStreamError, ProcessSpawnError, RemoteExecutionError
from .ssh import auth_env, login_shell_command, spawn_client, ssh_argv, validate_remote_target

logger = logging.getLogger(__name__)

STEP_OK = "STEP_OK"
STEP_FAILED = "STEP_FAILED"
RESET_COMPLETE = "RESET_COMPLETE"

# (name, description, command). Commands run in a subshell with PROJECT set.
RESET_STEPS: List[Tuple[str, str, str]] = [
    ("kill_processes", "Killing Xcode processes",
     "killall Xcode xcodebuild CoreSimulatorBridge 2>/dev/null || true"),
    ("clean_project", "Cleaning project",
     'cd "$PROJECT/ios" && xcodebuild clean'),
    ("purge_derived_data", "Purging DerivedData",
     "rm -rf ~/Library/Developer/Xcode/DerivedData/*"),
    ("purge_cocoapods", "Purging CocoaPods caches",
     'rm -rf ~/Library/Caches/CocoaPods && cd "$PROJECT/ios" && rm -rf Pods Podfile.lock'),
    ("reset_simulators", "Resetting simulators",
     "xcrun simctl erase all"),
    ("clean_react_native_temp", "Cleaning React Native temp files",
     'rm -rf "${TMPDIR:-/tmp}"/react-* "${TMPDIR:-/tmp}"/metro-* && (watchman watch-del-all || true)'),
    ("reinstall_pods", "Re-hydrating pods",
     'cd "$PROJECT/ios" && pod install --repo-update'),
]


def reset_script(remote_project_path: str) -> str:
    """Build the step-by-step reset script; deliberately without ``set -e``."""
    lines = ["exec 2>&1", f"PROJECT={shlex.quote(remote_project_path.rstrip('/'))}"]
    for index, (name, description, command) in enumerate(RESET_STEPS, start=1):
        lines.append(f"echo 'Step {index}: {description}...'")
        lines.append(f"if ( {command} ); then echo '{STEP_OK} {name}'; else echo '{STEP_FAILED} {name}'; fi")
    lines.append(f"echo '{RESET_COMPLETE}'")
    return "\n".join(lines) + "\n"


def parse_step_line(line: str) -> Optional[Tuple[str, bool]]:
    """(step name, succeeded) for a step marker line, else None."""
    parts = line.strip().split()
    if len(parts) != 2:
        return None
    marker, name = parts
    if marker == STEP_OK:
        return name, True
    if marker == STEP_FAILED:
        return name, False
    return None


async def nuclear_reset(
    target: RemoteTarget,
    config: EngineConfig,
    on_line: Optional[Callable[[str], None]] = None,
) -> RecoveryReport:
    """
    Run the reset sequence on ``target``.

    Every output line, step markers included, goes to ``on_line``.

    Returns:
        RecoveryReport listing the steps that ran and the ones that failed

    Raises:
        ValidationError: If the target is incomplete
        RemoteExecutionError: If the sequence could not run to the end
    """
    validate_remote_target(target)
    report = RecoveryReport()
    completed = []

    def handle_line(line: str) -> None:
        step = parse_step_line(line)
        if step is not None:
            name, succeeded = step
            report.steps_run.append(name)
            if not succeeded:
                report.steps_failed.append(name)
                logger.warning(f"Recovery step '{name}' failed, continuing")
        elif line.strip() == RESET_COMPLETE:
            completed.append(True)
        if on_line is not None:
            on_line(line)

    argv = ssh_argv(target, login_shell_command(reset_script(target.remote_project_path)), config.ssh_connect_timeout)
    logger.info(f"Starting nuclear reset on {target.destination}")
    try:
        process = await spawn_client(argv, Path.home(), config, auth_env(target))
    except ProcessSpawnError as e:
        raise RemoteExecutionError(f"Cannot start ssh: {e}") from e

    try:
        await drain_process(process, handle_line, "recovery ssh")
    except OutputStreamError as e:
        raise RemoteExecutionError(f"Lost recovery output: {e}") from e
    exit_code = await process.wait()

    if not completed:
        raise RemoteExecutionError(
            f"Recovery sequence interrupted after {len(report.steps_run)} of {len(RESET_STEPS)} steps "
            f"(ssh exit code {exit_code})",
            exit_status=exit_code,
        )

    if report.clean:
        logger.info("Recovery sequence finished cleanly")
    else:
        logger.warning(f"Recovery sequence finished with failed steps: {', '.join(report.steps_failed)}")
    return report
