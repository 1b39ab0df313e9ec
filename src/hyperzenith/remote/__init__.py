"""
Remote build host support.

- ssh / rsync command construction with key or password credentials
- Project synchronization (SYNCING phase)
- RemoteSatelliteOrchestrator: sync, pre-flight, build, cancel
- nuclear_reset: step-by-step recovery of the remote build environment
"""

from .recovery import RESET_STEPS, nuclear_reset, reset_script
from .satellite import (
    FAILURE_SENTINEL,
    SUCCESS_SENTINEL,
    RemoteSatelliteOrchestrator,
    build_script,
    parse_sentinel,
    xcode_destination,
)
from .ssh import remote_shell, ssh_argv, ssh_options, validate_remote_target
from .sync import rsync_argv, sync_project

__all__ = [
    "FAILURE_SENTINEL",
    "RESET_STEPS",
    "SUCCESS_SENTINEL",
    "RemoteSatelliteOrchestrator",
    "build_script",
    "nuclear_reset",
    "parse_sentinel",
    "remote_shell",
    "reset_script",
    "rsync_argv",
    "ssh_argv",
    "ssh_options",
    "sync_project",
    "validate_remote_target",
    "xcode_destination",
]
