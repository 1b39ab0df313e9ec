"""
System interaction utilities.

This module provides host-level functionality for the build engine:

- Hardware profiling (cores, RAM) and the worker/heap plan derived from it
- Launcher selection (direct or WSL) and command wrapping
- Forced process-tree termination
- Project detection and workspace scanning
"""

from .commands import (
    LaunchSpec,
    build_launch_spec,
    check_tool_available,
    gradle_wrapper_command,
    resolve_launcher,
    windows_to_wsl_path,
)
from .hardware import HardwareProfiler, calculate_profile
from .processes import kill_process_tree
from .projects import (
    ANDROID_PROJECT_MARKERS,
    REMOTE_PROJECT_MARKERS,
    is_android_project,
    scan_for_projects,
)

__all__ = [
    # Commands
    "LaunchSpec",
    "build_launch_spec",
    "check_tool_available",
    "gradle_wrapper_command",
    "resolve_launcher",
    "windows_to_wsl_path",
    # Hardware
    "HardwareProfiler",
    "calculate_profile",
    # Processes
    "kill_process_tree",
    # Projects
    "ANDROID_PROJECT_MARKERS",
    "REMOTE_PROJECT_MARKERS",
    "is_android_project",
    "scan_for_projects",
]
