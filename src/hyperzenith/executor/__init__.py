"""
Local build execution.

This module provides the components that run the Android toolchain:

- GradleInvocation: the enumerated option set behind every Gradle command
- SessionSlot: the single-flight guard shared by all build paths
- ProcessSupervisor: spawn, drain, cancel and finalize one local build
"""

from .build_process import ProcessSupervisor
from .invocation import GRADLE_TASKS, GradleInvocation, build_invocation
from .session import SessionSlot, adopt_process
from .streams import decode_line, drain_lines, drain_process, truncate_line

__all__ = [
    "GRADLE_TASKS",
    "GradleInvocation",
    "ProcessSupervisor",
    "SessionSlot",
    "adopt_process",
    "build_invocation",
    "decode_line",
    "drain_lines",
    "drain_process",
    "truncate_line",
]
