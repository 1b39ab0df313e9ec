"""
Orchestration of build requests.

Components:
- BuildOrchestrationEngine: entry point for profile, build, abort, archive,
  remote reset, prewarm and project scanning
- BuildHandle: output stream and result of one request
- SignalHandler: SIGINT / SIGTERM abort of registered engines
"""

from .engine import BuildHandle, BuildOrchestrationEngine, OutputSink
from .signal_handler import SignalHandler

__all__ = [
    "BuildHandle",
    "BuildOrchestrationEngine",
    "OutputSink",
    "SignalHandler",
]
