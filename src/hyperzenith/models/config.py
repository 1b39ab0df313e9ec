"""
Configuration data models.

This module contains the configuration structure for the engine, loaded
from `config.toml`. Every field has a default so the engine can run without
a configuration file.
"""

from dataclasses import dataclass, field
from typing import List

DEFAULT_SYNC_EXCLUDES = [
    "node_modules",
    ".git",
    "android",
    "ios/Pods",
    "ios/build",
    "ios/DerivedData",
    "ios/.xcode.env.local",
]


@dataclass
class EngineConfig:
    """
    Tunables for the build orchestration engine.
    """

    # [paths]
    # Directory (relative to the project root) that receives archived artifacts.
    managed_builds_dir: str = "hyperzenith_builds"
    # Directory (relative to the project root) that receives diagnostic logs.
    logs_dir: str = "hyperzenith_logs"

    # [output]
    # Maximum characters per streamed output line; the capture keeps full lines.
    max_line_length: int = 120
    # StreamReader buffer limit; longer lines are delivered in chunks.
    read_buffer_limit: int = 1024 * 1024

    # [progress]
    idle_increment: float = 0.08
    idle_cap: float = 95.0

    # [local]
    # "auto", "direct" or "wsl"
    launcher: str = "auto"
    # Exported as ANDROID_HOME when set.
    android_sdk_path: str = ""
    # An artifact modified within this window counts as freshly built.
    artifact_fresh_seconds: float = 120.0
    # Also keep a log of successful builds (failed builds are always logged).
    write_success_logs: bool = False

    # [remote]
    ssh_connect_timeout: int = 30
    rsync_timeout: int = 120
    simulator_name: str = "iPhone 15"
    sync_excludes: List[str] = field(default_factory=lambda: list(DEFAULT_SYNC_EXCLUDES))
    # Upper bound for the fire-and-forget remote kill command.
    cancel_timeout: float = 15.0
