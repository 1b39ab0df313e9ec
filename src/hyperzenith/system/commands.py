"""
Command launching utilities.

The Android toolchain runs either directly on the host or inside WSL (the
Windows virtualization subsystem). This module turns a toolchain argument
list into the concrete argv, working directory and environment for the
selected launcher.
"""

import logging
import os
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path, PureWindowsPath
from typing import Dict, List, Optional, Sequence

from ..validation import ProcessSpawnError

logger = logging.getLogger(__name__)


@dataclass
class LaunchSpec:
    """Everything needed to spawn one command."""

    argv: List[str]
    cwd: Path
    env: Dict[str, str] = field(default_factory=dict)
    launcher: str = "direct"


def resolve_launcher(launcher: str) -> str:
    """Resolve 'auto' to 'wsl' on Windows and 'direct' elsewhere."""
    launcher = launcher.lower()
    if launcher == "auto":
        return "wsl" if sys.platform == "win32" else "direct"
    return launcher


def windows_to_wsl_path(win_path: str) -> str:
    """Convert a Windows path to its WSL mount path (any drive letter).

    Examples:
        >>> windows_to_wsl_path("C:\\\\Users\\\\Game")
        '/mnt/c/Users/Game'
        >>> windows_to_wsl_path("D:/Projects/App")
        '/mnt/d/Projects/App'
    """
    if len(win_path) >= 2 and win_path[1] == ":":
        drive = win_path[0].lower()
        rest = win_path[2:].replace("\\", "/")
        return f"/mnt/{drive}{rest}"
    return win_path.replace("\\", "/")


def check_tool_available(name: str) -> bool:
    """Check if an executable is on PATH."""
    return shutil.which(name) is not None


def gradle_wrapper_command(android_dir: Path, launcher: str) -> List[str]:
    """
    Return the argv head that runs the Gradle wrapper of ``android_dir``.

    Raises:
        ProcessSpawnError: If the project ships no Gradle wrapper
    """
    if launcher == "direct" and sys.platform == "win32":
        if not (android_dir / "gradlew.bat").exists():
            raise ProcessSpawnError(f"Gradle wrapper not found: {android_dir / 'gradlew.bat'}")
        return ["cmd", "/c", "gradlew.bat"]

    if not (android_dir / "gradlew").exists():
        raise ProcessSpawnError(f"Gradle wrapper not found: {android_dir / 'gradlew'}")
    # Through sh so a wrapper checked out without its executable bit still runs.
    return ["sh", "./gradlew"]


def build_launch_spec(
    command: Sequence[str],
    cwd: Path,
    launcher: str,
    env_overrides: Optional[Dict[str, str]] = None,
) -> LaunchSpec:
    """
    Wrap ``command`` for the selected launcher.

    Args:
        command: Toolchain argv, valid inside the target environment
        cwd: Host working directory
        launcher: "direct" or "wsl" (already resolved)
        env_overrides: Variables the toolchain must see

    Returns:
        LaunchSpec ready for asyncio.create_subprocess_exec

    Raises:
        ProcessSpawnError: If the launcher itself is unavailable
    """
    overrides = dict(env_overrides or {})
    env = os.environ.copy()

    if launcher == "direct":
        env.update(overrides)
        return LaunchSpec(argv=list(command), cwd=cwd, env=env, launcher=launcher)

    if launcher == "wsl":
        if not check_tool_available("wsl"):
            raise ProcessSpawnError(
                "WSL is not available on this host; install it or set engine.local.launcher = \"direct\""
            )
        cwd_str = str(PureWindowsPath(cwd)) if sys.platform == "win32" else str(cwd)
        argv = ["wsl", "--cd", windows_to_wsl_path(cwd_str), "-e", *command]
        if overrides:
            # Only variables named in WSLENV cross into WSL. Values stay out of argv.
            env.update(overrides)
            shared = [name for name in env.get("WSLENV", "").split(":") if name]
            shared.extend(key for key in overrides if key not in shared)
            env["WSLENV"] = ":".join(shared)
        return LaunchSpec(argv=argv, cwd=cwd, env=env, launcher=launcher)

    raise ProcessSpawnError(f"Unknown launcher: {launcher}")
