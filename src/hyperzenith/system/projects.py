"""
Project detection.

Knows what a buildable project looks like on disk and can search a few
likely roots for them.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

ANDROID_PROJECT_MARKERS = [
    "android/build.gradle",
    "android/build.gradle.kts",
    "android/settings.gradle",
    "android/settings.gradle.kts",
]

# A remote (iOS) build only needs something worth mirroring.
REMOTE_PROJECT_MARKERS = [
    "ios",
    "package.json",
]

MAX_SCAN_DEPTH = 3


def is_android_project(path: Path) -> bool:
    """True if ``path`` holds an Android Gradle project under android/."""
    return any((path / marker).exists() for marker in ANDROID_PROJECT_MARKERS)


def default_scan_roots() -> List[Path]:
    """Common workspace locations under the user's home directory."""
    home = Path.home()
    roots = [home / "Documents", home / "Projects", home / "src"]
    return [root for root in roots if root.is_dir()]


def scan_for_projects(
    start_path: Optional[Path] = None,
    extra_roots: Optional[Iterable[Path]] = None,
    max_depth: int = MAX_SCAN_DEPTH,
) -> List[Path]:
    """
    Find Android project roots.

    Scans ``start_path``, its parent and ``extra_roots`` (default:
    default_scan_roots()) up to ``max_depth`` levels deep without following
    symlinks. Unreadable directories are skipped.

    Returns:
        Sorted, de-duplicated list of project roots
    """
    roots: List[Path] = []
    if start_path is not None:
        start = Path(start_path).expanduser()
        if start.exists():
            roots.append(start)
            roots.append(start.parent)
    roots.extend(Path(root) for root in (extra_roots if extra_roots is not None else default_scan_roots()))

    found = set()
    for root in roots:
        if not root.is_dir():
            continue
        root_depth = len(root.resolve().parts)
        for dirpath, dirnames, _ in os.walk(root, followlinks=False, onerror=lambda e: logger.debug(f"Skipping {e}")):
            current = Path(dirpath)
            if is_android_project(current):
                found.add(current.resolve())
            if len(current.resolve().parts) - root_depth >= max_depth:
                dirnames[:] = []
                continue
            # Never descend into heavy dependency or VCS trees.
            dirnames[:] = [d for d in dirnames if d not in ("node_modules", ".git", ".gradle", "build")]

    logger.info(f"Project scan found {len(found)} project(s) under {len(roots)} root(s)")
    return sorted(found)
