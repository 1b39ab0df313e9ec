"""
Managed storage for build outputs.

Successful builds copy their binary into an archive directory under a
timestamped name, so earlier builds are never overwritten by later ones.
"""

import logging
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from ..models.build import ArchivedArtifact, BuildTarget
from ..validation import ArchiveIOError, handle_file_error, ErrorSeverity

logger = logging.getLogger(__name__)

ARTIFACT_EXTENSIONS = {".apk", ".aab", ".ipa", ".app"}

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

# Toolchain output locations, relative to the project root.
ANDROID_OUTPUTS = {
    BuildTarget.APK: Path("android/app/build/outputs/apk/debug/app-debug.apk"),
    BuildTarget.AAB: Path("android/app/build/outputs/bundle/debug/app-debug.aab"),
}

PathLike = Union[str, Path]


def build_output_path(project_root: PathLike, target: BuildTarget) -> Path:
    """Where the toolchain leaves the binary for ``target``."""
    try:
        return Path(project_root) / ANDROID_OUTPUTS[target]
    except KeyError:
        raise ValueError(f"No local build output for target '{target.value}'")


class ArtifactArchive:
    """
    Timestamped archive of build outputs.

    Args:
        managed_builds_dir: Default archive directory, relative to the project
        fresh_seconds: Outputs modified within this window count as fresh
    """

    def __init__(self, managed_builds_dir: str = "hyperzenith_builds", fresh_seconds: float = 120.0):
        self.managed_builds_dir = managed_builds_dir
        self.fresh_seconds = fresh_seconds

    def resolve_output_dir(self, project_root: PathLike, custom_root: Optional[PathLike] = None) -> Path:
        """
        Pick the archive directory.

        An existing ``custom_root`` is returned unmodified. Otherwise the
        default ``<project_root>/<managed_builds_dir>`` is created if absent.

        Raises:
            ArchiveIOError: If the default directory cannot be created
        """
        if custom_root:
            custom = Path(custom_root)
            if custom.is_dir():
                return custom
            logger.warning(f"Custom archive path {custom} does not exist, using the project default")

        default_dir = Path(project_root) / self.managed_builds_dir
        try:
            default_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchiveIOError(f"Cannot create archive directory {default_dir}: {e}") from e
        return default_dir

    def archive(
        self,
        source_path: PathLike,
        project_root: PathLike,
        custom_root: Optional[PathLike] = None,
        timestamp: Optional[str] = None,
    ) -> ArchivedArtifact:
        """
        Copy a build output into the archive as ``<stem>_<timestamp><suffix>``.

        Args:
            source_path: Binary produced by the toolchain
            project_root: Project the build ran in
            custom_root: Optional caller-chosen archive directory
            timestamp: Name suffix; defaults to the current time

        Returns:
            The ArchivedArtifact describing the copy

        Raises:
            ArchiveIOError: If the source is missing or the copy fails
        """
        source = Path(source_path)
        if not source.exists():
            raise ArchiveIOError(f"Build output not found: {source}")

        archive_root = self.resolve_output_dir(project_root, custom_root)
        stamp = timestamp or datetime.now().strftime(TIMESTAMP_FORMAT)
        final_path = self._unique_destination(archive_root, source, stamp)

        try:
            if source.is_dir():
                shutil.copytree(source, final_path)
            else:
                shutil.copy2(source, final_path)
        except OSError as e:
            raise ArchiveIOError(f"Failed to archive {source} to {final_path}: {e}") from e

        fresh = self._is_fresh(source)
        logger.info(f"Archived {'fresh' if fresh else 'cached'} artifact to {final_path}")
        return ArchivedArtifact(
            source_build_output=source,
            archive_root=archive_root,
            timestamp=stamp,
            final_path=final_path,
            fresh=fresh,
        )

    def clear(self, directory: PathLike) -> int:
        """
        Delete archived artifacts (.apk, .aab, .ipa, .app) from ``directory``.

        Other files are left alone. Individual delete failures are logged and
        skipped.

        Returns:
            Number of artifacts removed; 0 for a missing or empty directory

        Raises:
            ArchiveIOError: If the directory exists but cannot be read
        """
        target = Path(directory)
        if not target.exists():
            logger.info(f"Archive directory {target} does not exist, nothing to clear")
            return 0

        try:
            entries = list(target.iterdir())
        except OSError as e:
            raise ArchiveIOError(f"Failed to read archive {target}: {e}") from e

        removed = 0
        for entry in entries:
            if entry.suffix.lower() not in ARTIFACT_EXTENSIONS:
                logger.debug(f"Skipping non-artifact {entry.name}")
                continue
            try:
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
                removed += 1
            except OSError as e:
                handle_file_error(
                    error=e,
                    context=f"deleting archived artifact {entry}",
                    severity=ErrorSeverity.WARNING,
                    reraise=False,
                    logger=logger,
                )

        logger.info(f"Cleared {removed} artifact(s) from {target}")
        return removed

    def list_artifacts(self, directory: PathLike) -> List[Path]:
        """Archived artifacts in ``directory``, newest first."""
        target = Path(directory)
        if not target.is_dir():
            return []
        try:
            artifacts = [p for p in target.iterdir() if p.suffix.lower() in ARTIFACT_EXTENSIONS]
        except OSError as e:
            raise ArchiveIOError(f"Failed to read archive {target}: {e}") from e
        return sorted(artifacts, key=lambda p: p.stat().st_mtime, reverse=True)

    def _unique_destination(self, archive_root: Path, source: Path, stamp: str) -> Path:
        candidate = archive_root / f"{source.stem}_{stamp}{source.suffix}"
        counter = 1
        while candidate.exists():
            candidate = archive_root / f"{source.stem}_{stamp}_{counter}{source.suffix}"
            counter += 1
        return candidate

    def _is_fresh(self, source: Path) -> bool:
        try:
            age = time.time() - source.stat().st_mtime
        except OSError:
            return False
        return age < self.fresh_seconds
