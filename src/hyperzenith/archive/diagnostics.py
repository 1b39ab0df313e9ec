"""
Diagnostic build logs.

A failed build persists its full, untruncated output together with a short
header, so the failure can be inspected after the live stream is gone.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..models.build import Platform
from ..models.runtime import BuildSession
from ..validation import handle_file_error, ErrorSeverity

logger = logging.getLogger(__name__)

LOG_PREFIXES = {
    Platform.LOCAL: "android",
    Platform.REMOTE: "ios",
}

PathLike = Union[str, Path]


class DiagnosticLogManager:
    """
    Writes diagnostic logs into ``<project>/<logs_dir>``.

    Args:
        logs_dir: Directory name, relative to the project root
        write_success_logs: Also persist the output of successful builds
    """

    def __init__(self, logs_dir: str = "hyperzenith_logs", write_success_logs: bool = False):
        self.logs_dir = logs_dir
        self.write_success_logs = write_success_logs

    def log_path(self, project_root: PathLike, session: BuildSession, outcome: str = "fail") -> Path:
        prefix = LOG_PREFIXES[session.platform]
        return Path(project_root) / self.logs_dir / f"{prefix}_build_{outcome}_{session.timestamp}.log"

    def write_failure_log(
        self,
        project_root: PathLike,
        session: BuildSession,
        exit_code: Optional[int],
        reason: str = "",
    ) -> Optional[Path]:
        """
        Persist the session's full output after a failed build.

        Returns:
            Path of the written log, or None if it could not be written
        """
        return self._write(project_root, session, "fail", exit_code, reason)

    def write_success_log(self, project_root: PathLike, session: BuildSession) -> Optional[Path]:
        if not self.write_success_logs:
            return None
        return self._write(project_root, session, "success", 0, "")

    def _write(
        self,
        project_root: PathLike,
        session: BuildSession,
        outcome: str,
        exit_code: Optional[int],
        reason: str,
    ) -> Optional[Path]:
        path = self.log_path(project_root, session, outcome)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as log_file:
                log_file.write("--- HyperZenith Build Log ---\n")
                log_file.write(f"Session: {session.session_id}\n")
                log_file.write(f"Platform: {session.platform.value}\n")
                log_file.write(f"Target: {session.request.target.value}\n")
                log_file.write(f"Project: {session.request.working_dir}\n")
                log_file.write(f"Turbo: {session.request.turbo}\n")
                log_file.write(f"Exit Code: {exit_code if exit_code is not None else 'n/a'}\n")
                log_file.write(f"Duration: {session.elapsed_seconds:.1f}s\n")
                if reason:
                    log_file.write(f"Reason: {reason}\n")
                log_file.write("\n--- OUTPUT ---\n")
                log_file.write(session.full_output)
        except OSError as e:
            handle_file_error(
                error=e,
                context=f"writing diagnostic log {path}",
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger,
            )
            return None

        logger.info(f"Diagnostic log written to {path}")
        return path
