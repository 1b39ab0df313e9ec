"""
Single-flight session slot.

At most one build may run at a time. The slot is claimed with a
compare-and-swap: the lock only guards the swap itself and is never held
while a build runs, so cancel() is always responsive.
"""

import logging
import threading
from typing import Optional

from ..models.runtime import BuildSession
from ..system.processes import kill_process_tree
from ..validation import AlreadyRunningError

logger = logging.getLogger(__name__)


class SessionSlot:
    """Holds the one active BuildSession, if any."""

    def __init__(self):
        self._session: Optional[BuildSession] = None
        self._lock = threading.Lock()

    @property
    def current(self) -> Optional[BuildSession]:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session is not None

    def claim(self, session: BuildSession) -> BuildSession:
        """
        Install ``session`` if the slot is empty.

        Raises:
            AlreadyRunningError: If another session holds the slot
        """
        with self._lock:
            active = self._session
            if active is not None:
                raise AlreadyRunningError(
                    f"A {active.platform.value} build (session {active.session_id}) is already running"
                )
            self._session = session
        logger.debug(f"Session {session.session_id} claimed the build slot")
        return session

    def release(self, session: BuildSession) -> bool:
        """
        Empty the slot if it still holds ``session``.

        Releasing a session that no longer owns the slot is a no-op, so a
        late-finishing drain task can never evict its successor.
        """
        with self._lock:
            if self._session is not session:
                return False
            self._session = None
        logger.debug(f"Session {session.session_id} released the build slot")
        return True


def adopt_process(session: BuildSession, process, name: str) -> bool:
    """
    Attach a freshly spawned ``process`` to ``session``.

    A session cancelled while the spawn was in flight had no process for
    cancel() to kill, so the new tree is killed here instead.

    Returns:
        False if the session was already cancelled and the process killed
    """
    session.process = process
    if not session.cancelled:
        return True
    logger.info(f"Session {session.session_id} was cancelled during spawn, killing {name} (PID: {process.pid})")
    kill_process_tree(process.pid, name)
    return False
