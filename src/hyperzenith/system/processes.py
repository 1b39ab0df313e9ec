"""
Process tree termination.

Build tools fork daemons, compilers and workers; stopping only the direct
child leaves the rest running. These helpers kill the whole tree.
"""

import logging
import os
import signal
from typing import List

import psutil

logger = logging.getLogger(__name__)


def _is_process_alive(process: psutil.Process) -> bool:
    """Safely check if a process is still alive and not a zombie."""
    try:
        if not process.is_running():
            return False
        return process.status() not in (psutil.STATUS_ZOMBIE, psutil.STATUS_DEAD)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False


def _get_process_children(parent: psutil.Process) -> List[psutil.Process]:
    """Safely get all descendants of a process, handling race conditions."""
    try:
        return [child for child in parent.children(recursive=True) if _is_process_alive(child)]
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return []


def kill_process_tree(pid: int, name: str = "process") -> int:
    """
    Force-kill a process and all of its descendants.

    No graceful phase: build tools are not assumed to shut down cleanly.
    Signals are sent without waiting for the processes to exit, so this
    returns immediately; the caller's own wait() reaps the direct child.

    Args:
        pid: PID of the tree root
        name: Description used in log messages

    Returns:
        Number of processes that were signalled
    """
    if pid <= 0:
        logger.warning(f"Invalid PID {pid} for {name}, skipping termination")
        return 0

    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        logger.debug(f"{name} (PID: {pid}) already terminated")
        return 0
    except psutil.AccessDenied:
        logger.warning(f"Access denied to {name} (PID: {pid}), attempting direct kill")
        _force_kill_process(pid)
        return 1

    # Children first so the parent cannot respawn them.
    victims = _get_process_children(parent) + [parent]
    signalled = 0
    for process in victims:
        try:
            process.kill()
            signalled += 1
            logger.debug(f"Sent SIGKILL to PID {process.pid}")
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            logger.warning(f"Access denied killing PID {process.pid} ({name})")

    _cleanup_process_group(pid, name)
    logger.info(f"Killed {name} (PID: {pid}) and {max(0, signalled - 1)} descendants")
    return signalled


def _cleanup_process_group(pid: int, name: str) -> None:
    """Kill the process group led by ``pid``, if it started one."""
    if not hasattr(os, "killpg"):
        return
    try:
        os.killpg(pid, signal.SIGKILL)
        logger.debug(f"Sent SIGKILL to process group {pid} for {name}")
    except ProcessLookupError:
        pass
    except PermissionError:
        logger.debug(f"No permission to kill process group {pid}")


def _force_kill_process(pid: int) -> None:
    """Force kill a single process by PID as last resort."""
    try:
        os.kill(pid, signal.SIGKILL if hasattr(signal, "SIGKILL") else signal.SIGTERM)
        logger.warning(f"Force killed process PID {pid}")
    except ProcessLookupError:
        pass
    except OSError as e:
        logger.error(f"Failed to force kill PID {pid}: {e}")
