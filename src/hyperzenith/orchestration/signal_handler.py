"""
Signal handling for running builds.

SIGINT / SIGTERM abort the active build of every registered engine. Since
signal handlers cannot be bound to instances directly, a registry of active
engines is kept at module level.
"""

import asyncio
import logging
import signal
import threading
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from .engine import BuildOrchestrationEngine

logger = logging.getLogger(__name__)

_active_engines: Dict[int, "BuildOrchestrationEngine"] = {}
_active_engines_lock = threading.Lock()
_engine_loops: Dict[int, asyncio.AbstractEventLoop] = {}
_signals_received: List[int] = []


class SignalHandler:
    """
    Installs process signal handlers that abort registered builds.

    Usable as a context manager around a build.
    """

    def __init__(self):
        self._original_sigint_handler = None
        self._original_sigterm_handler = None
        self._signal_handlers_set = False

    def __enter__(self) -> "SignalHandler":
        self.setup_signal_handlers()
        return self

    def __exit__(self, *exc_info) -> None:
        self.cleanup_signal_handlers()

    def setup_signal_handlers(self) -> None:
        try:
            self._original_sigint_handler = signal.signal(signal.SIGINT, self._global_signal_handler)
            self._original_sigterm_handler = signal.signal(signal.SIGTERM, self._global_signal_handler)
            self._signal_handlers_set = True
            _signals_received.clear()
            logger.debug("Signal handlers installed")
        except (ValueError, OSError) as e:
            # Not the main thread, or the platform refuses.
            logger.warning(f"Failed to set up signal handlers: {e}")

    def cleanup_signal_handlers(self) -> None:
        """Restore original signal handlers."""
        if not self._signal_handlers_set:
            return
        try:
            if self._original_sigint_handler is not None:
                signal.signal(signal.SIGINT, self._original_sigint_handler)
            if self._original_sigterm_handler is not None:
                signal.signal(signal.SIGTERM, self._original_sigterm_handler)
            logger.debug("Signal handlers restored")
        except (ValueError, OSError) as e:
            logger.warning(f"Failed to restore signal handlers: {e}")
        finally:
            self._signal_handlers_set = False

    @property
    def signal_received(self) -> Optional[int]:
        return _signals_received[-1] if _signals_received else None

    def register_engine(
        self,
        engine: "BuildOrchestrationEngine",
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """
        Register an engine whose active build is aborted on SIGINT / SIGTERM.

        With ``loop`` given, the abort is scheduled on that loop instead of
        running inside the signal handler.
        """
        with _active_engines_lock:
            _active_engines[id(engine)] = engine
            if loop is not None:
                _engine_loops[id(engine)] = loop
        logger.debug(f"Registered engine {id(engine)} for signal handling")

    def unregister_engine(self, engine: "BuildOrchestrationEngine") -> None:
        with _active_engines_lock:
            _active_engines.pop(id(engine), None)
            _engine_loops.pop(id(engine), None)
        logger.debug(f"Unregistered engine {id(engine)} from signal handling")

    @staticmethod
    def _global_signal_handler(signum: int, frame: Any) -> None:
        logger.warning(f"Signal {signum} received. Aborting active builds.")
        _signals_received.append(signum)
        with _active_engines_lock:
            targets = [(engine, _engine_loops.get(key)) for key, engine in _active_engines.items()]

        for engine, loop in targets:
            if loop is not None and not loop.is_closed():
                loop.call_soon_threadsafe(engine.abort)
            else:
                engine.abort()

