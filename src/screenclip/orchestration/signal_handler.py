"""
Signal handling for the orchestration module.

Routes SIGINT/SIGTERM (and SIGHUP where available) to a stop callback on
the running event loop, and restores the previous handlers afterwards.
"""

import asyncio
import logging
import signal
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


def _shutdown_signals() -> List[signal.Signals]:
    signals = [signal.SIGINT, signal.SIGTERM]
    if hasattr(signal, "SIGHUP"):
        signals.append(signal.SIGHUP)
    return signals


class SignalHandler:
    """
    Installs shutdown signal handlers that call ``stop_callback`` once.
    """

    def __init__(self, stop_callback: Callable[[], None]):
        self.stop_callback = stop_callback
        self._loop: Any = None
        self._uses_loop_handlers = False
        self._original_handlers: Dict[signal.Signals, Any] = {}
        self._signal_handlers_set = False
        self.received: List[int] = []

    def setup_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set up signal handlers on ``loop``."""
        self._loop = loop
        try:
            for sig in _shutdown_signals():
                loop.add_signal_handler(sig, self._handle, sig)
            self._uses_loop_handlers = True
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support add_signal_handler.
            for sig in _shutdown_signals():
                try:
                    self._original_handlers[sig] = signal.signal(sig, self._sync_handler)
                except (OSError, ValueError) as e:
                    logger.warning(f"Failed to set up handler for {sig.name}: {e}")
        self._signal_handlers_set = True
        logger.debug("Signal handlers set up")

    def cleanup_signal_handlers(self) -> None:
        """Restore original signal handlers."""
        if not self._signal_handlers_set:
            return
        try:
            if self._uses_loop_handlers:
                for sig in _shutdown_signals():
                    self._loop.remove_signal_handler(sig)
            for sig, handler in self._original_handlers.items():
                signal.signal(sig, handler)
            logger.debug("Signal handlers restored")
        except Exception as e:
            logger.warning(f"Failed to restore signal handlers: {e}")
        finally:
            self._original_handlers.clear()
            self._uses_loop_handlers = False
            self._signal_handlers_set = False

    def _handle(self, signum: int) -> None:
        self.received.append(int(signum))
        if len(self.received) > 1:
            logger.warning("Shutdown already in progress. Please be patient.")
            return
        logger.info(f"Signal {signal.Signals(signum).name} received. Initiating graceful shutdown...")
        self.stop_callback()

    def _sync_handler(self, signum: int, frame: Any) -> None:
        self._loop.call_soon_threadsafe(self._handle, signum)
