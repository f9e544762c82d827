"""
Clipboard publisher.

The only component with an externally visible side effect: writes the
absolute path of a settled file to the clipboard and raises a
notification. Failures are contained here and reported through
PublishResult so the next screenshot is still handled.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from ..models.config import ClipboardConfig, NotificationConfig, WatchConfig
from ..models.events import CandidateFile, PublishResult
from ..validation import (
    ClipboardWriteError,
    ErrorSeverity,
    NotificationError,
    handle_error,
)
from .base import ClipboardSink, NotificationSink

logger = logging.getLogger(__name__)

NOTIFICATION_TIMEOUT = 5.0


class ClipboardPublisher:
    """
    Publishes CandidateFile values one at a time.

    Sink calls run on a small thread pool so a hung clipboard helper is cut
    off by ``clipboard_config.timeout_seconds`` instead of stalling the
    event loop. A timed-out write is left to finish in its thread.
    """

    def __init__(
        self,
        clipboard: ClipboardSink,
        notifier: NotificationSink,
        watch_config: WatchConfig,
        clipboard_config: Optional[ClipboardConfig] = None,
        notification_config: Optional[NotificationConfig] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.clipboard = clipboard
        self.notifier = notifier
        self.watch_config = watch_config
        self.clipboard_config = clipboard_config or ClipboardConfig()
        self.notification_config = notification_config or NotificationConfig()

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="ScreenclipPublish"
        )
        # Serializes writes to the OS clipboard.
        self._write_lock = threading.Lock()

        self.published = 0
        self.failed = 0

    async def publish(self, candidate: CandidateFile) -> PublishResult:
        """
        Copy the candidate's absolute path and notify the user.

        Never raises for clipboard or notification failures.
        """
        path = candidate.path.absolute()
        text = str(path)
        loop = asyncio.get_running_loop()
        timeout = self.clipboard_config.timeout_seconds

        error_message: Optional[str] = None
        try:
            await asyncio.wait_for(
                loop.run_in_executor(self._executor, self._write, text),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            error_message = f"clipboard write timed out after {timeout}s"
        except ClipboardWriteError as e:
            error_message = str(e)
        except Exception as e:
            error_message = f"{type(e).__name__}: {e}"

        if error_message is not None:
            self.failed += 1
            handle_error(
                ClipboardWriteError(error_message),
                f"copying {path.name} to clipboard",
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger,
            )
            return PublishResult(path=path, succeeded=False, error_message=error_message)

        self.published += 1
        logger.info(f"Copied to clipboard: {text}")

        notified = False
        if self.watch_config.notification_enabled:
            notified = await self._notify(path.name)
        return PublishResult(path=path, succeeded=True, notified=notified)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def _write(self, text: str) -> None:
        with self._write_lock:
            self.clipboard.write_text(text)

    async def _notify(self, message: str) -> bool:
        config = self.notification_config
        sound = config.sound if config.sound_enabled else ""
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(
                loop.run_in_executor(
                    self._executor, self.notifier.notify, config.title, message, sound
                ),
                timeout=NOTIFICATION_TIMEOUT,
            )
        except asyncio.TimeoutError:
            logger.info("Notification timed out")
            return False
        except NotificationError as e:
            handle_error(e, "showing notification", severity=ErrorSeverity.INFO,
                         reraise=False, logger=logger)
            return False
        except Exception as e:
            handle_error(e, "showing notification", severity=ErrorSeverity.DEBUG,
                         reraise=False, logger=logger)
            return False
        return True
