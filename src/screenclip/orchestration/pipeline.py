"""
The screenshot pipeline: DirectoryWatcher -> EventFilter -> ClipboardPublisher.

A Pipeline runs inside the worker process. It publishes candidates one at
a time in arrival order and, on shutdown, lets candidates that already
settled finish publishing before the watcher's resources are gone.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..filtering import EventFilter
from ..models.config import AppConfig
from ..models.events import PublishResult
from ..publishing import (
    ClipboardPublisher,
    ClipboardSink,
    NotificationSink,
    create_clipboard_sink,
    create_notification_sink,
)
from ..validation import ErrorSeverity, WatchLostError, handle_error
from ..watcher import DirectoryWatcher, DirectoryWatchSource, WatchdogSource
from .shared_state import READY_LINE, ExitCodes, TimeoutConstants
from .signal_handler import SignalHandler

logger = logging.getLogger(__name__)

ResultCallback = Callable[[PublishResult], None]

_STOP = object()


class Pipeline:
    """
    Wires the three pipeline stages together for one watched directory.
    """

    def __init__(
        self,
        config: AppConfig,
        source: Optional[DirectoryWatchSource] = None,
        clipboard: Optional[ClipboardSink] = None,
        notifier: Optional[NotificationSink] = None,
        on_result: Optional[ResultCallback] = None,
    ):
        self.config = config
        if source is None:
            source = WatchdogSource(use_polling=config.watcher.use_polling)
        if clipboard is None:
            clipboard = create_clipboard_sink(
                config.clipboard.backend, timeout=config.clipboard.timeout_seconds
            )
        if notifier is None:
            notifier = create_notification_sink(config.notification.backend)

        self.watcher = DirectoryWatcher(config.watch, config.watcher, source)
        self.event_filter = EventFilter(config.watch)
        self.publisher = ClipboardPublisher(
            clipboard, notifier, config.watch, config.clipboard, config.notification
        )
        self.on_result = on_result

    async def run(
        self,
        stop_event: asyncio.Event,
        on_ready: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Run until ``stop_event`` is set.

        Raises:
            WatchLostError: If the directory cannot be watched or the
                subscription is lost for good
        """
        try:
            await self.watcher.start()
        except WatchLostError:
            self.watcher.close()
            self.publisher.close()
            raise

        candidates: "asyncio.Queue[object]" = asyncio.Queue()
        filter_task = asyncio.create_task(
            self.event_filter.run(self.watcher.events(), candidates.put),
            name="event-filter",
        )
        publish_task = asyncio.create_task(self._publish_loop(candidates), name="publisher")
        stop_task = asyncio.create_task(stop_event.wait(), name="stop-wait")

        if on_ready is not None:
            on_ready()
        logger.info("Pipeline running")

        try:
            await asyncio.wait(
                {filter_task, publish_task, stop_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            filter_finished = filter_task.done()
            self.watcher.close()
            for task in (filter_task, stop_task):
                task.cancel()
            await asyncio.gather(filter_task, stop_task, return_exceptions=True)
            await self._drain(candidates, publish_task)
            self.publisher.close()
            logger.info(
                f"Pipeline stopped: {self.publisher.published} published, "
                f"{self.publisher.failed} failed"
            )

        if filter_finished and not filter_task.cancelled():
            error = filter_task.exception()
            if error is not None:
                raise error
        if publish_task.done() and not publish_task.cancelled():
            error = publish_task.exception()
            if error is not None:
                raise error

    async def _publish_loop(self, candidates: "asyncio.Queue[object]") -> None:
        while True:
            item = await candidates.get()
            if item is _STOP:
                return
            result = await self.publisher.publish(item)
            if self.on_result is not None:
                self.on_result(result)

    async def _drain(self, candidates: "asyncio.Queue[object]", publish_task: asyncio.Task) -> None:
        if publish_task.done():
            return
        candidates.put_nowait(_STOP)
        try:
            await asyncio.wait_for(publish_task, timeout=TimeoutConstants.PUBLISH_DRAIN_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(
                f"Publishing did not finish within {TimeoutConstants.PUBLISH_DRAIN_TIMEOUT}s "
                "of shutdown; remaining candidates dropped"
            )
        except Exception:
            # Surfaced by run() through the task's exception.
            pass


def announce_ready() -> None:
    print(READY_LINE, flush=True)


async def run_worker(
    config: AppConfig,
    on_ready: Optional[Callable[[], None]] = None,
    pipeline: Optional[Pipeline] = None,
) -> int:
    """
    Worker entry point: run the pipeline until SIGTERM/SIGINT.

    Returns:
        ExitCodes.SUCCESS on a requested stop, ExitCodes.WATCH_LOST when the
        watched directory could not be kept under observation.
    """
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    signal_handler = SignalHandler(stop_event.set)
    signal_handler.setup_signal_handlers(loop)

    try:
        pipeline = pipeline or Pipeline(config)
        await pipeline.run(stop_event, on_ready=on_ready or announce_ready)
    except WatchLostError as e:
        handle_error(e, "watching for screenshots", severity=ErrorSeverity.ERROR,
                     reraise=False, logger=logger)
        return ExitCodes.WATCH_LOST
    finally:
        signal_handler.cleanup_signal_handlers()
    return ExitCodes.SUCCESS
