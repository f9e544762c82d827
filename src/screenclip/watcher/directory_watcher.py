"""
Directory watcher: a live subscription exposed as an async event stream.

The watcher owns one DirectoryWatchSource for the process lifetime. Raw
notifications arrive on the source's thread and are handed to the event
loop through a bounded asyncio.Queue. When the subscription is lost (the
directory is removed, the observer thread dies) it is re-established with
exponential backoff; after the retry budget is spent the stream raises
WatchLostError.
"""

import asyncio
import logging
import os
import time
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional

from ..models.config import WatchConfig, WatcherConfig
from ..models.events import FileEvent, FileEventKind
from ..validation import ExponentialBackoff, WatchLostError
from .base import DirectoryWatchSource

logger = logging.getLogger(__name__)

# File systems with coarse timestamps can report an mtime slightly in the past.
MTIME_TOLERANCE_SECONDS = 1.0


class DirectoryWatcher:
    """
    Produces FileEvent values for one directory.

    Usage:
        watcher = DirectoryWatcher(watch_config, watcher_config, source)
        await watcher.start()
        async for event in watcher.events():
            ...
        watcher.close()
    """

    def __init__(
        self,
        watch_config: WatchConfig,
        watcher_config: WatcherConfig,
        source: DirectoryWatchSource,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.directory = watch_config.watch_directory
        self.watcher_config = watcher_config
        self.source = source
        self._clock = clock

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional["asyncio.Queue[FileEvent]"] = None
        self._lost: Optional[asyncio.Event] = None
        self._lost_reason: Optional[str] = None
        self._lost_at: Optional[float] = None
        self._last_healthy_at = time.time()
        self._closed = False
        self._started = False

        self.dropped_events = 0
        self.resubscriptions = 0

    async def start(self) -> None:
        """
        Establish the initial subscription.

        Raises:
            WatchLostError: If the directory cannot be subscribed to
            RuntimeError: If called twice or after close()
        """
        if self._closed:
            raise RuntimeError("DirectoryWatcher is closed and cannot be restarted")
        if self._started:
            raise RuntimeError("DirectoryWatcher already started")

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self.watcher_config.queue_size)
        self._lost = asyncio.Event()
        self._started = True

        try:
            self._subscribe()
        except OSError as e:
            raise WatchLostError(
                f"Cannot watch {self.directory}: {e}", directory=self.directory
            ) from e
        logger.info(f"Watching directory: {self.directory}")

    async def events(self) -> AsyncIterator[FileEvent]:
        """
        Infinite stream of FileEvent values; ends only after close().

        Raises:
            WatchLostError: When re-subscription fails max_retries times
        """
        if not self._started:
            raise RuntimeError("DirectoryWatcher.start() must be awaited first")

        interval = self.watcher_config.health_check_interval
        last_check = self._clock()

        while not self._closed:
            if self._lost.is_set() or self._clock() - last_check >= interval:
                last_check = self._clock()
                if not self._healthy():
                    for event in await self._resubscribe():
                        yield event
                    last_check = self._clock()
                    continue

            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=interval)
            except asyncio.TimeoutError:
                continue
            yield event

    def close(self) -> None:
        """Release the OS subscription. The stream ends and cannot restart."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        logger.info(f"Stopped watching {self.directory}")

    # --- subscription management ---

    def _subscribe(self) -> None:
        self.source.start(self.directory, self._on_source_event, self._on_source_lost)
        self._subscribed()

    def _subscribed(self) -> None:
        self._last_healthy_at = time.time()
        self._lost.clear()
        self._lost_reason = None

    def _unsubscribe(self) -> None:
        try:
            self.source.stop()
        except Exception as e:
            logger.warning(f"Error releasing watch on {self.directory}: {e}")

    def _healthy(self) -> bool:
        if self._lost.is_set():
            logger.warning(f"Watch on {self.directory} lost: {self._lost_reason}")
            return False
        if not self.source.is_alive():
            logger.warning(f"Watch source for {self.directory} stopped unexpectedly")
            return False
        if not self.directory.is_dir():
            logger.warning(f"Watch directory disappeared: {self.directory}")
            return False
        self._last_healthy_at = time.time()
        return True

    async def _resubscribe(self) -> List[FileEvent]:
        """
        Re-establish the subscription with exponential backoff.

        Returns:
            CREATED events for files that appeared while unsubscribed

        Raises:
            WatchLostError: If every attempt fails
        """
        # Files younger than the last healthy check may have been missed.
        lost_at = self._lost_at if self._lost_at is not None else self._last_healthy_at
        self._lost_at = None
        # Stopping an observer joins its thread; keep that off the loop.
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._unsubscribe)

        backoff = ExponentialBackoff(
            initial=self.watcher_config.retry_initial_ms / 1000.0,
            maximum=self.watcher_config.retry_max_ms / 1000.0,
            max_attempts=self.watcher_config.max_retries,
        )
        last_error: Optional[BaseException] = None

        while not backoff.exhausted:
            delay = backoff.next_delay()
            logger.info(
                f"Re-subscribing to {self.directory} in {delay:.1f}s "
                f"(attempt {backoff.attempts}/{self.watcher_config.max_retries})"
            )
            await asyncio.sleep(delay)
            if self._closed:
                return []
            try:
                await loop.run_in_executor(
                    None, self.source.start,
                    self.directory, self._on_source_event, self._on_source_lost,
                )
            except (OSError, RuntimeError) as e:
                last_error = e
                logger.debug(f"Re-subscription attempt failed: {e}")
                continue
            if self._closed:
                await loop.run_in_executor(None, self._unsubscribe)
                return []
            self._subscribed()

            self.resubscriptions += 1
            logger.info(f"Watch on {self.directory} re-established")
            return self._scan_since(lost_at)

        raise WatchLostError(
            f"Watch on {self.directory} lost after {backoff.attempts} attempts: {last_error}",
            directory=self.directory,
            attempts=backoff.attempts,
        )

    def _scan_since(self, since: float) -> List[FileEvent]:
        """Files modified at or after ``since`` (epoch seconds), as CREATED events."""
        events = []
        try:
            with os.scandir(self.directory) as entries:
                for entry in entries:
                    try:
                        if entry.is_file() and entry.stat().st_mtime >= since - MTIME_TOLERANCE_SECONDS:
                            events.append(
                                FileEvent(path=Path(entry.path), kind=FileEventKind.CREATED)
                            )
                    except OSError:
                        continue
        except OSError as e:
            logger.warning(f"Could not scan {self.directory} after re-subscription: {e}")
        if events:
            logger.info(f"Found {len(events)} file(s) created while the watch was down")
        return events

    # --- called from the source thread ---

    def _on_source_event(self, event: FileEvent) -> None:
        try:
            self._loop.call_soon_threadsafe(self._enqueue, event)
        except RuntimeError:
            # Event loop already closed during shutdown.
            pass

    def _on_source_lost(self, reason: str) -> None:
        try:
            self._loop.call_soon_threadsafe(self._mark_lost, reason)
        except RuntimeError:
            pass

    def _enqueue(self, event: FileEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped_events += 1
            logger.warning(f"Event queue full, dropping event for {event.path}")

    def _mark_lost(self, reason: str) -> None:
        if self._lost_at is None:
            self._lost_at = time.time()
        self._lost_reason = reason
        self._lost.set()
