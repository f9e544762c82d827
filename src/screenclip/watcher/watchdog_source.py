"""
watchdog-backed directory subscription.

watchdog picks the native primitive per platform (inotify, FSEvents/kqueue,
ReadDirectoryChangesW); PollingObserver is available for file systems where
those do not work (network mounts, some sync tools).
"""

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from ..models.events import FileEvent, FileEventKind
from .base import DirectoryWatchSource, EventCallback, LostCallback

logger = logging.getLogger(__name__)

OBSERVER_JOIN_TIMEOUT = 2.0


def _as_path(raw) -> Path:
    return Path(os.fsdecode(raw))


class ScreenshotEventHandler(FileSystemEventHandler):
    """
    Translates watchdog events for one directory into FileEvent values.

    Directory events are ignored, except the removal or move of the
    watched directory itself, which is reported through ``on_lost``.
    """

    def __init__(self, directory: Path, on_event: EventCallback, on_lost: LostCallback):
        super().__init__()
        self.directory = Path(os.path.abspath(directory))
        self.on_event = on_event
        self.on_lost = on_lost

    def _is_watched_root(self, raw) -> bool:
        return Path(os.path.abspath(_as_path(raw))) == self.directory

    def _is_direct_child(self, path: Path) -> bool:
        return Path(os.path.abspath(path)).parent == self.directory

    def _emit(self, path: Path, kind: FileEventKind) -> None:
        if not self._is_direct_child(path):
            return
        self.on_event(FileEvent(path=Path(os.path.abspath(path)), kind=kind))

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._emit(_as_path(event.src_path), FileEventKind.CREATED)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            if self._is_watched_root(event.src_path):
                self.on_lost(f"watched directory moved to {os.fsdecode(event.dest_path)}")
            return
        self._emit(_as_path(event.dest_path), FileEventKind.RENAMED)

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._emit(_as_path(event.src_path), FileEventKind.OTHER)

    def on_closed(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._emit(_as_path(event.src_path), FileEventKind.OTHER)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if self._is_watched_root(event.src_path):
            self.on_lost("watched directory deleted")


class WatchdogSource(DirectoryWatchSource):
    """
    DirectoryWatchSource on top of a watchdog observer.

    A fresh observer is created for every start(), since watchdog observer
    threads cannot be restarted once stopped.
    """

    def __init__(self, use_polling: bool = False,
                 observer_factory: Optional[Callable[[], BaseObserver]] = None):
        if observer_factory is None:
            observer_factory = PollingObserver if use_polling else Observer
        self._observer_factory = observer_factory
        self._observer: Optional[BaseObserver] = None
        self._lock = threading.Lock()

    def start(self, directory: Path, on_event: EventCallback, on_lost: LostCallback) -> None:
        if not directory.is_dir():
            raise FileNotFoundError(f"Watch directory does not exist: {directory}")

        with self._lock:
            if self._observer is not None:
                raise RuntimeError("Source is already started")

            handler = ScreenshotEventHandler(directory, on_event, on_lost)
            observer = self._observer_factory()
            observer.daemon = True
            observer.schedule(handler, str(directory), recursive=False)
            try:
                observer.start()
            except Exception as e:
                raise OSError(f"Cannot subscribe to {directory}: {e}") from e
            self._observer = observer
        logger.debug(f"{type(observer).__name__} subscribed to {directory}")

    def stop(self) -> None:
        with self._lock:
            observer = self._observer
            self._observer = None
        if observer is None:
            return
        try:
            observer.stop()
            observer.join(timeout=OBSERVER_JOIN_TIMEOUT)
        except RuntimeError as e:
            logger.debug(f"Observer stop: {e}")
        if observer.is_alive():
            logger.warning("Observer thread did not exit within timeout")

    def is_alive(self) -> bool:
        with self._lock:
            return self._observer is not None and self._observer.is_alive()
