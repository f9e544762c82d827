"""
Directory watching for the screenclip package.

DirectoryWatchSource is the platform seam; WatchdogSource implements it
with the watchdog library, and DirectoryWatcher turns it into an async
stream of FileEvent values with automatic re-subscription.
"""

from .base import DirectoryWatchSource
from .directory_watcher import DirectoryWatcher
from .watchdog_source import ScreenshotEventHandler, WatchdogSource

__all__ = [
    "DirectoryWatchSource",
    "DirectoryWatcher",
    "ScreenshotEventHandler",
    "WatchdogSource",
]
