"""
Data models for the screenshot watcher.

Configuration Models:
- WatchConfig produced by the path resolver
- Watcher, clipboard, notification, supervisor and logging sections
- AppConfig aggregating all of them

Pipeline Values:
- FileEvent emitted by the directory watcher
- CandidateFile emitted by the event filter
- PublishResult returned by the clipboard publisher

Lifecycle Models:
- ServiceState and the ServiceStatus snapshot owned by the supervisor
"""

from .config import (
    DEFAULT_EXTENSIONS,
    AppConfig,
    ClipboardConfig,
    LoggingConfig,
    NotificationConfig,
    SupervisorConfig,
    WatchConfig,
    WatcherConfig,
)
from .events import CandidateFile, FileEvent, FileEventKind, PublishResult
from .state import ServiceState, ServiceStatus

__all__ = [
    # Configuration
    "DEFAULT_EXTENSIONS",
    "AppConfig",
    "ClipboardConfig",
    "LoggingConfig",
    "NotificationConfig",
    "SupervisorConfig",
    "WatchConfig",
    "WatcherConfig",
    # Pipeline values
    "CandidateFile",
    "FileEvent",
    "FileEventKind",
    "PublishResult",
    # Lifecycle
    "ServiceState",
    "ServiceStatus",
]
