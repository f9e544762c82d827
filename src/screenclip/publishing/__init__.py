"""
Clipboard and notification publishing for the screenclip package.

ClipboardSink and NotificationSink are the platform seams; the factories
pick a backend for the running platform and session.
"""

from .base import ClipboardSink, NotificationSink
from .clipboard import (
    CommandClipboardSink,
    UnavailableClipboardSink,
    create_clipboard_sink,
    detect_clipboard_backend,
)
from .notifier import (
    LogNotificationSink,
    NotifySendNotificationSink,
    OsascriptNotificationSink,
    create_notification_sink,
)
from .publisher import ClipboardPublisher

__all__ = [
    "ClipboardSink",
    "NotificationSink",
    "CommandClipboardSink",
    "UnavailableClipboardSink",
    "create_clipboard_sink",
    "detect_clipboard_backend",
    "LogNotificationSink",
    "NotifySendNotificationSink",
    "OsascriptNotificationSink",
    "create_notification_sink",
    "ClipboardPublisher",
]
