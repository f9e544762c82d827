"""
Desktop notification backends.

Notifications are best effort: without a notification service the sink
degrades to logging the message.
"""

import logging
import os
import platform
import shutil
import subprocess
from typing import Callable, List, Mapping, Optional

from ..validation import NotificationError
from .base import NotificationSink

logger = logging.getLogger(__name__)

NOTIFY_TIMEOUT = 5.0
APP_NAME = "screenclip"

# AppleScript reading its values from argv, so no quoting is needed.
_OSASCRIPT_WITH_SOUND = [
    "-e", "on run argv",
    "-e", "display notification (item 2 of argv) with title (item 1 of argv) "
          "sound name (item 3 of argv)",
    "-e", "end run",
]
_OSASCRIPT_SILENT = [
    "-e", "on run argv",
    "-e", "display notification (item 2 of argv) with title (item 1 of argv)",
    "-e", "end run",
]


def _run_notifier(name: str, cmd: List[str]) -> None:
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=NOTIFY_TIMEOUT,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise NotificationError(f"{name} timed out") from e
    except FileNotFoundError as e:
        raise NotificationError(f"{name} not found") from e
    except OSError as e:
        raise NotificationError(f"{name} failed to start: {e}") from e

    if result.returncode != 0:
        raise NotificationError(f"{name} failed: {result.stderr.strip()}")


class OsascriptNotificationSink(NotificationSink):
    """macOS Notification Center through `osascript`."""

    name = "osascript"

    def notify(self, title: str, message: str, sound: str = "") -> None:
        if sound:
            cmd = ["osascript", *_OSASCRIPT_WITH_SOUND, title, message, sound]
        else:
            cmd = ["osascript", *_OSASCRIPT_SILENT, title, message]
        _run_notifier(self.name, cmd)
        logger.debug(f"Notification sent: {title}")


class NotifySendNotificationSink(NotificationSink):
    """freedesktop notifications through `notify-send`."""

    name = "notify-send"

    def __init__(self, expire_time_ms: int = 3000):
        self.expire_time_ms = expire_time_ms

    def notify(self, title: str, message: str, sound: str = "") -> None:
        cmd = [
            "notify-send",
            "--app-name", APP_NAME,
            "--urgency", "low",
            "--expire-time", str(self.expire_time_ms),
            title,
            message,
        ]
        _run_notifier(self.name, cmd)
        logger.debug(f"Notification sent: {title}")


class LogNotificationSink(NotificationSink):
    """Fallback that only logs."""

    name = "log"

    def notify(self, title: str, message: str, sound: str = "") -> None:
        logger.info(f"{title}: {message}")


def create_notification_sink(
    backend: str = "auto",
    system: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> NotificationSink:
    """
    Build the notification sink for a configured backend name.
    """
    system = system or platform.system()
    env = os.environ if environ is None else environ

    if backend == "osascript":
        return OsascriptNotificationSink()
    if backend == "notify-send":
        return NotifySendNotificationSink()
    if backend == "log":
        return LogNotificationSink()
    if backend != "auto":
        raise ValueError(f"Unknown notification backend: {backend}")

    if system == "Darwin" and which("osascript"):
        return OsascriptNotificationSink()
    has_session = any(
        env.get(var) for var in ("DBUS_SESSION_BUS_ADDRESS", "DISPLAY", "WAYLAND_DISPLAY")
    )
    if system == "Linux" and has_session and which("notify-send"):
        return NotifySendNotificationSink()

    logger.info("No desktop notification service found; notifications will be logged")
    return LogNotificationSink()
