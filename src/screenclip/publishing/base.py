from abc import ABC, abstractmethod


class ClipboardSink(ABC):
    """Writes plain text to the OS general-purpose clipboard."""

    name: str = "clipboard"

    @abstractmethod
    def write_text(self, text: str) -> None:
        """
        Replace the clipboard text content.

        Raises:
            ClipboardWriteError: If the write did not happen
        """


class NotificationSink(ABC):
    """Shows a transient desktop notification."""

    name: str = "notification"

    @abstractmethod
    def notify(self, title: str, message: str, sound: str = "") -> None:
        """
        Raises:
            NotificationError: If the notification could not be shown
        """
