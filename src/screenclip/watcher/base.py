"""
Abstract interface for OS file-system subscriptions.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable

from ..models.events import FileEvent

EventCallback = Callable[[FileEvent], None]
LostCallback = Callable[[str], None]


class DirectoryWatchSource(ABC):
    """
    A single OS-level subscription to one directory.

    Callbacks are invoked from the source's own thread. A source may be
    started again after stop(); each start() creates a fresh subscription.
    """

    @abstractmethod
    def start(self, directory: Path, on_event: EventCallback, on_lost: LostCallback) -> None:
        """
        Subscribe to create/rename/modify notifications in ``directory``.

        Raises:
            OSError: If the subscription cannot be established
        """

    @abstractmethod
    def stop(self) -> None:
        """Release the OS handle. Safe to call when not started."""

    @abstractmethod
    def is_alive(self) -> bool:
        """True while the subscription is delivering events."""
