"""
Values passed between the pipeline stages.

FileEvent (watcher) -> CandidateFile (filter) -> PublishResult (publisher).
None of these are persisted.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class FileEventKind(Enum):
    """Normalized kind of a raw file-system notification."""
    CREATED = "created"
    RENAMED = "renamed"
    OTHER = "other"


@dataclass(frozen=True)
class FileEvent:
    """One raw notification from the directory watcher."""

    path: Path
    kind: FileEventKind
    observed_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class CandidateFile:
    """
    A recognized file that has stopped changing and was not seen before.
    """

    path: Path
    extension: str
    # File state recorded at emission time.
    size: int = 0
    mtime_ns: int = 0


@dataclass(frozen=True)
class PublishResult:
    path: Path
    succeeded: bool
    error_message: Optional[str] = None
    notified: bool = False
