"""
Event filter and debouncer.

Turns the noisy FileEvent stream into exactly one CandidateFile per
completed file. Rules, in order:

1. extension check (case-insensitive)
2. existence check
3. settle delay: the file's (size, mtime) must stay unchanged, with no new
   create or rename for it, for a full settle period; otherwise the timer
   restarts
4. deduplication against the paths already emitted in this process

Each in-flight path gets its own settle task, so different files settle
concurrently while events for the same file are serialized.
"""

import asyncio
import logging
import os
import stat as stat_module
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Set, Tuple

from ..models.config import WatchConfig
from ..models.events import CandidateFile, FileEvent, FileEventKind
from ..validation import ErrorSeverity, FileAccessError, handle_error, handle_file_error
from .dedup import DedupSet

logger = logging.getLogger(__name__)

Snapshot = Tuple[int, int]
EmitCallback = Callable[[CandidateFile], Awaitable[None]]


@dataclass
class _SettleState:
    snapshot: Snapshot
    # Set when another event for the path arrives during the wait.
    dirty: bool = False


@dataclass
class FilterStats:
    unrecognized: int = 0
    missing: int = 0
    duplicates: int = 0
    unsettled: int = 0
    access_errors: int = 0
    emitted: int = 0


class EventFilter:
    """
    Consumes FileEvent values and emits settled, unique CandidateFile values.
    """

    def __init__(
        self,
        config: WatchConfig,
        dedup: Optional[DedupSet] = None,
        stat: Callable[[Path], os.stat_result] = os.stat,
    ):
        self.config = config
        self.dedup = dedup if dedup is not None else DedupSet(config.dedup_capacity)
        self._stat = stat
        self._inflight: Dict[Path, _SettleState] = {}
        self._tasks: Set[asyncio.Task] = set()
        self.stats = FilterStats()

    @property
    def pending(self) -> int:
        """Number of paths currently waiting for their settle delay."""
        return len(self._inflight)

    async def run(self, events: AsyncIterator[FileEvent], emit: EmitCallback) -> None:
        """
        Process ``events`` until the stream ends or raises.

        Pending settle tasks are cancelled when the stream stops.
        """
        try:
            async for event in events:
                self.submit(event, emit)
        finally:
            await self.close()

    def submit(self, event: FileEvent, emit: EmitCallback) -> None:
        """Apply the filter rules to one event; may start a settle task."""
        path = event.path

        if not self.config.is_recognized(path):
            self.stats.unrecognized += 1
            logger.debug(f"Ignoring {path.name}: extension not recognized")
            return

        state = self._inflight.get(path)
        if state is not None:
            # Writes are caught by the (size, mtime) comparison; the modify
            # and close notifications of the creating write must not restart
            # the timer. A new create or rename means a different file.
            if event.kind is not FileEventKind.OTHER:
                state.dirty = True
            return

        # Modifications alone never make a file a candidate.
        if event.kind is FileEventKind.OTHER:
            return

        if path in self.dedup:
            self.stats.duplicates += 1
            logger.debug(f"Ignoring {path.name}: already published")
            return

        try:
            snapshot = self._snapshot(path)
        except FileAccessError as e:
            self.stats.access_errors += 1
            handle_file_error(e, f"inspecting {path}", severity=ErrorSeverity.WARNING,
                              reraise=False, logger=logger)
            return
        if snapshot is None:
            self.stats.missing += 1
            logger.debug(f"Ignoring {path.name}: no longer exists")
            return

        state = _SettleState(snapshot=snapshot)
        self._inflight[path] = state
        task = asyncio.create_task(
            self._settle(path, state, emit), name=f"settle:{path.name}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def close(self) -> None:
        """Cancel pending settle timers and wait for them to finish."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug(f"Cancelled {len(tasks)} pending settle timer(s)")
        self._inflight.clear()

    def _snapshot(self, path: Path) -> Optional[Snapshot]:
        """
        (size, mtime_ns) of a regular file, None if it is gone or not a file.

        Raises:
            FileAccessError: For any other stat failure
        """
        try:
            st = self._stat(path)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise FileAccessError(f"cannot stat {path}: {e}", path=path) from e
        if not stat_module.S_ISREG(st.st_mode):
            return None
        return st.st_size, st.st_mtime_ns

    async def _settle(self, path: Path, state: _SettleState, emit: EmitCallback) -> None:
        delay = self.config.settle_delay_seconds
        rounds = 0
        try:
            while True:
                await asyncio.sleep(delay)
                try:
                    current = self._snapshot(path)
                except FileAccessError as e:
                    self.stats.access_errors += 1
                    handle_file_error(e, f"settling {path}", severity=ErrorSeverity.WARNING,
                                      reraise=False, logger=logger)
                    return
                if current is None:
                    self.stats.missing += 1
                    logger.debug(f"{path.name} disappeared before settling")
                    return
                if current == state.snapshot and not state.dirty:
                    break

                rounds += 1
                if rounds >= self.config.max_settle_rounds:
                    self.stats.unsettled += 1
                    logger.warning(
                        f"Dropping {path}: still changing after {rounds} settle periods"
                    )
                    return
                state.snapshot = current
                state.dirty = False

            if not self.dedup.add_if_absent(path):
                self.stats.duplicates += 1
                return

            size, mtime_ns = state.snapshot
            candidate = CandidateFile(
                path=path,
                extension=path.suffix.lstrip(".").lower(),
                size=size,
                mtime_ns=mtime_ns,
            )
            self.stats.emitted += 1
            logger.info(f"New file ready: {path}")
            await emit(candidate)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            handle_error(e, f"settling {path}", severity=ErrorSeverity.ERROR,
                         reraise=False, logger=logger)
        finally:
            if self._inflight.get(path) is state:
                del self._inflight[path]
