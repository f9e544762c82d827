"""
Shared lifecycle structures for the orchestration module.

This module defines the service state machine, worker exit codes and the
timeout constants used by the supervisor and the pipeline worker.
"""

import logging
import threading
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from ..models.state import ServiceState

logger = logging.getLogger(__name__)

TransitionCallback = Callable[[ServiceState, ServiceState, str], None]

ALLOWED_TRANSITIONS: Dict[ServiceState, FrozenSet[ServiceState]] = {
    ServiceState.STOPPED: frozenset({ServiceState.STARTING}),
    ServiceState.STARTING: frozenset(
        {ServiceState.RUNNING, ServiceState.CRASH_BACKOFF, ServiceState.STOPPING}
    ),
    ServiceState.RUNNING: frozenset({ServiceState.CRASH_BACKOFF, ServiceState.STOPPING}),
    ServiceState.CRASH_BACKOFF: frozenset({ServiceState.STARTING, ServiceState.STOPPING}),
    ServiceState.STOPPING: frozenset({ServiceState.STOPPED}),
}


class ExitCodes:
    """
    Process exit codes of the CLI and the pipeline worker.
    """
    SUCCESS = 0
    CONFIGURATION_ERROR = 1
    ALREADY_INSTALLED = 2
    WATCH_LOST = 3


class TimeoutConstants:
    """
    Centralized timeout configuration.
    """
    # Time allowed for queued candidates to be published on shutdown.
    PUBLISH_DRAIN_TIMEOUT = 5.0
    # Wait after force-killing a worker before giving up on it.
    FORCE_KILL_WAIT = 2.0
    # A worker that closed stdout before READY gets this long to exit.
    WORKER_EXIT_GRACE = 1.0


# Line printed on the worker's stdout once the watcher is subscribed.
READY_LINE = "READY"


class ServiceStateMachine:
    """
    Owner of the ServiceState.

    Only the supervisor holds an instance; invalid transitions raise
    ValueError so lifecycle bugs surface immediately.
    """

    def __init__(self, on_transition: Optional[TransitionCallback] = None):
        self._state = ServiceState.STOPPED
        self._lock = threading.Lock()
        self._on_transition = on_transition
        self.history: List[Tuple[ServiceState, ServiceState, str]] = []

    @property
    def state(self) -> ServiceState:
        with self._lock:
            return self._state

    def can_transition(self, new_state: ServiceState) -> bool:
        with self._lock:
            return new_state in ALLOWED_TRANSITIONS[self._state]

    def transition(self, new_state: ServiceState, reason: str = "") -> None:
        with self._lock:
            old_state = self._state
            if new_state not in ALLOWED_TRANSITIONS[old_state]:
                raise ValueError(
                    f"Invalid service transition {old_state.value} -> {new_state.value}"
                )
            self._state = new_state
            self.history.append((old_state, new_state, reason))

        suffix = f" ({reason})" if reason else ""
        logger.info(f"Service state {old_state.value} -> {new_state.value}{suffix}")
        if self._on_transition is not None:
            self._on_transition(old_state, new_state, reason)
