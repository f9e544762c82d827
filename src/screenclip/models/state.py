"""
Service lifecycle models.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ServiceState(Enum):
    """Lifecycle states of the supervised pipeline."""
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    CRASH_BACKOFF = "crash_backoff"


@dataclass
class ServiceStatus:
    """
    Snapshot of the supervisor, written on every state transition so that
    `screenclip status` can report it from another process.
    """

    state: ServiceState = ServiceState.STOPPED
    supervisor_pid: Optional[int] = None
    worker_pid: Optional[int] = None
    restart_count: int = 0
    last_error: Optional[str] = None
    updated_at: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceStatus":
        return cls(
            state=ServiceState(data.get("state", ServiceState.STOPPED.value)),
            supervisor_pid=data.get("supervisor_pid"),
            worker_pid=data.get("worker_pid"),
            restart_count=int(data.get("restart_count", 0)),
            last_error=data.get("last_error"),
            updated_at=float(data.get("updated_at", 0.0)),
        )
