"""
Orchestration for screenclip.

The pipeline runs in a worker process; the supervisor keeps that worker
alive and owns the service state machine.
"""

from .pipeline import Pipeline, announce_ready, run_worker
from .process_manager import (
    SubprocessLauncher,
    SubprocessWorker,
    WorkerHandle,
    WorkerLauncher,
    kill_process_children,
    worker_command,
)
from .shared_state import (
    ALLOWED_TRANSITIONS,
    READY_LINE,
    ExitCodes,
    ServiceStateMachine,
    TimeoutConstants,
)
from .signal_handler import SignalHandler
from .status_store import StatusStore
from .supervisor import ServiceSupervisor, describe_exit, run_supervisor

__all__ = [
    "Pipeline",
    "announce_ready",
    "run_worker",
    "SubprocessLauncher",
    "SubprocessWorker",
    "WorkerHandle",
    "WorkerLauncher",
    "kill_process_children",
    "worker_command",
    "ALLOWED_TRANSITIONS",
    "READY_LINE",
    "ExitCodes",
    "ServiceStateMachine",
    "TimeoutConstants",
    "SignalHandler",
    "StatusStore",
    "ServiceSupervisor",
    "describe_exit",
    "run_supervisor",
]
