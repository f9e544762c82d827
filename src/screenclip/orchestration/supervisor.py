"""
Service supervisor.

Keeps the pipeline worker running: starts it, waits for its readiness
line, restarts it with exponential backoff when it dies and stops it
gracefully (then forcibly) on request. Every state transition is written
to the status file so `screenclip status` can report it.
"""

import asyncio
import logging
import os
import time
from typing import Any, Awaitable, Callable, Optional

from ..models.config import AppConfig
from ..models.state import ServiceState, ServiceStatus
from ..validation import ErrorSeverity, ExponentialBackoff, handle_error
from .process_manager import SubprocessLauncher, WorkerHandle, WorkerLauncher, worker_command
from .shared_state import ExitCodes, ServiceStateMachine, TimeoutConstants
from .signal_handler import SignalHandler
from .status_store import StatusStore

logger = logging.getLogger(__name__)

_STOPPED = object()


def describe_exit(code: Optional[int]) -> str:
    if code == ExitCodes.CONFIGURATION_ERROR:
        return "worker exited: configuration error"
    if code == ExitCodes.WATCH_LOST:
        return "worker exited: watched directory lost"
    if code is not None and code < 0:
        return f"worker killed by signal {-code}"
    return f"worker exited with code {code}"


class ServiceSupervisor:
    """
    Supervises one pipeline worker process.

    Usage:
        supervisor = ServiceSupervisor(config)
        exit_code = await supervisor.run()   # until request_stop()
    """

    def __init__(
        self,
        config: AppConfig,
        launcher: Optional[WorkerLauncher] = None,
        status_store: Optional[StatusStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        policy = config.supervisor
        self.launcher = launcher or SubprocessLauncher(worker_command(config.source_path))
        self.status_store = status_store or StatusStore(policy.status_file)
        self.backoff = ExponentialBackoff(
            policy.backoff_initial_seconds, policy.backoff_max_seconds
        )
        self.status = ServiceStatus(supervisor_pid=os.getpid())
        self.state_machine = ServiceStateMachine(on_transition=self._on_transition)
        self.worker: Optional[WorkerHandle] = None
        self._clock = clock
        self._stop_event: Optional[asyncio.Event] = None
        self._stop_requested = False

    @property
    def state(self) -> ServiceState:
        return self.state_machine.state

    def request_stop(self) -> None:
        """Ask run() to stop the worker and return. Safe to call repeatedly."""
        self._stop_requested = True
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self) -> int:
        self._stop_event = asyncio.Event()
        if self._stop_requested:
            self._stop_event.set()

        try:
            while not self._stop_event.is_set():
                self.state_machine.transition(ServiceState.STARTING)
                delay = await self._run_worker_once()
                if delay is None:
                    break
                self.state_machine.transition(
                    ServiceState.CRASH_BACKOFF, self.status.last_error or ""
                )
                logger.info(f"Restarting worker in {delay:.1f}s")
                if await self._sleep_or_stop(delay):
                    break
                self.status.restart_count += 1
        finally:
            await self._shutdown()
        return ExitCodes.SUCCESS

    async def _run_worker_once(self) -> Optional[float]:
        """
        Start a worker and wait for it to end.

        Returns:
            Delay before the next start, or None when a stop was requested.
        """
        policy = self.config.supervisor
        try:
            worker = await self.launcher.launch()
        except OSError as e:
            self.status.last_error = f"could not start worker: {e}"
            handle_error(e, "starting worker", severity=ErrorSeverity.ERROR,
                         reraise=False, logger=logger)
            return self._restart_delay(None)

        self.worker = worker
        self.status.worker_pid = worker.pid

        ready = await self._wait_or_stop(worker.wait_ready(policy.startup_timeout_seconds))
        if ready is _STOPPED:
            return None
        if not ready:
            try:
                code = await asyncio.wait_for(
                    worker.wait(), timeout=TimeoutConstants.WORKER_EXIT_GRACE
                )
                self.status.last_error = describe_exit(code)
            except asyncio.TimeoutError:
                code = await worker.terminate(policy.stop_timeout_seconds)
                self.status.last_error = (
                    f"worker not ready within {policy.startup_timeout_seconds}s"
                )
            logger.warning(f"Worker failed to start: {self.status.last_error}")
            self._forget_worker()
            return self._restart_delay(code)

        self.state_machine.transition(ServiceState.RUNNING)
        started_at = self._clock()

        code = await self._wait_or_stop(worker.wait())
        if code is _STOPPED:
            return None

        if self._clock() - started_at >= policy.stable_after_seconds:
            self.backoff.reset()
        self.status.last_error = describe_exit(code)
        logger.warning(f"Worker (PID: {worker.pid}) stopped unexpectedly: {self.status.last_error}")
        self._forget_worker()
        return self._restart_delay(code)

    def _restart_delay(self, code: Optional[int]) -> float:
        delay = self.backoff.next_delay()
        if code == ExitCodes.WATCH_LOST:
            delay = max(delay, self.config.supervisor.watch_lost_cooldown_seconds)
        return delay

    def _forget_worker(self) -> None:
        self.worker = None
        self.status.worker_pid = None

    async def _wait_or_stop(self, awaitable: Awaitable[Any]) -> Any:
        task = asyncio.ensure_future(awaitable)
        stop_task = asyncio.create_task(self._stop_event.wait())
        try:
            await asyncio.wait({task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()
        if task.done():
            return task.result()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return _STOPPED

    async def _sleep_or_stop(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds; True if a stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    async def _shutdown(self) -> None:
        if self.state is ServiceState.STOPPED:
            self.status.updated_at = time.time()
            self.status_store.write(self.status)
            return

        self.state_machine.transition(ServiceState.STOPPING)
        worker = self.worker
        if worker is not None and worker.returncode is None:
            code = await worker.terminate(self.config.supervisor.stop_timeout_seconds)
            logger.info(f"Worker (PID: {worker.pid}) stopped with code {code}")
        self._forget_worker()
        self.state_machine.transition(ServiceState.STOPPED)

    def _on_transition(self, old: ServiceState, new: ServiceState, reason: str) -> None:
        self.status.state = new
        self.status.updated_at = time.time()
        self.status_store.write(self.status)


async def run_supervisor(config: AppConfig, supervisor: Optional[ServiceSupervisor] = None) -> int:
    """Run a supervisor until SIGTERM/SIGINT."""
    supervisor = supervisor or ServiceSupervisor(config)
    signal_handler = SignalHandler(supervisor.request_stop)
    signal_handler.setup_signal_handlers(asyncio.get_running_loop())
    try:
        return await supervisor.run()
    finally:
        signal_handler.cleanup_signal_handlers()
