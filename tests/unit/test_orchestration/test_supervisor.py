"""
Tests for ServiceSupervisor: restart policy, state transitions and the
status file, driven by scripted fake workers.
"""

import asyncio
import itertools
import os
import signal
import sys
from dataclasses import replace
from typing import List, Optional

import pytest

from screenclip.models.state import ServiceState
from screenclip.orchestration import (
    READY_LINE,
    ExitCodes,
    ServiceSupervisor,
    StatusStore,
    SubprocessLauncher,
    WorkerHandle,
    WorkerLauncher,
)

_pids = itertools.count(50000)


class FakeWorker(WorkerHandle):
    """A worker whose readiness and exit are controlled by the test."""

    def __init__(self, ready: Optional[bool] = True, exit_code: Optional[int] = None):
        self._pid = next(_pids)
        self._ready = ready
        self._exit: asyncio.Future = asyncio.get_running_loop().create_future()
        self.terminated_with: Optional[float] = None
        if exit_code is not None:
            self.exit(exit_code)

    @property
    def pid(self) -> Optional[int]:
        return self._pid

    @property
    def returncode(self) -> Optional[int]:
        return self._exit.result() if self._exit.done() else None

    def exit(self, code: int) -> None:
        if not self._exit.done():
            self._exit.set_result(code)

    async def wait_ready(self, timeout: float) -> bool:
        if self._ready is None:
            await asyncio.sleep(timeout)
            return False
        return self._ready

    async def wait(self) -> int:
        return await asyncio.shield(self._exit)

    async def terminate(self, timeout: float) -> Optional[int]:
        self.terminated_with = timeout
        self.exit(-signal.SIGTERM)
        return self.returncode


class FakeLauncher(WorkerLauncher):
    """
    Hands out workers built from ``script``: each entry is a dict of
    FakeWorker arguments, or an exception to raise from launch().
    Once the script runs out, healthy workers are launched.
    """

    def __init__(self, script=None):
        self.script = list(script or [])
        self.workers: List[FakeWorker] = []
        self.attempts = 0

    async def launch(self) -> WorkerHandle:
        self.attempts += 1
        step = self.script.pop(0) if self.script else {}
        if isinstance(step, BaseException):
            raise step
        worker = FakeWorker(**step)
        self.workers.append(worker)
        return worker


def _supervisor(app_config, launcher, clock=None):
    kwargs = {"launcher": launcher}
    if clock is not None:
        kwargs["clock"] = clock
    supervisor = ServiceSupervisor(app_config, **kwargs)
    delays = []
    original = supervisor._sleep_or_stop

    async def recording_sleep(delay):
        delays.append(delay)
        return await original(delay)

    supervisor._sleep_or_stop = recording_sleep
    return supervisor, delays


@pytest.mark.unit
class TestLifecycle:
    """Test cases for start, run and stop."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, app_config, test_utils):
        launcher = FakeLauncher()
        supervisor, _ = _supervisor(app_config, launcher)
        store = StatusStore(app_config.supervisor.status_file)

        task = asyncio.create_task(supervisor.run())
        assert await test_utils.wait_until(lambda: supervisor.state is ServiceState.RUNNING)

        status = store.read()
        assert status.state is ServiceState.RUNNING
        assert status.supervisor_pid == os.getpid()
        assert status.worker_pid == launcher.workers[0].pid

        supervisor.request_stop()
        assert await asyncio.wait_for(task, timeout=5.0) == ExitCodes.SUCCESS

        assert supervisor.state is ServiceState.STOPPED
        assert launcher.workers[0].terminated_with == app_config.supervisor.stop_timeout_seconds
        status = store.read()
        assert status.state is ServiceState.STOPPED
        assert status.worker_pid is None
        assert [new for _, new, _ in supervisor.state_machine.history] == [
            ServiceState.STARTING,
            ServiceState.RUNNING,
            ServiceState.STOPPING,
            ServiceState.STOPPED,
        ]

    @pytest.mark.asyncio
    async def test_stop_before_run(self, app_config):
        launcher = FakeLauncher()
        supervisor, _ = _supervisor(app_config, launcher)
        supervisor.request_stop()

        assert await asyncio.wait_for(supervisor.run(), timeout=5.0) == ExitCodes.SUCCESS
        assert launcher.attempts == 0
        assert StatusStore(app_config.supervisor.status_file).read().state is ServiceState.STOPPED


@pytest.mark.unit
class TestRestartPolicy:
    """Test cases for crash handling and backoff."""

    @pytest.mark.asyncio
    async def test_crash_is_restarted(self, app_config, test_utils):
        launcher = FakeLauncher()
        supervisor, delays = _supervisor(app_config, launcher)
        task = asyncio.create_task(supervisor.run())
        assert await test_utils.wait_until(lambda: supervisor.state is ServiceState.RUNNING)

        launcher.workers[0].exit(1)

        assert await test_utils.wait_until(lambda: len(launcher.workers) == 2)
        assert await test_utils.wait_until(lambda: supervisor.state is ServiceState.RUNNING)
        assert supervisor.status.restart_count == 1
        assert supervisor.status.last_error == "worker exited with code 1"
        assert supervisor.status.worker_pid == launcher.workers[1].pid
        assert delays == [app_config.supervisor.backoff_initial_seconds]
        assert (ServiceState.RUNNING, ServiceState.CRASH_BACKOFF, "worker exited with code 1") \
            in supervisor.state_machine.history

        supervisor.request_stop()
        await asyncio.wait_for(task, timeout=5.0)

    @pytest.mark.asyncio
    async def test_clean_exit_is_also_restarted(self, app_config, test_utils):
        launcher = FakeLauncher([{"exit_code": 0}])
        supervisor, _ = _supervisor(app_config, launcher)
        task = asyncio.create_task(supervisor.run())

        assert await test_utils.wait_until(lambda: len(launcher.workers) == 2)

        supervisor.request_stop()
        await asyncio.wait_for(task, timeout=5.0)

    @pytest.mark.asyncio
    async def test_backoff_doubles_up_to_cap(self, app_config, test_utils):
        launcher = FakeLauncher([OSError("exec format error")] * 5)
        supervisor, delays = _supervisor(app_config, launcher)
        task = asyncio.create_task(supervisor.run())

        assert await test_utils.wait_until(lambda: supervisor.state is ServiceState.RUNNING)
        supervisor.request_stop()
        await asyncio.wait_for(task, timeout=5.0)

        assert delays == [0.05, 0.1, 0.2, 0.2, 0.2]
        assert supervisor.status.restart_count == 5
        assert supervisor.status.last_error.startswith("could not start worker")

    @pytest.mark.asyncio
    async def test_watch_lost_waits_for_cooldown(self, app_config, test_utils):
        launcher = FakeLauncher([{"ready": False, "exit_code": ExitCodes.WATCH_LOST}])
        supervisor, delays = _supervisor(app_config, launcher)
        task = asyncio.create_task(supervisor.run())

        assert await test_utils.wait_until(lambda: len(launcher.workers) == 2)
        supervisor.request_stop()
        await asyncio.wait_for(task, timeout=5.0)

        assert delays[0] == app_config.supervisor.watch_lost_cooldown_seconds
        assert supervisor.status.last_error == "worker exited: watched directory lost"

    @pytest.mark.asyncio
    async def test_stable_run_resets_backoff(self, app_config, test_utils):
        now = [0.0]
        launcher = FakeLauncher([{"exit_code": 1}, {"exit_code": 1}])
        supervisor, delays = _supervisor(app_config, launcher, clock=lambda: now[0])
        task = asyncio.create_task(supervisor.run())

        assert await test_utils.wait_until(
            lambda: len(launcher.workers) == 3 and supervisor.state is ServiceState.RUNNING
        )
        now[0] += app_config.supervisor.stable_after_seconds + 1
        launcher.workers[2].exit(1)
        assert await test_utils.wait_until(lambda: len(launcher.workers) == 4)

        supervisor.request_stop()
        await asyncio.wait_for(task, timeout=5.0)

        assert delays == [0.05, 0.1, 0.05]

    @pytest.mark.asyncio
    async def test_ready_timeout_terminates_worker(self, app_config, test_utils):
        launcher = FakeLauncher([{"ready": None}])
        supervisor, _ = _supervisor(app_config, launcher)
        task = asyncio.create_task(supervisor.run())

        assert await test_utils.wait_until(lambda: len(launcher.workers) == 2, timeout=10.0)
        supervisor.request_stop()
        await asyncio.wait_for(task, timeout=5.0)

        assert launcher.workers[0].terminated_with is not None
        assert supervisor.status.last_error.startswith("worker not ready within")

    @pytest.mark.asyncio
    async def test_config_error_before_ready(self, app_config, test_utils):
        launcher = FakeLauncher([{"ready": False, "exit_code": ExitCodes.CONFIGURATION_ERROR}])
        supervisor, _ = _supervisor(app_config, launcher)
        task = asyncio.create_task(supervisor.run())

        assert await test_utils.wait_until(lambda: len(launcher.workers) == 2)
        supervisor.request_stop()
        await asyncio.wait_for(task, timeout=5.0)

        assert supervisor.status.last_error == "worker exited: configuration error"

    @pytest.mark.asyncio
    async def test_stop_during_backoff(self, app_config, test_utils):
        config = replace(
            app_config,
            supervisor=replace(
                app_config.supervisor, backoff_initial_seconds=10.0, backoff_max_seconds=10.0
            ),
        )
        launcher = FakeLauncher([OSError("no such interpreter")])
        supervisor, _ = _supervisor(config, launcher)
        task = asyncio.create_task(supervisor.run())

        assert await test_utils.wait_until(
            lambda: supervisor.state is ServiceState.CRASH_BACKOFF
        )
        supervisor.request_stop()
        await asyncio.wait_for(task, timeout=2.0)

        assert launcher.attempts == 1
        assert [new for _, new, _ in supervisor.state_machine.history][-2:] == [
            ServiceState.STOPPING,
            ServiceState.STOPPED,
        ]


@pytest.mark.integration
@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals required")
class TestRealWorkers:
    """Supervision of real child interpreters."""

    @pytest.mark.asyncio
    async def test_killed_worker_is_replaced(self, app_config, test_utils):
        launcher = SubprocessLauncher([
            sys.executable, "-c", f"print('{READY_LINE}'); import time; time.sleep(60)"
        ])
        supervisor = ServiceSupervisor(app_config, launcher=launcher)
        task = asyncio.create_task(supervisor.run())

        assert await test_utils.wait_until(
            lambda: supervisor.state is ServiceState.RUNNING, timeout=10.0
        )
        first_pid = supervisor.status.worker_pid
        os.kill(first_pid, signal.SIGKILL)

        assert await test_utils.wait_until(
            lambda: supervisor.state is ServiceState.RUNNING
            and supervisor.status.worker_pid not in (None, first_pid),
            timeout=10.0,
        )
        assert supervisor.status.restart_count == 1
        assert supervisor.status.last_error == "worker killed by signal 9"

        second_pid = supervisor.status.worker_pid
        supervisor.request_stop()
        await asyncio.wait_for(task, timeout=10.0)

        assert supervisor.state is ServiceState.STOPPED
        assert not _running(second_pid)


def _running(pid: int) -> bool:
    import psutil

    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
