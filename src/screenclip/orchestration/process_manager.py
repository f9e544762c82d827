"""
Worker process management for the supervisor.

Launches the pipeline worker as a child process, waits for its readiness
line and terminates its process tree with escalating force.
"""

import asyncio
import logging
import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import psutil

from .shared_state import READY_LINE, TimeoutConstants

logger = logging.getLogger(__name__)


def _is_process_alive(process: psutil.Process) -> bool:
    """Safely check if a process is still alive and not a zombie."""
    try:
        if not process.is_running():
            return False
        return process.status() not in (psutil.STATUS_ZOMBIE, psutil.STATUS_DEAD)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False


def _get_process_children(parent: psutil.Process) -> List[psutil.Process]:
    try:
        return [c for c in parent.children(recursive=True) if _is_process_alive(c)]
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return []


def _wait_for_termination(processes: List[psutil.Process], timeout: float) -> List[psutil.Process]:
    if not processes:
        return []
    _, still_alive = psutil.wait_procs(processes, timeout=timeout)
    return [p for p in still_alive if _is_process_alive(p)]


def _kill_and_reap(processes: List[psutil.Process]) -> bool:
    for process in processes:
        try:
            process.kill()
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            logger.warning(f"Access denied sending SIGKILL to PID {process.pid}")

    stubborn = _wait_for_termination(processes, TimeoutConstants.FORCE_KILL_WAIT)
    for process in stubborn:
        logger.error(f"Stubborn process: PID {process.pid} survived SIGKILL")
    return not stubborn


def kill_process_children(pid: int, name: str) -> bool:
    """
    SIGKILL every descendant of ``pid`` and wait for them to go away.

    The process itself is left alone so that its owner can reap it and
    read its exit status.

    Returns:
        True when no descendant is left running.
    """
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return True
    except psutil.AccessDenied:
        logger.warning(f"Access denied to process {name} (PID: {pid})")
        return False

    children = _get_process_children(parent)
    if not children:
        return True
    logger.warning(f"Force killing {len(children)} child process(es) of {name} (PID: {pid})")
    return _kill_and_reap(children)


class WorkerHandle(ABC):
    """
    A running pipeline worker as seen by the supervisor.
    """

    @property
    @abstractmethod
    def pid(self) -> Optional[int]:
        ...

    @property
    @abstractmethod
    def returncode(self) -> Optional[int]:
        ...

    @abstractmethod
    async def wait_ready(self, timeout: float) -> bool:
        """True once the worker reports readiness, False on exit or timeout."""

    @abstractmethod
    async def wait(self) -> int:
        """Wait for the worker to exit and return its exit code."""

    @abstractmethod
    async def terminate(self, timeout: float) -> Optional[int]:
        """Stop the worker, force-killing it after ``timeout`` seconds."""


class WorkerLauncher(ABC):
    @abstractmethod
    async def launch(self) -> WorkerHandle:
        ...


class SubprocessWorker(WorkerHandle):
    """
    WorkerHandle over an asyncio subprocess whose stdout carries READY_LINE.
    """

    def __init__(self, process: asyncio.subprocess.Process, name: str = "screenclip worker"):
        self.process = process
        self.name = name
        self._drain_task: Optional[asyncio.Task] = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode

    async def wait_ready(self, timeout: float) -> bool:
        try:
            return await asyncio.wait_for(self._read_until_ready(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.name} not ready after {timeout}s")
            return False

    async def _read_until_ready(self) -> bool:
        stdout = self.process.stdout
        if stdout is None:
            return False
        while True:
            line = await stdout.readline()
            if not line:
                return False
            text = line.decode("utf-8", errors="replace").strip()
            if text == READY_LINE:
                # Keep the pipe drained so the worker never blocks on stdout.
                self._drain_task = asyncio.create_task(self._drain_stdout())
                return True
            if text:
                logger.debug(f"{self.name}: {text}")

    async def _drain_stdout(self) -> None:
        stdout = self.process.stdout
        while stdout is not None and await stdout.readline():
            pass

    async def wait(self) -> int:
        return await self.process.wait()

    async def terminate(self, timeout: float) -> Optional[int]:
        if self.process.returncode is not None:
            return self.process.returncode

        logger.info(f"Sending SIGTERM to {self.name} (PID: {self.process.pid})")
        try:
            self.process.terminate()
        except ProcessLookupError:
            pass

        try:
            try:
                return await asyncio.wait_for(self.process.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"{self.name} did not exit within {timeout}s")

            # Descendants first: they can only be found while the worker lives.
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(
                None, kill_process_children, self.process.pid, self.name
            )
            logger.warning(f"Sending SIGKILL to {self.name} (PID: {self.process.pid})")
            try:
                self.process.kill()
            except ProcessLookupError:
                pass
            try:
                return await asyncio.wait_for(
                    self.process.wait(), timeout=TimeoutConstants.FORCE_KILL_WAIT
                )
            except asyncio.TimeoutError:
                logger.error(f"{self.name} (PID: {self.process.pid}) could not be reaped")
                return None
        finally:
            if self._drain_task is not None:
                self._drain_task.cancel()


def worker_command(config_path: Optional[Path] = None) -> List[str]:
    """Command line that runs the pipeline worker in a child interpreter."""
    command = [sys.executable, "-m", "screenclip", "run"]
    if config_path is not None:
        command += ["--config", str(config_path)]
    return command


class SubprocessLauncher(WorkerLauncher):
    """
    Launches ``command`` with stdout piped for the readiness handshake.
    stderr is inherited so worker logs land wherever the supervisor's do.
    """

    def __init__(self, command: Sequence[str], env: Optional[Dict[str, str]] = None):
        if not command:
            raise ValueError("Worker command must not be empty")
        self.command = list(command)
        self.env = env

    async def launch(self) -> WorkerHandle:
        env = dict(os.environ if self.env is None else self.env)
        env.setdefault("PYTHONUNBUFFERED", "1")
        process = await asyncio.create_subprocess_exec(
            *self.command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            env=env,
        )
        logger.info(f"Started worker (PID: {process.pid})")
        return SubprocessWorker(process)
