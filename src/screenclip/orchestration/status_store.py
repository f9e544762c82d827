"""
Status snapshot shared between the supervisor and `screenclip status`.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import psutil

from ..models.state import ServiceState, ServiceStatus

logger = logging.getLogger(__name__)


class StatusStore:
    """
    Reads and atomically writes the supervisor's status.json.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def write(self, status: ServiceStatus) -> bool:
        """
        Persist ``status``. Failures are logged and reported as False.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=".status-", suffix=".json", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(status.to_dict(), f, indent=2)
            os.replace(tmp_name, self.path)
            return True
        except OSError as e:
            logger.warning(f"Could not write status file {self.path}: {e}")
            return False

    def read(self) -> Optional[ServiceStatus]:
        """Return the last written status, None when absent or unreadable."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read status file {self.path}: {e}")
            return None
        try:
            return ServiceStatus.from_dict(data)
        except (TypeError, ValueError) as e:
            logger.warning(f"Malformed status file {self.path}: {e}")
            return None

    def read_live(self) -> ServiceStatus:
        """
        Status corrected for a supervisor that died without cleaning up.
        """
        status = self.read()
        if status is None:
            return ServiceStatus()
        if status.state is not ServiceState.STOPPED:
            pid = status.supervisor_pid
            if pid is None or not psutil.pid_exists(pid):
                status.last_error = status.last_error or "supervisor exited unexpectedly"
                status.state = ServiceState.STOPPED
                status.worker_pid = None
        return status
