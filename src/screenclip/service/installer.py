"""
Service descriptor management.

`screenclip install` registers the supervisor with the OS service manager
so it starts at login: a launchd agent on macOS, a systemd user unit on
Linux. Installing twice with the same settings is a no-op.
"""

import logging
import os
import platform
import plistlib
import shlex
import subprocess
import sys
import tempfile
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from ..validation import ServiceInstallError

logger = logging.getLogger(__name__)

LAUNCHD_LABEL = "com.screenclip.agent"
SYSTEMD_UNIT = "screenclip.service"
SERVICE_COMMAND_TIMEOUT = 30

# Variables copied into the service environment at install time.
PASSTHROUGH_VARIABLES = ("PATH", "DISPLAY", "WAYLAND_DISPLAY", "DBUS_SESSION_BUS_ADDRESS")
ENV_PREFIX = "SCREENCLIP_"


class InstallOutcome(Enum):
    INSTALLED = "installed"
    UPDATED = "updated"
    ALREADY_INSTALLED = "already_installed"


def service_command(config_path: Optional[Path] = None) -> List[str]:
    """Command line the service manager runs: the supervisor loop."""
    command = [sys.executable, "-m", "screenclip", "supervise"]
    if config_path is not None:
        command += ["--config", str(Path(config_path).absolute())]
    return command


def service_environment(environ: Mapping[str, str]) -> Dict[str, str]:
    env = {
        key: value for key, value in environ.items()
        if key.startswith(ENV_PREFIX) or key in PASSTHROUGH_VARIABLES
    }
    return dict(sorted(env.items()))


def _atomic_write(path: Path, content: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}-", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class ServiceInstaller(ABC):
    """
    Writes one service descriptor and drives the service manager for it.
    """

    manager_name = ""

    def __init__(
        self,
        home: Path,
        command: List[str],
        environment: Dict[str, str],
        log_dir: Path,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.home = Path(home)
        self.command = list(command)
        self.environment = dict(environment)
        self.log_dir = Path(log_dir)
        self._run_command = run

    @property
    @abstractmethod
    def descriptor_path(self) -> Path:
        ...

    @abstractmethod
    def render(self) -> bytes:
        """Descriptor content for the current settings."""

    @abstractmethod
    def enable_commands(self) -> List[List[str]]:
        ...

    @abstractmethod
    def disable_commands(self) -> List[List[str]]:
        ...

    def after_remove_commands(self) -> List[List[str]]:
        return []

    def is_installed(self) -> bool:
        return self.descriptor_path.exists()

    def install(self) -> InstallOutcome:
        """
        Write the descriptor and enable auto-start.

        Raises:
            ServiceInstallError: If the descriptor cannot be written or the
                service manager refuses to enable it
        """
        path = self.descriptor_path
        content = self.render()
        existing = path.read_bytes() if path.exists() else None

        if existing == content:
            logger.info(f"Service already installed at {path}")
            return InstallOutcome.ALREADY_INSTALLED

        if existing is not None:
            logger.info(f"Updating service descriptor {path}")
            self._run_all(self.disable_commands(), check=False)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self.log_dir.mkdir(parents=True, exist_ok=True)
            _atomic_write(path, content)
        except OSError as e:
            raise ServiceInstallError(f"Cannot write {path}: {e}") from e

        self._run_all(self.enable_commands(), check=True)
        logger.info(f"Installed {self.manager_name} service: {path}")
        return InstallOutcome.UPDATED if existing is not None else InstallOutcome.INSTALLED

    def uninstall(self) -> bool:
        """
        Stop, disable and remove the service.

        Returns:
            False if nothing was installed.
        """
        path = self.descriptor_path
        if not path.exists():
            logger.info(f"No service installed at {path}")
            return False

        self._run_all(self.disable_commands(), check=False)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise ServiceInstallError(f"Cannot remove {path}: {e}") from e
        self._run_all(self.after_remove_commands(), check=False)
        logger.info(f"Removed {self.manager_name} service: {path}")
        return True

    def _run_all(self, commands: List[List[str]], check: bool) -> None:
        for cmd in commands:
            self._run(cmd, check)

    def _run(self, cmd: List[str], check: bool) -> None:
        logger.debug(f"Running: {shlex.join(cmd)}")
        try:
            result = self._run_command(
                cmd, capture_output=True, text=True, timeout=SERVICE_COMMAND_TIMEOUT
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            message = f"'{shlex.join(cmd)}' failed: {e}"
            if check:
                raise ServiceInstallError(message) from e
            logger.warning(message)
            return

        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            message = f"'{shlex.join(cmd)}' exited with code {result.returncode}: {detail}"
            if check:
                raise ServiceInstallError(message)
            logger.debug(message)


class LaunchdInstaller(ServiceInstaller):
    """Per-user launchd agent in ~/Library/LaunchAgents."""

    manager_name = "launchd"

    def __init__(self, *args, uid: Optional[int] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.uid = os.getuid() if uid is None else uid

    @property
    def descriptor_path(self) -> Path:
        return self.home / "Library" / "LaunchAgents" / f"{LAUNCHD_LABEL}.plist"

    @property
    def _domain(self) -> str:
        return f"gui/{self.uid}"

    def render(self) -> bytes:
        data = {
            "Label": LAUNCHD_LABEL,
            "ProgramArguments": self.command,
            "EnvironmentVariables": self.environment,
            "RunAtLoad": True,
            # Relaunch only if the supervisor itself dies.
            "KeepAlive": {"SuccessfulExit": False},
            "ProcessType": "Interactive",
            "ExitTimeOut": 15,
            "StandardOutPath": str(self.log_dir / "launchd.out.log"),
            "StandardErrorPath": str(self.log_dir / "launchd.err.log"),
        }
        return plistlib.dumps(data, sort_keys=True)

    def enable_commands(self) -> List[List[str]]:
        return [
            ["launchctl", "enable", f"{self._domain}/{LAUNCHD_LABEL}"],
            ["launchctl", "bootstrap", self._domain, str(self.descriptor_path)],
        ]

    def disable_commands(self) -> List[List[str]]:
        return [["launchctl", "bootout", f"{self._domain}/{LAUNCHD_LABEL}"]]


def _systemd_quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class SystemdUserInstaller(ServiceInstaller):
    """systemd user unit in ~/.config/systemd/user."""

    manager_name = "systemd"

    def __init__(self, *args, config_home: Optional[Path] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.config_home = Path(config_home) if config_home else self.home / ".config"

    @property
    def descriptor_path(self) -> Path:
        return self.config_home / "systemd" / "user" / SYSTEMD_UNIT

    def render(self) -> bytes:
        lines = [
            "[Unit]",
            "Description=screenclip: copy new screenshot paths to the clipboard",
            "",
            "[Service]",
            "Type=simple",
            f"ExecStart={shlex.join(self.command)}",
        ]
        lines += [
            f"Environment={_systemd_quote(f'{key}={value}')}"
            for key, value in self.environment.items()
        ]
        lines += [
            "Restart=on-failure",
            "RestartSec=5",
            "KillSignal=SIGTERM",
            "TimeoutStopSec=15",
            "",
            "[Install]",
            "WantedBy=default.target",
            "",
        ]
        return "\n".join(lines).encode("utf-8")

    def enable_commands(self) -> List[List[str]]:
        return [
            ["systemctl", "--user", "daemon-reload"],
            ["systemctl", "--user", "enable", "--now", SYSTEMD_UNIT],
        ]

    def disable_commands(self) -> List[List[str]]:
        return [["systemctl", "--user", "disable", "--now", SYSTEMD_UNIT]]

    def after_remove_commands(self) -> List[List[str]]:
        return [["systemctl", "--user", "daemon-reload"]]


def create_installer(
    config_path: Optional[Path],
    state_dir: Path,
    system: Optional[str] = None,
    home: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> ServiceInstaller:
    """
    Build the installer for the running platform.

    Raises:
        ServiceInstallError: On platforms without a supported service manager
    """
    system = system or platform.system()
    home = Path(home) if home is not None else Path.home()
    env = os.environ if environ is None else environ

    args = (
        home,
        service_command(config_path),
        service_environment(env),
        state_dir,
    )
    if system == "Darwin":
        return LaunchdInstaller(*args, run=run)
    if system == "Linux":
        config_home = env.get("XDG_CONFIG_HOME")
        return SystemdUserInstaller(
            *args, run=run, config_home=Path(config_home) if config_home else None
        )
    raise ServiceInstallError(f"No supported service manager on {system}")
