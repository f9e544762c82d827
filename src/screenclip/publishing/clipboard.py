import logging
import os
import platform
import shutil
import subprocess
from typing import Callable, Dict, List, Mapping, Optional

from ..validation import ClipboardWriteError
from .base import ClipboardSink

logger = logging.getLogger(__name__)

# Backend name -> command reading the new clipboard text from stdin.
CLIPBOARD_COMMANDS: Dict[str, List[str]] = {
    "pbcopy": ["pbcopy"],
    "wl-copy": ["wl-copy"],
    "xclip": ["xclip", "-selection", "clipboard", "-in"],
    "xsel": ["xsel", "--clipboard", "--input"],
    "powershell": [
        "powershell",
        "-NoProfile",
        "-NonInteractive",
        "-Command",
        "[Console]::InputEncoding = [Text.Encoding]::UTF8; "
        "Set-Clipboard -Value ([Console]::In.ReadToEnd())",
    ],
}


class CommandClipboardSink(ClipboardSink):
    """
    Clipboard backed by a helper command that reads stdin.

    stdout/stderr are not captured: wl-copy and xclip fork a child that
    keeps serving the selection, and a captured pipe would never reach EOF.
    """

    def __init__(self, name: str, command: List[str], timeout: float = 2.0,
                 env: Optional[Mapping[str, str]] = None):
        self.name = name
        self.command = list(command)
        self.timeout = timeout
        self.env = dict(env) if env is not None else None

    def write_text(self, text: str) -> None:
        try:
            result = subprocess.run(
                self.command,
                input=text.encode("utf-8"),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=self.timeout,
                env=self.env,
                check=False,
            )
        except FileNotFoundError as e:
            raise ClipboardWriteError(f"{self.name} not found: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise ClipboardWriteError(f"{self.name} timed out after {self.timeout}s") from e
        except OSError as e:
            raise ClipboardWriteError(f"{self.name} failed to start: {e}") from e

        if result.returncode != 0:
            raise ClipboardWriteError(f"{self.name} exited with code {result.returncode}")
        logger.debug(f"Clipboard set via {self.name}")


class UnavailableClipboardSink(ClipboardSink):
    """Used when no clipboard backend exists (headless sessions, CI)."""

    name = "none"

    def __init__(self, reason: str = "no clipboard backend available"):
        self.reason = reason

    def write_text(self, text: str) -> None:
        raise ClipboardWriteError(self.reason)


def _command_env(backend: str) -> Optional[Dict[str, str]]:
    if backend == "pbcopy":
        # pbcopy decodes stdin according to the locale.
        env = dict(os.environ)
        env.setdefault("LANG", "en_US.UTF-8")
        return env
    return None


def detect_clipboard_backend(
    system: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> Optional[str]:
    """
    Pick the clipboard helper for this platform and session, if any.
    """
    system = system or platform.system()
    env = os.environ if environ is None else environ

    if system == "Darwin":
        return "pbcopy" if which("pbcopy") else None
    if system == "Windows":
        return "powershell" if which("powershell") else None

    if env.get("WAYLAND_DISPLAY") and which("wl-copy"):
        return "wl-copy"
    if env.get("DISPLAY"):
        for backend in ("xclip", "xsel"):
            if which(backend):
                return backend
    return None


def create_clipboard_sink(
    backend: str = "auto",
    timeout: float = 2.0,
    system: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> ClipboardSink:
    """
    Build the clipboard sink for a configured backend name.
    """
    if backend == "none":
        return UnavailableClipboardSink("clipboard disabled by configuration")

    if backend == "auto":
        detected = detect_clipboard_backend(system=system, environ=environ, which=which)
        if detected is None:
            logger.warning("No clipboard backend found; paths will not be copied")
            return UnavailableClipboardSink()
        backend = detected

    if backend not in CLIPBOARD_COMMANDS:
        raise ValueError(f"Unknown clipboard backend: {backend}")

    logger.info(f"Using clipboard backend: {backend}")
    return CommandClipboardSink(
        backend, CLIPBOARD_COMMANDS[backend], timeout=timeout, env=_command_env(backend)
    )
