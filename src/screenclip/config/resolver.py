"""
Path resolution for the watched directory.

Computes the WatchConfig once at start-up: picks the directory (explicit
override, the configured macOS screenshot folder, or ~/Desktop/Screenshots),
creates it when missing and fails fast when it cannot be used.
"""

import logging
import os
import platform
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..models.config import WatchConfig
from ..validation import ConfigurationError

logger = logging.getLogger(__name__)

SCREENSHOTS_SUBDIR = Path("Desktop") / "Screenshots"


def read_macos_screenshot_location(
    run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> Optional[Path]:
    """
    Return the folder configured with `defaults write com.apple.screencapture location`.

    Returns None when the key is unset or `defaults` is unavailable.
    """
    try:
        result = run(
            ["defaults", "read", "com.apple.screencapture", "location"],
            capture_output=True,
            text=True,
            timeout=2.0,
            check=False,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError) as e:
        logger.debug(f"Could not read screencapture location: {e}")
        return None

    if result.returncode != 0:
        return None
    location = result.stdout.strip()
    if not location:
        return None
    return Path(location).expanduser()


def default_watch_directory(
    system: Optional[str] = None,
    home: Optional[Path] = None,
    run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> Path:
    """
    Platform default for the watched directory.
    """
    system = system or platform.system()
    home = home or Path.home()

    if system == "Darwin":
        configured = read_macos_screenshot_location(run=run)
        if configured is not None:
            logger.info(f"Using macOS screenshot location: {configured}")
            return configured

    return home / SCREENSHOTS_SUBDIR


def resolve_directory(raw: Optional[str], home: Optional[Path] = None, **kwargs) -> Path:
    """
    Turn an optional override into an absolute path.

    `~` and environment variables are expanded; relative paths are taken
    relative to the home directory.
    """
    home = home or Path.home()
    if raw is None:
        path = default_watch_directory(home=home, **kwargs)
    else:
        path = Path(os.path.expandvars(raw)).expanduser()
        if not path.is_absolute():
            path = home / path
    return Path(os.path.abspath(path))


def ensure_watch_directory(path: Path) -> Path:
    """
    Create the directory when missing and check it is usable.

    Raises:
        ConfigurationError: If the path is not a directory, cannot be
            created, or is not readable and writable by this process
    """
    if path.exists() and not path.is_dir():
        raise ConfigurationError(
            f"Watch path exists but is not a directory: {path}",
            field_name="watch.directory",
            value=str(path),
        )

    if not path.exists():
        try:
            path.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created watch directory: {path}")
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create watch directory {path}: {e}",
                field_name="watch.directory",
                value=str(path),
            ) from e

    if not os.access(path, os.R_OK | os.W_OK | os.X_OK):
        raise ConfigurationError(
            f"Watch directory is not readable and writable: {path}",
            field_name="watch.directory",
            value=str(path),
        )

    return path


def resolve_watch_config(settings: Dict[str, Any], home: Optional[Path] = None, **kwargs) -> WatchConfig:
    """
    Build the WatchConfig from validated [watch] settings.

    Args:
        settings: Output of validate_watch_settings()
        home: Home directory override (tests)
        **kwargs: Passed through to default_watch_directory()

    Returns:
        WatchConfig with an existing, absolute watch_directory
    """
    values = dict(settings)
    directory = resolve_directory(values.pop("directory", None), home=home, **kwargs)
    directory = ensure_watch_directory(directory)

    config = WatchConfig(watch_directory=directory, **values)
    logger.info(
        f"Watching {config.watch_directory} for "
        f"{', '.join(sorted(config.recognized_extensions))} "
        f"(settle {config.settle_delay_millis} ms)"
    )
    return config
