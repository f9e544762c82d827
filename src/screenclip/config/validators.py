"""
Configuration validation utilities.

This module turns the raw sections of the merged configuration data into
validated, immutable configuration objects.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ..models.config import (
    DEFAULT_EXTENSIONS,
    ClipboardConfig,
    LoggingConfig,
    NotificationConfig,
    SupervisorConfig,
    WatcherConfig,
)
from ..validation import (
    ValidationError,
    validate_boolean,
    validate_enum_choice,
    validate_extensions,
    validate_log_level,
    validate_positive_float,
    validate_positive_integer,
)

logger = logging.getLogger(__name__)

CLIPBOARD_BACKENDS = ["auto", "pbcopy", "wl-copy", "xclip", "xsel", "powershell", "none"]
NOTIFICATION_BACKENDS = ["auto", "osascript", "notify-send", "log"]


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ValidationError(f"[{name}] must be a table", field_name=name, value=section)
    return section


def _non_empty_string(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{field_name} must be a non-empty string",
            field_name=field_name,
            value=value,
        )
    return value


def _expand_path(value: Any, field_name: str) -> Path:
    raw = _non_empty_string(value, field_name)
    path = Path(os.path.expandvars(raw)).expanduser()
    if not path.is_absolute():
        path = Path.home() / path
    return path


def validate_watch_settings(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate the [watch] section, except the directory itself.

    The directory is only checked for type here; turning it into an
    existing absolute path is the resolver's job.

    Returns:
        Keyword arguments for WatchConfig (without watch_directory) plus
        the raw ``directory`` value under that key (None when unset).
    """
    watch = _section(data, "watch")
    notification = _section(data, "notification")

    directory = watch.get("directory")
    if directory is not None:
        _non_empty_string(directory, "watch.directory")

    extensions = DEFAULT_EXTENSIONS
    if "extensions" in watch:
        extensions = validate_extensions(watch["extensions"], field_name="watch.extensions")

    settle_delay = validate_positive_integer(
        watch.get("settle_delay_ms", 500),
        min_value=0,
        max_value=60_000,
        field_name="watch.settle_delay_ms",
    )

    max_settle_rounds = validate_positive_integer(
        watch.get("max_settle_rounds", 120),
        min_value=1,
        max_value=100_000,
        field_name="watch.max_settle_rounds",
    )

    dedup_capacity = validate_positive_integer(
        watch.get("dedup_capacity", 10_000),
        min_value=1,
        max_value=10_000_000,
        field_name="watch.dedup_capacity",
    )

    notification_enabled = validate_boolean(
        notification.get("enabled", True), field_name="notification.enabled"
    )

    return {
        "directory": directory,
        "recognized_extensions": extensions,
        "settle_delay_millis": settle_delay,
        "notification_enabled": notification_enabled,
        "max_settle_rounds": max_settle_rounds,
        "dedup_capacity": dedup_capacity,
    }


def validate_watcher_config(data: Dict[str, Any]) -> WatcherConfig:
    """Validate the [watcher] section."""
    watcher = _section(data, "watcher")

    retry_initial_ms = validate_positive_integer(
        watcher.get("retry_initial_ms", 500),
        min_value=10,
        max_value=600_000,
        field_name="watcher.retry_initial_ms",
    )
    retry_max_ms = validate_positive_integer(
        watcher.get("retry_max_ms", 30_000),
        min_value=retry_initial_ms,
        max_value=3_600_000,
        field_name="watcher.retry_max_ms",
    )
    max_retries = validate_positive_integer(
        watcher.get("max_retries", 10),
        min_value=1,
        max_value=1000,
        field_name="watcher.max_retries",
    )
    queue_size = validate_positive_integer(
        watcher.get("queue_size", 1000),
        min_value=1,
        max_value=1_000_000,
        field_name="watcher.queue_size",
    )
    health_check_interval = validate_positive_float(
        watcher.get("health_check_interval", 1.0),
        min_value=0.01,
        max_value=60.0,
        field_name="watcher.health_check_interval",
    )
    use_polling = validate_boolean(
        watcher.get("use_polling", False), field_name="watcher.use_polling"
    )

    return WatcherConfig(
        retry_initial_ms=retry_initial_ms,
        retry_max_ms=retry_max_ms,
        max_retries=max_retries,
        queue_size=queue_size,
        health_check_interval=health_check_interval,
        use_polling=use_polling,
    )


def validate_clipboard_config(data: Dict[str, Any]) -> ClipboardConfig:
    """Validate the [clipboard] section."""
    clipboard = _section(data, "clipboard")
    backend = validate_enum_choice(
        clipboard.get("backend", "auto"),
        valid_choices=CLIPBOARD_BACKENDS,
        field_name="clipboard.backend",
    )
    timeout = validate_positive_float(
        clipboard.get("timeout_seconds", 2.0),
        min_value=0.1,
        max_value=60.0,
        field_name="clipboard.timeout_seconds",
    )
    return ClipboardConfig(backend=backend, timeout_seconds=timeout)


def validate_notification_config(data: Dict[str, Any]) -> NotificationConfig:
    """Validate the [notification] section (the enabled flag lives in WatchConfig)."""
    notification = _section(data, "notification")
    backend = validate_enum_choice(
        notification.get("backend", "auto"),
        valid_choices=NOTIFICATION_BACKENDS,
        field_name="notification.backend",
    )
    title = _non_empty_string(notification.get("title", "Path copied"), "notification.title")
    sound = notification.get("sound", "Glass")
    if not isinstance(sound, str):
        raise ValidationError("notification.sound must be a string", field_name="notification.sound", value=sound)
    sound_enabled = validate_boolean(
        notification.get("sound_enabled", True), field_name="notification.sound_enabled"
    )
    return NotificationConfig(
        backend=backend, title=title, sound=sound, sound_enabled=sound_enabled and bool(sound)
    )


def default_state_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Directory for the supervisor status file, honouring XDG_STATE_HOME."""
    env = os.environ if environ is None else environ
    state_home = env.get("XDG_STATE_HOME")
    base = Path(state_home) if state_home else Path.home() / ".local" / "state"
    return base / "screenclip"


def validate_supervisor_config(
    data: Dict[str, Any], environ: Optional[Mapping[str, str]] = None
) -> SupervisorConfig:
    """Validate the [supervisor] section."""
    supervisor = _section(data, "supervisor")

    backoff_initial = validate_positive_float(
        supervisor.get("backoff_initial_seconds", 1.0),
        min_value=0.01,
        max_value=3600.0,
        field_name="supervisor.backoff_initial_seconds",
    )
    backoff_max = validate_positive_float(
        supervisor.get("backoff_max_seconds", 300.0),
        min_value=backoff_initial,
        max_value=86_400.0,
        field_name="supervisor.backoff_max_seconds",
    )
    cooldown = validate_positive_float(
        supervisor.get("watch_lost_cooldown_seconds", 5.0),
        min_value=0.0,
        max_value=3600.0,
        field_name="supervisor.watch_lost_cooldown_seconds",
    )
    stop_timeout = validate_positive_float(
        supervisor.get("stop_timeout_seconds", 5.0),
        min_value=0.1,
        max_value=300.0,
        field_name="supervisor.stop_timeout_seconds",
    )
    startup_timeout = validate_positive_float(
        supervisor.get("startup_timeout_seconds", 15.0),
        min_value=0.1,
        max_value=600.0,
        field_name="supervisor.startup_timeout_seconds",
    )
    stable_after = validate_positive_float(
        supervisor.get("stable_after_seconds", 60.0),
        min_value=0.0,
        max_value=86_400.0,
        field_name="supervisor.stable_after_seconds",
    )
    if "state_dir" in supervisor:
        state_dir = _expand_path(supervisor["state_dir"], "supervisor.state_dir")
    else:
        state_dir = default_state_dir(environ)

    return SupervisorConfig(
        backoff_initial_seconds=backoff_initial,
        backoff_max_seconds=backoff_max,
        watch_lost_cooldown_seconds=cooldown,
        stop_timeout_seconds=stop_timeout,
        startup_timeout_seconds=startup_timeout,
        stable_after_seconds=stable_after,
        state_dir=state_dir,
    )


def validate_logging_config(data: Dict[str, Any]) -> LoggingConfig:
    """Validate the [logging] section."""
    logging_data = _section(data, "logging")
    level = validate_log_level(logging_data.get("level", "INFO"), field_name="logging.level")
    log_file = None
    if logging_data.get("file"):
        log_file = _expand_path(logging_data["file"], "logging.file")
    return LoggingConfig(level=level, file=log_file)
