"""
Configuration data models.

This module contains the configuration structures built once at start-up
from `config.toml`, environment overrides and platform defaults. All of
them are immutable and shared read-only by the pipeline components.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional

DEFAULT_EXTENSIONS: FrozenSet[str] = frozenset(
    {"png", "jpg", "jpeg", "heic", "tiff", "pdf"}
)


@dataclass(frozen=True)
class WatchConfig:
    """
    What to watch and how to decide a file is ready, built by the path resolver.
    """

    # Absolute path of the watched directory; created at start-up if missing.
    watch_directory: Path
    # Lower-case extensions without the leading dot.
    recognized_extensions: FrozenSet[str] = DEFAULT_EXTENSIONS
    # Quiet period a file must stay unchanged before it is published.
    settle_delay_millis: int = 500
    notification_enabled: bool = True
    # Upper bound on settle timer restarts for a file that keeps changing.
    max_settle_rounds: int = 120
    # Capacity of the LRU set of already published paths.
    dedup_capacity: int = 10_000

    @property
    def settle_delay_seconds(self) -> float:
        return self.settle_delay_millis / 1000.0

    def is_recognized(self, path: Path) -> bool:
        """Case-insensitive extension match."""
        return path.suffix.lstrip(".").lower() in self.recognized_extensions


@dataclass(frozen=True)
class WatcherConfig:
    """
    Settings for the OS subscription and its re-establishment.
    """

    retry_initial_ms: int = 500
    retry_max_ms: int = 30_000
    max_retries: int = 10
    queue_size: int = 1000
    health_check_interval: float = 1.0
    # Use watchdog's PollingObserver instead of the native observer.
    use_polling: bool = False


@dataclass(frozen=True)
class ClipboardConfig:
    # "auto" or one of the backend names in publishing.clipboard.
    backend: str = "auto"
    timeout_seconds: float = 2.0


@dataclass(frozen=True)
class NotificationConfig:
    backend: str = "auto"
    title: str = "Path copied"
    sound: str = "Glass"
    sound_enabled: bool = True


@dataclass(frozen=True)
class SupervisorConfig:
    """
    Restart policy for the worker process.
    """

    backoff_initial_seconds: float = 1.0
    backoff_max_seconds: float = 300.0
    watch_lost_cooldown_seconds: float = 5.0
    stop_timeout_seconds: float = 5.0
    startup_timeout_seconds: float = 15.0
    # Running this long without a crash resets the backoff schedule.
    stable_after_seconds: float = 60.0
    state_dir: Path = field(
        default_factory=lambda: Path.home() / ".local" / "state" / "screenclip"
    )

    @property
    def status_file(self) -> Path:
        return self.state_dir / "status.json"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    file: Optional[Path] = None


@dataclass(frozen=True)
class AppConfig:
    """
    The root configuration object that aggregates all loaded settings.
    """

    watch: WatchConfig
    watcher: WatcherConfig = field(default_factory=WatcherConfig)
    clipboard: ClipboardConfig = field(default_factory=ClipboardConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)
    supervisor: SupervisorConfig = field(default_factory=SupervisorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    # File the configuration was read from, None when only defaults applied.
    source_path: Optional[Path] = None
