"""
screenclip: copy the path of every new screenshot to the clipboard.

A background service watches the screenshot directory, waits for each new
image to finish being written, and puts its absolute path on the clipboard
with a short desktop notification.

The package is organized into specialized modules:
- config: Configuration loading, environment overrides and path resolution
- models: Data structures and type definitions
- validation: Error taxonomy, input validation and retry strategies
- watcher: Directory event stream with re-subscription
- filtering: Extension, settle and deduplication rules
- publishing: Clipboard and notification backends
- orchestration: Pipeline wiring, supervisor and service state machine
- service: launchd / systemd registration
- cli: Command-line interface

Usage:
    From command line:
        screenclip run            # foreground pipeline
        screenclip install        # start at login

    Programmatically:
        from screenclip import Pipeline, get_config
        pipeline = Pipeline(get_config())
"""

__version__ = "1.0.0"

# Main interfaces
from .config import clear_config_cache, get_config, load_config, set_config_path
from .cli import main_cli
from .orchestration import Pipeline, ServiceSupervisor

# Model classes for external use
from .models import (
    AppConfig,
    CandidateFile,
    FileEvent,
    FileEventKind,
    PublishResult,
    ServiceState,
    ServiceStatus,
    WatchConfig,
)

# Errors
from .validation import (
    ClipboardWriteError,
    ConfigurationError,
    FileAccessError,
    NotificationError,
    ScreenclipError,
    ValidationError,
    WatchLostError,
)

__all__ = [
    "__version__",
    # Main interfaces
    "get_config",
    "load_config",
    "clear_config_cache",
    "set_config_path",
    "main_cli",
    "Pipeline",
    "ServiceSupervisor",
    # Models
    "AppConfig",
    "CandidateFile",
    "FileEvent",
    "FileEventKind",
    "PublishResult",
    "ServiceState",
    "ServiceStatus",
    "WatchConfig",
    # Errors
    "ScreenclipError",
    "ValidationError",
    "ConfigurationError",
    "WatchLostError",
    "FileAccessError",
    "ClipboardWriteError",
    "NotificationError",
]
