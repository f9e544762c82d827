"""
Configuration management and singleton pattern.

This module provides the main configuration loading interface, ensuring the
configuration is resolved only once per process.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Mapping, Optional

from ..models.config import AppConfig
from ..validation import (
    ConfigurationError,
    ErrorSeverity,
    ValidationError,
    handle_config_error,
)
from .loader import (
    CONFIG_ENV_VAR,
    collect_env_overrides,
    default_config_path,
    load_main_config,
    merge_config_data,
)
from .resolver import resolve_watch_config
from .validators import (
    validate_clipboard_config,
    validate_logging_config,
    validate_notification_config,
    validate_supervisor_config,
    validate_watch_settings,
    validate_watcher_config,
)

logger = logging.getLogger(__name__)

# --- Global Singleton for Configuration ---

_CONFIG: Optional[AppConfig] = None

# Explicit path set by the CLI (--config) or tests. None means
# SCREENCLIP_CONFIG or the default location.
_CONFIG_FILE_PATH: Optional[Path] = None


def set_config_path(config_path: Optional[Path]) -> None:
    """
    Set a custom configuration file path and drop the cached config.
    """
    global _CONFIG_FILE_PATH, _CONFIG
    _CONFIG_FILE_PATH = Path(config_path) if config_path is not None else None
    _CONFIG = None
    logger.debug(f"Configuration path set to: {config_path}")


def clear_config_cache() -> None:
    """
    Clear the cached configuration, forcing a reload on next access.
    """
    global _CONFIG
    _CONFIG = None
    logger.debug("Configuration cache cleared")


def is_config_loaded() -> bool:
    return _CONFIG is not None


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> AppConfig:
    """
    Load, merge and validate the complete application configuration.

    Precedence: environment overrides, then the config file, then defaults.
    A config file given explicitly (argument or SCREENCLIP_CONFIG) must
    exist; the default location is optional.

    Raises:
        ConfigurationError: For any problem that prevents watching
    """
    env = os.environ if environ is None else environ

    if config_path is None and env.get(CONFIG_ENV_VAR):
        config_path = Path(env[CONFIG_ENV_VAR]).expanduser()
    required = config_path is not None
    path = config_path if config_path is not None else default_config_path(env)

    try:
        file_data = load_main_config(path, required=required)
        data = merge_config_data(file_data, collect_env_overrides(env))

        watch_settings = validate_watch_settings(data)
        app_config = AppConfig(
            watch=resolve_watch_config(watch_settings, home=home),
            watcher=validate_watcher_config(data),
            clipboard=validate_clipboard_config(data),
            notification=validate_notification_config(data),
            supervisor=validate_supervisor_config(data, environ=env),
            logging=validate_logging_config(data),
            source_path=path if (required or file_data) else None,
        )
    except ConfigurationError as e:
        handle_config_error(e, "resolving watch directory", severity=ErrorSeverity.ERROR,
                            reraise=False, logger=logger)
        raise
    except ValidationError as e:
        handle_config_error(e, "validating settings", severity=ErrorSeverity.ERROR,
                            reraise=False, logger=logger)
        raise ConfigurationError(str(e), field_name=e.field_name, value=e.value) from e
    except (FileNotFoundError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot load configuration: {e}") from e

    return app_config


def get_config() -> AppConfig:
    """
    Get the process-wide configuration, loading it on first use.

    Raises:
        ConfigurationError: If the configuration cannot be resolved
    """
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_config(_CONFIG_FILE_PATH)
    return _CONFIG
