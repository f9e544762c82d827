"""
Configuration management for the screenclip package.

This module provides loading of `config.toml`, environment overrides,
validation and the path resolver that produces the WatchConfig.
"""

from .manager import (
    clear_config_cache,
    get_config,
    is_config_loaded,
    load_config,
    set_config_path,
)
from .loader import (
    collect_env_overrides,
    default_config_path,
    load_main_config,
    load_toml_file,
    merge_config_data,
)
from .resolver import (
    default_watch_directory,
    ensure_watch_directory,
    resolve_watch_config,
)

__all__ = [
    # Main interface
    "get_config",
    "load_config",
    "set_config_path",
    "clear_config_cache",
    "is_config_loaded",
    # Loading
    "collect_env_overrides",
    "default_config_path",
    "load_main_config",
    "load_toml_file",
    "merge_config_data",
    # Path resolution
    "default_watch_directory",
    "ensure_watch_directory",
    "resolve_watch_config",
]
