"""
Configuration file loading utilities.

This module handles the low-level loading of `config.toml` and the
collection of `SCREENCLIP_*` environment overrides into the same shape.
"""

import copy
import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ..validation import ErrorSeverity, handle_config_error

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SCREENCLIP_CONFIG"

# Environment variable -> (section, key) in the TOML layout.
ENV_OVERRIDES = {
    "SCREENCLIP_WATCH_DIR": ("watch", "directory"),
    "SCREENCLIP_EXTENSIONS": ("watch", "extensions"),
    "SCREENCLIP_SETTLE_MS": ("watch", "settle_delay_ms"),
    "SCREENCLIP_NOTIFY": ("notification", "enabled"),
    "SCREENCLIP_LOG_LEVEL": ("logging", "level"),
}


def default_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Location of the user's config file, honouring XDG_CONFIG_HOME.
    """
    env = os.environ if environ is None else environ
    config_home = env.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return base / "screenclip" / "config.toml"


def load_toml_file(file_path: Path, description: str = "configuration file") -> Dict[str, Any]:
    """
    Load and parse a TOML file with error handling.

    Args:
        file_path: Path to the TOML file to load
        description: Human-readable description for error messages

    Returns:
        Parsed TOML data as a dictionary

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the file is malformed
    """
    logger.info(f"Loading {description} from: {file_path}")

    if not file_path.exists():
        logger.error(f"{description} not found: {file_path}")
        raise FileNotFoundError(f"{description} not found: {file_path}")

    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        handle_config_error(
            error=e,
            context=f"parsing {description}",
            severity=ErrorSeverity.CRITICAL,
            reraise=True,
            logger=logger
        )
        raise


def load_main_config(config_path: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load `config.toml`.

    Args:
        config_path: Path to the configuration file
        required: When False a missing file means "use defaults"

    Returns:
        Parsed configuration data, empty when the optional file is absent
    """
    if not required and not config_path.exists():
        logger.info(f"No configuration file at {config_path}, using defaults")
        return {}
    return load_toml_file(config_path, "configuration file")


def collect_env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Dict[str, Any]]:
    """
    Collect SCREENCLIP_* variables into a TOML-shaped dictionary.

    Values are kept as strings; the validators coerce them.
    """
    env = os.environ if environ is None else environ
    overrides: Dict[str, Dict[str, Any]] = {}
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value is None or value == "":
            continue
        overrides.setdefault(section, {})[key] = value
        logger.debug(f"Environment override {var} -> [{section}] {key}")
    return overrides


def merge_config_data(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge overrides into a copy of base; override values win.
    """
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config_data(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged
