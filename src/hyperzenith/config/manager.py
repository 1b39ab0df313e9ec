"""
Configuration management and singleton pattern.

This module provides the main configuration loading and management interface,
implementing a singleton pattern to ensure configuration is loaded only once.
"""

import logging
from pathlib import Path
from typing import Optional

from ..models.config import EngineConfig
from ..validation import handle_config_error, ErrorSeverity
from .loader import load_engine_config_data
from .validators import validate_engine_config

logger = logging.getLogger(__name__)

# --- Global Singleton for Configuration ---

_CONFIG: Optional[EngineConfig] = None

# Default path to the configuration file: <repo>/conf/config.toml.
# Overridden by the CLI (--config) and by tests.
_CONFIG_FILE_PATH = Path(__file__).parent.parent.parent.parent / "conf" / "config.toml"


def set_config_path(config_path: Path) -> None:
    """
    Set a custom configuration file path.

    Clears the cached configuration so the next get_config() reads the new file.
    """
    global _CONFIG_FILE_PATH, _CONFIG
    _CONFIG_FILE_PATH = Path(config_path)
    _CONFIG = None
    logger.info(f"Configuration path set to: {config_path}")


def clear_config_cache() -> None:
    """
    Clear the cached configuration, forcing a reload on next access.
    """
    global _CONFIG
    _CONFIG = None
    logger.debug("Configuration cache cleared")


def _load_config(config_path: Path) -> EngineConfig:
    """
    Load and validate the engine configuration.

    A missing file is not an error: the engine runs on built-in defaults.

    Raises:
        ValidationError: If configuration validation fails
        tomllib.TOMLDecodeError: If the file is malformed
    """
    if not config_path.exists():
        logger.warning(f"Configuration file {config_path} not found, using built-in defaults")
        return EngineConfig()

    try:
        engine_data = load_engine_config_data(config_path)
        engine_config = validate_engine_config(engine_data)
        logger.info(f"Successfully loaded configuration from {config_path}")
        return engine_config
    except Exception as e:
        handle_config_error(
            error=e,
            context="processing configuration",
            severity=ErrorSeverity.CRITICAL,
            reraise=True,
            logger=logger
        )
        raise


def get_config() -> EngineConfig:
    """
    Get the global engine configuration, loading it if necessary.

    Returns:
        The singleton EngineConfig instance
    """
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = _load_config(_CONFIG_FILE_PATH)
    return _CONFIG


def is_config_loaded() -> bool:
    """Check if configuration has been loaded and cached."""
    return _CONFIG is not None


def get_config_info() -> dict:
    """
    Get information about the current configuration state.
    """
    return {
        "config_loaded": is_config_loaded(),
        "config_path": str(_CONFIG_FILE_PATH),
        "config_exists": _CONFIG_FILE_PATH.exists(),
        "launcher": _CONFIG.launcher if _CONFIG else None,
    }
