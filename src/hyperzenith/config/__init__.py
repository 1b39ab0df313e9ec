"""
Configuration management for the hyperzenith package.

This module provides a clean interface for loading, validating, and accessing
the engine configuration from a TOML file with singleton pattern management.
"""

from .manager import (
    clear_config_cache,
    get_config,
    get_config_info,
    is_config_loaded,
    set_config_path,
)
from .loader import load_engine_config_data, load_toml_file
from .validators import validate_engine_config

__all__ = [
    "get_config",
    "set_config_path",
    "clear_config_cache",
    "is_config_loaded",
    "get_config_info",
    "load_toml_file",
    "load_engine_config_data",
    "validate_engine_config",
]
