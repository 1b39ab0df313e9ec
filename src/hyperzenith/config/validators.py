"""
Configuration validation utilities.

Turns the raw TOML tables into a validated EngineConfig.
"""

import logging
from typing import Any, Dict

from ..models.config import DEFAULT_SYNC_EXCLUDES, EngineConfig
from ..validation import (
    ValidationError,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
    validate_string_list,
)

logger = logging.getLogger(__name__)

LAUNCHER_CHOICES = ["auto", "direct", "wsl"]


def _validate_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a boolean", field_name=field_name, value=value)
    return value


def validate_engine_config(engine_data: Dict[str, Any]) -> EngineConfig:
    """
    Validate and create an EngineConfig from raw configuration data.

    Missing sections and keys take the EngineConfig defaults.

    Args:
        engine_data: Raw engine configuration from TOML

    Returns:
        Validated EngineConfig instance

    Raises:
        ValidationError: If validation fails
    """
    defaults = EngineConfig()
    paths = engine_data.get("paths", {})
    output = engine_data.get("output", {})
    progress = engine_data.get("progress", {})
    local = engine_data.get("local", {})
    remote = engine_data.get("remote", {})

    managed_builds_dir = validate_non_empty_string(
        paths.get("managed_builds_dir", defaults.managed_builds_dir),
        field_name="engine.paths.managed_builds_dir",
    )
    logs_dir = validate_non_empty_string(
        paths.get("logs_dir", defaults.logs_dir),
        field_name="engine.paths.logs_dir",
    )

    max_line_length = validate_positive_integer(
        output.get("max_line_length", defaults.max_line_length),
        min_value=16,
        max_value=10_000,
        field_name="engine.output.max_line_length",
    )
    read_buffer_limit = validate_positive_integer(
        output.get("read_buffer_limit", defaults.read_buffer_limit),
        min_value=4096,
        field_name="engine.output.read_buffer_limit",
    )

    idle_increment = validate_positive_float(
        progress.get("idle_increment", defaults.idle_increment),
        min_value=0.0,
        max_value=10.0,
        field_name="engine.progress.idle_increment",
    )
    idle_cap = validate_positive_float(
        progress.get("idle_cap", defaults.idle_cap),
        min_value=0.0,
        max_value=99.99,
        field_name="engine.progress.idle_cap",
    )

    launcher = validate_enum_choice(
        local.get("launcher", defaults.launcher),
        valid_choices=LAUNCHER_CHOICES,
        field_name="engine.local.launcher",
        case_sensitive=False,
    )
    android_sdk_path = local.get("android_sdk_path", defaults.android_sdk_path)
    if not isinstance(android_sdk_path, str):
        raise ValidationError("engine.local.android_sdk_path must be a string")
    artifact_fresh_seconds = validate_positive_float(
        local.get("artifact_fresh_seconds", defaults.artifact_fresh_seconds),
        min_value=0.0,
        field_name="engine.local.artifact_fresh_seconds",
    )
    write_success_logs = _validate_bool(
        local.get("write_success_logs", defaults.write_success_logs),
        "engine.local.write_success_logs",
    )

    ssh_connect_timeout = validate_positive_integer(
        remote.get("ssh_connect_timeout", defaults.ssh_connect_timeout),
        min_value=1,
        max_value=600,
        field_name="engine.remote.ssh_connect_timeout",
    )
    rsync_timeout = validate_positive_integer(
        remote.get("rsync_timeout", defaults.rsync_timeout),
        min_value=1,
        max_value=3600,
        field_name="engine.remote.rsync_timeout",
    )
    simulator_name = validate_non_empty_string(
        remote.get("simulator_name", defaults.simulator_name),
        field_name="engine.remote.simulator_name",
    )
    sync_excludes = validate_string_list(
        remote.get("sync_excludes", list(DEFAULT_SYNC_EXCLUDES)),
        field_name="engine.remote.sync_excludes",
    )
    cancel_timeout = validate_positive_float(
        remote.get("cancel_timeout", defaults.cancel_timeout),
        min_value=0.1,
        max_value=300.0,
        field_name="engine.remote.cancel_timeout",
    )

    if launcher == "wsl" and not android_sdk_path:
        logger.warning(
            "engine.local.launcher is 'wsl' but android_sdk_path is empty; "
            "the toolchain will rely on ANDROID_HOME inside the WSL distribution"
        )

    return EngineConfig(
        managed_builds_dir=managed_builds_dir,
        logs_dir=logs_dir,
        max_line_length=max_line_length,
        read_buffer_limit=read_buffer_limit,
        idle_increment=idle_increment,
        idle_cap=idle_cap,
        launcher=launcher,
        android_sdk_path=android_sdk_path,
        artifact_fresh_seconds=artifact_fresh_seconds,
        write_success_logs=write_success_logs,
        ssh_connect_timeout=ssh_connect_timeout,
        rsync_timeout=rsync_timeout,
        simulator_name=simulator_name,
        sync_excludes=sync_excludes,
        cancel_timeout=cancel_timeout,
    )
