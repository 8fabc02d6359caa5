"""Configuration Registry - Defines all configuration keys with tier classification.

This module provides the ConfigKey dataclass and REGISTRY dictionary that defines
all configuration options available to the status dashboard.

Two-Tier System:
- Static Config (tier="static"): Requires restart to apply changes
  Examples: project root, store path, environment tag, log destination
- Dynamic Config (tier="dynamic"): Can be hot-reloaded without restart
  Examples: refresh interval, probe timeout, color output, log verbosity
"""

from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional


@dataclass
class ConfigKey:
    """Defines a single configuration key with validation and tier classification.

    Attributes:
        tier: "static" (restart required) or "dynamic" (hot-reloadable)
        value_type: Expected Python type (str, int, float, bool, list, dict)
        default: Default value if not specified in config files
        min_value: Minimum value for numeric types (optional)
        max_value: Maximum value for numeric types (optional)
        restart_required: Auto-derived from tier (True for static, False for dynamic)
        validator: Custom validation function (optional)
    """
    tier: Literal["static", "dynamic"]
    value_type: type
    default: Any
    min_value: Optional[Any] = None
    max_value: Optional[Any] = None
    restart_required: bool = False
    validator: Optional[Callable[[Any], bool]] = None

    def __post_init__(self):
        """Auto-derive restart_required from tier."""
        self.restart_required = (self.tier == "static")


# Configuration Registry
# =======================
# All configuration keys must be registered here with their tier classification.

REGISTRY: dict[str, ConfigKey] = {
    # ===== PROJECT (Static - Foundation) =====
    "project.path": ConfigKey(
        tier="static",
        value_type=str,
        default=".",
    ),

    # ===== DATABASE (Static - Store artifact) =====
    "database.path": ConfigKey(
        tier="static",
        value_type=str,
        default=".memory/project-memory.db",
    ),

    # ===== SYSTEM (Static - Reported in the system section) =====
    "system.environment": ConfigKey(
        tier="static",
        value_type=str,
        default="development",
        validator=lambda v: v in ("development", "production", "test"),
    ),

    # ===== LOGGING (Static destination, Dynamic verbosity) =====
    "logging.file_path": ConfigKey(
        tier="static",
        value_type=str,
        default="",
    ),
    "logging.json": ConfigKey(
        tier="static",
        value_type=bool,
        default=False,
    ),
    "logging.level": ConfigKey(
        tier="dynamic",
        value_type=str,
        default="INFO",
        validator=lambda v: v in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
    ),

    # ===== DASHBOARD (Dynamic - Display and polling tuning) =====
    "dashboard.refresh_seconds": ConfigKey(
        tier="dynamic",
        value_type=float,
        default=5.0,
        min_value=0.5,
        max_value=300.0,
    ),
    "dashboard.recent_activity_limit": ConfigKey(
        tier="dynamic",
        value_type=int,
        default=20,
        min_value=1,
        max_value=100,
    ),
    "dashboard.use_colors": ConfigKey(
        tier="dynamic",
        value_type=bool,
        default=True,
    ),
    "dashboard.probe_timeout_seconds": ConfigKey(
        tier="dynamic",
        value_type=float,
        default=1.0,
        min_value=0.1,
        max_value=10.0,
    ),
}


def get_config_key(key: str) -> ConfigKey:
    """Get configuration key definition from registry.

    Args:
        key: Configuration key path (e.g., "dashboard.refresh_seconds")

    Returns:
        ConfigKey definition

    Raises:
        KeyError: If key not found in registry
    """
    if key not in REGISTRY:
        raise KeyError(f"Configuration key '{key}' not found in registry")
    return REGISTRY[key]


def validate_config_value(key: str, value: Any) -> tuple[bool, Optional[str]]:
    """Validate a configuration value against its registered definition.

    Args:
        key: Configuration key path
        value: Value to validate

    Returns:
        Tuple of (is_valid, error_message)
        error_message is None if valid
    """
    try:
        config_key = get_config_key(key)
    except KeyError as e:
        return False, str(e)

    # bool is an int subclass; never accept it for numeric keys
    if isinstance(value, bool) and config_key.value_type is not bool:
        return False, f"Expected type {config_key.value_type.__name__}, got bool"

    # TOML writes whole numbers as ints; accept them for float keys
    if config_key.value_type is float and isinstance(value, int):
        value = float(value)

    # Type validation
    if not isinstance(value, config_key.value_type):
        return False, f"Expected type {config_key.value_type.__name__}, got {type(value).__name__}"

    # Range validation for numeric types
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if config_key.min_value is not None and value < config_key.min_value:
            return False, f"Value {value} below minimum {config_key.min_value}"
        if config_key.max_value is not None and value > config_key.max_value:
            return False, f"Value {value} above maximum {config_key.max_value}"

    # Custom validator
    if config_key.validator is not None:
        try:
            if not config_key.validator(value):
                return False, f"Custom validation failed for value: {value}"
        except Exception as e:
            return False, f"Validator error: {str(e)}"

    return True, None


def get_default_values() -> dict[str, Any]:
    """Get default values for all configuration keys.

    Returns:
        Dictionary of key -> default_value
    """
    return {key: config_key.default for key, config_key in REGISTRY.items()}


def get_static_keys() -> list[str]:
    """Get list of all static configuration keys (restart required).

    Returns:
        List of static config key paths
    """
    return [key for key, config_key in REGISTRY.items() if config_key.tier == "static"]


def get_dynamic_keys() -> list[str]:
    """Get list of all dynamic configuration keys (hot-reloadable).

    Returns:
        List of dynamic config key paths
    """
    return [key for key, config_key in REGISTRY.items() if config_key.tier == "dynamic"]
