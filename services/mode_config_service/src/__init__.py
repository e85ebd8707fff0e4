"""
Mode Config Service Source Package
Contains the configuration store, its poller, validation and the HTTP API.
"""

from .api import app, create_app
from .config_manager import ModeConfigManager
from .config_store import (
    ConfigNotFoundError,
    ConfigParseError,
    ConfigPersistenceError,
    ConfigStore,
    UnknownModeError,
)
from .poller import ConfigPoller, PollerState
from .schemas import (
    ChromecastSettings,
    ConfigSource,
    ConfigStatus,
    DeviceMode,
    LedSettings,
    ModeSettings,
    PowerpointSettings,
    ReloadOutcome,
    StoredConfig,
    WebSettings,
)
from .validator import (
    ConfigValidationError,
    validate_config_structure,
    validate_config_update,
)

__all__ = [
    # Main components
    "ModeConfigManager",
    "ConfigStore",
    "ConfigPoller",
    "PollerState",
    "app",
    "create_app",

    # Schemas
    "DeviceMode",
    "ConfigSource",
    "ReloadOutcome",
    "StoredConfig",
    "ConfigStatus",
    "ModeSettings",
    "LedSettings",
    "WebSettings",
    "ChromecastSettings",
    "PowerpointSettings",

    # Errors
    "ConfigValidationError",
    "ConfigNotFoundError",
    "ConfigParseError",
    "ConfigPersistenceError",
    "UnknownModeError",

    # Validation
    "validate_config_structure",
    "validate_config_update",
]
