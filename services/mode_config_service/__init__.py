"""
Mode Config Service
Lets remote clients read and change the operating mode of the device, keeping
the shared config file and the in-memory configuration in step.
"""

from .src import (
    ConfigStore,
    ConfigPoller,
    DeviceMode,
    ModeConfigManager,
    StoredConfig,
    app,
    create_app,
)

__version__ = "1.0.0"
__all__ = [
    "ConfigStore",
    "ConfigPoller",
    "DeviceMode",
    "ModeConfigManager",
    "StoredConfig",
    "app",
    "create_app",
]
