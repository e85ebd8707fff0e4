import asyncio
import contextlib
import json
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from shared.common_utils.logger import logger

from .schemas import (
    ConfigSource,
    DeviceMode,
    ModeSettings,
    ReloadOutcome,
    StoredConfig,
    mode_fields,
    next_timestamp,
)
from .validator import ConfigValidationError, STORED_CONFIG_SCHEMA, validate_config_structure


class ConfigNotFoundError(Exception):
    pass


class ConfigParseError(Exception):
    pass


class ConfigPersistenceError(Exception):
    pass


class UnknownModeError(Exception):
    pass


class ConfigStore:
    """Single owner of the device configuration and its backing file.

    ``apply``, ``save`` and ``load`` run one at a time under ``_lock``.
    ``get`` never waits for them: snapshots are immutable and replaced as a
    whole, so a reader sees either the old or the new configuration.
    """

    def __init__(
        self,
        config_file_path: Union[str, Path],
        enabled_modes: Optional[Iterable[DeviceMode]] = None,
    ):
        self.config_file_path = Path(config_file_path)
        self.enabled_modes = list(enabled_modes or DeviceMode)
        self._snapshot = StoredConfig()
        self._source = ConfigSource.DEFAULTS
        self._watermark: Optional[int] = None
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> StoredConfig:
        return self._snapshot

    @property
    def source(self) -> ConfigSource:
        return self._source

    @property
    def config_loaded(self) -> bool:
        return self._source is not ConfigSource.DEFAULTS

    @property
    def watermark(self) -> Optional[int]:
        return self._watermark

    async def load(self) -> ReloadOutcome:
        """Reload the file if its modification time moved past the watermark."""
        async with self._lock:
            try:
                stat = await aiofiles.os.stat(self.config_file_path)
            except FileNotFoundError:
                self._watermark = None
                logger.warning(f"Configuration file not found at {self.config_file_path}")
                return ReloadOutcome.NOT_FOUND
            except OSError as e:
                logger.error(f"Could not stat configuration file {self.config_file_path}: {e}")
                return ReloadOutcome.ERROR

            if self._watermark is not None and stat.st_mtime_ns == self._watermark:
                return ReloadOutcome.UNCHANGED

            try:
                data = await self._read_file()
            except ConfigNotFoundError as e:
                self._watermark = None
                logger.warning(str(e))
                return ReloadOutcome.NOT_FOUND
            except ConfigParseError as e:
                logger.error(f"{e}. Keeping last known configuration.")
                return ReloadOutcome.ERROR

            self._snapshot = StoredConfig.from_file_data(data)
            self._source = ConfigSource.FILE
            self._watermark = stat.st_mtime_ns
            logger.info(
                f"Configuration loaded from {self.config_file_path}: "
                f"mode={self._snapshot.mode}, timestamp={self._snapshot.last_updated}"
            )
            return ReloadOutcome.RELOADED

    async def save(self) -> None:
        """Persist the current snapshot. Raises ConfigPersistenceError on I/O failure."""
        async with self._lock:
            await self._write_file(self._snapshot)

    def get(self) -> Dict[str, Any]:
        return self.project(self._snapshot)

    async def apply(self, settings: ModeSettings) -> Dict[str, Any]:
        """Switch to ``settings`` and persist.

        Only the fields of ``settings.mode`` are replaced. If the write fails
        the new snapshot stays in memory, the source is left as it was and
        ConfigPersistenceError propagates.
        """
        async with self._lock:
            updated = self._snapshot.with_settings(
                settings, last_updated=next_timestamp(self._snapshot.last_updated)
            )
            self._snapshot = updated
            await self._write_file(updated)
            self._source = ConfigSource.API

        logger.info(f"Updated configuration: mode={updated.mode}, timestamp={updated.last_updated}")
        return self.project(updated)

    def project(self, snapshot: StoredConfig) -> Dict[str, Any]:
        if snapshot.mode not in {mode.value for mode in self.enabled_modes}:
            raise UnknownModeError(f"Mode not valid: {snapshot.mode!r}")
        try:
            settings = snapshot.active_settings()
        except ValidationError as e:
            raise UnknownModeError(f"Mode not valid: {snapshot.mode!r}") from e

        return {
            "mode": settings.mode,
            "last_updated": snapshot.last_updated,
            **settings.model_dump(exclude={"mode"}),
            "status": "success",
        }

    def retained_fields(self, mode: DeviceMode) -> Dict[str, str]:
        """Previously stored, non-empty fields of ``mode``."""
        snapshot = self._snapshot
        return {
            name: getattr(snapshot, name)
            for name in mode_fields(mode)
            if getattr(snapshot, name)
        }

    async def _read_file(self) -> Dict[str, Any]:
        path = self.config_file_path
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError as e:
            raise ConfigNotFoundError(f"Configuration file not found at {path}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigParseError(f"Could not read configuration file {path}: {e}") from e

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigParseError(f"Could not parse configuration file {path}: {e}") from e

        try:
            validate_config_structure(data, STORED_CONFIG_SCHEMA)
        except ConfigValidationError as e:
            raise ConfigParseError(f"Malformed configuration file {path}: {e}") from e
        return data

    async def _write_file(self, snapshot: StoredConfig) -> None:
        path = self.config_file_path
        temp_path = path.with_name(f".{path.name}.tmp")
        content = json.dumps(snapshot.to_file_data(), indent=2)

        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(content)
            await aiofiles.os.replace(temp_path, path)
            stat = await aiofiles.os.stat(path)
        except OSError as e:
            with contextlib.suppress(FileNotFoundError):
                await aiofiles.os.remove(temp_path)
            logger.error(f"Failed to save configuration to {path}: {e}")
            raise ConfigPersistenceError(f"Failed to save configuration: {e}") from e

        # Our own write must not look like an external change to the poller.
        self._watermark = stat.st_mtime_ns
        logger.debug(f"Configuration saved to {path}")
