from typing import Any, Dict, Optional

from shared.common_utils.logger import logger

from ..config.env_settings import ModeConfigSettings
from .config_store import ConfigStore
from .poller import ConfigPoller
from .schemas import ConfigStatus, DeviceMode, ReloadOutcome
from .validator import validate_config_update


class ModeConfigManager:
    """Wires the validator, the config store and the poller together."""

    def __init__(self, settings: Optional[ModeConfigSettings] = None):
        self.settings = settings or ModeConfigSettings()
        self.store = ConfigStore(
            self.settings.CONFIG_FILE_PATH,
            enabled_modes=self.settings.enabled_modes,
        )
        self.poller = ConfigPoller(self.store, interval=self.settings.POLL_INTERVAL_SECONDS)

    async def start(self) -> None:
        """Load the config file and start polling if it was found."""
        outcome = await self.store.load()
        if outcome is ReloadOutcome.RELOADED:
            self.poller.start()
        else:
            logger.warning(
                f"Using default configuration ({outcome.value}); "
                "polling resumes after the next successful save"
            )
        logger.info(
            f"{self.settings.SERVICE_NAME} v{self.settings.SERVICE_VERSION} started "
            f"with config file {self.store.config_file_path}"
        )

    async def stop(self) -> None:
        await self.poller.stop()
        logger.info(f"{self.settings.SERVICE_NAME} stopped")

    def get_config(self) -> Dict[str, Any]:
        return self.store.get()

    async def update_config(self, payload: Any) -> Dict[str, Any]:
        """Validate, apply and persist a change, then make sure polling runs.

        Fields of the requested mode that the payload omits are taken from
        what was stored for that mode before.
        """
        if isinstance(payload, dict):
            payload = self._with_retained_fields(payload)

        settings = validate_config_update(payload, self.store.enabled_modes)
        projection = await self.store.apply(settings)
        self.poller.start()
        return projection

    def get_status(self) -> ConfigStatus:
        return ConfigStatus(
            timestamp=self.store.snapshot.last_updated,
            config_file_path=str(self.store.config_file_path),
            config_loaded=self.store.config_loaded,
            polling_active=self.poller.is_running,
        )

    def _with_retained_fields(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        mode = payload.get("mode")
        if not isinstance(mode, str) or mode not in {m.value for m in self.store.enabled_modes}:
            return payload
        return {**self.store.retained_fields(DeviceMode(mode)), **payload}
