from pathlib import Path
from typing import List

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..src.schemas import DeviceMode

# services/mode_config_service/config -> repository root
DEFAULT_INSTALL_DIR = Path(__file__).resolve().parents[3]


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class ModeConfigSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Service settings
    SERVICE_NAME: str = "mode_config_service"
    SERVICE_VERSION: str = "1.0.0"
    SERVICE_DESCRIPTION: str = "Device mode configuration API"

    # API settings
    API_HOST: str = "0.0.0.0"
    API_PORT: int = Field(default=3000, validation_alias=AliasChoices("API_PORT", "PORT"))
    CORS_ALLOW_ORIGINS: str = "*"

    # Config file settings
    INSTALL_DIR: Path = DEFAULT_INSTALL_DIR
    CONFIG_FILE_NAME: str = "config.json"
    POLL_INTERVAL_SECONDS: float = Field(default=0.1, gt=0)
    ENABLED_MODES: str = ",".join(mode.value for mode in DeviceMode)

    # Logging settings
    LOG_LEVEL: str = "INFO"

    @field_validator("ENABLED_MODES")
    @classmethod
    def _check_enabled_modes(cls, value: str) -> str:
        names = _split_csv(value)
        if not names:
            raise ValueError("ENABLED_MODES must name at least one mode")
        known = {mode.value for mode in DeviceMode}
        unknown = [name for name in names if name not in known]
        if unknown:
            raise ValueError(f"Unknown modes in ENABLED_MODES: {', '.join(unknown)}")
        return value

    @property
    def CONFIG_FILE_PATH(self) -> Path:
        return self.INSTALL_DIR / "config" / self.CONFIG_FILE_NAME

    @property
    def API_URL(self) -> str:
        return f"http://{self.API_HOST}:{self.API_PORT}"

    @property
    def enabled_modes(self) -> List[DeviceMode]:
        return list(dict.fromkeys(DeviceMode(name) for name in _split_csv(self.ENABLED_MODES)))

    @property
    def cors_origins(self) -> List[str]:
        return _split_csv(self.CORS_ALLOW_ORIGINS)
