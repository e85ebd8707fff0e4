from datetime import datetime, timedelta, UTC
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"
# How far ahead of the clock a previous timestamp may be and still be nudged past.
MAX_CLOCK_SKEW = timedelta(seconds=1)


class DeviceMode(str, Enum):
    """Operating behaviour of the downstream device."""
    LED = "led"
    WEB = "web"
    CHROMECAST = "chromecast"
    POWERPOINT = "powerpoint"


class ConfigSource(str, Enum):
    DEFAULTS = "defaults"
    FILE = "file"
    API = "api"


class ReloadOutcome(str, Enum):
    """Result of one reload check against the config file."""
    NOT_FOUND = "not_found"
    UNCHANGED = "unchanged"
    RELOADED = "reloaded"
    ERROR = "error"


class LedSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["led"] = "led"


class WebSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["web"] = "web"
    web_url: str


class ChromecastSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["chromecast"] = "chromecast"
    chromecast_name: str
    youtube_video_id: str


class PowerpointSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["powerpoint"] = "powerpoint"
    ppt_email: str


ModeSettings = Annotated[
    Union[LedSettings, WebSettings, ChromecastSettings, PowerpointSettings],
    Field(discriminator="mode"),
]
MODE_SETTINGS_ADAPTER = TypeAdapter(ModeSettings)

MODE_VARIANTS = {
    DeviceMode.LED: LedSettings,
    DeviceMode.WEB: WebSettings,
    DeviceMode.CHROMECAST: ChromecastSettings,
    DeviceMode.POWERPOINT: PowerpointSettings,
}
if set(MODE_VARIANTS) != set(DeviceMode):
    raise RuntimeError("Every DeviceMode needs a settings variant")


def mode_fields(mode: DeviceMode) -> tuple:
    """API names of the fields that belong to ``mode``."""
    return tuple(name for name in MODE_VARIANTS[mode].model_fields if name != "mode")


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)[:23]


def parse_timestamp(value: str) -> Optional[datetime]:
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=UTC)
    except (TypeError, ValueError):
        return None


def next_timestamp(previous: Optional[str] = None) -> str:
    """Current UTC time, nudged forward so it sorts after ``previous``.

    A ``previous`` more than ``MAX_CLOCK_SKEW`` in the future is ignored.
    """
    now = datetime.now(UTC)
    last = parse_timestamp(previous) if previous else None
    if last is not None and now <= last <= now + MAX_CLOCK_SKEW:
        now = last + timedelta(milliseconds=1)
    return format_timestamp(now)


class StoredConfig(BaseModel):
    """Canonical configuration record, as persisted in the config file.

    Field names are the API (snake_case) names; aliases are the file
    (camelCase) names. Fields of every mode are kept so that switching
    modes back and forth does not lose earlier settings.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    mode: str = DeviceMode.LED.value
    web_url: str = Field(default="", alias="webUrl")
    chromecast_name: str = Field(default="", alias="chromecastName")
    youtube_video_id: str = Field(default="", alias="youtubeVideoId")
    ppt_email: str = Field(default="", alias="pptEmail")
    last_updated: str = Field(default_factory=lambda: next_timestamp(), alias="lastUpdated")

    @classmethod
    def from_file_data(cls, data: Dict[str, Any]) -> "StoredConfig":
        """Build a snapshot from a parsed file; missing fields fall back to empty strings."""
        values = {
            field.alias or name: data.get(field.alias or name) or ""
            for name, field in cls.model_fields.items()
            if name != "last_updated"
        }
        values["lastUpdated"] = data.get("lastUpdated") or next_timestamp()
        extras = {
            key: value
            for key, value in data.items()
            if key not in values and key not in cls.model_fields
        }
        return cls.model_validate({**extras, **values})

    def to_file_data(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, include=set(type(self).model_fields))

    def with_settings(self, settings: ModeSettings, last_updated: str) -> "StoredConfig":
        """Switch to ``settings.mode``, touching only that mode's fields."""
        return self.model_copy(update={**settings.model_dump(), "last_updated": last_updated})

    def active_settings(self) -> ModeSettings:
        """Typed view of the active mode; raises ``pydantic.ValidationError`` for unknown modes."""
        return MODE_SETTINGS_ADAPTER.validate_python(self.model_dump(exclude={"last_updated"}))


class ConfigStatus(BaseModel):
    status: str = "running"
    timestamp: str
    config_file_path: str
    config_loaded: bool
    polling_active: bool


class ErrorResponse(BaseModel):
    error: str
