import re
from typing import Any, Callable, Dict, Iterable

import jsonschema
from pydantic import AnyUrl, TypeAdapter, ValidationError

from .schemas import DeviceMode, MODE_SETTINGS_ADAPTER, ModeSettings, StoredConfig

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_ADAPTER = TypeAdapter(AnyUrl)

# Shape of the persisted file. Only the canonical fields are typed; anything
# else the file carries is tolerated.
STORED_CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        field.alias or name: {"type": ["string", "null"]}
        for name, field in StoredConfig.model_fields.items()
    },
}


class ConfigValidationError(Exception):
    pass


def validate_config_structure(config: Any, schema: Dict[str, Any]) -> None:
    """
    Validates a configuration against a JSON schema.
    """
    try:
        jsonschema.validate(instance=config, schema=schema)
    except jsonschema.exceptions.ValidationError as e:
        raise ConfigValidationError(f"Configuration validation failed: {e.message}")


def is_absolute_url(value: str) -> bool:
    if not value or any(ch.isspace() for ch in value):
        return False
    try:
        URL_ADAPTER.validate_python(value)
    except ValidationError:
        return False
    return True


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


def _validate_led(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {}


def _validate_web(payload: Dict[str, Any]) -> Dict[str, Any]:
    web_url = payload.get("web_url")
    if not web_url or not isinstance(web_url, str):
        raise ConfigValidationError("web_url is required for web mode")
    if not is_absolute_url(web_url):
        raise ConfigValidationError("web_url must be a valid URL")
    return {"web_url": web_url}


def _validate_chromecast(payload: Dict[str, Any]) -> Dict[str, Any]:
    name = payload.get("chromecast_name")
    video_id = payload.get("youtube_video_id")
    if not (name and isinstance(name, str) and video_id and isinstance(video_id, str)):
        raise ConfigValidationError(
            "chromecast_name and youtube_video_id are required for chromecast mode"
        )
    return {"chromecast_name": name, "youtube_video_id": video_id}


def _validate_powerpoint(payload: Dict[str, Any]) -> Dict[str, Any]:
    email = payload.get("ppt_email")
    if not email or not isinstance(email, str):
        raise ConfigValidationError("ppt_email is required for powerpoint mode")
    if not is_valid_email(email):
        raise ConfigValidationError("Invalid email address for ppt_email")
    return {"ppt_email": email}


_MODE_VALIDATORS: Dict[DeviceMode, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    DeviceMode.LED: _validate_led,
    DeviceMode.WEB: _validate_web,
    DeviceMode.CHROMECAST: _validate_chromecast,
    DeviceMode.POWERPOINT: _validate_powerpoint,
}
if set(_MODE_VALIDATORS) != set(DeviceMode):
    raise RuntimeError("Every DeviceMode needs a validator")


def validate_config_update(payload: Any, allowed_modes: Iterable[DeviceMode]) -> ModeSettings:
    """
    Checks a proposed configuration change and returns the typed settings for
    its mode. Raises ConfigValidationError with a single reason otherwise.
    """
    if not isinstance(payload, dict):
        raise ConfigValidationError("Request body must be a JSON object")

    allowed = [DeviceMode(mode).value for mode in allowed_modes]
    mode = payload.get("mode")
    if not isinstance(mode, str) or mode not in allowed:
        raise ConfigValidationError(f"mode must be one of: {', '.join(allowed)}")

    fields = _MODE_VALIDATORS[DeviceMode(mode)](payload)
    return MODE_SETTINGS_ADAPTER.validate_python({"mode": mode, **fields})
