import json
import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from services.mode_config_service.config.env_settings import ModeConfigSettings
from services.mode_config_service.src.api import create_app
from services.mode_config_service.src.config_store import ConfigStore


@pytest.fixture
def settings(tmp_path):
    """Settings pointing the service at a temporary install directory."""
    return ModeConfigSettings(
        INSTALL_DIR=tmp_path,
        POLL_INTERVAL_SECONDS=0.02,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def config_file(settings) -> Path:
    """Location of the config file; it does not exist until a test writes it."""
    return settings.CONFIG_FILE_PATH


@pytest.fixture
def write_config(config_file):
    """Write a config document the way an external process would.

    The modification time is pushed a second past the previous one so the
    change is visible even on filesystems with coarse timestamps.
    """
    def _write(content):
        previous = config_file.stat().st_mtime_ns if config_file.exists() else None
        config_file.parent.mkdir(parents=True, exist_ok=True)
        text = content if isinstance(content, str) else json.dumps(content, indent=2)
        config_file.write_text(text, encoding="utf-8")
        if previous is not None:
            bumped = max(previous, config_file.stat().st_mtime_ns) + 1_000_000_000
            os.utime(config_file, ns=(bumped, bumped))
        return config_file

    return _write


@pytest.fixture
def read_config(config_file):
    """Parse the config file as the device driver would."""
    def _read():
        return json.loads(config_file.read_text(encoding="utf-8"))

    return _read


@pytest.fixture
def chromecast_document():
    return {
        "mode": "chromecast",
        "webUrl": "https://example.com/dashboard",
        "chromecastName": "Living Room TV",
        "youtubeVideoId": "dQw4w9WgXcQ",
        "pptEmail": "",
        "lastUpdated": "2024-05-01 10:00:00.000",
    }


@pytest.fixture
def store(config_file):
    """A config store backed by the temporary config file."""
    return ConfigStore(config_file)


@pytest.fixture
def start_client(settings):
    """Start the API (lifespan included) on demand, after files are prepared."""
    clients = []

    def _start() -> TestClient:
        client = TestClient(create_app(settings))
        client.__enter__()
        clients.append(client)
        return client

    yield _start

    for client in clients:
        client.__exit__(None, None, None)
