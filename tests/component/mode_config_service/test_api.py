import time
from unittest.mock import AsyncMock, patch

ALL_MODES_REASON = "mode must be one of: led, web, chromecast, powerpoint"


def wait_for(predicate, timeout: float = 2.0, interval: float = 0.02) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def polling_active(client) -> bool:
    return client.get("/api/status").json()["polling_active"]


def test_defaults_without_config_file(start_client, config_file):
    """Test that the service starts on defaults when the file is absent."""
    client = start_client()

    response = client.get("/api/config")
    assert response.status_code == 200
    body = response.json()
    assert body["mode"] == "led"
    assert body["status"] == "success"
    assert "last_updated" in body

    status = client.get("/api/status").json()
    assert status["status"] == "running"
    assert status["config_file_path"] == str(config_file)
    assert status["config_loaded"] is False
    assert status["polling_active"] is False
    assert status["timestamp"] == body["last_updated"]


def test_startup_loads_existing_file(start_client, write_config, chromecast_document):
    write_config(chromecast_document)
    client = start_client()

    assert client.get("/api/config").json() == {
        "mode": "chromecast",
        "last_updated": "2024-05-01 10:00:00.000",
        "chromecast_name": "Living Room TV",
        "youtube_video_id": "dQw4w9WgXcQ",
        "status": "success",
    }
    status = client.get("/api/status").json()
    assert status["config_loaded"] is True
    assert status["polling_active"] is True


def test_post_then_get_chromecast(start_client, read_config):
    """Test that a chromecast update is returned, persisted and timestamped."""
    client = start_client()
    before = client.get("/api/config").json()["last_updated"]

    response = client.post(
        "/api/config",
        json={"mode": "chromecast", "chromecast_name": "TV", "youtube_video_id": "abc123"},
    )
    assert response.status_code == 200

    body = client.get("/api/config").json()
    assert body["mode"] == "chromecast"
    assert body["chromecast_name"] == "TV"
    assert body["youtube_video_id"] == "abc123"
    assert body["last_updated"] > before
    assert body == response.json()

    stored = read_config()
    assert stored["chromecastName"] == "TV"
    assert stored["youtubeVideoId"] == "abc123"


def test_projection_only_shows_active_mode(start_client):
    client = start_client()
    client.post("/api/config", json={"mode": "chromecast", "chromecast_name": "TV", "youtube_video_id": "abc"})

    body = client.post("/api/config", json={"mode": "web", "web_url": "https://example.com"}).json()

    assert body["web_url"] == "https://example.com"
    assert "chromecast_name" not in body
    assert "youtube_video_id" not in body


def test_last_updated_increases_across_posts(start_client):
    client = start_client()
    stamps = [
        client.post("/api/config", json={"mode": "led"}).json()["last_updated"]
        for _ in range(3)
    ]
    assert stamps == sorted(set(stamps))


def test_post_rejects_missing_or_unknown_mode(start_client):
    client = start_client()

    for payload in ({}, {"mode": "disco"}, {"web_url": "https://example.com"}):
        response = client.post("/api/config", json=payload)
        assert response.status_code == 400
        assert response.json() == {"error": ALL_MODES_REASON}


def test_post_rejects_invalid_email(start_client):
    client = start_client()

    response = client.post("/api/config", json={"mode": "powerpoint", "ppt_email": "not-an-email"})

    assert response.status_code == 400
    assert "invalid email" in response.json()["error"].lower()


def test_post_rejects_body_that_is_not_json(start_client):
    client = start_client()

    response = client.post(
        "/api/config", content=b"mode=led", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert "error" in response.json()


def test_rejected_post_changes_nothing(start_client):
    client = start_client()
    before = client.get("/api/config").json()

    client.post("/api/config", json={"mode": "web", "web_url": "nope"})

    assert client.get("/api/config").json() == before


def test_switching_back_restores_previous_fields(start_client):
    """Test that chromecast -> led -> chromecast keeps the stored name and id."""
    client = start_client()
    client.post("/api/config", json={"mode": "chromecast", "chromecast_name": "TV", "youtube_video_id": "abc123"})
    client.post("/api/config", json={"mode": "led"})

    response = client.post("/api/config", json={"mode": "chromecast"})

    assert response.status_code == 200
    body = response.json()
    assert body["chromecast_name"] == "TV"
    assert body["youtube_video_id"] == "abc123"


def test_first_chromecast_switch_still_needs_fields(start_client):
    client = start_client()

    response = client.post("/api/config", json={"mode": "chromecast"})

    assert response.status_code == 400
    assert response.json()["error"] == (
        "chromecast_name and youtube_video_id are required for chromecast mode"
    )


def test_deleted_file_stops_polling_until_next_save(start_client, write_config, config_file):
    """Test the poller lifecycle as seen through /api/status."""
    write_config({"mode": "led"})
    client = start_client()
    assert polling_active(client) is True

    config_file.unlink()
    assert wait_for(lambda: polling_active(client) is False)

    response = client.post("/api/config", json={"mode": "web", "web_url": "https://example.com"})
    assert response.status_code == 200
    assert config_file.exists()
    assert polling_active(client) is True


def test_external_rewrite_is_mirrored(start_client, write_config, chromecast_document):
    """Test that a newer file fully replaces the served configuration."""
    write_config(chromecast_document)
    client = start_client()

    write_config({"mode": "powerpoint", "pptEmail": "deck@example.com", "lastUpdated": "2024-07-01 09:00:00.000"})

    assert wait_for(lambda: client.get("/api/config").json()["mode"] == "powerpoint")
    assert client.get("/api/config").json() == {
        "mode": "powerpoint",
        "last_updated": "2024-07-01 09:00:00.000",
        "ppt_email": "deck@example.com",
        "status": "success",
    }

    # The overwrite dropped the chromecast settings that the new file lacks.
    response = client.post("/api/config", json={"mode": "chromecast"})
    assert response.status_code == 400


def test_malformed_file_keeps_config_and_stops_polling(start_client, write_config, chromecast_document):
    write_config(chromecast_document)
    client = start_client()
    before = client.get("/api/config").json()

    write_config("{\"mode\": ")

    assert wait_for(lambda: polling_active(client) is False)
    assert client.get("/api/config").json() == before


def test_unknown_mode_in_file_is_server_error(start_client, write_config):
    write_config({"mode": "hologram"})
    client = start_client()

    response = client.get("/api/config")

    assert response.status_code == 500
    assert response.json() == {"error": "Mode not valid"}


def test_save_failure_is_server_error(start_client):
    client = start_client()

    with patch(
        "services.mode_config_service.src.config_store.aiofiles.os.replace",
        new=AsyncMock(side_effect=PermissionError("read-only filesystem")),
    ):
        response = client.post("/api/config", json={"mode": "led"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to save configuration"}
    status = client.get("/api/status").json()
    assert status["polling_active"] is False
    assert status["config_loaded"] is False


def test_unknown_routes_return_404(start_client):
    client = start_client()

    for method, path in (("get", "/api/nothing"), ("get", "/"), ("delete", "/api/config"), ("post", "/api/status")):
        response = getattr(client, method)(path)
        assert response.status_code == 404
        assert response.json() == {"error": "Endpoint not found"}


def test_unexpected_error_is_generic_server_error(start_client):
    client = start_client()
    manager = client.app.state.config_manager

    with patch.object(manager.store, "apply", new=AsyncMock(side_effect=RuntimeError("boom"))):
        response = client.post("/api/config", json={"mode": "led"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_request_id_header(start_client):
    client = start_client()

    generated = client.get("/api/status")
    echoed = client.get("/api/status", headers={"X-Request-ID": "req-42"})

    assert generated.headers["X-Request-ID"]
    assert echoed.headers["X-Request-ID"] == "req-42"


def test_cors_allows_any_origin(start_client):
    client = start_client()

    response = client.get("/api/config", headers={"Origin": "http://dashboard.local"})

    assert response.headers["access-control-allow-origin"] == "*"
