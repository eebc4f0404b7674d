from fastapi.testclient import TestClient

from upload_broker.common.config import get_settings
from upload_broker.main import create_app


def test_api_key_required_when_enabled(mock_storage, monkeypatch):
    monkeypatch.setenv("API_KEY_ENABLED", "true")
    monkeypatch.setenv("API_KEY", "secret-123")
    get_settings.cache_clear()  # type: ignore[attr-defined]

    client = TestClient(create_app())
    payload = {"partCount": 1}

    # Missing key -> 401 on protected routes
    r = client.post("/api/v1/uploads/multipart/start", json=payload)
    assert r.status_code == 401

    # Wrong key -> 401
    r = client.post(
        "/api/v1/uploads/multipart/start",
        json=payload,
        headers={"X-API-Key": "wrong"},
    )
    assert r.status_code == 401

    # Legacy paths are guarded as well
    r = client.post("/startMultipartUpload", json=payload)
    assert r.status_code == 401

    r = client.post(
        "/api/v1/uploads/multipart/start",
        json=payload,
        headers={"X-API-Key": "secret-123"},
    )
    assert r.status_code == 200

    # operational endpoints stay open
    assert client.get("/health").status_code == 200
