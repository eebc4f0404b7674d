from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

TEST_ENVIRONMENT = {
    "S3_BUCKET": "test-bucket",
    "S3_REGION": "ap-northeast-1",
    "S3_KEY_PREFIX": "",
    "IDENTITY_POOL_ID": "ap-northeast-1:pool-id",
    "IDENTITY_LOGIN_PROVIDER": "login.example.upload",
    "AUTH_ENABLED": "false",
    "API_KEY_ENABLED": "false",
    "TRACE_HTTP": "false",
}
os.environ.update(TEST_ENVIRONMENT)

from upload_broker.common.config import get_settings  # noqa: E402

get_settings.cache_clear()  # type: ignore[attr-defined]

from upload_broker.main import create_app  # noqa: E402

from tests.services.mock_storage import (  # noqa: E402
    MockIdentityClient,
    MockStorageClient,
)


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    for key, value in TEST_ENVIRONMENT.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def mock_storage():
    storage = MockStorageClient()
    with patch(
        "upload_broker.services.upload_service.UploadService._build_storage_client",
        return_value=storage,
    ):
        yield storage


@pytest.fixture
def mock_identity():
    identity = MockIdentityClient()
    with patch(
        "upload_broker.services.identity_service.IdentityService._build_identity_client",
        return_value=identity,
    ):
        yield identity


@pytest.fixture
def client():
    return TestClient(create_app())
