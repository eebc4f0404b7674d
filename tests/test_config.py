from __future__ import annotations

import pytest

from upload_broker.common import config as config_module
from upload_broker.common.config import Settings


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in (
        "S3_BUCKET",
        "AWS_BUCKET",
        "S3_REGION",
        "AWS_REGION",
        "IDENTITY_POOL_ID",
        "AWS_IDENTITY_POOL_ID",
        "IDENTITY_LOGIN_PROVIDER",
        "AWS_LOGIN_PROVIDER",
        "CORS_ORIGINS",
    ):
        # set first so teardown also removes values loaded from .env
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.setattr(config_module, "ENV_FILE", tmp_path / ".env")
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings.from_environment()

    assert settings.S3_BUCKET is None
    assert settings.S3_REGION == "us-east-1"
    assert settings.PART_URL_EXPIRES_SECONDS == 60
    assert settings.IDENTITY_TOKEN_DURATION_SECONDS == 900
    assert settings.storage_configured is False
    assert settings.identity_configured is False


def test_aws_variable_fallbacks(clean_env):
    clean_env.setenv("AWS_BUCKET", "legacy-bucket")
    clean_env.setenv("AWS_REGION", "ap-northeast-1")
    clean_env.setenv("AWS_IDENTITY_POOL_ID", "pool")
    clean_env.setenv("AWS_LOGIN_PROVIDER", "provider")

    settings = Settings.from_environment()

    assert settings.S3_BUCKET == "legacy-bucket"
    assert settings.S3_REGION == "ap-northeast-1"
    assert settings.identity_configured is True


def test_explicit_variables_win(clean_env):
    clean_env.setenv("AWS_BUCKET", "legacy-bucket")
    clean_env.setenv("S3_BUCKET", "new-bucket")

    assert Settings.from_environment().S3_BUCKET == "new-bucket"


def test_env_file_does_not_override_environment(clean_env, tmp_path):
    (tmp_path / ".env").write_text(
        "# comment\nS3_BUCKET='from-file'\nCORS_ORIGINS=http://a, http://b\n",
        encoding="utf-8",
    )
    clean_env.setenv("S3_BUCKET", "from-env")

    settings = Settings.from_environment()

    assert settings.S3_BUCKET == "from-env"
    assert settings.CORS_ORIGINS == ["http://a", "http://b"]


def test_rejects_out_of_range_token_duration():
    with pytest.raises(ValueError, match="IDENTITY_TOKEN_DURATION_SECONDS"):
        Settings(IDENTITY_TOKEN_DURATION_SECONDS=0)


def test_rejects_non_positive_part_url_expiry():
    with pytest.raises(ValueError, match="PART_URL_EXPIRES_SECONDS"):
        Settings(PART_URL_EXPIRES_SECONDS=0)
