from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

DEFAULT_AUTH_PERMISSIONS: tuple[str, ...] = ("*",)

# S3 caps a multipart upload at 10000 parts
MAX_PART_NUMBER = 10000


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _first_env(*names: str) -> str | None:
    """Return the first non-empty variable among ``names``."""
    for name in names:
        value = os.environ.get(name)
        if value not in (None, ""):
            return value
    return None


@dataclass
class Settings:
    S3_BUCKET: str | None = None
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str | None = None
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_USE_SSL: bool = True
    S3_ADDRESSING_STYLE: str = "virtual"
    S3_KEY_PREFIX: str = ""
    PART_URL_EXPIRES_SECONDS: int = 60
    MAX_PART_URLS_PER_REQUEST: int = 1000
    IDENTITY_POOL_ID: str | None = None
    IDENTITY_LOGIN_PROVIDER: str | None = None
    IDENTITY_TOKEN_DURATION_SECONDS: int = 15 * 60
    ENABLE_METRICS: bool = True
    API_KEY_ENABLED: bool = False
    API_KEY: str | None = None
    CORS_ENABLED: bool = False
    CORS_ORIGINS: list[str] = field(default_factory=list)
    LEGACY_ROUTES_ENABLED: bool = True
    TRACE_HTTP: bool = False
    AUTH_ENABLED: bool = False
    AUTH_ALLOW_ANONYMOUS: bool = False
    AUTH_TOKEN_SECRET: str | None = None
    AUTH_TOKEN_ALGORITHM: str = "HS256"
    AUTH_TOKEN_AUDIENCE: str | None = None
    AUTH_TOKEN_ISSUER: str | None = None
    AUTH_TOKEN_LEEWAY: int = 0
    AUTH_DEFAULT_PERMISSIONS: list[str] = field(
        default_factory=lambda: list(DEFAULT_AUTH_PERMISSIONS)
    )

    def __post_init__(self) -> None:
        if self.PART_URL_EXPIRES_SECONDS <= 0:
            raise ValueError("PART_URL_EXPIRES_SECONDS must be positive.")
        # STS accepts 1 second up to 24 hours for developer identity tokens
        if not 1 <= self.IDENTITY_TOKEN_DURATION_SECONDS <= 24 * 60 * 60:
            raise ValueError(
                "IDENTITY_TOKEN_DURATION_SECONDS must be between 1 and 86400."
            )
        if not 1 <= self.MAX_PART_URLS_PER_REQUEST <= MAX_PART_NUMBER:
            raise ValueError(
                f"MAX_PART_URLS_PER_REQUEST must be between 1 and {MAX_PART_NUMBER}."
            )

    @property
    def storage_configured(self) -> bool:
        return bool(self.S3_BUCKET)

    @property
    def identity_configured(self) -> bool:
        return bool(self.IDENTITY_POOL_ID and self.IDENTITY_LOGIN_PROVIDER)

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        auth_default_permissions_env = os.environ.get("AUTH_DEFAULT_PERMISSIONS")
        if auth_default_permissions_env is None:
            auth_default_permissions = list(DEFAULT_AUTH_PERMISSIONS)
        else:
            auth_default_permissions = _as_list(auth_default_permissions_env)

        return cls(
            S3_BUCKET=_first_env("S3_BUCKET", "AWS_BUCKET"),
            S3_REGION=_first_env("S3_REGION", "AWS_REGION") or cls.S3_REGION,
            S3_ENDPOINT_URL=_first_env("S3_ENDPOINT_URL"),
            S3_ACCESS_KEY_ID=_first_env("S3_ACCESS_KEY_ID"),
            S3_SECRET_ACCESS_KEY=_first_env("S3_SECRET_ACCESS_KEY"),
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_KEY_PREFIX=os.environ.get("S3_KEY_PREFIX", cls.S3_KEY_PREFIX),
            PART_URL_EXPIRES_SECONDS=int(
                os.environ.get(
                    "PART_URL_EXPIRES_SECONDS", cls.PART_URL_EXPIRES_SECONDS
                )
            ),
            MAX_PART_URLS_PER_REQUEST=int(
                os.environ.get(
                    "MAX_PART_URLS_PER_REQUEST", cls.MAX_PART_URLS_PER_REQUEST
                )
            ),
            IDENTITY_POOL_ID=_first_env("IDENTITY_POOL_ID", "AWS_IDENTITY_POOL_ID"),
            IDENTITY_LOGIN_PROVIDER=_first_env(
                "IDENTITY_LOGIN_PROVIDER", "AWS_LOGIN_PROVIDER"
            ),
            IDENTITY_TOKEN_DURATION_SECONDS=int(
                os.environ.get(
                    "IDENTITY_TOKEN_DURATION_SECONDS",
                    cls.IDENTITY_TOKEN_DURATION_SECONDS,
                )
            ),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            API_KEY_ENABLED=_as_bool(
                os.environ.get("API_KEY_ENABLED"), cls.API_KEY_ENABLED
            ),
            API_KEY=os.environ.get("API_KEY"),
            CORS_ENABLED=_as_bool(os.environ.get("CORS_ENABLED"), cls.CORS_ENABLED),
            CORS_ORIGINS=_as_list(os.environ.get("CORS_ORIGINS")),
            LEGACY_ROUTES_ENABLED=_as_bool(
                os.environ.get("LEGACY_ROUTES_ENABLED"), cls.LEGACY_ROUTES_ENABLED
            ),
            TRACE_HTTP=_as_bool(os.environ.get("TRACE_HTTP"), cls.TRACE_HTTP),
            AUTH_ENABLED=_as_bool(os.environ.get("AUTH_ENABLED"), cls.AUTH_ENABLED),
            AUTH_ALLOW_ANONYMOUS=_as_bool(
                os.environ.get("AUTH_ALLOW_ANONYMOUS"), cls.AUTH_ALLOW_ANONYMOUS
            ),
            AUTH_TOKEN_SECRET=os.environ.get("AUTH_TOKEN_SECRET"),
            AUTH_TOKEN_ALGORITHM=os.environ.get(
                "AUTH_TOKEN_ALGORITHM", cls.AUTH_TOKEN_ALGORITHM
            ),
            AUTH_TOKEN_AUDIENCE=os.environ.get("AUTH_TOKEN_AUDIENCE"),
            AUTH_TOKEN_ISSUER=os.environ.get("AUTH_TOKEN_ISSUER"),
            AUTH_TOKEN_LEEWAY=int(
                os.environ.get("AUTH_TOKEN_LEEWAY", cls.AUTH_TOKEN_LEEWAY)
            ),
            AUTH_DEFAULT_PERMISSIONS=auth_default_permissions,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
