"""Federated identity issuance for the SDK upload path."""

from __future__ import annotations

import hashlib
import re
import uuid
from dataclasses import dataclass

from upload_broker.common.auth import Principal
from upload_broker.common.config import Settings
from upload_broker.infra.identity.client import IdentityClient, OpenIdToken
from upload_broker.infra.identity.cognito_client import CognitoIdentityClient
from upload_broker.services.base import BackendNotConfiguredError, BaseService

# principal tag values are limited to 256 characters, keys to a safe subset
MAX_LOGIN_NAME_LENGTH = 128
_DIGEST_LENGTH = 12
_LOGIN_NAME_UNSAFE = re.compile(r"[^A-Za-z0-9_.@=+-]")


@dataclass(frozen=True, slots=True)
class IssuedIdentity:
    """Token plus the storage coordinates the identity may write to."""

    open_id_token: OpenIdToken
    region: str
    bucket: str
    key_prefix: str
    expires_in: int


def login_name_for(principal: Principal | None) -> str:
    """Login identifier asserted to the identity pool for ``principal``.

    Only a user id taken from a validated bearer token is trusted. Header
    and anonymous callers get a fresh ``user_<uuid>`` so that each of them
    is confined to its own key prefix.
    """
    if principal is not None and principal.is_verified:
        return _safe_login_name(principal.user_id)
    return f"user_{uuid.uuid4()}"


def _safe_login_name(user_id: str) -> str:
    """Map ``user_id`` onto the safe alphabet without merging distinct ids.

    Ids that survive unchanged are used as is. Any other id is shortened
    and suffixed with a digest of the raw value.
    """
    cleaned = _LOGIN_NAME_UNSAFE.sub("_", user_id).strip("._")
    if cleaned == user_id and len(cleaned) <= MAX_LOGIN_NAME_LENGTH:
        return cleaned
    digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()[:_DIGEST_LENGTH]
    head = cleaned[: MAX_LOGIN_NAME_LENGTH - _DIGEST_LENGTH - 1].rstrip("._")
    return f"{head}_{digest}" if head else f"user_{digest}"


class IdentityService(BaseService):
    def __init__(
        self,
        *,
        identity_client: IdentityClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(settings)
        if not self.settings.identity_configured:
            raise BackendNotConfiguredError(
                "IDENTITY_POOL_ID and IDENTITY_LOGIN_PROVIDER are required"
            )
        if not self.settings.storage_configured:
            raise BackendNotConfiguredError("S3_BUCKET is required")
        self._identity = identity_client or self._build_identity_client(self.settings)

    @staticmethod
    def _build_identity_client(settings: Settings) -> IdentityClient:
        return CognitoIdentityClient(settings=settings)

    def issue_openid_token(self, principal: Principal | None) -> IssuedIdentity:
        """Mint an OpenID token whose identity is tagged with the login name.

        Raises:
            IdentityError: If the identity provider call fails.
        """
        login_name = login_name_for(principal)
        duration = self.settings.IDENTITY_TOKEN_DURATION_SECONDS
        with self._provider_call("get_open_id_token"):
            token = self._identity.get_open_id_token_for_developer_identity(
                identity_pool_id=self.settings.IDENTITY_POOL_ID,  # type: ignore[arg-type]
                logins={self.settings.IDENTITY_LOGIN_PROVIDER: login_name},  # type: ignore[dict-item]
                token_duration=duration,
                principal_tags={"loginName": login_name},
            )
        self.logger.info(
            "openid_token_issued identity_id=%s login_name=%s",
            token.identity_id,
            login_name,
        )
        return IssuedIdentity(
            open_id_token=token,
            region=self.settings.S3_REGION,
            bucket=self.settings.S3_BUCKET,  # type: ignore[arg-type]
            key_prefix=login_name,
            expires_in=duration,
        )
