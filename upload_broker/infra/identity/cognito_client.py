"""Amazon Cognito identity pool client.

Dependencies:
    - boto3
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

import boto3

from upload_broker.infra.identity.client import IdentityError, OpenIdToken
from upload_broker.infra.storage.s3_client import describe_provider_error

if TYPE_CHECKING:
    from upload_broker.common.config import Settings


class CognitoIdentityClient:
    """Developer-authenticated identities backed by ``cognito-identity``."""

    def __init__(self, *, settings: "Settings") -> None:
        self._settings = settings
        self._client = self._build_client(settings)

    @staticmethod
    def _build_client(settings: "Settings") -> Any:
        # Developer identity APIs need IAM credentials, so no static keys
        # are passed here: the default credential chain is used.
        return boto3.client("cognito-identity", region_name=settings.S3_REGION)

    def get_open_id_token_for_developer_identity(
        self,
        *,
        identity_pool_id: str,
        logins: Mapping[str, str],
        token_duration: int,
        principal_tags: Mapping[str, str] | None = None,
    ) -> OpenIdToken:
        params: dict[str, Any] = {
            "IdentityPoolId": identity_pool_id,
            "Logins": dict(logins),
            "TokenDuration": int(token_duration),
        }
        if principal_tags:
            params["PrincipalTags"] = dict(principal_tags)

        try:
            response = self._client.get_open_id_token_for_developer_identity(**params)
        except Exception as exc:
            raise IdentityError(
                f"Failed to get OpenID token: {describe_provider_error(exc)}"
            ) from exc

        identity_id = response.get("IdentityId")
        token = response.get("Token")
        if not identity_id or not token:
            raise IdentityError("Cognito response missing IdentityId or Token")

        return OpenIdToken(identity_id=str(identity_id), token=str(token))
