"""Identity API router for the SDK-based upload path."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from upload_broker.api.v1.deps import (
    get_current_principal,
    get_identity_service,
    require_permissions,
)
from upload_broker.api.v1.schemas.identity import GetOpenIDTokenResponse, OpenIDToken
from upload_broker.common.auth import Principal
from upload_broker.common.permissions import Permissions
from upload_broker.infra.identity.client import IdentityError
from upload_broker.services.identity_service import IdentityService

_issue_access = [Depends(require_permissions(Permissions.IDENTITY_ISSUE))]
router = APIRouter(dependencies=_issue_access)
legacy_router = APIRouter(dependencies=_issue_access, include_in_schema=False)


@router.get(
    "/identity/openid-token",
    response_model=GetOpenIDTokenResponse,
    summary="Issue OpenID token",
    description=(
        "Exchange the caller's login identifier for a short-lived OpenID token "
        "of the identity pool. The client trades it for temporary credentials "
        "that may only write below keyPrefix."
    ),
)
def get_openid_token(
    principal: Principal = Depends(get_current_principal),
    service: IdentityService = Depends(get_identity_service),
) -> GetOpenIDTokenResponse:
    try:
        issued = service.issue_openid_token(principal)
    except IdentityError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(exc), "error_code": "identity_error"},
        ) from exc

    return GetOpenIDTokenResponse(
        open_id_token=OpenIDToken(
            identity_id=issued.open_id_token.identity_id,
            token=issued.open_id_token.token,
        ),
        region=issued.region,
        bucket=issued.bucket,
        key_prefix=issued.key_prefix,
        expires_in=issued.expires_in,
    )


legacy_router.add_api_route(
    "/openIDToken",
    get_openid_token,
    methods=["GET"],
    response_model=GetOpenIDTokenResponse,
)
