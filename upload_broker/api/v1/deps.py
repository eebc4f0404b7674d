from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Header, HTTPException

from upload_broker.common.auth import AuthenticationError, Authenticator, Principal
from upload_broker.common.config import get_settings
from upload_broker.services.base import BackendNotConfiguredError
from upload_broker.services.identity_service import IdentityService
from upload_broker.services.upload_service import UploadService


def get_current_principal(
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
) -> Principal:
    authenticator = Authenticator(get_settings())
    try:
        return authenticator.authenticate(
            authorization_header=authorization,
            fallback_user_id=x_user_id,
        )
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=401,
            detail={
                "message": str(exc),
                "error_code": "unauthenticated",
            },
        ) from exc


def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
    settings = get_settings()
    if settings.API_KEY_ENABLED:
        if not x_api_key or (settings.API_KEY and x_api_key != settings.API_KEY):
            raise HTTPException(status_code=401, detail="Invalid API key")


def require_permissions(*permissions: str) -> Callable[[], None]:
    if not permissions:
        raise ValueError("At least one permission must be provided")

    def dependency(principal: Principal = Depends(get_current_principal)) -> None:
        missing = principal.missing_permissions(permissions)
        if missing:
            raise HTTPException(
                status_code=403,
                detail={
                    "message": "Missing required permissions",
                    "missing_permissions": missing,
                    "error_code": "permission_denied",
                },
            )

    return dependency


def _not_configured(exc: BackendNotConfiguredError) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail={"message": str(exc), "error_code": "backend_not_configured"},
    )


def get_upload_service() -> UploadService:
    try:
        return UploadService(settings=get_settings())
    except BackendNotConfiguredError as exc:
        raise _not_configured(exc) from exc


def get_identity_service() -> IdentityService:
    try:
        return IdentityService(settings=get_settings())
    except BackendNotConfiguredError as exc:
        raise _not_configured(exc) from exc
