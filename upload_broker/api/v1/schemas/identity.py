"""Pydantic schemas for the identity endpoint."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class OpenIDToken(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    identity_id: str = Field(alias="identityId")
    token: str


class GetOpenIDTokenResponse(BaseModel):
    """OpenID token plus where the SDK client may upload with it."""

    model_config = ConfigDict(populate_by_name=True)

    open_id_token: OpenIDToken = Field(alias="openIDToken")
    region: str
    bucket: str
    key_prefix: str = Field(alias="keyPrefix")
    expires_in: int = Field(alias="expiresIn")
