"""Pydantic schemas for the multipart upload endpoints.

Field names are camelCase on the wire. Browser clients built on the legacy
routes send ``ETag``/``PartNumber`` for completed parts, so those
spellings are accepted too.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from upload_broker.common.config import MAX_PART_NUMBER


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MultipartUploadTarget(WireModel):
    """Identifiers of an open multipart upload session."""

    upload_id: str = Field(alias="uploadId", min_length=1)
    bucket: str = Field(min_length=1)
    key: str = Field(min_length=1)


class StartMultipartUploadRequest(WireModel):
    """Request body for opening a multipart upload."""

    part_count: int = Field(alias="partCount", ge=0, le=MAX_PART_NUMBER)
    content_type: str | None = Field(default=None, alias="contentType")


class UploadPartURLInfo(WireModel):
    """Presigned URL for a single upload part."""

    part_number: int = Field(alias="partNumber")
    upload_part_url: str = Field(alias="uploadPartURL")


class StartMultipartUploadResponse(WireModel):
    """Session identifiers and the presigned part URLs."""

    multipart_upload_target: MultipartUploadTarget = Field(
        alias="multipartUploadTarget"
    )
    region: str
    upload_part_url_infos: list[UploadPartURLInfo] = Field(
        alias="uploadPartURLInfos"
    )
    expires_in: int = Field(alias="expiresIn")


class PartUrlsRequest(MultipartUploadTarget):
    """Request body for signing URLs for specific parts."""

    part_numbers: list[int] = Field(alias="partNumbers", min_length=1)


class PartUrlsResponse(WireModel):
    upload_id: str = Field(alias="uploadId")
    upload_part_url_infos: list[UploadPartURLInfo] = Field(
        alias="uploadPartURLInfos"
    )
    expires_in: int = Field(alias="expiresIn")


class UploadedPartInfo(WireModel):
    """A part the client uploaded, with the ETag the store returned for it."""

    etag: str = Field(
        min_length=1,
        validation_alias=AliasChoices("eTag", "ETag", "etag"),
        serialization_alias="eTag",
    )
    part_number: int = Field(
        ge=1,
        le=MAX_PART_NUMBER,
        validation_alias=AliasChoices("partNumber", "PartNumber", "part_number"),
        serialization_alias="partNumber",
    )


class CompleteMultipartUploadRequest(MultipartUploadTarget):
    """Request body for completing a multipart upload."""

    parts: list[UploadedPartInfo] = Field(min_length=1)
    checksum: str | None = Field(
        default=None,
        description=(
            "Hex MD5 over the concatenated binary MD5 of each part. Only "
            "compared after completion; a value that does not match is "
            "reported as checksumVerified=false."
        ),
    )


class CompleteMultipartUploadResponse(WireModel):
    bucket: str
    key: str
    etag: str | None = Field(default=None, alias="eTag")
    checksum_verified: bool | None = Field(default=None, alias="checksumVerified")


class AbortMultipartUploadRequest(MultipartUploadTarget):
    """Request body for aborting a multipart upload."""
