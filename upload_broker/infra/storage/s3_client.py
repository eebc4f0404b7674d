"""S3-compatible storage client implementation.

Works with AWS S3, MinIO and other S3-compatible stores. Request signing
(SigV4) is done entirely by botocore.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

import boto3
from botocore.config import Config

from upload_broker.infra.storage.client import (
    CompletedPart,
    CompletedUpload,
    MultipartUpload,
    StorageError,
)

if TYPE_CHECKING:
    from upload_broker.common.config import Settings


def describe_provider_error(exc: Exception) -> str:
    """Render a boto error as ``Code: message`` when the response carries one."""
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        error = response.get("Error") or {}
        code = error.get("Code")
        message = error.get("Message")
        if code:
            return f"{code}: {message}" if message else str(code)
    return str(exc)


class S3StorageClient:
    """Multipart upload operations backed by a boto3 S3 client."""

    def __init__(self, *, settings: "Settings") -> None:
        self._settings = settings
        self._client = self._build_client(settings)

    @staticmethod
    def _build_client(settings: "Settings") -> Any:
        """Create a boto3 S3 client from settings.

        Static keys are optional. Without them boto3 walks its default
        credential chain (environment, shared config, instance role).
        """
        addressing_style = (settings.S3_ADDRESSING_STYLE or "virtual").strip().lower()
        config = Config(
            signature_version="s3v4",
            s3={"addressing_style": addressing_style},
        )

        return boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            use_ssl=bool(settings.S3_USE_SSL),
            config=config,
        )

    def create_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
    ) -> MultipartUpload:
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type

        try:
            response = self._client.create_multipart_upload(**params)
        except Exception as exc:
            raise StorageError(
                f"Failed to create multipart upload: {describe_provider_error(exc)}"
            ) from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )

    def presign_upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        expires_in: int,
    ) -> str:
        try:
            url = self._client.generate_presigned_url(
                "upload_part",
                Params={
                    "Bucket": bucket,
                    "Key": object_key,
                    "UploadId": upload_id,
                    "PartNumber": int(part_number),
                },
                ExpiresIn=int(expires_in),
                HttpMethod="PUT",
            )
        except Exception as exc:
            raise StorageError(
                f"Failed to generate presigned URL: {describe_provider_error(exc)}"
            ) from exc

        if not url:
            raise StorageError("Generated presigned URL is empty")

        return str(url)

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> CompletedUpload:
        # S3 rejects part lists that are not in ascending order
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in sorted(parts, key=lambda p: p.part_number)
            ]
        }

        try:
            response = self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                MultipartUpload=multipart_payload,
            )
        except Exception as exc:
            raise StorageError(
                f"Failed to complete multipart upload: {describe_provider_error(exc)}"
            ) from exc

        return CompletedUpload(
            bucket=bucket,
            object_key=object_key,
            etag=response.get("ETag"),
        )

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        try:
            self._client.abort_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
            )
        except Exception as exc:
            raise StorageError(
                f"Failed to abort multipart upload: {describe_provider_error(exc)}"
            ) from exc
