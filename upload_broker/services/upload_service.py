"""Multipart upload brokering.

Each operation is a single call to the storage backend: open a session,
sign part URLs, assemble the final object, or release the session. Nothing
is persisted between calls; the client carries the session identifiers.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Sequence

from upload_broker.common.config import MAX_PART_NUMBER, Settings
from upload_broker.infra.observability.metrics import (
    CHECKSUM_MISMATCHES,
    PART_URLS_ISSUED,
)
from upload_broker.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    StorageClient,
)
from upload_broker.infra.storage.s3_client import S3StorageClient
from upload_broker.services.base import (
    BackendNotConfiguredError,
    BaseService,
    InvalidUploadRequestError,
)


@dataclass(frozen=True, slots=True)
class StartUploadData:
    """Input for opening a multipart upload."""

    part_count: int
    content_type: str | None = None


@dataclass(frozen=True, slots=True)
class PartUrl:
    """Presigned URL for uploading one part."""

    part_number: int
    url: str


@dataclass(frozen=True, slots=True)
class StartUploadResult:
    """Session identifiers plus the part URLs requested up front."""

    upload: MultipartUpload
    region: str
    part_urls: list[PartUrl]
    expires_in: int


@dataclass(frozen=True, slots=True)
class CompleteUploadResult:
    """Final object and the outcome of the checksum comparison."""

    bucket: str
    object_key: str
    etag: str | None
    checksum_verified: bool | None


def expected_multipart_etag(checksum: str, part_count: int) -> str:
    """ETag S3 reports for a multipart object.

    ``checksum`` is the hex MD5 of the concatenated binary MD5 digests of
    every part, which S3 suffixes with the number of parts.
    """
    return f'"{checksum.strip().lower()}-{part_count}"'


def _normalize_prefix(prefix: str | None) -> str:
    cleaned = (prefix or "").strip().lstrip("/")
    if cleaned and not cleaned.endswith("/"):
        cleaned = f"{cleaned}/"
    return cleaned


class UploadService(BaseService):
    """Brokers the multipart upload lifecycle against one configured bucket."""

    def __init__(
        self,
        *,
        storage_client: StorageClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(settings)
        if not self.settings.storage_configured:
            raise BackendNotConfiguredError("S3_BUCKET is required")
        self._bucket: str = self.settings.S3_BUCKET  # type: ignore[assignment]
        self._storage = storage_client or self._build_storage_client(self.settings)

    @staticmethod
    def _build_storage_client(settings: Settings) -> StorageClient:
        return S3StorageClient(settings=settings)

    @property
    def bucket(self) -> str:
        return self._bucket

    def new_object_key(self) -> str:
        return f"{_normalize_prefix(self.settings.S3_KEY_PREFIX)}{uuid.uuid4()}"

    def start_multipart_upload(self, data: StartUploadData) -> StartUploadResult:
        """Open a multipart upload and sign URLs for parts ``1..part_count``.

        Raises:
            InvalidUploadRequestError: If ``part_count`` is out of range.
            StorageError: If the backend rejects a call.
        """
        if not 0 <= data.part_count <= MAX_PART_NUMBER:
            raise InvalidUploadRequestError(
                f"partCount must be between 0 and {MAX_PART_NUMBER}"
            )

        content_type = data.content_type.strip() if data.content_type else None
        with self._provider_call("create_multipart_upload"):
            upload = self._storage.create_multipart_upload(
                bucket=self._bucket,
                object_key=self.new_object_key(),
                content_type=content_type or None,
            )
        self.logger.info(
            "multipart_upload_started bucket=%s key=%s part_count=%s",
            upload.bucket,
            upload.object_key,
            data.part_count,
            extra={
                "extra": {
                    "bucket": upload.bucket,
                    "key": upload.object_key,
                    "part_count": data.part_count,
                }
            },
        )

        part_urls = self._sign_parts(upload, range(1, data.part_count + 1))
        return StartUploadResult(
            upload=upload,
            region=self.settings.S3_REGION,
            part_urls=part_urls,
            expires_in=self.settings.PART_URL_EXPIRES_SECONDS,
        )

    def presign_part_urls(
        self, target: MultipartUpload, part_numbers: Sequence[int]
    ) -> list[PartUrl]:
        """Sign one PUT URL per requested part, keeping the request order.

        Raises:
            InvalidUploadRequestError: For a foreign bucket, an empty, oversized,
                out-of-range or duplicated list of part numbers.
            StorageError: If signing fails.
        """
        self._check_target(target)
        if not part_numbers:
            raise InvalidUploadRequestError("partNumbers must not be empty")
        limit = self.settings.MAX_PART_URLS_PER_REQUEST
        if len(part_numbers) > limit:
            raise InvalidUploadRequestError(
                f"At most {limit} part URLs can be requested at once"
            )
        self._check_part_numbers(part_numbers)
        return self._sign_parts(target, part_numbers)

    def complete_multipart_upload(
        self,
        target: MultipartUpload,
        parts: Sequence[CompletedPart],
        *,
        checksum: str | None = None,
    ) -> CompleteUploadResult:
        """Assemble the final object, then compare its ETag to ``checksum``.

        A mismatch is logged and counted but never fails the request: the
        object already exists at that point.

        Raises:
            InvalidUploadRequestError: For a foreign bucket or bad part list.
            StorageError: If the backend rejects the completion.
        """
        self._check_target(target)
        if not parts:
            raise InvalidUploadRequestError("parts must not be empty")
        self._check_part_numbers([part.part_number for part in parts])

        with self._provider_call("complete_multipart_upload"):
            completed = self._storage.complete_multipart_upload(
                bucket=target.bucket,
                object_key=target.object_key,
                upload_id=target.upload_id,
                parts=parts,
            )

        checksum_verified: bool | None = None
        checksum = (checksum or "").strip()
        if checksum:
            expected = expected_multipart_etag(checksum, len(parts))
            checksum_verified = completed.etag == expected
            if not checksum_verified:
                CHECKSUM_MISMATCHES.inc()
                self.logger.warning(
                    "ETag mismatch, expected %s, got %s",
                    expected,
                    completed.etag,
                    extra={
                        "extra": {
                            "bucket": target.bucket,
                            "key": target.object_key,
                            "expected_etag": expected,
                            "etag": completed.etag,
                        }
                    },
                )

        self.logger.info(
            "multipart_upload_completed bucket=%s key=%s parts=%s",
            target.bucket,
            target.object_key,
            len(parts),
        )
        return CompleteUploadResult(
            bucket=completed.bucket,
            object_key=completed.object_key,
            etag=completed.etag,
            checksum_verified=checksum_verified,
        )

    def abort_multipart_upload(self, target: MultipartUpload) -> None:
        """Release the session and the parts uploaded so far.

        Raises:
            InvalidUploadRequestError: For a foreign bucket.
            StorageError: If the backend rejects the abort.
        """
        self._check_target(target)
        with self._provider_call("abort_multipart_upload"):
            self._storage.abort_multipart_upload(
                bucket=target.bucket,
                object_key=target.object_key,
                upload_id=target.upload_id,
            )
        self.logger.info(
            "multipart_upload_aborted bucket=%s key=%s",
            target.bucket,
            target.object_key,
        )

    def _sign_parts(
        self, upload: MultipartUpload, part_numbers: Sequence[int]
    ) -> list[PartUrl]:
        expires_in = self.settings.PART_URL_EXPIRES_SECONDS
        urls: list[PartUrl] = []
        for part_number in part_numbers:
            with self._provider_call("presign_upload_part"):
                url = self._storage.presign_upload_part(
                    bucket=upload.bucket,
                    object_key=upload.object_key,
                    upload_id=upload.upload_id,
                    part_number=part_number,
                    expires_in=expires_in,
                )
            urls.append(PartUrl(part_number=part_number, url=url))
        PART_URLS_ISSUED.inc(len(urls))
        return urls

    def _check_target(self, target: MultipartUpload) -> None:
        if target.bucket != self._bucket:
            raise InvalidUploadRequestError(
                f"Bucket '{target.bucket}' is not served by this broker"
            )

    @staticmethod
    def _check_part_numbers(part_numbers: Sequence[int]) -> None:
        out_of_range = [n for n in part_numbers if not 1 <= n <= MAX_PART_NUMBER]
        if out_of_range:
            raise InvalidUploadRequestError(
                f"Part numbers must be between 1 and {MAX_PART_NUMBER}: {out_of_range}"
            )
        if len(set(part_numbers)) != len(part_numbers):
            raise InvalidUploadRequestError("Part numbers must be unique")
