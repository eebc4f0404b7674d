from __future__ import annotations

import hashlib

import pytest

from upload_broker.common.config import Settings
from upload_broker.infra.storage.client import CompletedPart, MultipartUpload
from upload_broker.services.base import (
    BackendNotConfiguredError,
    InvalidUploadRequestError,
)
from upload_broker.services.upload_service import (
    StartUploadData,
    UploadService,
    expected_multipart_etag,
)

from tests.services.mock_storage import MockStorageClient


def _service(storage: MockStorageClient, **overrides) -> UploadService:
    settings = Settings(S3_BUCKET="bucket", S3_REGION="us-west-2", **overrides)
    return UploadService(storage_client=storage, settings=settings)


def _target(upload_id: str = "mock-upload-1", bucket: str = "bucket") -> MultipartUpload:
    return MultipartUpload(upload_id=upload_id, bucket=bucket, object_key="key")


class TestStart:
    def test_signs_every_part(self):
        storage = MockStorageClient()
        result = _service(storage).start_multipart_upload(StartUploadData(part_count=3))

        assert result.upload.upload_id == "mock-upload-1"
        assert result.region == "us-west-2"
        assert [u.part_number for u in result.part_urls] == [1, 2, 3]
        assert {p["expires_in"] for p in storage.presigned} == {60}

    def test_prefix_is_normalized(self):
        storage = MockStorageClient()
        service = _service(storage, S3_KEY_PREFIX="/uploads")

        result = service.start_multipart_upload(StartUploadData(part_count=0))

        assert result.upload.object_key.startswith("uploads/")
        assert len(result.upload.object_key) == len("uploads/") + 36

    def test_rejects_negative_part_count(self):
        with pytest.raises(InvalidUploadRequestError):
            _service(MockStorageClient()).start_multipart_upload(
                StartUploadData(part_count=-1)
            )

    def test_blank_content_type_is_dropped(self):
        storage = MockStorageClient()
        _service(storage).start_multipart_upload(
            StartUploadData(part_count=0, content_type="   ")
        )

        assert storage.uploads["mock-upload-1"]["content_type"] is None

    def test_requires_bucket(self):
        with pytest.raises(BackendNotConfiguredError):
            UploadService(storage_client=MockStorageClient(), settings=Settings())


class TestPresignPartUrls:
    def test_respects_request_limit(self):
        service = _service(MockStorageClient(), MAX_PART_URLS_PER_REQUEST=2)

        with pytest.raises(InvalidUploadRequestError, match="At most 2"):
            service.presign_part_urls(_target(), [1, 2, 3])

    def test_rejects_out_of_range_part(self):
        with pytest.raises(InvalidUploadRequestError, match="between 1 and 10000"):
            _service(MockStorageClient()).presign_part_urls(_target(), [0, 10001])

    def test_uses_configured_expiry(self):
        storage = MockStorageClient()
        service = _service(storage, PART_URL_EXPIRES_SECONDS=300)

        service.presign_part_urls(_target(), [5])

        assert storage.presigned == [
            {"upload_id": "mock-upload-1", "part_number": 5, "expires_in": 300}
        ]


class TestComplete:
    def test_checksum_of_part_checksums_matches(self):
        part_bodies = [b"a" * 10, b"b" * 4]
        digests = b"".join(hashlib.md5(body).digest() for body in part_bodies)
        checksum = hashlib.md5(digests).hexdigest()

        storage = MockStorageClient(final_etag=f'"{checksum}-2"')
        service = _service(storage)
        upload = service.start_multipart_upload(StartUploadData(part_count=2)).upload

        result = service.complete_multipart_upload(
            upload,
            [CompletedPart(1, '"x"'), CompletedPart(2, '"y"')],
            checksum=checksum,
        )

        assert result.checksum_verified is True
        assert result.etag == f'"{checksum}-2"'

    def test_rejects_duplicate_parts(self):
        with pytest.raises(InvalidUploadRequestError, match="unique"):
            _service(MockStorageClient()).complete_multipart_upload(
                _target(), [CompletedPart(1, "a"), CompletedPart(1, "b")]
            )

    def test_rejects_foreign_bucket(self):
        storage = MockStorageClient()
        with pytest.raises(InvalidUploadRequestError, match="not served"):
            _service(storage).complete_multipart_upload(
                _target(bucket="other"), [CompletedPart(1, "a")]
            )


def test_abort_marks_upload():
    storage = MockStorageClient()
    service = _service(storage)
    upload = service.start_multipart_upload(StartUploadData(part_count=0)).upload

    service.abort_multipart_upload(upload)

    assert storage.uploads[upload.upload_id]["aborted"] is True


def test_expected_multipart_etag():
    assert expected_multipart_etag(" ABCDEF ", 3) == '"abcdef-3"'
