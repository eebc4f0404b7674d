"""Multipart upload API router.

Brokers the four steps of a direct-to-storage multipart upload: start
(with part URLs), extra part URLs, complete and abort. File bytes never
reach this service.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from upload_broker.api.v1.deps import get_upload_service, require_permissions
from upload_broker.api.v1.schemas.uploads import (
    AbortMultipartUploadRequest,
    CompleteMultipartUploadRequest,
    CompleteMultipartUploadResponse,
    MultipartUploadTarget,
    PartUrlsRequest,
    PartUrlsResponse,
    StartMultipartUploadRequest,
    StartMultipartUploadResponse,
    UploadPartURLInfo,
)
from upload_broker.common.permissions import Permissions
from upload_broker.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    StorageError,
)
from upload_broker.services.base import InvalidUploadRequestError
from upload_broker.services.upload_service import (
    PartUrl,
    StartUploadData,
    UploadService,
)

_write_access = [Depends(require_permissions(Permissions.UPLOADS_WRITE))]
router = APIRouter(dependencies=_write_access)
# Pre-v1 camelCase paths; same handlers, hidden from OpenAPI
legacy_router = APIRouter(dependencies=_write_access, include_in_schema=False)


def _to_target(payload: MultipartUploadTarget) -> MultipartUpload:
    return MultipartUpload(
        upload_id=payload.upload_id,
        bucket=payload.bucket,
        object_key=payload.key,
    )


def _to_url_infos(urls: list[PartUrl]) -> list[UploadPartURLInfo]:
    return [
        UploadPartURLInfo(part_number=u.part_number, upload_part_url=u.url)
        for u in urls
    ]


def _storage_failure(exc: StorageError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={"message": str(exc), "error_code": "storage_error"},
    )


def _invalid_request(exc: InvalidUploadRequestError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": str(exc), "error_code": "invalid_upload_request"},
    )


@router.post(
    "/uploads/multipart/start",
    response_model=StartMultipartUploadResponse,
    summary="Start multipart upload",
    description=(
        "Open a multipart upload session under a generated key and return "
        "presigned PUT URLs for parts 1..partCount."
    ),
)
def start_multipart_upload(
    payload: StartMultipartUploadRequest,
    service: UploadService = Depends(get_upload_service),
) -> StartMultipartUploadResponse:
    try:
        result = service.start_multipart_upload(
            StartUploadData(
                part_count=payload.part_count,
                content_type=payload.content_type,
            )
        )
    except InvalidUploadRequestError as exc:
        raise _invalid_request(exc) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc

    return StartMultipartUploadResponse(
        multipart_upload_target=MultipartUploadTarget(
            upload_id=result.upload.upload_id,
            bucket=result.upload.bucket,
            key=result.upload.object_key,
        ),
        region=result.region,
        upload_part_url_infos=_to_url_infos(result.part_urls),
        expires_in=result.expires_in,
    )


@router.post(
    "/uploads/multipart/part-urls",
    response_model=PartUrlsResponse,
    summary="Get presigned part URLs",
    description="Sign PUT URLs for specific parts of an open upload session.",
)
def presign_part_urls(
    payload: PartUrlsRequest,
    service: UploadService = Depends(get_upload_service),
) -> PartUrlsResponse:
    try:
        urls = service.presign_part_urls(_to_target(payload), payload.part_numbers)
    except InvalidUploadRequestError as exc:
        raise _invalid_request(exc) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc

    return PartUrlsResponse(
        upload_id=payload.upload_id,
        upload_part_url_infos=_to_url_infos(urls),
        expires_in=service.settings.PART_URL_EXPIRES_SECONDS,
    )


@router.post(
    "/uploads/multipart/complete",
    response_model=CompleteMultipartUploadResponse,
    summary="Complete multipart upload",
    description=(
        "Assemble the uploaded parts into the final object. When a checksum "
        "is supplied the resulting ETag is compared against it."
    ),
)
def complete_multipart_upload(
    payload: CompleteMultipartUploadRequest,
    service: UploadService = Depends(get_upload_service),
) -> CompleteMultipartUploadResponse:
    parts = [
        CompletedPart(part_number=p.part_number, etag=p.etag) for p in payload.parts
    ]
    try:
        result = service.complete_multipart_upload(
            _to_target(payload), parts, checksum=payload.checksum
        )
    except InvalidUploadRequestError as exc:
        raise _invalid_request(exc) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc

    return CompleteMultipartUploadResponse(
        bucket=result.bucket,
        key=result.object_key,
        etag=result.etag,
        checksum_verified=result.checksum_verified,
    )


@router.post(
    "/uploads/multipart/abort",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Abort multipart upload",
    description="Release an open upload session and every part uploaded to it.",
)
def abort_multipart_upload(
    payload: AbortMultipartUploadRequest,
    service: UploadService = Depends(get_upload_service),
) -> Response:
    try:
        service.abort_multipart_upload(_to_target(payload))
    except InvalidUploadRequestError as exc:
        raise _invalid_request(exc) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


legacy_router.add_api_route(
    "/startMultipartUpload",
    start_multipart_upload,
    methods=["POST"],
    response_model=StartMultipartUploadResponse,
)
legacy_router.add_api_route(
    "/completeMultipartUpload",
    complete_multipart_upload,
    methods=["POST"],
    response_model=CompleteMultipartUploadResponse,
)
legacy_router.add_api_route(
    "/abortMultipartUpload",
    abort_multipart_upload,
    methods=["POST"],
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
