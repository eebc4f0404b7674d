from .base import (
    BackendNotConfiguredError,
    BaseService,
    InvalidUploadRequestError,
    ServiceError,
)
from .identity_service import IdentityService, IssuedIdentity, login_name_for
from .upload_service import (
    CompleteUploadResult,
    PartUrl,
    StartUploadData,
    StartUploadResult,
    UploadService,
    expected_multipart_etag,
)

__all__ = [
    "BaseService",
    "ServiceError",
    "InvalidUploadRequestError",
    "BackendNotConfiguredError",
    "IdentityService",
    "IssuedIdentity",
    "login_name_for",
    "UploadService",
    "StartUploadData",
    "StartUploadResult",
    "PartUrl",
    "CompleteUploadResult",
    "expected_multipart_etag",
]
