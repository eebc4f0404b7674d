"""Object storage abstraction layer.

A protocol-based interface over S3-compatible multipart uploads, so the
services can run against AWS S3, MinIO or an in-memory fake in tests.
"""

from .client import (
    CompletedPart,
    CompletedUpload,
    MultipartUpload,
    StorageClient,
    StorageError,
)

__all__ = [
    "CompletedPart",
    "CompletedUpload",
    "MultipartUpload",
    "StorageClient",
    "StorageError",
]
