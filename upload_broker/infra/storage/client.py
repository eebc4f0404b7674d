"""Storage client protocol and data types.

The broker never moves file bytes itself. It only opens, signs, closes and
releases multipart upload sessions on an S3-compatible object store.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence


class StorageError(RuntimeError):
    """Raised when an object storage call fails."""


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """A part the client reports as uploaded, identified by its ETag."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Identifiers of an open multipart upload session."""

    upload_id: str
    bucket: str
    object_key: str


@dataclass(frozen=True, slots=True)
class CompletedUpload:
    """Outcome of assembling the final object."""

    bucket: str
    object_key: str
    etag: str | None


class StorageClient(Protocol):
    """Multipart upload operations of an object storage backend."""

    def create_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
    ) -> MultipartUpload:
        """Open a multipart upload session.

        Raises:
            StorageError: If the backend rejects the request.
        """
        ...

    def presign_upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        expires_in: int,
    ) -> str:
        """Sign a URL authorizing one PUT of ``part_number``.

        Args:
            bucket: Target bucket name.
            object_key: Object key in the bucket.
            upload_id: Session id from create_multipart_upload.
            part_number: Part number (1-based, max 10000).
            expires_in: URL lifetime in seconds.

        Raises:
            StorageError: If signing fails.
        """
        ...

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> CompletedUpload:
        """Assemble the uploaded parts into the final object.

        Raises:
            StorageError: If the backend rejects the part list.
        """
        ...

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Release the session and every part uploaded so far.

        Raises:
            StorageError: If the operation fails.
        """
        ...
