"""Storage client protocol and data types.

This module defines the interface the explorer needs from an S3-compatible
backend: bucket management, delimited listings, object reads and writes,
server-side copies and the multipart upload protocol.

Every implementation translates SDK-specific failures into the closed error
set defined here, so services never inspect botocore exception shapes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, Protocol, Sequence


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


class BackendError(StorageError):
    """The S3-compatible backend rejected or failed an operation.

    ``code`` is the S3 error code (``NoSuchKey``, ``AccessDenied``,
    ``BucketNotEmpty``...) and ``status`` the HTTP status the backend answered
    with. Both are ``None`` for transport-level failures.
    """


class MultipartUploadError(StorageError):
    """A multipart upload could not be completed and was aborted."""


class MultipartInitError(MultipartUploadError):
    """The backend did not hand out an upload id."""


class MultipartPartError(MultipartUploadError):
    """Uploading one of the parts failed."""

    def __init__(
        self,
        message: str,
        *,
        part_number: int,
        code: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message, code=code, status=status)
        self.part_number = part_number


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Decrypted connection settings used to build a client."""

    endpoint: str
    access_key: str
    secret_key: str
    region: str = "us-east-1"
    force_path_style: bool = True

    def __repr__(self) -> str:
        return (
            f"ConnectionConfig(endpoint={self.endpoint!r}, region={self.region!r}, "
            f"force_path_style={self.force_path_style!r})"
        )


@dataclass(frozen=True, slots=True)
class BucketInfo:
    name: str
    creation_date: datetime | None = None


@dataclass(frozen=True, slots=True)
class ObjectEntry:
    """A content entry returned by a listing."""

    key: str
    size: int = 0
    last_modified: datetime | None = None
    etag: str | None = None


@dataclass(frozen=True, slots=True)
class ObjectPage:
    """One page of a ListObjectsV2 response."""

    entries: list[ObjectEntry] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)
    next_token: str | None = None


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata from a HEAD object request."""

    size_bytes: int
    etag: str | None
    content_type: str | None
    last_modified: datetime | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ObjectStream:
    """An object body that is read lazily in chunks."""

    chunks: Iterator[bytes]
    content_type: str | None = None
    content_length: int | None = None


class StorageClient(Protocol):
    """Protocol defining the interface for object storage backends.

    Implementations must provide all methods defined here and raise
    BackendError (or a MultipartUploadError subclass) on failure.
    """

    def list_buckets(self) -> list[BucketInfo]:
        """List every bucket visible to the credentials."""
        ...

    def create_bucket(self, *, bucket: str) -> None:
        ...

    def delete_bucket(self, *, bucket: str) -> None:
        """Delete an empty bucket."""
        ...

    def list_objects(
        self,
        *,
        bucket: str,
        prefix: str = "",
        delimiter: str | None = None,
        continuation_token: str | None = None,
        max_keys: int = 1000,
    ) -> ObjectPage:
        """Return one page of keys under prefix.

        Args:
            bucket: Bucket to list.
            prefix: Only keys starting with this prefix are returned.
            delimiter: When set, keys containing the delimiter after the
                prefix are rolled up into common prefixes.
            continuation_token: Token from the previous page.
            max_keys: Page size (backends cap this at 1000).

        Returns:
            ObjectPage with entries, common prefixes and the next token.
        """
        ...

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        content_type: str | None = None,
    ) -> None:
        ...

    def get_object(self, *, bucket: str, object_key: str) -> ObjectStream:
        ...

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content."""
        ...

    def copy_object(
        self,
        *,
        source_bucket: str,
        source_key: str,
        bucket: str,
        object_key: str,
    ) -> None:
        """Server-side copy of source_bucket/source_key to bucket/object_key."""
        ...

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        ...

    def delete_objects(
        self, *, bucket: str, object_keys: Sequence[str]
    ) -> list[str]:
        """Delete up to 1000 keys in one request.

        Returns:
            The keys the backend reported as not deleted.
        """
        ...

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session.

        Raises:
            MultipartInitError: If the backend returns no upload id.
            BackendError: If the request fails.
        """
        ...

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> CompletedPart:
        ...

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        ...

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and discard uploaded parts."""
        ...

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        filename: str | None = None,
    ) -> str:
        """Generate a presigned URL for downloading an object."""
        ...
