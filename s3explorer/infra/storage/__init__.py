"""Object storage abstraction layer.

This module provides a protocol-based abstraction for object storage backends,
enabling support for S3, MinIO, and other S3-compatible services.
"""

from .client import (
    BackendError,
    BucketInfo,
    CompletedPart,
    ConnectionConfig,
    MultipartInitError,
    MultipartPartError,
    MultipartUpload,
    MultipartUploadError,
    ObjectEntry,
    ObjectHead,
    ObjectPage,
    ObjectStream,
    StorageClient,
    StorageError,
)

__all__ = [
    "BackendError",
    "BucketInfo",
    "CompletedPart",
    "ConnectionConfig",
    "MultipartInitError",
    "MultipartPartError",
    "MultipartUpload",
    "MultipartUploadError",
    "ObjectEntry",
    "ObjectHead",
    "ObjectPage",
    "ObjectStream",
    "StorageClient",
    "StorageError",
]
