"""Storage gateway service.

This module provides the bucket and object primitives the HTTP layer exposes
directly: bucket management, delimited listings classified into files and
folders, folder markers, presigned downloads, streamed reads and metadata.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator

from s3explorer.common.config import Settings, get_settings
from s3explorer.common.validation import require_bucket_name, require_object_key
from s3explorer.domain.keyspace import DELIMITER, Listing, classify_listing, folder_key
from s3explorer.infra.storage.client import (
    BackendError,
    BucketInfo,
    ObjectEntry,
    ObjectStream,
    StorageClient,
)

logger = logging.getLogger(__name__)

# ListObjectsV2 and DeleteObjects both cap a single request at 1000 keys
PAGE_SIZE = 1000


@dataclass(frozen=True, slots=True)
class ObjectMetadata:
    """Result of a HEAD request as exposed to clients."""

    content_type: str | None
    content_length: int
    last_modified: datetime | None
    etag: str | None
    metadata: dict[str, str] = field(default_factory=dict)


class StorageGateway:
    """Bucket and object primitives on top of a resolved storage client."""

    def __init__(
        self,
        storage_client: StorageClient,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._storage = storage_client
        self._settings = settings or get_settings()

    @property
    def client(self) -> StorageClient:
        return self._storage

    def list_buckets(self) -> list[BucketInfo]:
        return self._storage.list_buckets()

    def create_bucket(self, name: str) -> None:
        bucket = require_bucket_name(name)
        self._storage.create_bucket(bucket=bucket)
        logger.info(
            "bucket_created bucket=%s",
            bucket,
            extra={"extra": {"event": "bucket_created", "bucket": bucket}},
        )

    def delete_bucket(self, name: str) -> None:
        """Delete a bucket after removing every object in it.

        Pages are listed and deleted one after another. If the backend reports
        a key it could not delete, the bucket deletion is never issued.

        Raises:
            InvalidInputError: If the bucket name is malformed.
            BackendError: If listing, emptying or deleting fails.
        """
        bucket = require_bucket_name(name)
        removed = 0
        token: str | None = None
        while True:
            page = self._storage.list_objects(
                bucket=bucket,
                continuation_token=token,
                max_keys=PAGE_SIZE,
            )
            keys = [entry.key for entry in page.entries]
            if keys:
                failed = self._storage.delete_objects(bucket=bucket, object_keys=keys)
                if failed:
                    logger.warning(
                        "bucket_empty_failed bucket=%s failed=%s",
                        bucket,
                        len(failed),
                        extra={
                            "extra": {
                                "event": "bucket_empty_failed",
                                "bucket": bucket,
                                "failed_keys": failed[:20],
                            }
                        },
                    )
                    raise BackendError(
                        f"Failed to empty bucket {bucket}: {len(failed)} object(s) could not be deleted",
                        code="DeleteObjectsFailed",
                    )
                removed += len(keys)
            token = page.next_token
            if not token:
                break

        self._storage.delete_bucket(bucket=bucket)
        logger.info(
            "bucket_deleted bucket=%s objects_removed=%s",
            bucket,
            removed,
            extra={
                "extra": {
                    "event": "bucket_deleted",
                    "bucket": bucket,
                    "objects_removed": removed,
                }
            },
        )

    def list_objects(
        self, bucket: str, prefix: str = "", delimiter: str = DELIMITER
    ) -> Listing:
        """List the direct children of prefix as files followed by folders."""
        bucket = require_bucket_name(bucket)
        entries: list[ObjectEntry] = []
        common_prefixes: list[str] = []
        token: str | None = None
        while True:
            page = self._storage.list_objects(
                bucket=bucket,
                prefix=prefix,
                delimiter=delimiter,
                continuation_token=token,
                max_keys=PAGE_SIZE,
            )
            entries.extend(page.entries)
            common_prefixes.extend(page.common_prefixes)
            token = page.next_token
            if not token:
                break
        return classify_listing(prefix, entries, common_prefixes)

    def iter_keys(self, bucket: str, prefix: str) -> Iterator[str]:
        """Yield every key under prefix, at any depth."""
        token: str | None = None
        while True:
            page = self._storage.list_objects(
                bucket=bucket,
                prefix=prefix,
                continuation_token=token,
                max_keys=PAGE_SIZE,
            )
            for entry in page.entries:
                yield entry.key
            token = page.next_token
            if not token:
                return

    def create_folder(self, bucket: str, path: str) -> str:
        bucket = require_bucket_name(bucket)
        key = folder_key(require_object_key(path, label="path"))
        self._storage.put_object(bucket=bucket, object_key=key, body=b"")
        return key

    def get_object_url(
        self,
        bucket: str,
        key: str,
        *,
        expires_in: int | None = None,
        filename: str | None = None,
    ) -> str:
        bucket = require_bucket_name(bucket)
        key = require_object_key(key)
        return self._storage.presign_download(
            bucket=bucket,
            object_key=key,
            expires_in=int(expires_in or self._settings.PRESIGN_EXPIRES_SECONDS),
            filename=filename,
        )

    def get_object_stream(self, bucket: str, key: str) -> ObjectStream:
        bucket = require_bucket_name(bucket)
        key = require_object_key(key)
        return self._storage.get_object(bucket=bucket, object_key=key)

    def get_object_metadata(self, bucket: str, key: str) -> ObjectMetadata:
        bucket = require_bucket_name(bucket)
        key = require_object_key(key)
        head = self._storage.head_object(bucket=bucket, object_key=key)
        return ObjectMetadata(
            content_type=head.content_type,
            content_length=head.size_bytes,
            last_modified=head.last_modified,
            etag=head.etag,
            metadata=dict(head.metadata),
        )
