"""Upload orchestration.

Small payloads go to the backend in one PUT. Payloads above the multipart
threshold are split into fixed-size parts that are uploaded concurrently in
bounded windows; the upload is either completed with every part in order or
aborted so no partial object is left behind.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import BinaryIO, Literal, Sequence

from s3explorer.common.config import Settings, get_settings
from s3explorer.common.validation import (
    InvalidInputError,
    is_valid_object_key,
    require_bucket_name,
    sanitize_filename,
)
from s3explorer.domain.keyspace import basename, classify_listing, join_key, resolve_conflicts
from s3explorer.infra.storage.client import (
    CompletedPart,
    MultipartPartError,
    StorageClient,
    StorageError,
)

logger = logging.getLogger(__name__)

ConflictPolicy = Literal["overwrite", "rename"]


@dataclass(frozen=True, slots=True)
class UploadItem:
    """One file received from the client."""

    filename: str
    stream: BinaryIO
    size: int
    content_type: str | None = None


@dataclass(frozen=True, slots=True)
class UploadedObject:
    key: str
    size: int


class UploadService:
    """Application service that writes client payloads into a bucket."""

    def __init__(
        self,
        storage_client: StorageClient,
        *,
        settings: Settings | None = None,
        multipart_threshold: int | None = None,
        part_size: int | None = None,
        concurrency: int | None = None,
    ) -> None:
        self._storage = storage_client
        self._settings = settings or get_settings()
        self._threshold = int(
            multipart_threshold or self._settings.MULTIPART_THRESHOLD_BYTES
        )
        self._part_size = int(part_size or self._settings.MULTIPART_PART_SIZE_BYTES)
        self._concurrency = max(
            1, int(concurrency or self._settings.MULTIPART_CONCURRENCY)
        )

    def upload_object(
        self,
        bucket: str,
        key: str,
        stream: BinaryIO,
        size: int,
        content_type: str | None = None,
    ) -> None:
        """Write one object, switching to multipart above the threshold."""
        if size > self._threshold:
            self._upload_multipart(bucket, key, stream, content_type)
            return
        self._storage.put_object(
            bucket=bucket,
            object_key=key,
            body=stream.read(),
            content_type=content_type,
        )

    def upload_files(
        self,
        bucket: str,
        prefix: str,
        files: Sequence[UploadItem],
        *,
        names: Sequence[str] | None = None,
        on_conflict: ConflictPolicy = "overwrite",
    ) -> list[UploadedObject]:
        """Upload a batch of files under prefix.

        Args:
            bucket: Target bucket.
            prefix: Folder the files land in ('' for the bucket root).
            files: Received files, in client order.
            names: Names already chosen by the client, aligned with files.
            on_conflict: 'rename' picks ``name (n).ext`` for names that
                already exist in the folder; 'overwrite' replaces them.

        Returns:
            Key and size of every uploaded object. Files whose name or key is
            unusable are skipped.

        Raises:
            InvalidInputError: On a bad bucket name, an empty batch or a file
                above MAX_UPLOAD_BYTES.
            StorageError: If the backend fails; earlier files stay uploaded.
        """
        bucket = require_bucket_name(bucket)
        if not files:
            raise InvalidInputError("No files provided")
        if on_conflict not in ("overwrite", "rename"):
            raise InvalidInputError("onConflict must be 'overwrite' or 'rename'")

        limit = int(self._settings.MAX_UPLOAD_BYTES)
        for item in files:
            if item.size > limit:
                raise InvalidInputError(
                    f"File {item.filename!r} exceeds maximum upload size ({limit} bytes)"
                )

        requested = [
            names[index] if names and index < len(names) and names[index] else item.filename
            for index, item in enumerate(files)
        ]
        cleaned = [sanitize_filename(name) for name in requested]
        if on_conflict == "rename":
            cleaned = resolve_conflicts(cleaned, self._existing_names(bucket, prefix))

        uploaded: list[UploadedObject] = []
        for item, name in zip(files, cleaned):
            if not name or name in {".", ".."}:
                logger.warning(
                    "upload_skipped filename=%s reason=invalid_name",
                    item.filename,
                    extra={"extra": {"event": "upload_skipped", "filename": item.filename}},
                )
                continue
            key = join_key(prefix, name)
            if not is_valid_object_key(key):
                logger.warning(
                    "upload_skipped key=%s reason=invalid_key",
                    key,
                    extra={"extra": {"event": "upload_skipped", "key": key}},
                )
                continue
            self.upload_object(bucket, key, item.stream, item.size, item.content_type)
            uploaded.append(UploadedObject(key=key, size=item.size))
        return uploaded

    def _existing_names(self, bucket: str, prefix: str) -> list[str]:
        names: list[str] = []
        token: str | None = None
        while True:
            page = self._storage.list_objects(
                bucket=bucket, prefix=prefix, delimiter="/", continuation_token=token
            )
            listing = classify_listing(prefix, page.entries, page.common_prefixes)
            names.extend(basename(info.key) for info in listing.objects)
            token = page.next_token
            if not token:
                return names

    def _upload_multipart(
        self,
        bucket: str,
        key: str,
        stream: BinaryIO,
        content_type: str | None,
    ) -> None:
        upload = self._storage.init_multipart_upload(
            bucket=bucket, object_key=key, content_type=content_type
        )
        upload_id = upload.upload_id
        logger.info(
            "multipart_started bucket=%s key=%s upload_id=%s",
            bucket,
            key,
            upload_id,
            extra={
                "extra": {
                    "event": "multipart_started",
                    "bucket": bucket,
                    "key": key,
                    "upload_id": upload_id,
                    "part_size": self._part_size,
                }
            },
        )

        try:
            parts = self._upload_parts(bucket, key, upload_id, stream)
            self._storage.complete_multipart_upload(
                bucket=bucket,
                object_key=key,
                upload_id=upload_id,
                parts=sorted(parts, key=lambda part: part.part_number),
            )
        except Exception:
            self._abort(bucket, key, upload_id)
            raise

        logger.info(
            "multipart_completed bucket=%s key=%s parts=%s",
            bucket,
            key,
            len(parts),
            extra={
                "extra": {
                    "event": "multipart_completed",
                    "bucket": bucket,
                    "key": key,
                    "upload_id": upload_id,
                    "parts": len(parts),
                }
            },
        )

    def _upload_parts(
        self, bucket: str, key: str, upload_id: str, stream: BinaryIO
    ) -> list[CompletedPart]:
        """Upload parts window by window.

        A window holds at most ``concurrency`` part buffers. Every part of a
        window settles before its outcome is checked, so no upload is still in
        flight when the caller aborts.
        """
        completed: list[CompletedPart] = []
        part_number = 1
        with ThreadPoolExecutor(
            max_workers=self._concurrency, thread_name_prefix="multipart"
        ) as executor:
            while True:
                window: list[tuple[int, bytes]] = []
                while len(window) < self._concurrency:
                    chunk = stream.read(self._part_size)
                    if not chunk:
                        break
                    window.append((part_number, chunk))
                    part_number += 1
                if not window:
                    break

                futures = {
                    executor.submit(
                        self._storage.upload_part,
                        bucket=bucket,
                        object_key=key,
                        upload_id=upload_id,
                        part_number=number,
                        body=body,
                    ): number
                    for number, body in window
                }
                # parts arrive in completion order; the caller sorts them
                failures: list[tuple[int, BaseException]] = []
                for future in as_completed(futures):
                    exc = future.exception()
                    if exc is None:
                        completed.append(future.result())
                    else:
                        failures.append((futures[future], exc))
                if failures:
                    number, exc = min(failures, key=lambda item: item[0])
                    raise MultipartPartError(
                        f"Failed to upload part {number}: {exc}",
                        part_number=number,
                        code=getattr(exc, "code", None),
                        status=getattr(exc, "status", None),
                    ) from exc
                if len(window) < self._concurrency:
                    break
        return completed

    def _abort(self, bucket: str, key: str, upload_id: str) -> None:
        try:
            self._storage.abort_multipart_upload(
                bucket=bucket, object_key=key, upload_id=upload_id
            )
        except StorageError as exc:
            logger.error(
                "multipart_abort_failed bucket=%s key=%s upload_id=%s error=%s",
                bucket,
                key,
                upload_id,
                exc,
                extra={
                    "extra": {
                        "event": "multipart_abort_failed",
                        "bucket": bucket,
                        "key": key,
                        "upload_id": upload_id,
                    }
                },
            )
            return
        logger.warning(
            "multipart_aborted bucket=%s key=%s upload_id=%s",
            bucket,
            key,
            upload_id,
            extra={
                "extra": {
                    "event": "multipart_aborted",
                    "bucket": bucket,
                    "key": key,
                    "upload_id": upload_id,
                }
            },
        )
