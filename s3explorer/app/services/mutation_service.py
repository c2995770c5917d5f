"""Rename, copy and delete over keys and folders.

S3 has no rename and no recursive delete. Renaming is a server-side copy
followed by a delete of the original; folder operations enumerate every key
under the prefix first and then process keys independently. Outcomes are
reported per key instead of stopping at the first failure.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Literal, Sequence, TypeVar

from s3explorer.app.services.storage_gateway import StorageGateway
from s3explorer.common.config import Settings, get_settings
from s3explorer.common.validation import (
    InvalidInputError,
    is_valid_object_key,
    require_bucket_name,
    require_object_key,
)
from s3explorer.domain.keyspace import folder_key, is_folder_key, rebase_key
from s3explorer.infra.storage.client import StorageClient, StorageError

logger = logging.getLogger(__name__)

Stage = Literal["copy", "delete"]
T = TypeVar("T")


class MutationStatus(str, Enum):
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class KeyFailure:
    key: str
    message: str
    stage: Stage
    code: str | None = None


@dataclass(frozen=True, slots=True)
class MutationResult:
    """Aggregated outcome of a multi-key rename or delete."""

    succeeded: list[str] = field(default_factory=list)
    failed: list[KeyFailure] = field(default_factory=list)

    @property
    def status(self) -> MutationStatus:
        if not self.failed:
            return MutationStatus.COMPLETED
        if self.succeeded:
            return MutationStatus.PARTIALLY_COMPLETED
        return MutationStatus.FAILED

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass(frozen=True, slots=True)
class DeleteTarget:
    key: str
    is_folder: bool = False


@dataclass(frozen=True, slots=True)
class BatchDeleteResult:
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    details: list[KeyFailure] = field(default_factory=list)


class MutationService:
    """Key-level mutations with explicit partial-failure reporting."""

    def __init__(
        self,
        storage_client: StorageClient,
        *,
        gateway: StorageGateway | None = None,
        settings: Settings | None = None,
        concurrency: int | None = None,
    ) -> None:
        self._storage = storage_client
        self._settings = settings or get_settings()
        self._gateway = gateway or StorageGateway(storage_client, settings=self._settings)
        self._concurrency = max(
            1, int(concurrency or self._settings.MUTATION_CONCURRENCY)
        )

    def rename_object(self, bucket: str, old_key: str, new_key: str) -> MutationResult:
        """Move a file or a whole folder to a new key.

        Raises:
            InvalidInputError: On malformed input, an unchanged key or a folder
                moved into itself.
        """
        bucket = require_bucket_name(bucket)
        old_key = require_object_key(old_key, label="oldKey")
        new_key = require_object_key(new_key, label="newKey")
        if old_key == new_key:
            raise InvalidInputError("New key must differ from the old key")

        if not is_folder_key(old_key):
            return self._move_keys(bucket, [(old_key, new_key)])

        new_prefix = folder_key(new_key)
        if new_prefix == old_key:
            raise InvalidInputError("New key must differ from the old key")
        if new_prefix.startswith(old_key):
            raise InvalidInputError("Cannot move a folder into itself")

        keys = list(self._gateway.iter_keys(bucket, old_key))
        moves = [(key, rebase_key(key, old_key, new_prefix)) for key in keys]
        result = self._move_keys(bucket, moves)
        self._log_result("folder_renamed", bucket, old_key, result, new_prefix=new_prefix)
        return result

    def copy_object(
        self,
        source_bucket: str,
        source_key: str,
        dest_bucket: str,
        dest_key: str,
    ) -> None:
        self._storage.copy_object(
            source_bucket=require_bucket_name(source_bucket),
            source_key=require_object_key(source_key, label="sourceKey"),
            bucket=require_bucket_name(dest_bucket, label="destination bucket"),
            object_key=require_object_key(dest_key, label="destKey"),
        )

    def delete_object(self, bucket: str, key: str) -> None:
        self._storage.delete_object(
            bucket=require_bucket_name(bucket),
            object_key=require_object_key(key),
        )

    def delete_folder(self, bucket: str, prefix: str) -> MutationResult:
        """Delete every key under prefix, continuing past failures."""
        bucket = require_bucket_name(bucket)
        prefix = folder_key(require_object_key(prefix))
        keys = list(self._gateway.iter_keys(bucket, prefix))
        result = self._delete_keys(bucket, keys)
        self._log_result("folder_deleted", bucket, prefix, result)
        return result

    def batch_delete(
        self, bucket: str, targets: Sequence[DeleteTarget]
    ) -> BatchDeleteResult:
        """Delete each target independently.

        Every target ends up in exactly one of ``deleted`` or ``failed``. A
        folder counts as deleted only when every key under it was removed.
        """
        bucket = require_bucket_name(bucket)
        if not targets:
            raise InvalidInputError("objects must be a non-empty list")

        deleted: list[str] = []
        failed: list[str] = []
        details: list[KeyFailure] = []
        for target in targets:
            if not is_valid_object_key(target.key):
                label = target.key or "unknown"
                failed.append(label)
                details.append(KeyFailure(key=label, message="Invalid key", stage="delete"))
                continue
            if target.is_folder:
                try:
                    result = self.delete_folder(bucket, target.key)
                except StorageError as exc:
                    failed.append(target.key)
                    details.append(_failure(target.key, "delete", exc))
                    continue
                if result.ok:
                    deleted.append(target.key)
                else:
                    failed.append(target.key)
                    details.extend(result.failed)
                continue
            try:
                self._storage.delete_object(bucket=bucket, object_key=target.key)
            except StorageError as exc:
                failed.append(target.key)
                details.append(_failure(target.key, "delete", exc))
                continue
            deleted.append(target.key)

        if failed:
            logger.warning(
                "batch_delete_partial bucket=%s deleted=%s failed=%s",
                bucket,
                len(deleted),
                len(failed),
                extra={
                    "extra": {
                        "event": "batch_delete_partial",
                        "bucket": bucket,
                        "failed_keys": failed,
                    }
                },
            )
        return BatchDeleteResult(deleted=deleted, failed=failed, details=details)

    def _move_keys(
        self, bucket: str, moves: Sequence[tuple[str, str]]
    ) -> MutationResult:
        outcomes = self._run_all(lambda move: self._move_one(bucket, *move), moves)
        succeeded = [source for (source, _), failure in zip(moves, outcomes) if failure is None]
        failed = [failure for failure in outcomes if failure is not None]
        return MutationResult(succeeded=succeeded, failed=failed)

    def _move_one(self, bucket: str, source: str, target: str) -> KeyFailure | None:
        # The original is removed only after its copy exists
        try:
            self._storage.copy_object(
                source_bucket=bucket, source_key=source, bucket=bucket, object_key=target
            )
        except StorageError as exc:
            return _failure(source, "copy", exc)
        try:
            self._storage.delete_object(bucket=bucket, object_key=source)
        except StorageError as exc:
            return _failure(source, "delete", exc)
        return None

    def _delete_keys(self, bucket: str, keys: Sequence[str]) -> MutationResult:
        outcomes = self._run_all(lambda key: self._delete_one(bucket, key), keys)
        succeeded = [key for key, failure in zip(keys, outcomes) if failure is None]
        failed = [failure for failure in outcomes if failure is not None]
        return MutationResult(succeeded=succeeded, failed=failed)

    def _delete_one(self, bucket: str, key: str) -> KeyFailure | None:
        try:
            self._storage.delete_object(bucket=bucket, object_key=key)
        except StorageError as exc:
            return _failure(key, "delete", exc)
        return None

    def _run_all(
        self, func: Callable[[T], KeyFailure | None], items: Sequence[T]
    ) -> list[KeyFailure | None]:
        if not items:
            return []
        workers = min(self._concurrency, len(items))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mutation") as executor:
            return list(executor.map(func, items))

    def _log_result(
        self,
        event: str,
        bucket: str,
        prefix: str,
        result: MutationResult,
        **fields: str,
    ) -> None:
        payload = {
            "event": event,
            "bucket": bucket,
            "prefix": prefix,
            "status": result.status.value,
            "succeeded": len(result.succeeded),
            "failed": len(result.failed),
            **fields,
        }
        if result.failed:
            for failure in result.failed:
                logger.warning(
                    "key_mutation_failed bucket=%s key=%s stage=%s error=%s",
                    bucket,
                    failure.key,
                    failure.stage,
                    failure.message,
                    extra={
                        "extra": {
                            "event": "key_mutation_failed",
                            "bucket": bucket,
                            "key": failure.key,
                            "stage": failure.stage,
                            "s3_code": failure.code,
                        }
                    },
                )
        logger.info(
            "%s bucket=%s prefix=%s status=%s",
            event,
            bucket,
            prefix,
            result.status.value,
            extra={"extra": payload},
        )


def _failure(key: str, stage: Stage, exc: StorageError) -> KeyFailure:
    return KeyFailure(key=key, message=exc.message, stage=stage, code=exc.code)
