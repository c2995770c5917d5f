"""Object API router.

This module provides REST API endpoints for browsing a bucket as folders,
downloading and uploading objects, and renaming, copying and deleting keys.
"""

from __future__ import annotations

import json
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import StreamingResponse

from s3explorer.api.deps import get_services
from s3explorer.api.errors import SERVICE_ERRORS, mutation_failure, to_http_exception
from s3explorer.api.schemas.common import ActionResult
from s3explorer.api.schemas.objects import (
    BatchDeleteOut,
    BatchDeleteRequest,
    CopyRequest,
    DownloadUrlOut,
    FolderCreate,
    ObjectListOut,
    ObjectMetadataOut,
    ObjectOut,
    RenameOut,
    RenameRequest,
    UploadedObjectOut,
    UploadOut,
)
from s3explorer.app.services.bundle import ServiceBundle
from s3explorer.app.services.mutation_service import DeleteTarget
from s3explorer.app.services.upload_service import UploadItem
from s3explorer.common.validation import (
    InvalidInputError,
    require_bucket_name,
    require_object_key,
)
from s3explorer.domain.keyspace import basename

router = APIRouter()
logger = logging.getLogger("http")


def _parse_names(raw: str | None) -> list[str] | None:
    """Decode the optional JSON array of client-resolved names."""
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("upload_names_unparsable", extra={"extra": {"names": raw[:200]}})
        return None
    if not isinstance(parsed, list):
        return None
    return [item if isinstance(item, str) else "" for item in parsed]


def _upload_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return int(upload.size)
    stream = upload.file
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(0)
    return size


@router.get(
    "/objects/{bucket}",
    response_model=ObjectListOut,
    summary="List objects",
    description="List files and folders directly under a prefix.",
)
def list_objects(
    bucket: str,
    prefix: str = Query(default=""),
    services: ServiceBundle = Depends(get_services),
) -> ObjectListOut:
    try:
        require_bucket_name(bucket)
        listing = services.gateway().list_objects(bucket, prefix)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ObjectListOut(
        objects=[ObjectOut.model_validate(info) for info in listing.objects],
        prefixes=listing.prefixes,
        bucket=bucket,
        prefix=prefix,
    )


@router.get(
    "/objects/{bucket}/download",
    response_model=DownloadUrlOut,
    summary="Get download URL",
    description="Generate a presigned URL for downloading an object.",
)
def get_download_url(
    bucket: str,
    key: str = Query(default=""),
    services: ServiceBundle = Depends(get_services),
) -> DownloadUrlOut:
    try:
        require_bucket_name(bucket)
        require_object_key(key)
        url = services.gateway().get_object_url(bucket, key, filename=basename(key))
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return DownloadUrlOut(url=url)


@router.get(
    "/objects/{bucket}/proxy",
    summary="Stream object",
    description="Stream the object body through the server.",
)
def proxy_object(
    bucket: str,
    key: str = Query(default=""),
    services: ServiceBundle = Depends(get_services),
) -> StreamingResponse:
    try:
        require_bucket_name(bucket)
        require_object_key(key)
        body = services.gateway().get_object_stream(bucket, key)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    headers: dict[str, str] = {}
    if body.content_length is not None:
        headers["Content-Length"] = str(body.content_length)
    return StreamingResponse(
        body.chunks,
        media_type=body.content_type or "application/octet-stream",
        headers=headers,
    )


@router.get(
    "/objects/{bucket}/metadata",
    response_model=ObjectMetadataOut,
    summary="Get object metadata",
)
def get_metadata(
    bucket: str,
    key: str = Query(default=""),
    services: ServiceBundle = Depends(get_services),
) -> ObjectMetadataOut:
    try:
        require_bucket_name(bucket)
        require_object_key(key)
        metadata = services.gateway().get_object_metadata(bucket, key)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ObjectMetadataOut.model_validate(metadata)


@router.post(
    "/objects/{bucket}/upload",
    response_model=UploadOut,
    summary="Upload files",
    description=(
        "Upload one or more files under a prefix. Payloads above the multipart "
        "threshold are sent to the backend as a multipart upload."
    ),
)
def upload_files(
    bucket: str,
    files: List[UploadFile] = File(default=[]),
    prefix: str = Form(default=""),
    names: Optional[str] = Form(default=None),
    on_conflict: Literal["overwrite", "rename"] = Form(
        default="overwrite", alias="onConflict"
    ),
    services: ServiceBundle = Depends(get_services),
) -> UploadOut:
    try:
        require_bucket_name(bucket)
        if not files:
            raise InvalidInputError("No files provided")
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    items = [
        UploadItem(
            filename=upload.filename or "",
            stream=upload.file,
            size=_upload_size(upload),
            content_type=upload.content_type,
        )
        for upload in files
    ]
    try:
        uploaded = services.upload().upload_files(
            bucket,
            prefix,
            items,
            names=_parse_names(names),
            on_conflict=on_conflict,
        )
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return UploadOut(
        uploaded=[UploadedObjectOut(key=obj.key, size=obj.size) for obj in uploaded]
    )


@router.post("/objects/{bucket}/folder", response_model=ActionResult, summary="Create folder")
def create_folder(
    bucket: str,
    payload: FolderCreate,
    services: ServiceBundle = Depends(get_services),
) -> ActionResult:
    try:
        require_bucket_name(bucket)
        require_object_key(payload.path, label="path")
        services.gateway().create_folder(bucket, payload.path)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ActionResult(message="Folder created")


@router.put(
    "/objects/{bucket}/rename",
    response_model=RenameOut,
    summary="Rename object or folder",
    description=(
        "Copy every affected key to its new location and delete the original. "
        "Failures are reported per key; nothing is rolled back."
    ),
)
def rename_object(
    bucket: str,
    payload: RenameRequest,
    services: ServiceBundle = Depends(get_services),
) -> RenameOut:
    try:
        require_bucket_name(bucket)
        require_object_key(payload.old_key, label="oldKey")
        require_object_key(payload.new_key, label="newKey")
        result = services.mutation().rename_object(bucket, payload.old_key, payload.new_key)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    if not result.ok:
        raise mutation_failure("Rename did not complete", result)
    return RenameOut(message="Renamed successfully", renamed=len(result.succeeded))


@router.post("/objects/{bucket}/copy", response_model=ActionResult, summary="Copy object")
def copy_object(
    bucket: str,
    payload: CopyRequest,
    services: ServiceBundle = Depends(get_services),
) -> ActionResult:
    try:
        require_bucket_name(bucket)
        if payload.dest_bucket:
            require_bucket_name(payload.dest_bucket, label="destination bucket")
        require_object_key(payload.source_key, label="sourceKey")
        require_object_key(payload.dest_key, label="destKey")
        services.mutation().copy_object(
            bucket,
            payload.source_key,
            payload.dest_bucket or bucket,
            payload.dest_key,
        )
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ActionResult(message="Copied successfully")


@router.delete(
    "/objects/{bucket}",
    response_model=ActionResult,
    summary="Delete object or folder",
)
def delete_object(
    bucket: str,
    key: str = Query(default=""),
    is_folder: bool = Query(default=False, alias="isFolder"),
    services: ServiceBundle = Depends(get_services),
) -> ActionResult:
    try:
        require_bucket_name(bucket)
        require_object_key(key)
        if is_folder:
            result = services.mutation().delete_folder(bucket, key)
            if not result.ok:
                raise mutation_failure("Folder delete did not complete", result)
        else:
            services.mutation().delete_object(bucket, key)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ActionResult(message="Deleted successfully")


@router.post(
    "/objects/{bucket}/batch-delete",
    response_model=BatchDeleteOut,
    summary="Delete several objects",
    description="Each entry is deleted independently and reported as deleted or failed.",
)
def batch_delete(
    bucket: str,
    payload: BatchDeleteRequest,
    services: ServiceBundle = Depends(get_services),
) -> BatchDeleteOut:
    targets = [DeleteTarget(key=item.key, is_folder=item.is_folder) for item in payload.objects]
    try:
        require_bucket_name(bucket)
        if not targets:
            raise InvalidInputError("objects must be a non-empty list")
        result = services.mutation().batch_delete(bucket, targets)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return BatchDeleteOut(deleted=result.deleted, failed=result.failed)

