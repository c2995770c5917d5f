"""Bucket API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from s3explorer.api.deps import get_services
from s3explorer.api.errors import SERVICE_ERRORS, to_http_exception
from s3explorer.api.schemas.buckets import BucketCreate, BucketOut, BucketsOut
from s3explorer.api.schemas.common import ActionResult
from s3explorer.app.services.bundle import ServiceBundle
from s3explorer.common.validation import require_bucket_name

router = APIRouter()


@router.get(
    "/buckets",
    response_model=BucketsOut,
    summary="List buckets",
    description="List every bucket visible to the active connection.",
)
def list_buckets(services: ServiceBundle = Depends(get_services)) -> BucketsOut:
    try:
        buckets = services.gateway().list_buckets()
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return BucketsOut(
        buckets=[
            BucketOut(name=b.name, creation_date=b.creation_date) for b in buckets
        ]
    )


@router.post("/buckets", response_model=ActionResult, summary="Create bucket")
def create_bucket(
    payload: BucketCreate,
    services: ServiceBundle = Depends(get_services),
) -> ActionResult:
    try:
        require_bucket_name(payload.name)
        services.gateway().create_bucket(payload.name)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ActionResult(message=f"Bucket {payload.name} created")


@router.delete(
    "/buckets/{name}",
    response_model=ActionResult,
    summary="Delete bucket",
    description="Remove every object in the bucket, then delete the bucket.",
)
def delete_bucket(
    name: str,
    services: ServiceBundle = Depends(get_services),
) -> ActionResult:
    try:
        require_bucket_name(name)
        services.gateway().delete_bucket(name)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ActionResult(message=f"Bucket {name} deleted")
