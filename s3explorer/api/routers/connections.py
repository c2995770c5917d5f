"""Connection profile API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from s3explorer.api.deps import get_services
from s3explorer.api.errors import SERVICE_ERRORS, to_http_exception
from s3explorer.api.schemas.common import ActionResult
from s3explorer.api.schemas.connections import (
    ActiveConnectionOut,
    ConnectionCreate,
    ConnectionCreated,
    ConnectionOut,
    ConnectionsOut,
    ConnectionTest,
    ConnectionTestOut,
    ConnectionUpdate,
)
from s3explorer.app.services.bundle import ServiceBundle
from s3explorer.app.services.connection_service import (
    ConnectionCreateData,
    ConnectionUpdateData,
    require_client_settings,
)
from s3explorer.common.validation import InvalidInputError
from s3explorer.infra.storage.client import ConnectionConfig, StorageError

router = APIRouter()


@router.get("/connections", response_model=ConnectionsOut, summary="List connections")
def list_connections(services: ServiceBundle = Depends(get_services)) -> ConnectionsOut:
    rows = services.connection().list_connections()
    return ConnectionsOut(connections=[ConnectionOut.model_validate(row) for row in rows])


@router.get(
    "/connections/active",
    response_model=ActiveConnectionOut,
    summary="Get active connection",
)
def get_active_connection(
    services: ServiceBundle = Depends(get_services),
) -> ActiveConnectionOut:
    row = services.connection().get_active()
    return ActiveConnectionOut(
        active=ConnectionOut.model_validate(row) if row is not None else None
    )


@router.post(
    "/connections",
    response_model=ConnectionCreated,
    summary="Create connection",
    description=(
        "Store a connection profile. The connection is tested first; a failed "
        "test is logged but does not prevent saving."
    ),
)
def create_connection(
    payload: ConnectionCreate,
    services: ServiceBundle = Depends(get_services),
) -> ConnectionCreated:
    data = ConnectionCreateData(
        name=payload.name,
        endpoint=payload.endpoint,
        access_key=payload.access_key,
        secret_key=payload.secret_key,
        region=payload.region,
        force_path_style=payload.force_path_style,
    )
    try:
        connection = services.connection().create_connection(data)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ConnectionCreated(id=connection.id)


@router.put("/connections/{connection_id}", response_model=ActionResult, summary="Update connection")
def update_connection(
    connection_id: int,
    payload: ConnectionUpdate,
    services: ServiceBundle = Depends(get_services),
) -> ActionResult:
    data = ConnectionUpdateData(
        name=payload.name,
        endpoint=payload.endpoint,
        access_key=payload.access_key,
        secret_key=payload.secret_key,
        region=payload.region,
        force_path_style=payload.force_path_style,
    )
    try:
        services.connection().update_connection(connection_id, data)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ActionResult()


@router.delete(
    "/connections/{connection_id}",
    response_model=ActionResult,
    summary="Delete connection",
)
def delete_connection(
    connection_id: int,
    services: ServiceBundle = Depends(get_services),
) -> ActionResult:
    try:
        services.connection().delete_connection(connection_id)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ActionResult()


@router.post(
    "/connections/disconnect",
    response_model=ActionResult,
    summary="Disconnect",
    description="Clear the active connection without deleting any profile.",
)
def disconnect(services: ServiceBundle = Depends(get_services)) -> ActionResult:
    services.connection().disconnect()
    return ActionResult()


@router.post(
    "/connections/test",
    response_model=ConnectionTestOut,
    summary="Test connection",
    description="Try the given settings by listing buckets; nothing is saved.",
)
def test_connection(
    payload: ConnectionTest,
    services: ServiceBundle = Depends(get_services),
) -> ConnectionTestOut:
    config = ConnectionConfig(
        endpoint=payload.endpoint.strip(),
        access_key=payload.access_key,
        secret_key=payload.secret_key,
        region=(payload.region or "").strip() or services.settings.S3_DEFAULT_REGION,
        force_path_style=(
            True if payload.force_path_style is None else payload.force_path_style
        ),
    )
    try:
        require_client_settings(config)
        bucket_count = len(services.with_override(config).gateway().list_buckets())
    except InvalidInputError as exc:
        raise to_http_exception(exc) from exc
    except StorageError as exc:
        raise HTTPException(
            status_code=400,
            detail={
                "message": f"Connection failed: {exc.message}",
                "error_code": "connection_failed",
                "s3_code": exc.code,
            },
        ) from exc
    return ConnectionTestOut(bucket_count=bucket_count)


@router.post(
    "/connections/{connection_id}/activate",
    response_model=ActionResult,
    summary="Activate connection",
)
def activate_connection(
    connection_id: int,
    services: ServiceBundle = Depends(get_services),
) -> ActionResult:
    try:
        services.connection().activate(connection_id)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ActionResult()
