"""Translation of service exceptions into HTTP errors.

Routers catch the closed set of service and storage exceptions and re-raise
them through `to_http_exception`; the problem+json handler in `main` renders
the detail dict produced here.
"""

from __future__ import annotations

from fastapi import HTTPException

from s3explorer.app.services.base import NoActiveConnectionError
from s3explorer.app.services.connection_service import (
    ConnectionConflictError,
    ConnectionLimitError,
    ConnectionNotFoundError,
)
from s3explorer.app.services.mutation_service import MutationResult
from s3explorer.common.crypto import CredentialDecryptionError
from s3explorer.common.validation import InvalidInputError
from s3explorer.infra.storage.client import (
    MultipartPartError,
    MultipartUploadError,
    StorageError,
)

BAD_GATEWAY = 502

SERVICE_ERRORS = (
    InvalidInputError,
    NoActiveConnectionError,
    ConnectionNotFoundError,
    ConnectionConflictError,
    ConnectionLimitError,
    CredentialDecryptionError,
    StorageError,
)


def _backend_status(status: int | None) -> int:
    # backend answers outside the error range (or none at all) become 502
    if status is None or status < 400 or status > 599:
        return BAD_GATEWAY
    return status


def to_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, InvalidInputError):
        return HTTPException(
            status_code=400,
            detail={"message": str(exc), "error_code": "invalid_input"},
        )
    if isinstance(exc, NoActiveConnectionError):
        return HTTPException(
            status_code=412,
            detail={"message": str(exc), "error_code": "no_active_connection"},
        )
    if isinstance(exc, ConnectionNotFoundError):
        return HTTPException(
            status_code=404,
            detail={"message": str(exc), "error_code": "connection_not_found"},
        )
    if isinstance(exc, ConnectionConflictError):
        return HTTPException(
            status_code=400,
            detail={"message": str(exc), "error_code": "connection_conflict"},
        )
    if isinstance(exc, ConnectionLimitError):
        return HTTPException(
            status_code=400,
            detail={"message": str(exc), "error_code": "connection_limit"},
        )
    if isinstance(exc, CredentialDecryptionError):
        return HTTPException(
            status_code=500,
            detail={"message": str(exc), "error_code": "credentials_unreadable"},
        )
    if isinstance(exc, MultipartUploadError):
        detail: dict[str, object] = {
            "message": exc.message,
            "error_code": "upload_failed",
            "s3_code": exc.code,
        }
        if isinstance(exc, MultipartPartError):
            detail["part_number"] = exc.part_number
        return HTTPException(status_code=_backend_status(exc.status), detail=detail)
    if isinstance(exc, StorageError):
        return HTTPException(
            status_code=_backend_status(exc.status),
            detail={
                "message": exc.message,
                "error_code": "backend_error",
                "s3_code": exc.code,
            },
        )
    raise TypeError(f"Unsupported exception type: {type(exc).__name__}") from exc


def mutation_failure(message: str, result: MutationResult) -> HTTPException:
    """500 response for a rename or folder delete that did not fully succeed."""
    return HTTPException(
        status_code=500,
        detail={
            "message": message,
            "error_code": "partial_failure",
            "outcome": result.status.value,
            "failed": [
                {
                    "key": failure.key,
                    "stage": failure.stage,
                    "message": failure.message,
                    "s3Code": failure.code,
                }
                for failure in result.failed
            ],
            "succeeded": list(result.succeeded),
        },
    )
