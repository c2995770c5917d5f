from .base import BaseService, NoActiveConnectionError, ServiceError
from .bundle import ServiceBundle, get_service_bundle
from .connection_service import (
    ConnectionConflictError,
    ConnectionCreateData,
    ConnectionLimitError,
    ConnectionNotFoundError,
    ConnectionService,
    ConnectionUpdateData,
)
from .mutation_service import (
    BatchDeleteResult,
    DeleteTarget,
    KeyFailure,
    MutationResult,
    MutationService,
    MutationStatus,
)
from .storage_gateway import ObjectMetadata, StorageGateway
from .upload_service import UploadedObject, UploadItem, UploadService

__all__ = [
    "BaseService",
    "ServiceError",
    "NoActiveConnectionError",
    "ServiceBundle",
    "get_service_bundle",
    "ConnectionService",
    "ConnectionCreateData",
    "ConnectionUpdateData",
    "ConnectionNotFoundError",
    "ConnectionConflictError",
    "ConnectionLimitError",
    "StorageGateway",
    "ObjectMetadata",
    "UploadService",
    "UploadItem",
    "UploadedObject",
    "MutationService",
    "MutationResult",
    "MutationStatus",
    "KeyFailure",
    "DeleteTarget",
    "BatchDeleteResult",
]
