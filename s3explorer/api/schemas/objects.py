"""Pydantic schemas for object API endpoints.

Field names travel as camelCase on the wire (``oldKey``, ``isFolder``...).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from .common import CamelModel


class ObjectOut(CamelModel):
    key: str
    size: int = 0
    last_modified: datetime | None = None
    is_folder: bool = False
    content_type: str | None = None
    etag: str | None = None


class ObjectListOut(CamelModel):
    objects: list[ObjectOut]
    prefixes: list[str]
    bucket: str
    prefix: str


class DownloadUrlOut(CamelModel):
    url: str


class ObjectMetadataOut(CamelModel):
    content_type: str | None = None
    content_length: int
    last_modified: datetime | None = None
    etag: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class UploadedObjectOut(CamelModel):
    key: str
    size: int


class UploadOut(CamelModel):
    success: bool = True
    uploaded: list[UploadedObjectOut]


class FolderCreate(CamelModel):
    path: str = ""


class RenameRequest(CamelModel):
    old_key: str = ""
    new_key: str = ""


class RenameOut(CamelModel):
    success: bool = True
    message: str
    renamed: int = 0


class CopyRequest(CamelModel):
    source_key: str = ""
    dest_bucket: str | None = None
    dest_key: str = ""


class DeleteTargetIn(CamelModel):
    key: str = ""
    is_folder: bool = False


class BatchDeleteRequest(CamelModel):
    objects: list[DeleteTargetIn] = Field(default_factory=list)


class BatchDeleteOut(CamelModel):
    deleted: list[str]
    failed: list[str]
