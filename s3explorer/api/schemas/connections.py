from __future__ import annotations

from datetime import datetime

from pydantic import Field

from .common import CamelModel


class ConnectionCreate(CamelModel):
    name: str = Field(default="", max_length=255)
    endpoint: str = ""
    access_key: str = ""
    secret_key: str = ""
    region: str | None = None
    force_path_style: bool | None = None


class ConnectionUpdate(CamelModel):
    name: str | None = Field(default=None, max_length=255)
    endpoint: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    region: str | None = None
    force_path_style: bool | None = None


class ConnectionTest(CamelModel):
    endpoint: str = ""
    access_key: str = ""
    secret_key: str = ""
    region: str | None = None
    force_path_style: bool | None = None


class ConnectionOut(CamelModel):
    """Public view of a profile; credentials are never returned."""

    id: int
    name: str
    endpoint: str
    region: str
    force_path_style: bool
    is_active: bool
    created_at: datetime | None = None


class ConnectionsOut(CamelModel):
    connections: list[ConnectionOut]


class ActiveConnectionOut(CamelModel):
    active: ConnectionOut | None = None


class ConnectionCreated(CamelModel):
    success: bool = True
    id: int


class ConnectionTestOut(CamelModel):
    success: bool = True
    bucket_count: int
