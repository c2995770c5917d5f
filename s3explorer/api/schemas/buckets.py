from __future__ import annotations

from datetime import datetime

from .common import CamelModel


class BucketCreate(CamelModel):
    name: str = ""


class BucketOut(CamelModel):
    name: str
    creation_date: datetime | None = None


class BucketsOut(CamelModel):
    buckets: list[BucketOut]
