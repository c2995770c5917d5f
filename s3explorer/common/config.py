from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

MIB = 1024 * 1024
# Smallest non-final part size accepted by S3-compatible backends.
MIN_PART_SIZE_BYTES = 5 * MIB
SUPPORTED_DB_SCHEMES: tuple[str, ...] = ("sqlite", "postgresql")


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_int(value: str | None, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    return int(value)


@dataclass
class Settings:
    DB_URL: str = "sqlite:///./data/s3explorer.db"
    DB_CONNECT_TIMEOUT: int = 5
    DATA_DIR: str = "./data"
    CREDENTIALS_KEY: str | None = None
    ENABLE_METRICS: bool = True
    CORS_ENABLED: bool = False
    CORS_ORIGINS: list[str] = field(default_factory=list)
    AUTO_APPLY_MIGRATIONS: bool = True
    TRACE_HTTP: bool = False
    S3_DEFAULT_REGION: str = "us-east-1"
    MULTIPART_THRESHOLD_BYTES: int = 100 * MIB
    MULTIPART_PART_SIZE_BYTES: int = 10 * MIB
    MULTIPART_CONCURRENCY: int = 5
    MUTATION_CONCURRENCY: int = 5
    PRESIGN_EXPIRES_SECONDS: int = 3600
    MAX_UPLOAD_BYTES: int = 500 * MIB
    MAX_CONNECTIONS: int = 100

    def __post_init__(self) -> None:
        db_scheme = self.DB_URL.split(":", 1)[0].lower()
        if not db_scheme.startswith(SUPPORTED_DB_SCHEMES):
            raise ValueError(
                "DB_URL must point to a SQLite or PostgreSQL datasource "
                "(sqlite:///path or postgresql+driver://...)."
            )
        if self.MULTIPART_PART_SIZE_BYTES < MIN_PART_SIZE_BYTES:
            raise ValueError(
                f"MULTIPART_PART_SIZE_BYTES must be at least {MIN_PART_SIZE_BYTES} bytes."
            )
        if self.MULTIPART_THRESHOLD_BYTES < self.MULTIPART_PART_SIZE_BYTES:
            raise ValueError(
                "MULTIPART_THRESHOLD_BYTES must not be smaller than MULTIPART_PART_SIZE_BYTES."
            )
        if self.MULTIPART_CONCURRENCY < 1 or self.MUTATION_CONCURRENCY < 1:
            raise ValueError("Concurrency settings must be positive integers.")

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            DB_URL=os.environ.get("DB_URL", cls.DB_URL),
            DB_CONNECT_TIMEOUT=_as_int(
                os.environ.get("DB_CONNECT_TIMEOUT"), cls.DB_CONNECT_TIMEOUT
            ),
            DATA_DIR=os.environ.get("DATA_DIR", cls.DATA_DIR),
            CREDENTIALS_KEY=os.environ.get("CREDENTIALS_KEY") or None,
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            CORS_ENABLED=_as_bool(os.environ.get("CORS_ENABLED"), cls.CORS_ENABLED),
            CORS_ORIGINS=_as_list(os.environ.get("CORS_ORIGINS")),
            AUTO_APPLY_MIGRATIONS=_as_bool(
                os.environ.get("AUTO_APPLY_MIGRATIONS"), cls.AUTO_APPLY_MIGRATIONS
            ),
            TRACE_HTTP=_as_bool(os.environ.get("TRACE_HTTP"), cls.TRACE_HTTP),
            S3_DEFAULT_REGION=os.environ.get(
                "S3_DEFAULT_REGION", cls.S3_DEFAULT_REGION
            ),
            MULTIPART_THRESHOLD_BYTES=_as_int(
                os.environ.get("MULTIPART_THRESHOLD_BYTES"),
                cls.MULTIPART_THRESHOLD_BYTES,
            ),
            MULTIPART_PART_SIZE_BYTES=_as_int(
                os.environ.get("MULTIPART_PART_SIZE_BYTES"),
                cls.MULTIPART_PART_SIZE_BYTES,
            ),
            MULTIPART_CONCURRENCY=_as_int(
                os.environ.get("MULTIPART_CONCURRENCY"), cls.MULTIPART_CONCURRENCY
            ),
            MUTATION_CONCURRENCY=_as_int(
                os.environ.get("MUTATION_CONCURRENCY"), cls.MUTATION_CONCURRENCY
            ),
            PRESIGN_EXPIRES_SECONDS=_as_int(
                os.environ.get("PRESIGN_EXPIRES_SECONDS"), cls.PRESIGN_EXPIRES_SECONDS
            ),
            MAX_UPLOAD_BYTES=_as_int(
                os.environ.get("MAX_UPLOAD_BYTES"), cls.MAX_UPLOAD_BYTES
            ),
            MAX_CONNECTIONS=_as_int(
                os.environ.get("MAX_CONNECTIONS"), cls.MAX_CONNECTIONS
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
