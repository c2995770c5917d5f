from sqlalchemy import Boolean, Index, Integer, String, Text, false, text, true
from sqlalchemy.orm import Mapped, mapped_column

from s3explorer.infra.db.base import Base, TimestampMixin


class Connection(Base, TimestampMixin):
    """A saved S3-compatible connection profile.

    Fields
    -------
    id : Database primary key.
    name : Unique human-readable label.
    endpoint : Endpoint URL of the S3-compatible service.
    region : Signing region, ``us-east-1`` unless the provider needs another.
    access_key_enc / secret_key_enc : Fernet tokens; plaintext is never stored.
    force_path_style : Use ``endpoint/bucket/key`` addressing instead of
        virtual-hosted buckets (MinIO and most self-hosted services need it).
    is_active : Marks the profile used for every storage request. At most one
        row may be active; the partial unique index enforces it.
    created_at / updated_at : Audit timestamps from `TimestampMixin`.
    """

    __tablename__ = "connections"
    __table_args__ = (
        Index(
            "uq_connections_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    endpoint: Mapped[str] = mapped_column(Text, nullable=False)
    region: Mapped[str] = mapped_column(
        String(64), nullable=False, default="us-east-1"
    )
    access_key_enc: Mapped[str] = mapped_column(Text, nullable=False)
    secret_key_enc: Mapped[str] = mapped_column(Text, nullable=False)
    force_path_style: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
