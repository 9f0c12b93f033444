"""Shared file database model definitions."""
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.sql import func

from .base import Base

# 部分唯一索引：只约束未删除的行，软删除后名称可复用
_ACTIVE_ONLY = text("deleted_at IS NULL")


class SharedFileModel(Base):
    """ORM mapping for shared_files table."""

    __tablename__ = "shared_files"
    __table_args__ = (
        Index(
            "uq_shared_files_slug_active",
            "slug",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
        Index(
            "uq_shared_files_stored_name_active",
            "stored_name",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
        Index("ix_shared_files_display_name", "display_name"),
        Index("ix_shared_files_expires_at", "expires_at"),
        Index("ix_shared_files_created_at", "created_at"),
        {
            "comment": "分享文件表，记录上传文件与其公开链接",
        },
    )

    id = Column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="主键ID",
    )
    storage_key = Column(
        String(512),
        nullable=False,
        comment="存储后端中的Key（路径）",
    )
    stored_name = Column(
        String(255),
        nullable=False,
        comment="随机存储文件名（含原扩展名）",
    )
    display_name = Column(
        String(255),
        nullable=False,
        comment="展示给下载方的原始文件名",
    )
    slug = Column(
        String(100),
        nullable=False,
        comment="公开链接标识",
    )
    size = Column(
        BigInteger,
        nullable=False,
        default=0,
        server_default=text("0"),
        comment="文件大小（字节）",
    )
    content_type = Column(
        String(255),
        nullable=True,
        comment="MIME类型",
    )
    password_hash = Column(
        String(255),
        nullable=True,
        comment="访问密码的bcrypt哈希（为空表示无需密码）",
    )
    expires_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="过期时间（为空表示永不过期）",
    )
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        comment="创建时间",
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
        comment="更新时间",
    )
    deleted_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="删除时间（软删除）",
    )

    def __repr__(self) -> str:
        return (
            "<SharedFileModel(id={id}, slug='{slug}', stored_name='{stored_name}')>"
        ).format(
            id=self.id,
            slug=self.slug,
            stored_name=self.stored_name,
        )
