"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输
"""
from pydantic import BaseModel, Field, model_serializer, ConfigDict
from typing import Optional
from datetime import datetime, timezone


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                s = ts.astimezone(timezone.utc).isoformat()
                return s.replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, tuple):
                return tuple(convert(v) for v in value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


class SharedFileDTO(DTOBase):
    """分享文件详情DTO（不包含密码哈希）"""

    id: int
    slug: str
    display_name: str
    stored_name: str
    size: int
    content_type: Optional[str]
    has_password: bool
    expires_at: Optional[datetime]
    is_expired: bool = False
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    share_url: Optional[str] = None
    download_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SharedFileListDTO(DTOBase):
    """分享文件列表"""

    items: list[SharedFileDTO] = Field(default_factory=list)
    total: int = 0


class UpdateSharedFileDTO(DTOBase):
    """分享文件部分更新DTO

    字段为 None 表示不修改；password 为空字符串表示移除密码保护。
    """

    expires_at: Optional[datetime] = Field(None, description="新的过期时间（RFC3339）")
    password: Optional[str] = Field(None, description="新密码，空字符串表示移除密码")
    slug: Optional[str] = Field(None, description="新的链接标识")

