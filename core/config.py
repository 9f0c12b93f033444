"""
配置文件 - 项目配置管理
"""
import json
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseModel):
    # Only used as Celery broker / result backend
    url: Optional[str] = None


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./data/sharelink.db"


class StorageSettings(BaseModel):
    type: str = "local"  # local, s3
    # Local storage specific
    local_base_path: str = "./data/files"
    # S3 specific (AWS or any S3-compatible endpoint such as MinIO)
    bucket: Optional[str] = None
    region: Optional[str] = "us-east-1"
    endpoint: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    use_path_style: bool = False
    # Advanced settings
    max_retry_attempts: int = 3
    timeout: int = 30
    enable_ssl: bool = True
    max_file_size: int = 0  # 0 = unlimited

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v):
        value = (v or "local").strip().lower()
        if value not in {"local", "s3"}:
            raise ValueError(f"unsupported storage type: {value} (supported: local, s3)")
        return value

    @model_validator(mode="after")
    def _check_s3(self):
        if self.type == "s3":
            if not self.bucket:
                raise ValueError("storage.bucket is required when using S3 storage")
            if not (self.aws_access_key_id and self.aws_secret_access_key):
                raise ValueError(
                    "storage.aws_access_key_id and storage.aws_secret_access_key are required when using S3 storage"
                )
        return self


class ShareSettings(BaseModel):
    # slug: separate [a-z0-9-] token; filename: sanitized filename is the link
    link_variant: str = "slug"
    slug_max_attempts: int = 100
    stored_name_max_attempts: int = 10
    bcrypt_rounds: int = 10
    cleanup_enabled: bool = True
    cleanup_interval_seconds: int = 3600
    download_chunk_size: int = 64 * 1024

    @field_validator("link_variant", mode="before")
    @classmethod
    def _normalize_variant(cls, v):
        value = (v or "slug").strip().lower()
        if value not in {"slug", "filename"}:
            raise ValueError(f"unsupported link variant: {value} (supported: slug, filename)")
        return value


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = "sharelink"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    # 对外访问地址，用于生成分享链接
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    share: ShareSettings = Field(default_factory=ShareSettings)

    # CORS配置
    CORS_ORIGINS: list = Field(default=["http://localhost:3000", "http://localhost:8000"])

    # 日志/请求体记录配置
    LOG_REQUEST_BODY_MAX_BYTES: int = 2048

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v


settings = Settings()
