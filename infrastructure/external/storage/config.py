"""Storage configuration models."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class StorageType(str, Enum):
    """Storage provider types."""
    S3 = "s3"
    LOCAL = "local"


class StorageConfig(BaseModel):
    """Storage configuration model; exactly one backend is active."""

    model_config = ConfigDict(use_enum_values=True)

    type: StorageType = StorageType.LOCAL

    # Local specific
    local_base_path: str = "./data/files"

    # S3 specific
    bucket: Optional[str] = None
    region: Optional[str] = None
    endpoint: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    use_path_style: bool = False

    # Advanced settings
    max_retry_attempts: int = 3
    timeout: int = 30
    enable_ssl: bool = True
