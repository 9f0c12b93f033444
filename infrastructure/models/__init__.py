"""Infrastructure models package exports."""
from .base import Base, metadata
from .shared_file import SharedFileModel

__all__ = [
    "Base",
    "metadata",
    "SharedFileModel",
]
