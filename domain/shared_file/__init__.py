"""Shared file domain exports."""
from .entity import SharedFile
from .repository import SharedFileRepository
from .service import PasswordHasher, SlugService
from .slug import LinkVariant, SlugPolicy

__all__ = [
    "SharedFile",
    "SharedFileRepository",
    "PasswordHasher",
    "SlugService",
    "LinkVariant",
    "SlugPolicy",
]
